"""Time sources for the game session.

Everything that timestamps samples or waits for a deadline takes a Clock,
so tests can drive the feed and prediction timers with ManualClock instead
of real sleeps.
"""

import asyncio
import heapq
import itertools
import time
from typing import Protocol


class Clock(Protocol):
    """Monotonic time source with an awaitable sleep."""

    def now(self) -> float:
        """Return the current time in seconds (UTC epoch based)."""
        ...

    async def sleep(self, delay: float) -> None:
        """Suspend the calling coroutine for `delay` seconds."""
        ...


class SystemClock:
    """Wall-clock UTC time that never goes backwards.

    Anchors time.monotonic() to the epoch once at construction, so NTP
    adjustments during a session cannot reorder history samples.
    """

    def __init__(self) -> None:
        self._offset = time.time() - time.monotonic()

    def now(self) -> float:
        return self._offset + time.monotonic()

    async def sleep(self, delay: float) -> None:
        await asyncio.sleep(max(0.0, delay))


class ManualClock:
    """Clock that only moves when advance() is called.

    Sleepers are kept in a deadline-ordered heap. advance() wakes them in
    deadline order (ties in registration order) and lets the woken tasks
    run before moving on, so a tick loop that re-sleeps inside the window
    fires again within the same advance() call.
    """

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self._sleepers: list[tuple[float, int, asyncio.Future[None]]] = []
        self._counter = itertools.count()

    def now(self) -> float:
        return self._now

    async def sleep(self, delay: float) -> None:
        if delay <= 0:
            await asyncio.sleep(0)
            return
        future: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        heapq.heappush(self._sleepers, (self._now + delay, next(self._counter), future))
        await future

    @property
    def pending(self) -> int:
        """Number of sleepers that have not been woken or cancelled."""
        return sum(1 for _, _, future in self._sleepers if not future.done())

    async def advance(self, seconds: float) -> None:
        """Move time forward by `seconds`, waking every sleeper that comes due."""
        await _run_ready_tasks()
        target = self._now + seconds
        while self._sleepers and self._sleepers[0][0] <= target:
            deadline, _, future = heapq.heappop(self._sleepers)
            if future.done():
                continue
            self._now = deadline
            future.set_result(None)
            await _run_ready_tasks()
        self._now = target
        await _run_ready_tasks()


async def _run_ready_tasks(rounds: int = 10) -> None:
    """Yield to the event loop enough times for woken tasks to settle."""
    for _ in range(rounds):
        await asyncio.sleep(0)
