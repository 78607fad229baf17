"""Timer queue for deferred and fire-and-forget coroutines.

Owns every background task the game core starts outside the feed loop:
prediction resolution timers and best-effort backend posts. shutdown()
is the only way a pending timer is cancelled.
"""

import asyncio
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any

from fxgame.clock import Clock
from fxgame.logging import get_logger

logger = get_logger(__name__)


class TimerQueue:
    """Schedules coroutines on an injected Clock and tracks them for shutdown.

    Args:
        clock: Time source used for delays.
    """

    def __init__(self, clock: Clock) -> None:
        self._clock = clock
        self._tasks: set[asyncio.Task[None]] = set()
        self._closed = False

    @property
    def pending(self) -> int:
        """Number of tasks that have not finished yet."""
        return len(self._tasks)

    @property
    def is_closed(self) -> bool:
        return self._closed

    def call_later(
        self,
        delay: float,
        callback: Callable[[], Awaitable[Any]],
        name: str = "timer",
    ) -> asyncio.Task[None]:
        """Run `callback()` once, `delay` seconds from now."""
        return self._track(self._delayed(delay, callback, name), name)

    def spawn(self, coro: Coroutine[Any, Any, Any], name: str = "background") -> asyncio.Task[None]:
        """Run a coroutine in the background without awaiting its result."""
        return self._track(self._guarded(coro, name), name)

    async def shutdown(self) -> None:
        """Cancel every tracked task and wait for them to unwind."""
        self._closed = True
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        logger.info("timer_queue_shutdown", cancelled=len(tasks))

    def _track(self, coro: Coroutine[Any, Any, None], name: str) -> asyncio.Task[None]:
        if self._closed:
            coro.close()
            raise RuntimeError("TimerQueue is shut down")
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _delayed(
        self, delay: float, callback: Callable[[], Awaitable[Any]], name: str
    ) -> None:
        await self._clock.sleep(delay)
        await self._guarded(callback(), name)

    async def _guarded(self, awaitable: Awaitable[Any], name: str) -> None:
        try:
            await awaitable
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.warning("background_task_failed", task=name, exc_info=True)
