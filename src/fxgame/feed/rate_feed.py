"""Rate feed -- ticks the mock generator or polls the backend, and publishes rates.

Mock mode: every `mock_interval` seconds each tracked instrument is ticked
in configured order. Live mode: the backend is polled immediately and then
every `live_interval` seconds.

A failed live poll (unreachable backend, HTTP error or malformed payload)
switches the feed to mock mode for the rest of the session, re-seeding the
generator from the configured seed. The switch is one-way.

Per batch, `on_rate_changed(instrument, rate)` fires once per updated
instrument in tracked order, followed by one `on_rates_updated(rates)`.
"""

from __future__ import annotations

import asyncio
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING

from fxgame.clock import Clock
from fxgame.config import FeedSettings
from fxgame.events import ListenerRegistry
from fxgame.feed.generator import RateSeriesGenerator
from fxgame.feed.history import HistoryStore
from fxgame.logging import get_logger
from fxgame.models import RateSample

if TYPE_CHECKING:
    from fxgame.remote.client import RemoteSync

logger = get_logger(__name__)


class FeedMode(str, Enum):
    """Where rates come from."""

    MOCK = "mock"
    LIVE = "live"


class RateFeed:
    """Owns the current-rate map and drives history writes.

    Args:
        settings: Feed configuration (mode, seed, instruments, intervals).
        generator: Synthetic rate generator used in mock mode and on fallback.
        history: Shared history store written on every update.
        clock: Time source for loop intervals and live sample timestamps.
        remote: Backend client. Required when settings.mode is "live".
    """

    def __init__(
        self,
        settings: FeedSettings,
        generator: RateSeriesGenerator,
        history: HistoryStore,
        clock: Clock,
        remote: RemoteSync | None = None,
    ) -> None:
        missing = [i for i in settings.instruments if i not in settings.base_rates]
        if missing:
            raise ValueError(f"No base rate configured for instruments: {missing}")
        if settings.mode == "live" and remote is None:
            raise ValueError("Live feed mode requires a RemoteSync client")

        self._settings = settings
        self._generator = generator
        self._history = history
        self._clock = clock
        self._remote = remote
        self._instruments = list(settings.instruments)
        self._mode = FeedMode(settings.mode)
        self._current: dict[str, Decimal] = {}
        self._initialized = False
        self._running = False
        self._task: asyncio.Task | None = None  # type: ignore[type-arg]

        self.on_rate_changed: ListenerRegistry[[str, Decimal]] = ListenerRegistry("rate_changed")
        self.on_rates_updated: ListenerRegistry[[dict[str, Decimal]]] = ListenerRegistry(
            "rates_updated"
        )

    # ──────────────────────────────────────────────
    # Lifecycle
    # ──────────────────────────────────────────────

    @property
    def mode(self) -> FeedMode:
        return self._mode

    @property
    def instruments(self) -> list[str]:
        return list(self._instruments)

    @property
    def is_running(self) -> bool:
        return self._running

    def initialize(self) -> None:
        """Prepare the feed. In mock mode, seeds the generator and records initial rates."""
        if self._initialized:
            return
        self._initialized = True
        if self._mode is FeedMode.MOCK:
            self._init_mock()
        logger.info(
            "rate_feed_initialized",
            mode=self._mode.value,
            instruments=self._instruments,
            seed=self._settings.mock_seed,
        )

    async def start(self) -> None:
        """Begin ticking or polling in the background."""
        if self._running:
            logger.warning("rate_feed_already_running")
            return
        self.initialize()
        self._running = True
        self._task = asyncio.create_task(self._run_loop(), name="rate_feed")
        logger.info("rate_feed_started", mode=self._mode.value)

    async def stop(self) -> None:
        """Stop the feed loop gracefully."""
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("rate_feed_stopped")

    async def _run_loop(self) -> None:
        while self._running:
            try:
                if self._mode is FeedMode.LIVE:
                    await self.poll_once()
                    if self._mode is FeedMode.LIVE:
                        await self._clock.sleep(self._settings.live_interval)
                        continue
                await self._clock.sleep(self._settings.mock_interval)
                if self._running:
                    self.tick_once()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.warning("rate_feed_loop_error", mode=self._mode.value, exc_info=True)
                await self._clock.sleep(self._settings.mock_interval)

    # ──────────────────────────────────────────────
    # Updates
    # ──────────────────────────────────────────────

    def tick_once(self) -> dict[str, Decimal]:
        """Advance the generator one step for every tracked instrument and publish."""
        if self._mode is not FeedMode.MOCK:
            raise RuntimeError("tick_once() is only valid in mock mode")
        self.initialize()
        samples = [self._generator.tick(instrument) for instrument in self._instruments]
        return self._publish_batch(samples)

    async def poll_once(self) -> bool:
        """Fetch one batch from the backend.

        Returns True when rates were applied. On failure the feed falls back
        to mock mode and False is returned.
        """
        if self._mode is not FeedMode.LIVE or self._remote is None:
            return False

        snapshot = await self._remote.fetch_rates()
        if snapshot is None:
            self._fall_back_to_mock()
            return False

        now = self._clock.now()
        samples = []
        for instrument in self._instruments:
            rate = snapshot.rates.get(instrument)
            if rate is None or rate <= 0:
                continue
            samples.append(RateSample(instrument=instrument, rate=rate, timestamp=now))

        if not samples:
            logger.warning("live_rates_empty", received=list(snapshot.rates))

        # A live batch replaces the current-rate map wholesale
        self._current.clear()
        self._publish_batch(samples)
        logger.debug("live_rates_applied", count=len(samples), server_time=snapshot.timestamp)
        return True

    def _publish_batch(self, samples: list[RateSample]) -> dict[str, Decimal]:
        for sample in samples:
            self._history.append(sample)
            self._current[sample.instrument] = sample.rate
            self.on_rate_changed.publish(sample.instrument, sample.rate)
        rates = dict(self._current)
        self.on_rates_updated.publish(rates)
        return rates

    def _init_mock(self) -> None:
        base_rates = {i: self._settings.base_rates[i] for i in self._instruments}
        for sample in self._generator.init(self._settings.mock_seed, base_rates):
            self._history.append(sample)
            self._current[sample.instrument] = sample.rate

    def _fall_back_to_mock(self) -> None:
        if self._mode is FeedMode.MOCK:
            return
        self._mode = FeedMode.MOCK
        logger.warning(
            "live_feed_failed_falling_back_to_mock",
            seed=self._settings.mock_seed,
        )
        self._init_mock()

    # ──────────────────────────────────────────────
    # Reads
    # ──────────────────────────────────────────────

    def current(self, instrument: str) -> Decimal | None:
        """Return the latest rate for an instrument, or None if it has none."""
        return self._current.get(instrument)

    def rates(self) -> dict[str, Decimal]:
        return dict(self._current)

    def history(self, instrument: str, max_points: int = 100) -> list[RateSample]:
        return self._history.range(instrument, max_points)

    def rate_at(self, instrument: str, target_time: float) -> Decimal | None:
        """Return the historical rate nearest `target_time`.

        Degrades to the current rate when the instrument has no history.
        """
        sample = self._history.nearest(instrument, target_time)
        if sample is not None:
            return sample.rate
        return self.current(instrument)
