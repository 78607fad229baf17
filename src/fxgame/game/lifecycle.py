"""Prediction lifecycle -- the single-active-bet state machine.

States: IDLE -> OPEN -> IDLE. There is never more than one open prediction.

Placement flow:
1. Reject if a prediction is already open, the stake is invalid, the
   horizon is not positive, or the feed has no rate for the instrument
2. Debit the stake from the ledger
3. Snapshot the start rate and time
4. Schedule resolution exactly `horizon` seconds later on the TimerQueue

Resolution flow:
1. Look up the rate nearest the end time (falls back to the latest rate)
2. Settle via the payout module and apply the result to the ledger
3. Evaluate badge unlocks
4. Persist the ledger, publish events, post the score in the background

Ledger and state changes happen inside an asyncio.Lock section that never
awaits; persistence, listeners and network calls run after it is released.
"""

import asyncio
import functools
from decimal import Decimal
from uuid import uuid4

from fxgame.clock import Clock
from fxgame.events import ListenerRegistry
from fxgame.exceptions import AlreadyOpen, InvalidHorizon, InvalidStake, NoRate
from fxgame.feed.rate_feed import RateFeed
from fxgame.game import payout
from fxgame.game.ledger import PlayerLedger
from fxgame.logging import bound_prediction, get_logger
from fxgame.models import (
    Direction,
    LifecycleState,
    OpenPrediction,
    PlayerState,
    ResolvedPrediction,
    ScoreSubmission,
)
from fxgame.remote.client import RemoteSync
from fxgame.scheduler import TimerQueue
from fxgame.storage.store import LedgerRepository

logger = get_logger(__name__)


class PredictionLifecycle:
    """Places and resolves predictions against the rate feed.

    Args:
        feed: Source of current and historical rates.
        ledger: The player's account of record.
        timers: Queue that runs the resolution timer and background posts.
        clock: Time source for start/end timestamps.
        repository: Optional ledger persistence, saved after every mutation.
        remote: Optional backend client for best-effort score posts.
    """

    def __init__(
        self,
        feed: RateFeed,
        ledger: PlayerLedger,
        timers: TimerQueue,
        clock: Clock,
        repository: LedgerRepository | None = None,
        remote: RemoteSync | None = None,
    ) -> None:
        self._feed = feed
        self._ledger = ledger
        self._timers = timers
        self._clock = clock
        self._repository = repository
        self._remote = remote
        self._lock = asyncio.Lock()
        self._current: OpenPrediction | None = None
        self._last_resolved: ResolvedPrediction | None = None

        self.on_prediction_placed: ListenerRegistry[[OpenPrediction]] = ListenerRegistry(
            "prediction_placed"
        )
        self.on_prediction_resolved: ListenerRegistry[[ResolvedPrediction]] = ListenerRegistry(
            "prediction_resolved"
        )
        self.on_badge_unlocked: ListenerRegistry[[str]] = ListenerRegistry("badge_unlocked")
        self.on_stats_updated: ListenerRegistry[[PlayerState]] = ListenerRegistry(
            "stats_updated"
        )

    # ──────────────────────────────────────────────
    # Reads
    # ──────────────────────────────────────────────

    @property
    def state(self) -> LifecycleState:
        return LifecycleState.OPEN if self._current is not None else LifecycleState.IDLE

    @property
    def current(self) -> OpenPrediction | None:
        return self._current

    @property
    def last_resolved(self) -> ResolvedPrediction | None:
        return self._last_resolved

    @property
    def player(self) -> PlayerState:
        return self._ledger.snapshot()

    def time_remaining(self) -> float:
        """Seconds until the open prediction resolves (0 when idle)."""
        if self._current is None:
            return 0.0
        return max(0.0, self._current.end_time - self._clock.now())

    # ──────────────────────────────────────────────
    # Transitions
    # ──────────────────────────────────────────────

    async def place(
        self,
        instrument: str,
        direction: Direction,
        stake: Decimal,
        horizon: float,
    ) -> OpenPrediction:
        """Open a prediction and schedule its resolution.

        Raises:
            AlreadyOpen: If a prediction is already open.
            InvalidStake: If stake <= 0, has fractions of a cent, or exceeds
                available credits.
            InvalidHorizon: If horizon <= 0.
            NoRate: If the feed has no current rate for the instrument.
        """
        stake = Decimal(str(stake)) if isinstance(stake, float) else Decimal(stake)
        async with self._lock:
            if self._current is not None:
                raise AlreadyOpen(f"Prediction {self._current.id} is still open")
            # Credits are whole cents
            if (
                stake <= 0
                or stake != payout.round_credits(stake)
                or stake > self._ledger.credits
            ):
                raise InvalidStake(
                    f"Invalid stake {stake}. Available credits: {self._ledger.credits}"
                )
            if horizon <= 0:
                raise InvalidHorizon(f"Horizon must be positive, got {horizon}")
            start_rate = self._feed.current(instrument)
            if start_rate is None or start_rate <= 0:
                raise NoRate(f"No current rate for {instrument}")

            self._ledger.debit(stake)
            prediction = OpenPrediction(
                id=uuid4().hex[:12],
                instrument=instrument,
                direction=Direction(direction),
                stake=stake,
                start_rate=start_rate,
                start_time=self._clock.now(),
                horizon=horizon,
            )
            self._current = prediction
            self._timers.call_later(
                horizon,
                functools.partial(self.resolve, prediction.id),
                name=f"resolve-{prediction.id}",
            )
            snapshot = self._ledger.snapshot()

        with bound_prediction(prediction.id):
            logger.info(
                "prediction_placed",
                instrument=instrument,
                direction=prediction.direction.value,
                stake=str(stake),
                start_rate=str(start_rate),
                horizon=horizon,
                credits=str(snapshot.credits),
            )
            await self._persist(snapshot)
            self.on_prediction_placed.publish(prediction)
            self.on_stats_updated.publish(snapshot)
        return prediction

    async def resolve(self, prediction_id: str | None = None) -> ResolvedPrediction | None:
        """Resolve the open prediction. Idempotent.

        Returns None without side effects when nothing is open, or when
        `prediction_id` is given and does not match the open prediction
        (a stale timer).
        """
        async with self._lock:
            prediction = self._current
            if prediction is None:
                return None
            if prediction_id is not None and prediction.id != prediction_id:
                return None

            end_rate = self._feed.rate_at(prediction.instrument, prediction.end_time)
            if end_rate is None or end_rate <= 0:
                logger.warning(
                    "resolution_rate_missing",
                    prediction_id=prediction.id,
                    instrument=prediction.instrument,
                    fallback="start_rate",
                )
                end_rate = prediction.start_rate

            settlement = payout.settle(
                self._ledger.snapshot(),
                prediction.direction,
                prediction.stake,
                prediction.start_rate,
                end_rate,
            )
            self._ledger.apply(settlement)
            unlocked = self._ledger.unlock(payout.evaluate_badges(self._ledger.snapshot()))

            resolved = ResolvedPrediction(
                placed=prediction,
                end_rate=end_rate,
                outcome=settlement.outcome,
                resolved_at=self._clock.now(),
            )
            self._current = None
            self._last_resolved = resolved
            snapshot = self._ledger.snapshot()

        outcome = resolved.outcome
        with bound_prediction(prediction.id):
            logger.info(
                "prediction_resolved",
                instrument=prediction.instrument,
                direction=prediction.direction.value,
                start_rate=str(prediction.start_rate),
                end_rate=str(end_rate),
                percent_move=str(outcome.percent_move),
                correct=outcome.correct,
                credit_delta=str(outcome.credit_delta),
                xp_earned=outcome.xp_earned,
                credits=str(snapshot.credits),
                streak=snapshot.current_streak,
            )

            await self._persist(snapshot)
            self.on_prediction_resolved.publish(resolved)
            for badge in unlocked:
                self.on_badge_unlocked.publish(badge)
            self.on_stats_updated.publish(snapshot)

            if self._remote is not None and not self._timers.is_closed:
                self._timers.spawn(
                    self._remote.post_score(
                        ScoreSubmission(
                            username=snapshot.username,
                            score=snapshot.total_xp,
                            credits=snapshot.credits,
                            wins=snapshot.wins,
                            losses=snapshot.losses,
                        )
                    ),
                    name=f"post-score-{prediction.id}",
                )
        return resolved

    async def reset_ledger(self, initial_credits: Decimal) -> PlayerState:
        """Reset player counters and credits. Only allowed while idle.

        Raises:
            AlreadyOpen: If a prediction is open.
        """
        async with self._lock:
            if self._current is not None:
                raise AlreadyOpen("Cannot reset while a prediction is open")
            self._ledger.reset(initial_credits)
            self._last_resolved = None
            snapshot = self._ledger.snapshot()

        await self._persist(snapshot)
        self.on_stats_updated.publish(snapshot)
        return snapshot

    async def rename_player(self, username: str) -> PlayerState:
        async with self._lock:
            self._ledger.set_username(username)
            snapshot = self._ledger.snapshot()
        await self._persist(snapshot)
        self.on_stats_updated.publish(snapshot)
        return snapshot

    async def _persist(self, snapshot: PlayerState) -> None:
        if self._repository is None:
            return
        try:
            await self._repository.save(snapshot)
        except Exception:
            # The in-memory ledger stays authoritative; the next mutation retries the write
            logger.error("ledger_persist_failed", username=snapshot.username, exc_info=True)
