"""Shared data models for the FX prediction game.

CRITICAL: All rates and monetary values use Decimal. Never use float for
rates, stakes or credits. Timestamps are float seconds from the session Clock.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum


class Direction(str, Enum):
    """Predicted direction of the rate move."""

    UP = "up"
    DOWN = "down"


class PredictionStatus(str, Enum):
    """Lifecycle status of a prediction."""

    OPEN = "open"
    RESOLVED = "resolved"


class LifecycleState(str, Enum):
    """State of the single-active-bet machine."""

    IDLE = "idle"
    OPEN = "open"


@dataclass(frozen=True)
class RateSample:
    """A single rate observation for one instrument."""

    instrument: str
    rate: Decimal
    timestamp: float


@dataclass(frozen=True)
class Outcome:
    """Numeric result of a resolved prediction."""

    percent_move: Decimal
    correct: bool
    multiplier: Decimal
    credit_delta: Decimal  # +payout on win (principal included), -stake on loss
    xp_earned: int


@dataclass(frozen=True)
class OpenPrediction:
    """A placed prediction awaiting resolution."""

    id: str
    instrument: str
    direction: Direction
    stake: Decimal
    start_rate: Decimal
    start_time: float
    horizon: float  # seconds

    @property
    def end_time(self) -> float:
        return self.start_time + self.horizon

    @property
    def status(self) -> PredictionStatus:
        return PredictionStatus.OPEN


@dataclass(frozen=True)
class ResolvedPrediction:
    """A prediction after resolution.

    End rate and outcome only exist on this variant, so an open prediction
    never carries half-filled resolution fields.
    """

    placed: OpenPrediction
    end_rate: Decimal
    outcome: Outcome
    resolved_at: float

    @property
    def id(self) -> str:
        return self.placed.id

    @property
    def instrument(self) -> str:
        return self.placed.instrument

    @property
    def direction(self) -> Direction:
        return self.placed.direction

    @property
    def stake(self) -> Decimal:
        return self.placed.stake

    @property
    def status(self) -> PredictionStatus:
        return PredictionStatus.RESOLVED


Prediction = OpenPrediction | ResolvedPrediction


@dataclass(frozen=True)
class PlayerState:
    """Immutable snapshot of the player ledger.

    Used for persistence, settlement input and API output.
    """

    username: str
    credits: Decimal
    wins: int = 0
    losses: int = 0
    current_streak: int = 0
    best_streak: int = 0
    total_xp: int = 0
    badges: tuple[str, ...] = ()


@dataclass(frozen=True)
class Settlement:
    """Pure settlement result: the outcome plus post-settlement counters."""

    outcome: Outcome
    credits: Decimal
    wins: int
    losses: int
    current_streak: int
    best_streak: int
    total_xp: int


@dataclass(frozen=True)
class RatesSnapshot:
    """Parsed /api/fx_rates payload."""

    timestamp: str
    rates: dict[str, Decimal] = field(default_factory=dict)


@dataclass(frozen=True)
class LeaderboardEntry:
    """One row of the remote leaderboard."""

    rank: int
    username: str
    score: Decimal


@dataclass(frozen=True)
class ScoreSubmission:
    """Body of a score post to the backend."""

    username: str
    score: int  # total XP
    credits: Decimal
    wins: int
    losses: int

    def to_payload(self) -> dict:
        return {
            "username": self.username,
            "score": self.score,
            "credits": float(self.credits),
            "stats": {"wins": self.wins, "losses": self.losses},
        }
