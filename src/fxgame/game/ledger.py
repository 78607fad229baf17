"""Player ledger -- the account of record for credits, counters and badges.

Only PredictionLifecycle mutates a ledger, and only with results computed
by the payout module. Credits are rounded to cents after every change.
"""

from dataclasses import replace
from decimal import Decimal

from fxgame.game.payout import round_credits
from fxgame.logging import get_logger
from fxgame.models import PlayerState, Settlement

logger = get_logger(__name__)


class PlayerLedger:
    """Mutable player account backed by an immutable PlayerState snapshot.

    Args:
        state: Starting state, usually loaded from local storage.
    """

    def __init__(self, state: PlayerState) -> None:
        self._state = replace(
            state,
            credits=round_credits(Decimal(state.credits)),
            badges=tuple(dict.fromkeys(state.badges)),
        )

    @classmethod
    def from_defaults(cls, username: str, initial_credits: Decimal) -> "PlayerLedger":
        return cls(PlayerState(username=username, credits=initial_credits))

    def snapshot(self) -> PlayerState:
        return self._state

    @property
    def username(self) -> str:
        return self._state.username

    @property
    def credits(self) -> Decimal:
        return self._state.credits

    @property
    def badges(self) -> tuple[str, ...]:
        return self._state.badges

    def debit(self, stake: Decimal) -> None:
        """Reserve a stake at placement time.

        Raises:
            ValueError: If the stake is not positive or exceeds credits.
        """
        if stake <= 0 or stake > self._state.credits:
            raise ValueError(f"Cannot debit {stake} from {self._state.credits}")
        self._state = replace(self._state, credits=round_credits(self._state.credits - stake))

    def apply(self, settlement: Settlement) -> None:
        self._state = replace(
            self._state,
            credits=round_credits(settlement.credits),
            wins=settlement.wins,
            losses=settlement.losses,
            current_streak=settlement.current_streak,
            best_streak=settlement.best_streak,
            total_xp=settlement.total_xp,
        )

    def unlock(self, badges: list[str]) -> list[str]:
        """Add badges to the set. Returns only the ones that were not held yet."""
        held = set(self._state.badges)
        added = [badge for badge in dict.fromkeys(badges) if badge not in held]
        if added:
            self._state = replace(self._state, badges=self._state.badges + tuple(added))
            for badge in added:
                logger.info("badge_unlocked", badge=badge, username=self._state.username)
        return added

    def set_username(self, username: str) -> None:
        self._state = replace(self._state, username=username)

    def reset(self, initial_credits: Decimal) -> None:
        """Start over with default counters. Username and badges are kept."""
        self._state = PlayerState(
            username=self._state.username,
            credits=round_credits(initial_credits),
            badges=self._state.badges,
        )
        logger.info("ledger_reset", username=self._state.username, credits=str(initial_credits))
