"""Payout and progression rules for resolved predictions.

Pure functions only: every input arrives as arguments and every result is
returned, so the same move always yields the same settlement.

Formulas:
  - percent_move = (end_rate - start_rate) / start_rate
  - multiplier   = 1 + min(5, |percent_move| * 10)        (6x payout cap)
  - win          : credit_delta = +stake * multiplier  (principal included)
  - loss         : credit_delta = -stake               (already debited at placement)
  - xp           = floor(10 * sqrt(|percent_move| * 100)), on win and loss

Credits are rounded to 2 decimal places with ROUND_HALF_UP after every
change (12345.675 -> 12345.68, 12345.6749 -> 12345.67).
"""

from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal

from fxgame.models import Direction, Outcome, PlayerState, Settlement

CENT = Decimal("0.01")
MAX_BONUS = Decimal("5")
MOVE_WEIGHT = Decimal("10")

# Fixed evaluation order. Streak badges require exact equality.
FIRST_WIN = "first_win"
STREAK_BADGES: tuple[tuple[str, int], ...] = (
    ("streak_3", 3),
    ("streak_5", 5),
    ("streak_10", 10),
)
XP_BADGES: tuple[tuple[str, int], ...] = (
    ("xp_100", 100),
    ("xp_500", 500),
    ("xp_1000", 1000),
)
CREDIT_BADGES: tuple[tuple[str, Decimal], ...] = (
    ("credits_20k", Decimal("20000")),
    ("credits_50k", Decimal("50000")),
)
BADGE_CATALOG: tuple[str, ...] = (
    FIRST_WIN,
    *(badge for badge, _ in STREAK_BADGES),
    *(badge for badge, _ in XP_BADGES),
    *(badge for badge, _ in CREDIT_BADGES),
)


def round_credits(value: Decimal) -> Decimal:
    """Round a credit amount to cents, half-up."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def percent_move(start_rate: Decimal, end_rate: Decimal) -> Decimal:
    """Fractional change from start to end.

    Raises:
        ValueError: If start_rate is not positive.
    """
    if start_rate <= 0:
        raise ValueError(f"start_rate must be positive, got {start_rate}")
    return (end_rate - start_rate) / start_rate


def is_correct(direction: Direction, move: Decimal) -> bool:
    """UP wins on a rise, DOWN wins on a fall. A flat move loses both ways."""
    if direction is Direction.UP:
        return move > 0
    return move < 0


def payout_multiplier(move: Decimal) -> Decimal:
    return 1 + min(MAX_BONUS, abs(move) * MOVE_WEIGHT)


def compute_xp(move: Decimal) -> int:
    raw = 10 * (abs(move) * 100).sqrt()
    return int(raw.to_integral_value(rounding=ROUND_FLOOR))


def compute_outcome(
    direction: Direction,
    stake: Decimal,
    start_rate: Decimal,
    end_rate: Decimal,
) -> Outcome:
    """Score a single prediction without touching any player state."""
    move = percent_move(start_rate, end_rate)
    correct = is_correct(direction, move)
    multiplier = payout_multiplier(move)
    if correct:
        credit_delta = round_credits(stake * multiplier)
    else:
        credit_delta = -stake
    return Outcome(
        percent_move=move,
        correct=correct,
        multiplier=multiplier,
        credit_delta=credit_delta,
        xp_earned=compute_xp(move),
    )


def settle(
    state: PlayerState,
    direction: Direction,
    stake: Decimal,
    start_rate: Decimal,
    end_rate: Decimal,
) -> Settlement:
    """Compute the post-resolution counters for a player.

    `state` is the ledger after the stake was debited at placement, so a
    loss leaves credits unchanged and a win adds the full payout.
    """
    outcome = compute_outcome(direction, stake, start_rate, end_rate)

    if outcome.correct:
        credits = round_credits(state.credits + outcome.credit_delta)
        wins = state.wins + 1
        losses = state.losses
        streak = state.current_streak + 1
        best_streak = max(state.best_streak, streak)
    else:
        credits = round_credits(state.credits)
        wins = state.wins
        losses = state.losses + 1
        streak = 0
        best_streak = state.best_streak

    return Settlement(
        outcome=outcome,
        credits=credits,
        wins=wins,
        losses=losses,
        current_streak=streak,
        best_streak=best_streak,
        total_xp=state.total_xp + outcome.xp_earned,
    )


def evaluate_badges(state: PlayerState) -> list[str]:
    """Return badges the player qualifies for but does not hold yet, in catalog order."""
    held = set(state.badges)
    earned: list[str] = []

    def check(badge: str, condition: bool) -> None:
        if condition and badge not in held:
            earned.append(badge)
            held.add(badge)

    check(FIRST_WIN, state.wins == 1)
    for badge, streak in STREAK_BADGES:
        check(badge, state.current_streak == streak)
    for badge, xp in XP_BADGES:
        check(badge, state.total_xp >= xp)
    for badge, credits in CREDIT_BADGES:
        check(badge, state.credits >= credits)

    return earned
