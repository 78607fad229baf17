"""Deterministic synthetic FX rate generator.

Each tick is a bounded random walk step with occasional spikes:

    drift = (u - 0.5) * 0.0005          u ~ U(0, 1), first draw
    drift *= 5  if v < 0.05             v ~ U(0, 1), second draw
    rate  = clamp(rate * (1 + drift), base * 0.9, base * 1.1)

Every instrument owns its own random.Random seeded with "{seed}:{instrument}".
CPython hashes str seeds with SHA-512, so the sequence depends only on the
seed, the instrument and the tick count: not on the process, platform or
the order in which instruments are ticked.

The clamp is around the fixed base rate, not the rolling rate, so a long
drift can sit against a bound for many ticks.
"""

import random
from dataclasses import dataclass
from decimal import Decimal

from fxgame.clock import Clock
from fxgame.logging import get_logger
from fxgame.models import RateSample

logger = get_logger(__name__)

DRIFT_SCALE = Decimal("0.0005")
SPIKE_PROBABILITY = 0.05
SPIKE_FACTOR = Decimal("5")
CLAMP_BAND = Decimal("0.1")

_HALF = Decimal("0.5")
_ONE = Decimal("1")


@dataclass
class GeneratorState:
    """Per-instrument walk state. Never shared outside the generator."""

    base_rate: Decimal
    current_rate: Decimal
    rng: random.Random

    @property
    def lower_bound(self) -> Decimal:
        return self.base_rate * (_ONE - CLAMP_BAND)

    @property
    def upper_bound(self) -> Decimal:
        return self.base_rate * (_ONE + CLAMP_BAND)


class RateSeriesGenerator:
    """Produces successive rate samples for a set of instruments.

    Args:
        clock: Time source for sample timestamps.

    Usage:
        generator = RateSeriesGenerator(clock)
        initial = generator.init(12345, {"USD_SGD": Decimal("1.35")})
        sample = generator.tick("USD_SGD")
    """

    def __init__(self, clock: Clock) -> None:
        self._clock = clock
        self._states: dict[str, GeneratorState] = {}
        self._seed: int | None = None

    @property
    def seed(self) -> int | None:
        return self._seed

    @property
    def instruments(self) -> list[str]:
        return list(self._states)

    def init(self, seed: int, base_rates: dict[str, Decimal]) -> list[RateSample]:
        """Reset every instrument to its base rate with a freshly seeded RNG.

        Returns one initial sample per instrument, in base_rates order.

        Raises:
            ValueError: If a base rate is not positive.
        """
        states: dict[str, GeneratorState] = {}
        for instrument, base_rate in base_rates.items():
            base = Decimal(base_rate)
            if base <= 0:
                raise ValueError(f"Base rate for {instrument} must be positive, got {base}")
            states[instrument] = GeneratorState(
                base_rate=base,
                current_rate=base,
                rng=random.Random(f"{seed}:{instrument}"),
            )

        self._states = states
        self._seed = seed
        now = self._clock.now()
        logger.info("rate_generator_initialized", seed=seed, instruments=list(states))
        return [
            RateSample(instrument=instrument, rate=state.current_rate, timestamp=now)
            for instrument, state in states.items()
        ]

    def tick(self, instrument: str) -> RateSample:
        """Advance one instrument by one step and return the new sample.

        Raises:
            KeyError: If the instrument was not passed to init().
        """
        state = self._states[instrument]

        # Draw order is part of the reproducibility contract: drift, then spike gate
        u = state.rng.random()
        v = state.rng.random()

        drift = (Decimal(str(u)) - _HALF) * DRIFT_SCALE
        if v < SPIKE_PROBABILITY:
            drift *= SPIKE_FACTOR

        new_rate = state.current_rate * (_ONE + drift)
        new_rate = min(max(new_rate, state.lower_bound), state.upper_bound)

        state.current_rate = new_rate
        return RateSample(instrument=instrument, rate=new_rate, timestamp=self._clock.now())
