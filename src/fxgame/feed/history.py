"""Bounded per-instrument rate history with nearest-timestamp lookup.

In-memory only. Methods are synchronous and never await, so on a single
event loop each call is atomic with respect to other coroutines.
"""

from collections import deque

from fxgame.models import RateSample

DEFAULT_MAX_SAMPLES = 1000


class HistoryStore:
    """Time-ordered rate samples per instrument, oldest evicted first.

    Args:
        max_samples: Samples retained per instrument.
    """

    def __init__(self, max_samples: int = DEFAULT_MAX_SAMPLES) -> None:
        if max_samples <= 0:
            raise ValueError(f"max_samples must be positive, got {max_samples}")
        self._max_samples = max_samples
        self._series: dict[str, deque[RateSample]] = {}

    @property
    def max_samples(self) -> int:
        return self._max_samples

    def append(self, sample: RateSample) -> None:
        series = self._series.get(sample.instrument)
        if series is None:
            series = deque(maxlen=self._max_samples)
            self._series[sample.instrument] = series
        series.append(sample)

    def latest(self, instrument: str) -> RateSample | None:
        series = self._series.get(instrument)
        if not series:
            return None
        return series[-1]

    def range(self, instrument: str, max_points: int = 100) -> list[RateSample]:
        """Return the most recent `max_points` samples, oldest first."""
        series = self._series.get(instrument)
        if not series or max_points <= 0:
            return []
        start = max(0, len(series) - max_points)
        return list(series)[start:]

    def nearest(self, instrument: str, target_time: float) -> RateSample | None:
        """Return the sample closest in time to `target_time`.

        Linear scan; on equal distance the earlier-inserted sample wins.
        """
        series = self._series.get(instrument)
        if not series:
            return None

        closest = series[0]
        min_diff = abs(closest.timestamp - target_time)
        for sample in series:
            diff = abs(sample.timestamp - target_time)
            if diff < min_diff:
                min_diff = diff
                closest = sample
        return closest

    def instruments(self) -> list[str]:
        return list(self._series)

    def count(self, instrument: str) -> int:
        series = self._series.get(instrument)
        return len(series) if series is not None else 0

    def clear(self, instrument: str | None = None) -> None:
        """Drop history for one instrument, or for all when none is given."""
        if instrument is None:
            self._series.clear()
        else:
            self._series.pop(instrument, None)
