"""Tests for HistoryStore: bounded retention, range reads and nearest lookup."""

from decimal import Decimal

import pytest

from fxgame.feed.history import HistoryStore
from fxgame.models import RateSample


def _sample(timestamp: float, rate: str = "1.35", instrument: str = "USD_SGD") -> RateSample:
    return RateSample(instrument=instrument, rate=Decimal(rate), timestamp=timestamp)


@pytest.fixture
def store() -> HistoryStore:
    return HistoryStore(max_samples=1000)


class TestRetention:
    """Tests for append and eviction."""

    def test_rejects_non_positive_capacity(self) -> None:
        with pytest.raises(ValueError):
            HistoryStore(max_samples=0)

    def test_evicts_oldest_beyond_capacity(self, store: HistoryStore) -> None:
        for i in range(1001):
            store.append(_sample(float(i)))

        assert store.count("USD_SGD") == 1000
        samples = store.range("USD_SGD", max_points=1000)
        assert samples[0].timestamp == 1.0
        assert samples[-1].timestamp == 1000.0

    def test_instruments_are_kept_separately(self, store: HistoryStore) -> None:
        store.append(_sample(1.0, instrument="USD_SGD"))
        store.append(_sample(1.0, rate="83.0", instrument="USD_INR"))

        assert store.instruments() == ["USD_SGD", "USD_INR"]
        assert store.count("USD_SGD") == 1
        assert store.latest("USD_INR").rate == Decimal("83.0")

    def test_clear_one_and_all(self, store: HistoryStore) -> None:
        store.append(_sample(1.0, instrument="USD_SGD"))
        store.append(_sample(1.0, instrument="EUR_USD"))

        store.clear("USD_SGD")
        assert store.count("USD_SGD") == 0
        assert store.count("EUR_USD") == 1

        store.clear()
        assert store.instruments() == []


class TestRange:
    """Tests for latest-N reads."""

    def test_returns_most_recent_oldest_first(self, store: HistoryStore) -> None:
        for i in range(10):
            store.append(_sample(float(i)))

        samples = store.range("USD_SGD", max_points=3)

        assert [s.timestamp for s in samples] == [7.0, 8.0, 9.0]

    def test_fewer_samples_than_requested(self, store: HistoryStore) -> None:
        store.append(_sample(1.0))
        assert len(store.range("USD_SGD", max_points=100)) == 1

    def test_unknown_instrument_is_empty(self, store: HistoryStore) -> None:
        assert store.range("GBP_JPY") == []
        assert store.latest("GBP_JPY") is None


class TestNearest:
    """Tests for nearest-timestamp lookup."""

    def test_picks_closest_sample(self, store: HistoryStore) -> None:
        store.append(_sample(0.0, "1.00"))
        store.append(_sample(10.0, "1.10"))
        store.append(_sample(20.0, "1.20"))

        assert store.nearest("USD_SGD", 14.0).rate == Decimal("1.10")
        assert store.nearest("USD_SGD", 16.0).rate == Decimal("1.20")
        assert store.nearest("USD_SGD", 100.0).rate == Decimal("1.20")
        assert store.nearest("USD_SGD", -5.0).rate == Decimal("1.00")

    def test_equal_distance_prefers_earlier(self, store: HistoryStore) -> None:
        store.append(_sample(0.0, "1.00"))
        store.append(_sample(10.0, "1.10"))
        store.append(_sample(20.0, "1.20"))

        assert store.nearest("USD_SGD", 15.0).rate == Decimal("1.10")

    def test_duplicate_timestamp_returns_first_inserted(self, store: HistoryStore) -> None:
        store.append(_sample(5.0, "1.01"))
        store.append(_sample(5.0, "1.02"))

        assert store.nearest("USD_SGD", 5.0).rate == Decimal("1.01")

    def test_unknown_instrument_returns_none(self, store: HistoryStore) -> None:
        assert store.nearest("GBP_JPY", 0.0) is None
