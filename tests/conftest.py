"""Shared test fixtures for the FX prediction game."""

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from fxgame.clock import ManualClock
from fxgame.config import AppSettings, FeedSettings, GameSettings, ServerSettings, StorageSettings
from fxgame.feed.generator import RateSeriesGenerator
from fxgame.feed.history import HistoryStore
from fxgame.feed.rate_feed import RateFeed
from fxgame.models import RatesSnapshot
from fxgame.remote.client import RemoteSync

START_TIME = 1_700_000_000.0


@pytest.fixture
def clock() -> ManualClock:
    """Manual clock starting at a fixed epoch."""
    return ManualClock(start=START_TIME)


@pytest.fixture
def feed_settings() -> FeedSettings:
    """Mock-mode feed with the default instruments and seed."""
    return FeedSettings(mode="mock", mock_seed=12345)


@pytest.fixture
def live_feed_settings() -> FeedSettings:
    """Live-mode feed with the default instruments and seed."""
    return FeedSettings(mode="live", mock_seed=12345)


@pytest.fixture
def mock_settings(tmp_path) -> AppSettings:
    """Return AppSettings with test defaults (mock feed, temp database, no server)."""
    return AppSettings(
        log_level="DEBUG",
        feed=FeedSettings(mode="mock", mock_seed=12345),
        game=GameSettings(username="tester", initial_credits=Decimal("10000")),
        storage=StorageSettings(db_path=str(tmp_path / "player.db")),
        server=ServerSettings(enabled=False),
    )


@pytest.fixture
def mock_remote() -> AsyncMock:
    """RemoteSync double serving a fixed set of live rates."""
    remote = AsyncMock(spec=RemoteSync)
    remote.fetch_rates.return_value = RatesSnapshot(
        timestamp="2024-01-01T00:00:00Z",
        rates={
            "USD_SGD": Decimal("1.3500"),
            "USD_INR": Decimal("83.00"),
            "EUR_USD": Decimal("1.0900"),
        },
    )
    remote.post_score.return_value = True
    remote.fetch_leaderboard.return_value = []
    return remote


@pytest.fixture
def live_feed(
    live_feed_settings: FeedSettings, clock: ManualClock, mock_remote: AsyncMock
) -> RateFeed:
    """Live-mode feed whose rates are scripted through mock_remote.fetch_rates."""
    return RateFeed(
        live_feed_settings,
        RateSeriesGenerator(clock),
        HistoryStore(),
        clock,
        remote=mock_remote,
    )

