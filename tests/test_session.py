"""Tests for GameSession wiring, persistence across sessions and backend login.

Backend traffic goes through httpx.MockTransport and time through ManualClock.
"""

import json
from decimal import Decimal
from unittest.mock import AsyncMock

import httpx
import pytest

from fxgame.clock import ManualClock
from fxgame.config import AppSettings, FeedSettings, RemoteSettings
from fxgame.feed.rate_feed import FeedMode
from fxgame.models import Direction, LifecycleState
from fxgame.session import GameSession


class FakeBackend:
    """Routes MockTransport requests by path."""

    def __init__(self, login_status: int = 200) -> None:
        self.login_status = login_status
        self.paths: list[str] = []
        self.scores: list[dict] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.paths.append(path)
        if path == "/auth/login":
            if self.login_status != 200:
                return httpx.Response(self.login_status, json={"error": "denied"})
            return httpx.Response(200, json={"token": "jwt-xyz"})
        if path == "/api/fx_rates":
            return httpx.Response(
                200,
                json={"timestamp": "2024-01-01T00:00:00Z", "rates": {"USD_SGD": 1.3600}},
            )
        if path == "/api/game/score":
            self.scores.append(json.loads(request.content))
            return httpx.Response(200, json={"success": True, "message": "ok"})
        if path == "/api/leaderboard":
            return httpx.Response(200, json=[{"rank": 1, "username": "tester", "score": 10}])
        return httpx.Response(404)


@pytest.fixture
def repository() -> AsyncMock:
    """In-memory ledger repository so resolution never waits on SQLite."""
    repo = AsyncMock()
    repo.load.return_value = None
    return repo


def _live_settings(base: AppSettings, max_attempts: int = 3) -> AppSettings:
    return base.model_copy(
        update={
            "feed": FeedSettings(mode="live"),
            "remote": RemoteSettings(base_url="http://backend.test", max_attempts=max_attempts),
        }
    )


class TestMockSession:
    """Sessions without a backend."""

    @pytest.mark.asyncio
    async def test_start_builds_lifecycle_and_starts_feed(
        self, mock_settings: AppSettings, clock: ManualClock
    ) -> None:
        session = GameSession(mock_settings, clock=clock)
        with pytest.raises(RuntimeError):
            _ = session.lifecycle

        await session.start()
        try:
            assert session.is_started
            assert session.remote is None
            assert session.feed.mode is FeedMode.MOCK
            assert session.lifecycle.player.username == "tester"
            assert session.lifecycle.player.credits == Decimal("10000.00")

            await clock.advance(3)
            assert len(session.feed.history("USD_SGD")) == 4
            assert await session.leaderboard() == []
            assert await session.login("someone") is False
        finally:
            await session.stop()

        assert not session.is_started

    @pytest.mark.asyncio
    async def test_prediction_resolves_through_session(
        self, mock_settings: AppSettings, clock: ManualClock, repository: AsyncMock
    ) -> None:
        session = GameSession(mock_settings, clock=clock, repository=repository)
        await session.start()
        try:
            await session.lifecycle.place("USD_SGD", Direction.UP, Decimal("100"), 30)
            await clock.advance(30)

            assert session.lifecycle.state is LifecycleState.IDLE
            player = session.lifecycle.player
            assert player.wins + player.losses == 1
        finally:
            await session.stop()

    @pytest.mark.asyncio
    async def test_player_state_survives_restart(
        self, mock_settings: AppSettings, clock: ManualClock
    ) -> None:
        first = GameSession(mock_settings, clock=clock)
        await first.start()
        await first.lifecycle.place("EUR_USD", Direction.DOWN, Decimal("250"), 60)
        await first.stop()

        second = GameSession(mock_settings, clock=clock)
        await second.start()
        try:
            assert second.lifecycle.player.credits == Decimal("9750.00")
            assert second.lifecycle.state is LifecycleState.IDLE
        finally:
            await second.stop()

    @pytest.mark.asyncio
    async def test_stop_cancels_pending_resolution(
        self, mock_settings: AppSettings, clock: ManualClock
    ) -> None:
        session = GameSession(mock_settings, clock=clock)
        await session.start()
        await session.lifecycle.place("USD_SGD", Direction.UP, Decimal("100"), 60)
        await clock.advance(1)

        await session.stop()

        assert session.timers.pending == 0
        assert session.lifecycle.state is LifecycleState.OPEN


class TestLiveSession:
    """Sessions polling the backend."""

    @pytest.mark.asyncio
    async def test_login_then_poll(
        self, mock_settings: AppSettings, clock: ManualClock, repository: AsyncMock
    ) -> None:
        backend = FakeBackend()
        session = GameSession(
            _live_settings(mock_settings),
            clock=clock,
            repository=repository,
            transport=httpx.MockTransport(backend),
        )

        await session.start()
        try:
            await clock.advance(0)
            assert backend.paths[:2] == ["/auth/login", "/api/fx_rates"]
            assert session.remote.token == "jwt-xyz"
            assert session.feed.mode is FeedMode.LIVE
            assert session.feed.rates() == {"USD_SGD": Decimal("1.36")}

            entries = await session.leaderboard()
            assert [e.username for e in entries] == ["tester"]
        finally:
            await session.stop()

    @pytest.mark.asyncio
    async def test_score_posted_after_resolution(
        self, mock_settings: AppSettings, clock: ManualClock, repository: AsyncMock
    ) -> None:
        backend = FakeBackend()
        session = GameSession(
            _live_settings(mock_settings),
            clock=clock,
            repository=repository,
            transport=httpx.MockTransport(backend),
        )

        await session.start()
        try:
            await clock.advance(0)
            await session.lifecycle.place("USD_SGD", Direction.UP, Decimal("100"), 30)
            await clock.advance(30)

            assert session.lifecycle.state is LifecycleState.IDLE
            assert len(backend.scores) == 1
            assert backend.scores[0]["username"] == "tester"
            assert backend.scores[0]["stats"] == {"wins": 0, "losses": 1}
        finally:
            await session.stop()

    @pytest.mark.asyncio
    async def test_failed_login_does_not_stop_session(
        self, mock_settings: AppSettings, clock: ManualClock, repository: AsyncMock
    ) -> None:
        backend = FakeBackend(login_status=401)
        session = GameSession(
            _live_settings(mock_settings),
            clock=clock,
            repository=repository,
            transport=httpx.MockTransport(backend),
        )

        await session.start()
        try:
            assert session.is_started
            assert not session.remote.is_authenticated
        finally:
            await session.stop()

    @pytest.mark.asyncio
    async def test_unreachable_backend_falls_back_to_mock(
        self, mock_settings: AppSettings, clock: ManualClock, repository: AsyncMock
    ) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        session = GameSession(
            _live_settings(mock_settings, max_attempts=1),
            clock=clock,
            repository=repository,
            transport=httpx.MockTransport(refuse),
        )

        await session.start()
        try:
            await clock.advance(1)
            assert session.feed.mode is FeedMode.MOCK
            assert set(session.feed.rates()) == {"USD_SGD", "USD_INR", "EUR_USD"}
            await session.lifecycle.place("USD_INR", Direction.UP, Decimal("10"), 30)
        finally:
            await session.stop()
