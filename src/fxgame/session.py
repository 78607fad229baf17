"""Game session -- builds and owns every component for one player session.

Component wiring order:
1. Clock and TimerQueue
2. HistoryStore and RateSeriesGenerator
3. RemoteSync (only when the feed runs in live mode)
4. RateFeed
5. Ledger repository (aiosqlite unless one is injected)
6. PlayerLedger, loaded once from the repository or built from defaults
7. PredictionLifecycle
8. Login (awaited), then the feed loop starts

Nothing here is a process-wide singleton: tests build as many sessions as
they like, each with its own clock.
"""

import httpx

from fxgame.clock import Clock, SystemClock
from fxgame.config import AppSettings
from fxgame.feed.generator import RateSeriesGenerator
from fxgame.feed.history import HistoryStore
from fxgame.feed.rate_feed import RateFeed
from fxgame.game.ledger import PlayerLedger
from fxgame.game.lifecycle import PredictionLifecycle
from fxgame.logging import get_logger
from fxgame.models import LeaderboardEntry
from fxgame.remote.client import RemoteSync
from fxgame.scheduler import TimerQueue
from fxgame.storage.database import GameDatabase
from fxgame.storage.store import LedgerRepository, PlayerStateStore

logger = get_logger(__name__)


class GameSession:
    """Composition root for the feed, lifecycle, ledger and backend client.

    Args:
        settings: Immutable application settings.
        clock: Time source. Defaults to SystemClock.
        repository: Ledger persistence. Defaults to an aiosqlite store at
            settings.storage.db_path, opened in start().
        transport: Optional httpx transport for the backend client.
    """

    def __init__(
        self,
        settings: AppSettings,
        clock: Clock | None = None,
        repository: LedgerRepository | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self.clock = clock or SystemClock()
        self.timers = TimerQueue(self.clock)
        self.history = HistoryStore(settings.feed.history_size)
        self.generator = RateSeriesGenerator(self.clock)

        self.remote: RemoteSync | None = None
        if settings.use_backend:
            self.remote = RemoteSync(settings.remote, clock=self.clock, transport=transport)

        self.feed = RateFeed(
            settings.feed,
            self.generator,
            self.history,
            self.clock,
            remote=self.remote,
        )

        self._database: GameDatabase | None = None
        self._repository = repository
        self._lifecycle: PredictionLifecycle | None = None
        self._started = False

    @property
    def settings(self) -> AppSettings:
        return self._settings

    @property
    def lifecycle(self) -> PredictionLifecycle:
        if self._lifecycle is None:
            raise RuntimeError("Session not started. Call start() first.")
        return self._lifecycle

    @property
    def is_started(self) -> bool:
        return self._started

    async def start(self) -> None:
        """Load the player, log in when a backend is configured, and start the feed."""
        if self._started:
            logger.warning("session_already_started")
            return

        if self._repository is None:
            self._database = GameDatabase(self._settings.storage.db_path)
            await self._database.connect()
            self._repository = PlayerStateStore(self._database)

        ledger = await self._load_ledger(self._repository)
        self._lifecycle = PredictionLifecycle(
            feed=self.feed,
            ledger=ledger,
            timers=self.timers,
            clock=self.clock,
            repository=self._repository,
            remote=self.remote,
        )

        if self.remote is not None and not self.remote.is_authenticated:
            await self.login(self._settings.game.username)

        await self.feed.start()
        self._started = True
        logger.info(
            "session_started",
            mode=self.feed.mode.value,
            username=ledger.username,
            credits=str(ledger.credits),
        )

    async def stop(self) -> None:
        """Stop the feed, cancel pending timers, and release connections."""
        await self.feed.stop()
        await self.timers.shutdown()
        if self.remote is not None:
            await self.remote.close()
        if self._database is not None:
            await self._database.close()
        self._started = False
        logger.info("session_stopped")

    async def login(self, username: str, password: str | None = None) -> bool:
        """Authenticate against the backend and adopt the username on success."""
        if self.remote is None:
            return False
        if password is None:
            password = self._settings.remote.password.get_secret_value() or None
        token = await self.remote.login(username, password)
        if token is None:
            logger.warning("session_continuing_without_login", username=username)
            return False
        if self._lifecycle is not None and self._lifecycle.player.username != username:
            await self._lifecycle.rename_player(username)
        return True

    async def leaderboard(self) -> list[LeaderboardEntry]:
        if self.remote is None:
            return []
        return await self.remote.fetch_leaderboard()

    async def _load_ledger(self, repository: LedgerRepository) -> PlayerLedger:
        state = await repository.load()
        if state is not None:
            logger.info("player_state_loaded", username=state.username, credits=str(state.credits))
            return PlayerLedger(state)

        ledger = PlayerLedger.from_defaults(
            self._settings.game.username, self._settings.game.initial_credits
        )
        await repository.save(ledger.snapshot())
        logger.info("player_state_created", username=ledger.username, credits=str(ledger.credits))
        return ledger
