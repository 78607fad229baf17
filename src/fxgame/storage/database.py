"""Async SQLite database manager for local player state.

Uses aiosqlite for non-blocking database operations with WAL mode.
"""

import os
from typing import Self

import aiosqlite

from fxgame.logging import get_logger

logger = get_logger(__name__)

SCHEMA_VERSION = 1

_CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

CREATE TABLE IF NOT EXISTS player_state (
    id INTEGER PRIMARY KEY CHECK (id = 1),
    username TEXT NOT NULL,
    credits TEXT NOT NULL,
    wins INTEGER NOT NULL DEFAULT 0,
    losses INTEGER NOT NULL DEFAULT 0,
    current_streak INTEGER NOT NULL DEFAULT 0,
    best_streak INTEGER NOT NULL DEFAULT 0,
    total_xp INTEGER NOT NULL DEFAULT 0,
    updated_at REAL NOT NULL
);

CREATE TABLE IF NOT EXISTS player_badges (
    badge TEXT PRIMARY KEY,
    position INTEGER NOT NULL
);
"""


class GameDatabase:
    """Async SQLite connection manager for player state.

    Usage:
        async with GameDatabase("data/player.db") as database:
            store = PlayerStateStore(database)
            state = await store.load()
    """

    def __init__(self, db_path: str = "data/player.db") -> None:
        self._db_path = db_path
        self._connection: aiosqlite.Connection | None = None

    @property
    def db(self) -> aiosqlite.Connection:
        """Access the raw aiosqlite connection.

        Raises RuntimeError if not connected.
        """
        if self._connection is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._connection

    async def connect(self) -> None:
        """Open the connection, configure pragmas, and create the schema.

        Creates the parent directory if it does not exist. ":memory:" is
        accepted for tests.
        """
        if self._db_path != ":memory:":
            db_dir = os.path.dirname(self._db_path)
            if db_dir:
                os.makedirs(db_dir, exist_ok=True)

        self._connection = await aiosqlite.connect(self._db_path)

        await self._connection.execute("PRAGMA journal_mode=WAL")
        await self._connection.execute("PRAGMA synchronous=NORMAL")

        await self._connection.executescript(_CREATE_TABLES_SQL)
        await self._connection.commit()
        await self._ensure_schema_version()

        logger.info("player_db_connected", db_path=self._db_path)

    async def close(self) -> None:
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
            logger.info("player_db_closed", db_path=self._db_path)

    async def _ensure_schema_version(self) -> None:
        assert self._connection is not None
        cursor = await self._connection.execute("SELECT version FROM schema_version LIMIT 1")
        row = await cursor.fetchone()
        if row is None:
            await self._connection.execute(
                "INSERT INTO schema_version (version) VALUES (?)",
                (SCHEMA_VERSION,),
            )
            await self._connection.commit()

    async def __aenter__(self) -> Self:
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # type: ignore[no-untyped-def]
        await self.close()
