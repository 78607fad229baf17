"""Typed read/write access to the persisted player state.

Credits are stored as TEXT and restored as Decimal on read. The state is a
single row; badges live in their own table in unlock order.
"""

import time
from decimal import Decimal
from typing import Protocol

from fxgame.logging import get_logger
from fxgame.models import PlayerState
from fxgame.storage.database import GameDatabase

logger = get_logger(__name__)


class LedgerRepository(Protocol):
    """Where the lifecycle persists the ledger after each mutation."""

    async def load(self) -> PlayerState | None: ...

    async def save(self, state: PlayerState) -> None: ...


class PlayerStateStore:
    """aiosqlite-backed LedgerRepository.

    Args:
        database: Connected GameDatabase.
    """

    def __init__(self, database: GameDatabase) -> None:
        self._database = database

    async def load(self) -> PlayerState | None:
        """Return the saved player state, or None on first run."""
        db = self._database.db
        cursor = await db.execute(
            "SELECT username, credits, wins, losses, current_streak, best_streak, total_xp "
            "FROM player_state WHERE id = 1"
        )
        row = await cursor.fetchone()
        if row is None:
            return None

        cursor = await db.execute("SELECT badge FROM player_badges ORDER BY position")
        badges = tuple(badge for (badge,) in await cursor.fetchall())

        username, credits, wins, losses, streak, best_streak, total_xp = row
        return PlayerState(
            username=username,
            credits=Decimal(credits),
            wins=wins,
            losses=losses,
            current_streak=streak,
            best_streak=best_streak,
            total_xp=total_xp,
            badges=badges,
        )

    async def save(self, state: PlayerState) -> None:
        db = self._database.db
        await db.execute(
            "INSERT OR REPLACE INTO player_state "
            "(id, username, credits, wins, losses, current_streak, best_streak, total_xp, updated_at) "
            "VALUES (1, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                state.username,
                str(state.credits),
                state.wins,
                state.losses,
                state.current_streak,
                state.best_streak,
                state.total_xp,
                time.time(),
            ),
        )
        # Badges only grow, so existing rows are left untouched
        await db.executemany(
            "INSERT OR IGNORE INTO player_badges (badge, position) VALUES (?, ?)",
            [(badge, position) for position, badge in enumerate(state.badges)],
        )
        await db.commit()
        logger.debug(
            "player_state_saved",
            username=state.username,
            credits=str(state.credits),
            badges=len(state.badges),
        )
