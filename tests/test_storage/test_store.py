"""Tests for GameDatabase and PlayerStateStore using an in-memory SQLite database."""

from decimal import Decimal

import pytest
import pytest_asyncio

from fxgame.models import PlayerState
from fxgame.storage.database import GameDatabase
from fxgame.storage.store import PlayerStateStore


@pytest_asyncio.fixture
async def database():
    db = GameDatabase(":memory:")
    await db.connect()
    yield db
    await db.close()


@pytest.fixture
def store(database: GameDatabase) -> PlayerStateStore:
    return PlayerStateStore(database)


class TestGameDatabase:
    """Tests for connection management."""

    def test_db_before_connect_raises(self) -> None:
        with pytest.raises(RuntimeError, match="not connected"):
            _ = GameDatabase(":memory:").db

    @pytest.mark.asyncio
    async def test_schema_version_recorded(self, database: GameDatabase) -> None:
        cursor = await database.db.execute("SELECT version FROM schema_version")
        assert await cursor.fetchall() == [(1,)]

    @pytest.mark.asyncio
    async def test_file_database_creates_parent_dir(self, tmp_path) -> None:
        path = tmp_path / "nested" / "player.db"
        async with GameDatabase(str(path)) as db:
            await PlayerStateStore(db).save(PlayerState(username="a", credits=Decimal("1")))
        assert path.exists()


class TestPlayerStateStore:
    """Tests for loading and saving the ledger snapshot."""

    @pytest.mark.asyncio
    async def test_load_on_first_run_is_none(self, store: PlayerStateStore) -> None:
        assert await store.load() is None

    @pytest.mark.asyncio
    async def test_roundtrip_preserves_decimal_credits(self, store: PlayerStateStore) -> None:
        state = PlayerState(
            username="alice",
            credits=Decimal("10001.05"),
            wins=4,
            losses=2,
            current_streak=3,
            best_streak=3,
            total_xp=57,
            badges=("first_win", "streak_3"),
        )

        await store.save(state)
        loaded = await store.load()

        assert loaded == state
        assert isinstance(loaded.credits, Decimal)

    @pytest.mark.asyncio
    async def test_save_overwrites_single_row(self, store: PlayerStateStore, database) -> None:
        await store.save(PlayerState(username="alice", credits=Decimal("10000.00")))
        await store.save(PlayerState(username="alice", credits=Decimal("9900.00"), losses=1))

        cursor = await database.db.execute("SELECT COUNT(*) FROM player_state")
        assert (await cursor.fetchone())[0] == 1
        loaded = await store.load()
        assert loaded.credits == Decimal("9900.00")
        assert loaded.losses == 1

    @pytest.mark.asyncio
    async def test_badges_keep_unlock_order(self, store: PlayerStateStore) -> None:
        await store.save(PlayerState(username="a", credits=Decimal("1"), badges=("xp_100",)))
        await store.save(
            PlayerState(username="a", credits=Decimal("1"), badges=("xp_100", "first_win"))
        )

        loaded = await store.load()
        assert loaded.badges == ("xp_100", "first_win")
