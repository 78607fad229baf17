"""Local persistence for the player ledger."""

from fxgame.storage.database import GameDatabase
from fxgame.storage.store import LedgerRepository, PlayerStateStore

__all__ = ["GameDatabase", "LedgerRepository", "PlayerStateStore"]
