"""Game layer: prediction lifecycle, player ledger, and payout rules."""

from fxgame.game.ledger import PlayerLedger
from fxgame.game.lifecycle import PredictionLifecycle

__all__ = ["PlayerLedger", "PredictionLifecycle"]
