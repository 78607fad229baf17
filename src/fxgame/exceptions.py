"""Custom exceptions for the FX prediction game.

Placement errors and remote-sync errors live here to avoid circular
imports between the feed, game and remote layers.
"""


class GameError(Exception):
    """Base exception for all game errors."""


class PredictionError(GameError):
    """Raised when a prediction cannot be placed. No side effects are applied."""


class InvalidStake(PredictionError):
    """Raised when the stake is not positive or exceeds available credits."""


class AlreadyOpen(PredictionError):
    """Raised when a prediction is already open."""


class NoRate(PredictionError):
    """Raised when the feed has no current rate for the instrument."""


class InvalidHorizon(PredictionError):
    """Raised when the prediction horizon is not positive."""


class RemoteSyncError(GameError):
    """Base exception for backend communication failures."""


class TransportError(RemoteSyncError):
    """Raised when the backend is unreachable (connection, timeout, protocol)."""


class ApplicationError(RemoteSyncError):
    """Raised when the backend answers with an HTTP error status."""

    def __init__(self, status_code: int, message: str = "") -> None:
        super().__init__(f"HTTP {status_code}: {message}" if message else f"HTTP {status_code}")
        self.status_code = status_code


class ParseError(RemoteSyncError):
    """Raised when a backend payload cannot be decoded."""
