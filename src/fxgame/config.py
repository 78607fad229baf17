"""Configuration system using pydantic-settings with environment variable loading.

Settings are frozen: the session receives them once at startup and never
mutates them.
"""

from decimal import Decimal
from typing import Literal

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class FeedSettings(BaseSettings):
    """Rate feed parameters (mock generator or live backend polling)."""

    model_config = SettingsConfigDict(env_prefix="FEED_", frozen=True)

    mode: Literal["mock", "live"] = "mock"
    mock_seed: int = 12345
    instruments: list[str] = ["USD_SGD", "USD_INR", "EUR_USD"]
    base_rates: dict[str, Decimal] = {
        "USD_SGD": Decimal("1.35"),
        "USD_INR": Decimal("83.0"),
        "EUR_USD": Decimal("1.09"),
    }
    mock_interval: float = 1.0  # seconds between generator ticks
    live_interval: float = 5.0  # seconds between backend polls
    history_size: int = 1000  # samples retained per instrument


class RemoteSettings(BaseSettings):
    """Backend API connection and retry policy."""

    model_config = SettingsConfigDict(env_prefix="REMOTE_", frozen=True)

    base_url: str = "http://localhost:3000"
    jwt_token: SecretStr = SecretStr("")
    password: SecretStr = SecretStr("")
    max_attempts: int = 3
    retry_base_delay: float = 1.0  # 1s, 2s, 4s ...
    timeout_seconds: float = 10.0


class GameSettings(BaseSettings):
    """Player defaults and prediction limits."""

    model_config = SettingsConfigDict(env_prefix="GAME_", frozen=True)

    username: str = "guest"
    initial_credits: Decimal = Decimal("10000")
    allowed_horizons: list[float] = [30.0, 60.0, 300.0]


class StorageSettings(BaseSettings):
    """Local player state persistence."""

    model_config = SettingsConfigDict(env_prefix="STORAGE_", frozen=True)

    db_path: str = "data/player.db"


class ServerSettings(BaseSettings):
    """Game API server configuration."""

    model_config = SettingsConfigDict(env_prefix="SERVER_", frozen=True)

    enabled: bool = True
    host: str = "0.0.0.0"
    port: int = 8080


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        frozen=True,
    )

    log_level: str = "INFO"
    log_format: Literal["console", "json"] = "console"
    feed: FeedSettings = FeedSettings()
    remote: RemoteSettings = RemoteSettings()
    game: GameSettings = GameSettings()
    storage: StorageSettings = StorageSettings()
    server: ServerSettings = ServerSettings()

    @property
    def use_backend(self) -> bool:
        """True when the feed is configured to poll the backend."""
        return self.feed.mode == "live"
