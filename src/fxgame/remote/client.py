"""Backend API client with retry and exponential backoff.

Wire contract (HTTP/JSON, bearer token after login):
  POST /auth/login        {username, password?}               -> {token}
  GET  /api/fx_rates                                          -> {timestamp, rates}
  POST /api/game/score    {username, score, credits, stats}   -> {success, message}
  GET  /api/leaderboard                                       -> [{rank, username, score}]

Retry policy (every call): up to `max_attempts` attempts, retrying only on
transport failures (connect errors, timeouts, broken connections). HTTP
4xx/5xx answers are application errors and are not retried. Delays are
base * 2**(attempt - 1): 1s, 2s with the defaults.

Public methods never raise. Failures are logged and surfaced as None,
False or an empty list so a flaky backend can never end a session.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Self

import httpx

from fxgame.clock import Clock, SystemClock
from fxgame.config import RemoteSettings
from fxgame.exceptions import ApplicationError, ParseError, RemoteSyncError, TransportError
from fxgame.logging import get_logger
from fxgame.models import LeaderboardEntry, RatesSnapshot, ScoreSubmission

logger = get_logger(__name__)


class RemoteSync:
    """Async HTTP client for the game backend.

    Args:
        settings: Base URL, token and retry configuration.
        clock: Time source for backoff sleeps. Defaults to SystemClock.
        transport: Optional httpx transport (tests pass httpx.MockTransport).

    Usage:
        async with RemoteSync(settings.remote) as remote:
            token = await remote.login("alice")
            snapshot = await remote.fetch_rates()
    """

    def __init__(
        self,
        settings: RemoteSettings,
        clock: Clock | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._clock = clock or SystemClock()
        self._token: str | None = settings.jwt_token.get_secret_value() or None
        self._client = httpx.AsyncClient(
            base_url=settings.base_url.rstrip("/"),
            timeout=settings.timeout_seconds,
            transport=transport,
        )

    @property
    def token(self) -> str | None:
        return self._token

    @property
    def is_authenticated(self) -> bool:
        return self._token is not None

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # type: ignore[no-untyped-def]
        await self.close()

    # ──────────────────────────────────────────────
    # Public API
    # ──────────────────────────────────────────────

    async def login(self, username: str, password: str | None = None) -> str | None:
        """Authenticate and keep the returned token for later calls."""
        body: dict[str, Any] = {"username": username}
        if password:
            body["password"] = password

        try:
            payload = await self._request("POST", "/auth/login", json_body=body)
            token = payload.get("token") if isinstance(payload, dict) else None
            if not isinstance(token, str) or not token:
                raise ParseError("login response has no token")
        except RemoteSyncError as e:
            logger.warning("login_failed", username=username, error=str(e))
            return None

        self._token = token
        logger.info("login_succeeded", username=username)
        return token

    async def fetch_rates(self) -> RatesSnapshot | None:
        try:
            payload = await self._request("GET", "/api/fx_rates")
            return parse_rates(payload)
        except RemoteSyncError as e:
            logger.warning("fetch_rates_failed", error=str(e), error_type=type(e).__name__)
            return None

    async def post_score(self, submission: ScoreSubmission) -> bool:
        try:
            payload = await self._request(
                "POST", "/api/game/score", json_body=submission.to_payload()
            )
        except RemoteSyncError as e:
            logger.warning("score_post_failed", username=submission.username, error=str(e))
            return False

        success = payload.get("success", True) if isinstance(payload, dict) else True
        if not success:
            logger.warning(
                "score_post_rejected",
                username=submission.username,
                message=payload.get("message"),
            )
            return False
        logger.info("score_persisted", username=submission.username, score=submission.score)
        return True

    async def fetch_leaderboard(self) -> list[LeaderboardEntry]:
        try:
            payload = await self._request("GET", "/api/leaderboard")
            return parse_leaderboard(payload)
        except RemoteSyncError as e:
            logger.warning("fetch_leaderboard_failed", error=str(e))
            return []

    # ──────────────────────────────────────────────
    # Transport
    # ──────────────────────────────────────────────

    def _headers(self) -> dict[str, str]:
        if self._token:
            return {"Authorization": f"Bearer {self._token}"}
        return {}

    async def _request(self, method: str, path: str, json_body: Any = None) -> Any:
        """Send a request with retry on transport failures and decode the JSON body.

        Raises:
            TransportError: The backend stayed unreachable for every attempt.
            ApplicationError: The backend answered with an HTTP error status.
            ParseError: The body is not valid JSON.
        """
        max_attempts = max(1, self._settings.max_attempts)
        base_delay = self._settings.retry_base_delay

        for attempt in range(1, max_attempts + 1):
            try:
                response = await self._client.request(
                    method, path, json=json_body, headers=self._headers()
                )
            except httpx.TransportError as e:
                if attempt == max_attempts:
                    logger.error(
                        "remote_request_failed_permanently",
                        method=method,
                        path=path,
                        attempts=max_attempts,
                        error=str(e),
                    )
                    raise TransportError(f"{method} {path}: {e}") from e

                delay = base_delay * (2 ** (attempt - 1))
                logger.warning(
                    "remote_request_retry",
                    method=method,
                    path=path,
                    attempt=attempt + 1,
                    max_attempts=max_attempts,
                    delay=delay,
                    error=str(e),
                )
                await self._clock.sleep(delay)
                continue

            if response.is_error:
                raise ApplicationError(response.status_code, response.text[:200])

            try:
                return response.json()
            except ValueError as e:
                raise ParseError(f"{method} {path}: invalid JSON body") from e

        raise TransportError(f"{method} {path}: no attempts made")  # Unreachable


def _to_decimal(value: Any, field: str) -> Decimal:
    if isinstance(value, bool):
        raise ParseError(f"{field} is not a number: {value!r}")
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError) as e:
        raise ParseError(f"{field} is not a number: {value!r}") from e


def parse_rates(payload: Any) -> RatesSnapshot:
    """Decode an /api/fx_rates body.

    Raises:
        ParseError: If the body does not carry a rates object of numbers.
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("rates"), dict):
        raise ParseError("fx_rates response has no rates object")
    rates = {
        str(instrument): _to_decimal(value, f"rates.{instrument}")
        for instrument, value in payload["rates"].items()
    }
    return RatesSnapshot(timestamp=str(payload.get("timestamp", "")), rates=rates)


def parse_leaderboard(payload: Any) -> list[LeaderboardEntry]:
    """Decode an /api/leaderboard body, preserving server order.

    Raises:
        ParseError: If the body is not a list of entry objects.
    """
    if not isinstance(payload, list):
        raise ParseError("leaderboard response is not a list")
    entries = []
    for item in payload:
        if not isinstance(item, dict):
            raise ParseError(f"leaderboard entry is not an object: {item!r}")
        try:
            rank = int(item["rank"])
            username = str(item["username"])
        except (KeyError, TypeError, ValueError) as e:
            raise ParseError(f"malformed leaderboard entry: {item!r}") from e
        entries.append(
            LeaderboardEntry(
                rank=rank,
                username=username,
                score=_to_decimal(item.get("score", 0), "score"),
            )
        )
    return entries
