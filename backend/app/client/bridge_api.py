"""HTTP client for the Telegram login bridge endpoints.

Used by the login poller (browser side) and by the bot integration
(``complete``). Every call carries a fixed request timeout.
"""

import uuid
from dataclasses import dataclass
from types import TracebackType
from typing import Any, Self

import httpx

# Request timeout for every bridge call, in seconds
DEFAULT_TIMEOUT = 10.0

_BRIDGE_PREFIX = "/api/v1/auth/telegram"


class BridgeClientError(Exception):
    """A bridge call failed.

    Attributes:
        message: Server error message, or a transport description.
        status_code: HTTP status, None for transport failures.
        code: Server error code (e.g. "INVALID_OR_EXPIRED_STATE").
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        code: str | None = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.code = code
        super().__init__(message)


@dataclass(frozen=True)
class IssuedHandoff:
    """State and deep link returned by POST /state."""

    state: str
    redirect_url: str


@dataclass(frozen=True)
class SessionStatus:
    """Result of one poll.

    Attributes:
        completed: True once the magic link is included.
        magic_link: Single-use sign-in URL, when completed.
        user_id: Signed-in user, when completed.
    """

    completed: bool
    magic_link: str | None = None
    user_id: uuid.UUID | None = None


@dataclass(frozen=True)
class CompletionAck:
    """Result returned to the bot after completing a state."""

    message: str
    user_id: uuid.UUID


class AuthBridgeClient:
    """Async client for the bridge routes.

    Args:
        base_url: Backend base URL, e.g. "https://api.example.com".
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport (tests pass ASGITransport).
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def issue_state(self, initiating_host_origin: str) -> IssuedHandoff:
        """POST /state."""
        data = await self._request(
            "POST",
            "/state",
            json={"initiating_host_origin": initiating_host_origin},
        )
        return IssuedHandoff(state=data["state"], redirect_url=data["redirect_url"])

    async def poll_session(self, state: str) -> SessionStatus:
        """GET /session. Raises BridgeClientError on 401 (unknown/expired)."""
        data = await self._request("GET", "/session", params={"state": state})
        if not data.get("completed"):
            return SessionStatus(completed=False)
        return SessionStatus(
            completed=True,
            magic_link=data["magic_link"],
            user_id=uuid.UUID(data["user_id"]),
        )

    async def cleanup_state(self, state: str) -> None:
        """POST /state/cleanup."""
        await self._request("POST", "/state/cleanup", json={"state": state})

    async def complete(
        self,
        *,
        state: str,
        telegram_user_id: int | str,
        webhook_secret: str,
        telegram_full_name: str | None = None,
        telegram_username: str | None = None,
    ) -> CompletionAck:
        """POST /complete, as the bot."""
        data = await self._request(
            "POST",
            "/complete",
            json={
                "state": state,
                "telegram_user_id": str(telegram_user_id),
                "telegram_full_name": telegram_full_name,
                "telegram_username": telegram_username,
                "webhook_secret": webhook_secret,
            },
        )
        return CompletionAck(message=data["message"], user_id=uuid.UUID(data["user_id"]))

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        try:
            resp = await self._client.request(method, f"{_BRIDGE_PREFIX}{path}", **kwargs)
        except httpx.HTTPError as exc:
            raise BridgeClientError(f"Request failed: {exc}") from exc

        try:
            data: dict[str, Any] = resp.json()
        except ValueError:
            data = {}

        if resp.is_error or not data.get("success"):
            error = data.get("error") if isinstance(data.get("error"), dict) else {}
            raise BridgeClientError(
                error.get("message") or f"HTTP {resp.status_code}",
                status_code=resp.status_code,
                code=error.get("code"),
            )
        return data
