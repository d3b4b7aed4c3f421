"""State issuer — starts a Telegram login handshake.

Creates a random 48-char hex state, records it with a fixed expiry and
the browser's origin, and returns the bot deep link that carries the
state into Telegram (``https://t.me/<bot>?start=auth_<state>``).
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from urllib.parse import urlsplit

from sqlalchemy.exc import SQLAlchemyError

from app.core.config import settings
from app.core.errors import StorageError, ValidationError
from app.services.handshake_store import (
    HandshakeRecord,
    HandshakeStore,
    TokenCollisionError,
)

logger = logging.getLogger(__name__)

# 24 random bytes render as 48 lowercase hex characters
STATE_TOKEN_BYTES = 24

# One retry on a primary-key collision, then surface StorageError
_MAX_INSERT_ATTEMPTS = 2

_ALLOWED_SCHEMES = frozenset({"http", "https"})

_MISSING_ORIGIN_MSG = "Missing initiatingHostOrigin parameter"
_INVALID_ORIGIN_MSG = "initiatingHostOrigin must be an http(s) origin"


@dataclass(frozen=True)
class IssuedState:
    """Result of issuing a handshake.

    Attributes:
        token: The new state.
        handoff_url: Bot deep link to display or open.
        expires_at: When the state stops being accepted.
    """

    token: str
    handoff_url: str
    expires_at: datetime


def generate_state_token() -> str:
    """Cryptographically random state, 48 lowercase hex chars."""
    return secrets.token_hex(STATE_TOKEN_BYTES)


def build_handoff_url(token: str) -> str:
    """Deep link that opens the login bot with the state as start payload."""
    return f"{settings.telegram_bot_url}?start=auth_{token}"


def normalize_host_origin(raw: str | None) -> str:
    """Reduce an initiating origin to ``scheme://host[:port]``.

    Args:
        raw: Origin supplied by the browser client.

    Returns:
        Normalized origin without path or trailing slash.

    Raises:
        ValidationError: If missing, not http(s), carries credentials, or
            is not on the configured allow-list.
    """
    if raw is None or not raw.strip():
        raise ValidationError(_MISSING_ORIGIN_MSG)

    parts = urlsplit(raw.strip())
    scheme = parts.scheme.lower()
    if scheme not in _ALLOWED_SCHEMES or not parts.netloc or "@" in parts.netloc:
        raise ValidationError(_INVALID_ORIGIN_MSG)

    origin = f"{scheme}://{parts.netloc.lower()}"
    allowed = settings.auth_allowed_host_origins
    if allowed and origin not in {a.rstrip("/").lower() for a in allowed}:
        raise ValidationError(_INVALID_ORIGIN_MSG)
    return origin


async def issue_state(
    store: HandshakeStore,
    initiating_host_origin: str | None,
    *,
    now: datetime | None = None,
) -> IssuedState:
    """Create and persist a new pending handshake.

    Args:
        store: Handshake store.
        initiating_host_origin: Browser origin the flow started from.
        now: Issue time. Defaults to the current UTC time.

    Returns:
        IssuedState with the token and hand-off deep link.

    Raises:
        ValidationError: If the origin is missing or malformed.
        StorageError: If the record cannot be inserted.
    """
    origin = normalize_host_origin(initiating_host_origin)
    issued_at = now or datetime.now(UTC)
    expires_at = issued_at + timedelta(seconds=settings.auth_state_ttl_seconds)

    for attempt in range(1, _MAX_INSERT_ATTEMPTS + 1):
        token = generate_state_token()
        record = HandshakeRecord(
            token=token,
            created_at=issued_at,
            expires_at=expires_at,
            initiating_host_origin=origin,
        )
        try:
            await store.insert(record)
        except TokenCollisionError:
            logger.warning("State token collision on attempt %d", attempt)
            continue
        except SQLAlchemyError as exc:
            logger.error("Failed to store auth state: %s", exc)
            raise StorageError() from exc

        logger.info("Issued auth state %s… for %s", token[:8], origin)
        return IssuedState(
            token=token,
            handoff_url=build_handoff_url(token),
            expires_at=expires_at,
        )

    raise StorageError()
