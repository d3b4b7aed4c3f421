"""Cleanup of abandoned and expired handshakes.

- discard_pending_state: the browser gave up (client timeout). Only a
  still-pending handshake is removed; a completed one is left for the
  resolver so a late cleanup cannot strand a signed-in user.
- sweep_expired: periodic reaping of rows past their expiry, for both
  handshakes and unredeemed magic links.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime

from sqlalchemy.exc import SQLAlchemyError

from app.core.errors import APIError, StorageError, ValidationError
from app.services.bridge_backend import AuthBridgeBackend

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SweepResult:
    """Result of an expiry sweep.

    Attributes:
        expired_handshakes: Handshake rows deleted.
        expired_credentials: Magic link rows deleted.
    """

    expired_handshakes: int
    expired_credentials: int


class CleanupError(APIError):
    """Raised when a sweep fails at the database level."""

    def __init__(self, message: str) -> None:
        super().__init__(
            code="CLEANUP_ERROR",
            message=message,
            status_code=500,
        )


async def discard_pending_state(backend: AuthBridgeBackend, token: str | None) -> bool:
    """Delete a handshake the client abandoned, if still pending.

    Deleting an unknown state is not an error.

    Args:
        backend: Bridge collaborators.
        token: Handshake state.

    Returns:
        True if a row was removed.

    Raises:
        ValidationError: If the state is missing.
        StorageError: If the delete fails.
    """
    if not token:
        raise ValidationError("Missing state parameter")

    try:
        removed = await backend.handshakes.delete_pending(token)
    except SQLAlchemyError as exc:
        logger.error("Failed to delete auth state: %s", exc)
        raise StorageError("Failed to delete auth state") from exc

    if removed:
        logger.info("Discarded abandoned auth state %s…", token[:8])
    return removed


async def sweep_expired(
    backend: AuthBridgeBackend, *, now: datetime | None = None
) -> SweepResult:
    """Delete every expired handshake and magic link.

    Args:
        backend: Bridge collaborators.
        now: Reference time. Defaults to the current UTC time.

    Returns:
        SweepResult with deletion counts.

    Raises:
        CleanupError: If the database operation fails.
    """
    now = now or datetime.now(UTC)
    try:
        handshakes = await backend.handshakes.delete_expired(now=now)
        credentials = await backend.credentials.delete_expired(now=now)
    except SQLAlchemyError as exc:
        logger.error("Expired auth state sweep failed: %s", exc)
        raise CleanupError("Expired auth state sweep failed") from exc

    return SweepResult(expired_handshakes=handshakes, expired_credentials=credentials)
