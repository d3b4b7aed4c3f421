"""Session resolver — answers the browser's completion polls.

A poll for a pending handshake has no side effects. The first poll
after completion mints a magic link and deletes the handshake; the
delete's row count decides which poll delivers the link, so a link is
handed out at most once per handshake. If minting fails, the handshake
stays so the next poll can retry.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime

from sqlalchemy.exc import SQLAlchemyError

from app.core.config import settings
from app.core.errors import InternalError, InvalidOrExpiredStateError
from app.services.bridge_backend import AuthBridgeBackend

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionPending:
    """Handshake exists but the bot has not completed it yet."""


@dataclass(frozen=True)
class SessionReady:
    """Handshake completed; the magic link signs the user in.

    Attributes:
        magic_link: Single-use sign-in URL.
        user_id: User the link is for.
    """

    magic_link: str
    user_id: uuid.UUID


SessionResolution = SessionPending | SessionReady


def build_redirect_url(initiating_host_origin: str) -> str:
    """Post-login destination on the origin the browser started from."""
    return f"{initiating_host_origin.rstrip('/')}{settings.auth_redirect_path}"


async def resolve_session(
    backend: AuthBridgeBackend,
    token: str,
    *,
    now: datetime | None = None,
) -> SessionResolution:
    """Check a handshake and, once completed, deliver its credential.

    Args:
        backend: Bridge collaborators.
        token: Handshake state being polled.
        now: Reference time. Defaults to the current UTC time.

    Returns:
        SessionPending or SessionReady.

    Raises:
        InvalidOrExpiredStateError: Unknown, expired, or already resolved (401).
        InternalError: Stored origin missing, or credential minting failed.
    """
    now = now or datetime.now(UTC)

    try:
        handshake = await backend.handshakes.get_active(token, now=now)
    except SQLAlchemyError as exc:
        logger.error("Failed to read auth state: %s", exc)
        raise InternalError("Failed to check auth status") from exc

    if handshake is None:
        raise InvalidOrExpiredStateError(status_code=401)

    if not handshake.completed or handshake.resolved_user_id is None:
        return SessionPending()

    if not handshake.initiating_host_origin:
        logger.error("Auth state %s… has no initiating origin", token[:8])
        raise InternalError("Missing initiating host origin in auth state")

    user_id = handshake.resolved_user_id
    try:
        magic_link = await backend.credentials.issue(
            user_id,
            redirect_to=build_redirect_url(handshake.initiating_host_origin),
            now=now,
        )
    except SQLAlchemyError as exc:
        logger.error("Failed to generate magic link: %s", exc)
        raise InternalError("Failed to generate magic link") from exc

    try:
        removed = await backend.handshakes.delete(token)
    except SQLAlchemyError as exc:
        logger.error("Failed to delete auth state: %s", exc)
        raise InternalError("Failed to finalize auth state") from exc

    if not removed:
        # A concurrent poll already delivered the credential for this state
        raise InvalidOrExpiredStateError(status_code=401)

    logger.info("Resolved auth state %s… for user %s", token[:8], user_id)
    return SessionReady(magic_link=magic_link, user_id=user_id)
