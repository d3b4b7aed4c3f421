"""Bridge completer — the bot's callback once a human approves a login.

Flow:
1. Authenticate the bot by its shared webhook secret.
2. Load the handshake; it must exist, be unexpired, and still be pending.
3. Find the user by Telegram id, or provision a minimal new one.
4. Compare-and-set the handshake to completed with the resolved user.

Step 4 is the only write to the handshake and is conditional on
``completed = false``; when two callbacks race, exactly one wins and
the other reports the state as already used. The handshake is not
deleted here; the session resolver or the cleanup path removes it.
"""

import logging
import secrets
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime

from sqlalchemy.exc import SQLAlchemyError

from app.core.config import settings
from app.core.errors import (
    InvalidOrExpiredStateError,
    StateAlreadyUsedError,
    StorageError,
    UnauthorizedError,
)
from app.services.bridge_backend import AuthBridgeBackend
from app.services.user_directory import TelegramIdentity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompletionResult:
    """Outcome of a successful completion.

    Attributes:
        user_id: User now bound to the handshake.
        is_new_user: True if the user was provisioned by this call.
    """

    user_id: uuid.UUID
    is_new_user: bool

    @property
    def message(self) -> str:
        if self.is_new_user:
            return "User created and authenticated"
        return "User authenticated"


def verify_webhook_secret(provided: str | None) -> None:
    """Check the bot's shared secret in constant time.

    An unset WEBHOOK_SECRET rejects every caller.

    Raises:
        UnauthorizedError: If the secret is missing or wrong.
    """
    expected = settings.webhook_secret.get_secret_value()
    if not expected or not provided:
        raise UnauthorizedError()
    if not secrets.compare_digest(provided.encode(), expected.encode()):
        raise UnauthorizedError()


async def complete_handshake(
    backend: AuthBridgeBackend,
    *,
    token: str,
    identity: TelegramIdentity,
    webhook_secret: str | None,
    now: datetime | None = None,
) -> CompletionResult:
    """Bind a Telegram user to a pending handshake, exactly once.

    Args:
        backend: Bridge collaborators.
        token: Handshake state from the bot's start payload.
        identity: Telegram account that approved the login.
        webhook_secret: Shared secret presented by the bot.
        now: Reference time. Defaults to the current UTC time.

    Returns:
        CompletionResult with the user id and newness flag.

    Raises:
        UnauthorizedError: Bad shared secret.
        InvalidOrExpiredStateError: Unknown or expired state (400).
        StateAlreadyUsedError: State already completed.
        StorageError: Backend failure.
    """
    verify_webhook_secret(webhook_secret)
    now = now or datetime.now(UTC)

    try:
        handshake = await backend.handshakes.get_active(token, now=now)
        if handshake is None:
            raise InvalidOrExpiredStateError(status_code=400)
        if handshake.completed:
            raise StateAlreadyUsedError()

        resolution = await backend.users.find_or_create(identity)

        won = await backend.handshakes.mark_completed(
            token, user_id=resolution.user_id, now=now
        )
        if not won:
            # Another callback completed it (or it expired) since our read
            current = await backend.handshakes.get_active(token, now=now)
            if current is not None and current.completed:
                raise StateAlreadyUsedError()
            raise InvalidOrExpiredStateError(status_code=400)
    except SQLAlchemyError as exc:
        logger.error("Failed to complete auth state: %s", exc)
        raise StorageError("Failed to update auth state") from exc

    logger.info(
        "Completed auth state %s… for user %s (new=%s)",
        token[:8],
        resolution.user_id,
        resolution.created,
    )
    return CompletionResult(
        user_id=resolution.user_id,
        is_new_user=resolution.created,
    )
