"""Collaborators used by the Telegram login bridge.

Bundles the handshake store, user directory, and credential issuer so
services take one argument and endpoints one dependency. The storage
mode comes from ``AUTH_BRIDGE_STORAGE``.

WHY IN-MEMORY MODE:
- Local development without PostgreSQL
- Handshakes live three minutes, so losing them on restart is harmless
- Replace with the database mode for multi-instance deployments
"""

import logging
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import StorageError
from app.services.handshake_store import (
    DatabaseHandshakeStore,
    HandshakeStore,
    InMemoryHandshakeStore,
)
from app.services.magic_link import (
    CredentialIssuer,
    DatabaseMagicLinkIssuer,
    InMemoryMagicLinkIssuer,
)
from app.services.user_directory import (
    DatabaseUserDirectory,
    InMemoryUserDirectory,
    UserDirectory,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthBridgeBackend:
    """The three collaborators of the login bridge.

    Attributes:
        handshakes: Store for short-lived login states.
        users: Telegram identity lookup and provisioning.
        credentials: Magic link issuer.
        session: Request session in database mode, None in memory mode.
    """

    handshakes: HandshakeStore
    users: UserDirectory
    credentials: CredentialIssuer
    session: AsyncSession | None = None

    async def commit(self) -> None:
        """Make this request's writes durable.

        Endpoints call this before building their response, so a client
        never receives a state, ack, or magic link that was not stored.
        No-op in memory mode.

        Raises:
            StorageError: If the commit fails. The session is rolled back
                by get_db.
        """
        if self.session is None:
            return
        try:
            await self.session.commit()
        except SQLAlchemyError as exc:
            logger.error("Failed to commit auth bridge writes: %s", exc)
            raise StorageError("Failed to commit auth state") from exc


def database_backend(db: AsyncSession) -> AuthBridgeBackend:
    """Backend bound to a request-scoped session."""
    return AuthBridgeBackend(
        handshakes=DatabaseHandshakeStore(db),
        users=DatabaseUserDirectory(db),
        credentials=DatabaseMagicLinkIssuer(db),
        session=db,
    )


def in_memory_backend() -> AuthBridgeBackend:
    """Fresh backend with empty in-memory collaborators."""
    return AuthBridgeBackend(
        handshakes=InMemoryHandshakeStore(),
        users=InMemoryUserDirectory(),
        credentials=InMemoryMagicLinkIssuer(),
    )


# Singleton instance for in-memory mode
_memory_backend: AuthBridgeBackend | None = None


def get_memory_backend() -> AuthBridgeBackend:
    """Get the process-wide in-memory backend.

    Returns:
        The AuthBridgeBackend singleton.
    """
    global _memory_backend
    if _memory_backend is None:
        _memory_backend = in_memory_backend()
    return _memory_backend


def reset_memory_backend() -> None:
    """Reset the in-memory backend singleton (for testing)."""
    global _memory_backend
    _memory_backend = None
