"""Handshake store — persistence for Telegram login states.

Two implementations share one contract:
- DatabaseHandshakeStore: PostgreSQL via AuthHandshakeRepository.
- InMemoryHandshakeStore: dict-backed, for single-instance local mode
  and tests.

Contract:
- get_active() never returns a record whose expires_at is in the past.
- mark_completed() is a compare-and-set: it succeeds for exactly one
  caller per token, and only while the record is pending and unexpired.
- delete_pending() leaves completed records alone.
"""

import logging
import uuid
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Protocol

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.auth_handshake import AuthHandshake
from app.repositories.auth_handshake_repository import AuthHandshakeRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HandshakeRecord:
    """Snapshot of one handshake row.

    Attributes:
        token: 48-char lowercase hex state.
        created_at: Issue timestamp.
        expires_at: Absolute expiry.
        initiating_host_origin: Browser origin captured at issue time.
        completed: True once the bot callback succeeded.
        resolved_user_id: User bound on completion.
    """

    token: str
    created_at: datetime
    expires_at: datetime
    initiating_host_origin: str
    completed: bool = False
    resolved_user_id: uuid.UUID | None = None

    def is_active(self, now: datetime) -> bool:
        """Whether the record is still within its validity window."""
        return self.expires_at >= now


class TokenCollisionError(Exception):
    """Raised when an inserted token already exists in the store."""


class HandshakeStore(Protocol):
    """Persistence contract for handshake records."""

    async def insert(self, record: HandshakeRecord) -> None: ...

    async def get_active(
        self, token: str, *, now: datetime
    ) -> HandshakeRecord | None: ...

    async def mark_completed(
        self, token: str, *, user_id: uuid.UUID, now: datetime
    ) -> bool: ...

    async def delete(self, token: str) -> bool: ...

    async def delete_pending(self, token: str) -> bool: ...

    async def delete_expired(self, *, now: datetime) -> int: ...


def _to_record(row: AuthHandshake) -> HandshakeRecord:
    return HandshakeRecord(
        token=row.token,
        created_at=row.created_at,
        expires_at=row.expires_at,
        initiating_host_origin=row.initiating_host_origin,
        completed=row.completed,
        resolved_user_id=row.resolved_user_id,
    )


class DatabaseHandshakeStore:
    """Handshake store backed by the auth_handshakes table.

    Bound to one request-scoped session; the request dependency commits.
    """

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def insert(self, record: HandshakeRecord) -> None:
        """Insert inside a savepoint so a collision leaves the session usable.

        Raises:
            TokenCollisionError: If the token primary key already exists.
        """
        try:
            async with self._db.begin_nested():
                await AuthHandshakeRepository.create(
                    self._db,
                    token=record.token,
                    initiating_host_origin=record.initiating_host_origin,
                    created_at=record.created_at,
                    expires_at=record.expires_at,
                )
        except IntegrityError as exc:
            raise TokenCollisionError(record.token[:8]) from exc

    async def get_active(self, token: str, *, now: datetime) -> HandshakeRecord | None:
        row = await AuthHandshakeRepository.get_active(self._db, token, now=now)
        return _to_record(row) if row is not None else None

    async def mark_completed(
        self, token: str, *, user_id: uuid.UUID, now: datetime
    ) -> bool:
        return await AuthHandshakeRepository.mark_completed(
            self._db, token, user_id=user_id, now=now
        )

    async def delete(self, token: str) -> bool:
        return await AuthHandshakeRepository.delete(self._db, token)

    async def delete_pending(self, token: str) -> bool:
        return await AuthHandshakeRepository.delete_pending(self._db, token)

    async def delete_expired(self, *, now: datetime) -> int:
        return await AuthHandshakeRepository.delete_expired(self._db, now=now)


class InMemoryHandshakeStore:
    """Dict-backed handshake store.

    Note: Safe for async/await usage (single-threaded event loop) but not
    for multi-threaded access. No method awaits between its read and its
    write, so each operation is atomic on the event loop.
    """

    def __init__(self) -> None:
        self._records: dict[str, HandshakeRecord] = {}

    async def insert(self, record: HandshakeRecord) -> None:
        existing = self._records.get(record.token)
        if existing is not None and existing.is_active(record.created_at):
            raise TokenCollisionError(record.token[:8])
        self._records[record.token] = record

    async def get_active(self, token: str, *, now: datetime) -> HandshakeRecord | None:
        record = self._records.get(token)
        if record is None or not record.is_active(now):
            return None
        return record

    async def mark_completed(
        self, token: str, *, user_id: uuid.UUID, now: datetime
    ) -> bool:
        record = self._records.get(token)
        if record is None or record.completed or not record.is_active(now):
            return False
        self._records[token] = replace(
            record, completed=True, resolved_user_id=user_id
        )
        return True

    async def delete(self, token: str) -> bool:
        return self._records.pop(token, None) is not None

    async def delete_pending(self, token: str) -> bool:
        record = self._records.get(token)
        if record is None or record.completed:
            return False
        del self._records[token]
        return True

    async def delete_expired(self, *, now: datetime) -> int:
        expired = [
            token for token, record in self._records.items() if not record.is_active(now)
        ]
        for token in expired:
            del self._records[token]
        if expired:
            logger.debug("Reaped %d expired handshakes", len(expired))
        return len(expired)

    def peek(self, token: str) -> HandshakeRecord | None:
        """Return the raw record, ignoring expiry (for inspection)."""
        return self._records.get(token)

    def clear(self) -> None:
        """Clear all records (for testing)."""
        self._records.clear()
