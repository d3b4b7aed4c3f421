"""Repository for AuthHandshake operations.

Every read filters on ``expires_at >= now`` so an expired row behaves as
absent even before it is reaped. Completion is a conditional UPDATE
whose affected-row count decides the winner of concurrent callbacks.
"""

import uuid
from datetime import datetime

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.auth_handshake import AuthHandshake


class AuthHandshakeRepository:
    """Stateless repository for auth_handshakes table operations.

    All methods are static — no instance state. Pass an AsyncSession
    for every call so the caller controls transaction boundaries.
    """

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        token: str,
        initiating_host_origin: str,
        created_at: datetime,
        expires_at: datetime,
    ) -> AuthHandshake:
        """Insert a new pending handshake.

        Args:
            db: Async database session.
            token: 48-char hex state.
            initiating_host_origin: Browser origin captured at issue time.
            created_at: Issue timestamp.
            expires_at: Absolute expiry.

        Returns:
            Created AuthHandshake.

        Raises:
            sqlalchemy.exc.IntegrityError: If the token already exists.
        """
        handshake = AuthHandshake(
            token=token,
            initiating_host_origin=initiating_host_origin,
            created_at=created_at,
            expires_at=expires_at,
            completed=False,
        )
        db.add(handshake)
        await db.flush()
        return handshake

    @staticmethod
    async def get_active(
        db: AsyncSession, token: str, *, now: datetime
    ) -> AuthHandshake | None:
        """Fetch a handshake that has not expired.

        Args:
            db: Async database session.
            token: Handshake state.
            now: Reference time for the expiry filter.

        Returns:
            AuthHandshake if present and unexpired, None otherwise.
        """
        stmt = select(AuthHandshake).where(
            AuthHandshake.token == token,
            AuthHandshake.expires_at >= now,
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def mark_completed(
        db: AsyncSession,
        token: str,
        *,
        user_id: uuid.UUID,
        now: datetime,
    ) -> bool:
        """Complete a handshake if, and only if, it is still pending.

        Compare-and-set on ``completed``: the WHERE clause re-checks
        pending state and expiry inside the same statement.

        Args:
            db: Async database session.
            token: Handshake state.
            user_id: User to bind.
            now: Reference time for the expiry filter.

        Returns:
            True if this call performed the transition, False otherwise.
        """
        stmt = (
            update(AuthHandshake)
            .where(
                AuthHandshake.token == token,
                AuthHandshake.completed.is_(False),
                AuthHandshake.expires_at >= now,
            )
            .values(completed=True, resolved_user_id=user_id)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        row_count: int = result.rowcount  # type: ignore[attr-defined]
        return row_count == 1

    @staticmethod
    async def delete(db: AsyncSession, token: str) -> bool:
        """Delete a handshake regardless of state.

        Returns:
            True if a row was removed.
        """
        stmt = delete(AuthHandshake).where(AuthHandshake.token == token)
        result = await db.execute(stmt)
        row_count: int = result.rowcount  # type: ignore[attr-defined]
        return row_count > 0

    @staticmethod
    async def delete_pending(db: AsyncSession, token: str) -> bool:
        """Delete a handshake only while it has not been completed.

        Returns:
            True if a row was removed.
        """
        stmt = delete(AuthHandshake).where(
            AuthHandshake.token == token,
            AuthHandshake.completed.is_(False),
        )
        result = await db.execute(stmt)
        row_count: int = result.rowcount  # type: ignore[attr-defined]
        return row_count > 0

    @staticmethod
    async def delete_expired(db: AsyncSession, *, now: datetime) -> int:
        """Delete all handshakes past their expiry (periodic cleanup).

        Returns:
            Number of deleted rows.
        """
        stmt = delete(AuthHandshake).where(AuthHandshake.expires_at < now)
        result = await db.execute(stmt)
        row_count: int = result.rowcount  # type: ignore[attr-defined]
        return row_count
