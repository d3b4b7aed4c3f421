"""Repository for User CRUD operations.

Provides database access for the users table. Users are looked up by
their Telegram identity and created on first login.
"""

import uuid

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User


class UserRepository:
    """Stateless repository for User table operations.

    All methods are static — no instance state. Pass an AsyncSession
    for every call so the caller controls transaction boundaries.
    """

    @staticmethod
    async def get_by_id(db: AsyncSession, user_id: uuid.UUID) -> User | None:
        """Fetch a user by primary key.

        Args:
            db: Async database session.
            user_id: UUID primary key.

        Returns:
            User if found, None otherwise.
        """
        return await db.get(User, user_id)

    @staticmethod
    async def get_by_telegram_id(db: AsyncSession, telegram_id: str) -> User | None:
        """Fetch a user by Telegram identity.

        Args:
            db: Async database session.
            telegram_id: Telegram user id as a string.

        Returns:
            User if found, None otherwise.
        """
        stmt = select(User).where(User.telegram_id == telegram_id)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def create_for_telegram(
        db: AsyncSession,
        *,
        telegram_id: str,
        email: str,
        password_hash: str,
        username: str,
        name: str | None = None,
        telegram_username: str | None = None,
    ) -> uuid.UUID | None:
        """Insert a user unless one already owns ``telegram_id``.

        INSERT ... ON CONFLICT (telegram_id) DO NOTHING: concurrent first
        logins for the same Telegram account create exactly one row.

        Args:
            db: Async database session.
            telegram_id: External identity key.
            email: Placeholder e-mail address.
            password_hash: Placeholder password hash.
            username: Generated public handle.
            name: Display name.
            telegram_username: Telegram @handle.

        Returns:
            The new user's id, or None if the identity already existed.

        Raises:
            sqlalchemy.exc.IntegrityError: If email or username collide.
        """
        stmt = (
            insert(User)
            .values(
                id=uuid.uuid4(),
                telegram_id=telegram_id,
                email=email.lower(),
                password_hash=password_hash,
                username=username,
                name=name,
                telegram_username=telegram_username,
                profile_type="user",
            )
            .on_conflict_do_nothing(index_elements=[User.telegram_id])
            .returning(User.id)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()
