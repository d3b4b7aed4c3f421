"""User model - profile owner created by the Telegram login bridge.

Users are provisioned on first Telegram login with placeholder
credentials that are never used for sign-in; the only way in is a
magic link minted after a completed handshake.
"""

import uuid

from sqlalchemy import String, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, TimestampMixin

_DEFAULT_UUID = text("gen_random_uuid()")


class User(Base, TimestampMixin):
    """User account and minimal public profile.

    Attributes:
        id: UUID primary key.
        email: Unique placeholder address (``<random>@local.local``).
        password_hash: Random placeholder, never verifiable.
        name: Display name (Telegram full name on creation).
        username: Unique public handle, ``id`` followed by six digits.
        telegram_id: External identity key from the bot.
        telegram_username: Telegram @handle, if the user has one.
        profile_type: Profile kind, ``"user"`` for bridge-created accounts.
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=_DEFAULT_UUID,
        default=uuid.uuid4,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
    )
    password_hash: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    name: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    username: Mapped[str] = mapped_column(
        String(64),
        unique=True,
        nullable=False,
    )
    telegram_id: Mapped[str | None] = mapped_column(
        String(64),
        unique=True,
        nullable=True,
    )
    telegram_username: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )
    profile_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        server_default="user",
        default="user",
    )
