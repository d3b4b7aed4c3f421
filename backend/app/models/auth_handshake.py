"""Auth handshake model - short-lived Telegram login state.

One row per login attempt. Created by the state issuer, completed once
by the bot callback, deleted by the session resolver or the cleanup
endpoint. Rows past ``expires_at`` are invalid even if still present.
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base


class AuthHandshake(Base):
    """Pending or completed Telegram login handshake.

    Attributes:
        token: 48-char lowercase hex state, primary key.
        created_at: When the state was issued.
        expires_at: Absolute expiry (issue time + 3 minutes).
        initiating_host_origin: Origin the browser started from; the
            post-login redirect is built from it.
        completed: Set once by the bot callback, never reset.
        resolved_user_id: User bound to the handshake on completion.
    """

    __tablename__ = "auth_handshakes"
    __table_args__ = (
        CheckConstraint(
            "NOT completed OR resolved_user_id IS NOT NULL",
            name="ck_auth_handshakes_completed_has_user",
        ),
        Index("ix_auth_handshakes_expires_at", "expires_at"),
    )

    token: Mapped[str] = mapped_column(
        String(48),
        primary_key=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    initiating_host_origin: Mapped[str] = mapped_column(
        Text(),
        nullable=False,
    )
    completed: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        server_default=text("false"),
        default=False,
    )
    resolved_user_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=True,
    )
