"""Verification token model - magic link credentials.

Single-use, time-limited. The token column holds a SHA-256 hash; the
plain value only ever appears in the magic link itself.
"""

from datetime import datetime

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base


class VerificationToken(Base):
    """Magic link verification token.

    Attributes:
        token: SHA-256 hex digest of the plain token (primary key).
        identifier: User id the link signs in.
        expires: Token expiry timestamp.
        redirect_to: Where the browser lands after redemption.
    """

    __tablename__ = "verification_tokens"

    token: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
    )
    identifier: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    expires: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    redirect_to: Mapped[str] = mapped_column(
        Text(),
        nullable=False,
    )
