"""SQLAlchemy ORM models for the Telegram login bridge.

All models are exported from this module for convenient imports:
    from app.models import User, AuthHandshake, VerificationToken

- user.py: User (profile owner, keyed externally by telegram_id)
- auth_handshake.py: AuthHandshake (short-lived login state)
- verification_token.py: VerificationToken (single-use magic link)
"""

from app.models.auth_handshake import AuthHandshake
from app.models.base import Base, TimestampMixin
from app.models.user import User
from app.models.verification_token import VerificationToken

__all__ = [
    # Base classes
    "Base",
    "TimestampMixin",
    # Models
    "AuthHandshake",
    "User",
    "VerificationToken",
]
