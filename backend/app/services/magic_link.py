"""Magic link credentials — single-use sign-in links.

The session resolver mints one link per completed handshake. The plain
token only travels inside the link; storage keeps its SHA-256. Redeeming
deletes the token, so a link signs in at most once.
"""

import hashlib
import logging
import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Protocol
from urllib.parse import urlencode

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.repositories.verification_token_repository import VerificationTokenRepository

logger = logging.getLogger(__name__)

MAGIC_LINK_PATH = "/api/v1/auth/telegram/magic-link"


@dataclass(frozen=True)
class RedeemedCredential:
    """What a valid magic link resolves to."""

    user_id: uuid.UUID
    redirect_to: str


class CredentialIssuer(Protocol):
    """Mints and redeems single-use login credentials."""

    async def issue(
        self, user_id: uuid.UUID, *, redirect_to: str, now: datetime
    ) -> str: ...

    async def redeem(
        self, token: str, *, now: datetime
    ) -> RedeemedCredential | None: ...

    async def delete_expired(self, *, now: datetime) -> int: ...


def generate_token() -> tuple[str, str]:
    """Generate a magic link token and its SHA-256 hash.

    Returns:
        (plain_token, token_hash) — plain for the link, hash for storage.
    """
    plain = secrets.token_urlsafe(32)
    return plain, hash_token(plain)


def hash_token(plain: str) -> str:
    return hashlib.sha256(plain.encode()).hexdigest()


def build_magic_link_url(plain_token: str) -> str:
    """Absolute redemption URL on this backend."""
    query = urlencode({"token": plain_token})
    return f"{settings.backend_url.rstrip('/')}{MAGIC_LINK_PATH}?{query}"


def _ttl() -> timedelta:
    return timedelta(minutes=settings.magic_link_ttl_minutes)


class DatabaseMagicLinkIssuer:
    """Credential issuer backed by the verification_tokens table."""

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def issue(self, user_id: uuid.UUID, *, redirect_to: str, now: datetime) -> str:
        plain, token_hash = generate_token()
        await VerificationTokenRepository.create(
            self._db,
            identifier=str(user_id),
            token_hash=token_hash,
            expires=now + _ttl(),
            redirect_to=redirect_to,
        )
        return build_magic_link_url(plain)

    async def redeem(self, token: str, *, now: datetime) -> RedeemedCredential | None:
        vt = await VerificationTokenRepository.pop(self._db, token_hash=hash_token(token))
        if vt is None:
            return None
        if vt.expires < now:
            logger.info("Rejected expired magic link for user %s", vt.identifier)
            return None
        return RedeemedCredential(
            user_id=uuid.UUID(vt.identifier),
            redirect_to=vt.redirect_to,
        )

    async def delete_expired(self, *, now: datetime) -> int:
        return await VerificationTokenRepository.delete_expired(self._db, now=now)


@dataclass
class _PendingLink:
    user_id: uuid.UUID
    redirect_to: str
    expires: datetime


class InMemoryMagicLinkIssuer:
    """Dict-backed credential issuer for local mode and tests."""

    def __init__(self) -> None:
        self._links: dict[str, _PendingLink] = {}

    async def issue(self, user_id: uuid.UUID, *, redirect_to: str, now: datetime) -> str:
        plain, token_hash = generate_token()
        self._links[token_hash] = _PendingLink(
            user_id=user_id,
            redirect_to=redirect_to,
            expires=now + _ttl(),
        )
        return build_magic_link_url(plain)

    async def redeem(self, token: str, *, now: datetime) -> RedeemedCredential | None:
        link = self._links.pop(hash_token(token), None)
        if link is None or link.expires < now:
            return None
        return RedeemedCredential(user_id=link.user_id, redirect_to=link.redirect_to)

    async def delete_expired(self, *, now: datetime) -> int:
        expired = [h for h, link in self._links.items() if link.expires < now]
        for token_hash in expired:
            del self._links[token_hash]
        return len(expired)

    def __len__(self) -> int:
        return len(self._links)

    def clear(self) -> None:
        """Clear all links (for testing)."""
        self._links.clear()
