"""Tests for magic link credential issuance and redemption."""

import hashlib
import uuid
from datetime import UTC, datetime, timedelta
from urllib.parse import parse_qs, urlsplit

from app.core.config import settings
from app.services.magic_link import (
    MAGIC_LINK_PATH,
    InMemoryMagicLinkIssuer,
    build_magic_link_url,
    generate_token,
    hash_token,
)

_NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)
_USER = uuid.UUID("00000000-0000-0000-0000-000000000011")
_REDIRECT = "https://app.example.com/profile"


def _plain_token(link: str) -> str:
    return parse_qs(urlsplit(link).query)["token"][0]


class TestTokenHelpers:
    def test_hash_is_sha256_of_plain(self):
        plain, hashed = generate_token()
        assert hashed == hashlib.sha256(plain.encode()).hexdigest()
        assert hash_token(plain) == hashed

    def test_tokens_are_unique(self):
        assert len({generate_token()[0] for _ in range(100)}) == 100

    def test_url_points_at_backend_redeem_route(self, monkeypatch):
        monkeypatch.setattr(settings, "backend_url", "https://api.example.com/")
        url = build_magic_link_url("abc")
        assert url == f"https://api.example.com{MAGIC_LINK_PATH}?token=abc"


class TestInMemoryMagicLinkIssuer:
    async def test_redeem_returns_user_and_redirect(self):
        issuer = InMemoryMagicLinkIssuer()
        link = await issuer.issue(_USER, redirect_to=_REDIRECT, now=_NOW)

        credential = await issuer.redeem(_plain_token(link), now=_NOW)

        assert credential.user_id == _USER
        assert credential.redirect_to == _REDIRECT

    async def test_link_is_single_use(self):
        issuer = InMemoryMagicLinkIssuer()
        link = await issuer.issue(_USER, redirect_to=_REDIRECT, now=_NOW)
        plain = _plain_token(link)

        await issuer.redeem(plain, now=_NOW)

        assert await issuer.redeem(plain, now=_NOW) is None

    async def test_expired_link_is_rejected(self):
        issuer = InMemoryMagicLinkIssuer()
        link = await issuer.issue(_USER, redirect_to=_REDIRECT, now=_NOW)

        late = _NOW + timedelta(minutes=settings.magic_link_ttl_minutes, seconds=1)
        assert await issuer.redeem(_plain_token(link), now=late) is None

    async def test_unknown_token_is_rejected(self):
        assert await InMemoryMagicLinkIssuer().redeem("nope", now=_NOW) is None

    async def test_storage_keeps_only_hashes(self):
        issuer = InMemoryMagicLinkIssuer()
        link = await issuer.issue(_USER, redirect_to=_REDIRECT, now=_NOW)
        plain = _plain_token(link)

        assert plain not in issuer._links
        assert hash_token(plain) in issuer._links
