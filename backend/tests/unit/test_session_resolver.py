"""Tests for the session resolver (browser poll).

Covers pending polls, at-most-once magic link delivery, expiry, and
failure handling that keeps the handshake retryable.
"""

import asyncio
import uuid
from dataclasses import replace
from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy.exc import OperationalError

from app.core.errors import InternalError, InvalidOrExpiredStateError
from app.services.bridge_backend import AuthBridgeBackend, in_memory_backend
from app.services.bridge_completer import complete_handshake
from app.services.handshake_store import HandshakeRecord, InMemoryHandshakeStore
from app.services.magic_link import MAGIC_LINK_PATH, InMemoryMagicLinkIssuer
from app.services.session_resolver import (
    SessionPending,
    SessionReady,
    build_redirect_url,
    resolve_session,
)
from app.services.state_issuer import issue_state
from app.services.user_directory import InMemoryUserDirectory, TelegramIdentity
from tests.conftest import TEST_ORIGIN, TEST_WEBHOOK_SECRET

_NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


class _FailingIssuer(InMemoryMagicLinkIssuer):
    async def issue(self, user_id: uuid.UUID, *, redirect_to: str, now: datetime) -> str:
        raise OperationalError("INSERT", {}, Exception("connection lost"))


class _InterleavingStore(InMemoryHandshakeStore):
    async def get_active(self, token: str, *, now: datetime) -> HandshakeRecord | None:
        record = await super().get_active(token, now=now)
        await asyncio.sleep(0)
        return record


@pytest.fixture(autouse=True)
def _webhook_secret(bridge_secrets):  # noqa: ARG001
    """Completion needs the test webhook secret."""


async def _issue_and_complete(backend: AuthBridgeBackend) -> str:
    issued = await issue_state(backend.handshakes, TEST_ORIGIN, now=_NOW)
    await complete_handshake(
        backend,
        token=issued.token,
        identity=TelegramIdentity(telegram_user_id="42", full_name="Anna"),
        webhook_secret=TEST_WEBHOOK_SECRET,
        now=_NOW,
    )
    return issued.token


class TestBuildRedirectUrl:
    """Post-login destination."""

    def test_appends_profile_path(self):
        assert build_redirect_url("https://app.example.com") == (
            "https://app.example.com/profile"
        )

    def test_tolerates_trailing_slash(self):
        assert build_redirect_url("https://app.example.com/") == (
            "https://app.example.com/profile"
        )


class TestPendingPoll:
    """Polls before the bot completes."""

    async def test_immediately_after_issue_is_pending(self):
        backend = in_memory_backend()
        issued = await issue_state(backend.handshakes, TEST_ORIGIN, now=_NOW)

        result = await resolve_session(backend, issued.token, now=_NOW)

        assert result == SessionPending()

    async def test_repeated_pending_polls_do_not_mutate_record(self):
        backend = in_memory_backend()
        issued = await issue_state(backend.handshakes, TEST_ORIGIN, now=_NOW)
        before = backend.handshakes.peek(issued.token)

        for i in range(10):
            result = await resolve_session(
                backend, issued.token, now=_NOW + timedelta(seconds=3 * i)
            )
            assert result == SessionPending()

        assert backend.handshakes.peek(issued.token) == before
        assert len(backend.credentials) == 0


class TestReadyPoll:
    """Polls after the bot completes."""

    async def test_first_poll_returns_magic_link_and_user(self):
        backend = in_memory_backend()
        token = await _issue_and_complete(backend)
        user_id = backend.handshakes.peek(token).resolved_user_id

        result = await resolve_session(backend, token, now=_NOW)

        assert type(result) is SessionReady
        assert result.user_id == user_id
        assert MAGIC_LINK_PATH in result.magic_link
        assert "token=" in result.magic_link

    async def test_handshake_is_deleted_after_delivery(self):
        backend = in_memory_backend()
        token = await _issue_and_complete(backend)

        await resolve_session(backend, token, now=_NOW)

        assert backend.handshakes.peek(token) is None

    async def test_second_poll_is_invalid_with_401(self):
        backend = in_memory_backend()
        token = await _issue_and_complete(backend)
        await resolve_session(backend, token, now=_NOW)

        with pytest.raises(InvalidOrExpiredStateError) as exc_info:
            await resolve_session(backend, token, now=_NOW)

        assert exc_info.value.status_code == 401
        assert len(backend.credentials) == 1

    async def test_magic_link_redirects_to_initiating_origin(self):
        backend = in_memory_backend()
        token = await _issue_and_complete(backend)

        result = await resolve_session(backend, token, now=_NOW)

        plain = result.magic_link.split("token=", 1)[1]
        redeemed = await backend.credentials.redeem(plain, now=_NOW)
        assert redeemed.redirect_to == f"{TEST_ORIGIN}/profile"
        assert redeemed.user_id == result.user_id

    async def test_parallel_polls_deliver_exactly_once(self):
        backend = AuthBridgeBackend(
            handshakes=_InterleavingStore(),
            users=InMemoryUserDirectory(),
            credentials=InMemoryMagicLinkIssuer(),
        )
        token = await _issue_and_complete(backend)

        results = await asyncio.gather(
            resolve_session(backend, token, now=_NOW),
            resolve_session(backend, token, now=_NOW),
            return_exceptions=True,
        )

        ready = [r for r in results if type(r) is SessionReady]
        rejected = [r for r in results if type(r) is InvalidOrExpiredStateError]
        assert len(ready) == 1
        assert len(rejected) == 1


class TestExpiryAndErrors:
    """Expired, unknown, and failing cases."""

    async def test_unknown_state_is_invalid_with_401(self):
        with pytest.raises(InvalidOrExpiredStateError) as exc_info:
            await resolve_session(in_memory_backend(), "0" * 48, now=_NOW)
        assert exc_info.value.status_code == 401

    async def test_expired_pending_state_is_invalid(self):
        backend = in_memory_backend()
        issued = await issue_state(backend.handshakes, TEST_ORIGIN, now=_NOW)

        with pytest.raises(InvalidOrExpiredStateError):
            await resolve_session(
                backend, issued.token, now=_NOW + timedelta(minutes=3, seconds=1)
            )

    async def test_expired_completed_state_issues_no_credential(self):
        backend = in_memory_backend()
        token = await _issue_and_complete(backend)

        with pytest.raises(InvalidOrExpiredStateError):
            await resolve_session(backend, token, now=_NOW + timedelta(minutes=4))

        assert len(backend.credentials) == 0

    async def test_issuer_failure_keeps_handshake_for_retry(self):
        backend = in_memory_backend()
        token = await _issue_and_complete(backend)
        failing = replace(backend, credentials=_FailingIssuer())

        with pytest.raises(InternalError) as exc_info:
            await resolve_session(failing, token, now=_NOW)

        assert exc_info.value.message == "Failed to generate magic link"
        assert backend.handshakes.peek(token) is not None

        # Next poll with a healthy issuer succeeds
        result = await resolve_session(backend, token, now=_NOW)
        assert type(result) is SessionReady

    async def test_missing_origin_is_internal_error(self):
        store = InMemoryHandshakeStore()
        await store.insert(
            HandshakeRecord(
                token="e" * 48,
                created_at=_NOW,
                expires_at=_NOW + timedelta(minutes=3),
                initiating_host_origin="",
                completed=True,
                resolved_user_id=uuid.uuid4(),
            )
        )
        backend = AuthBridgeBackend(
            handshakes=store,
            users=InMemoryUserDirectory(),
            credentials=InMemoryMagicLinkIssuer(),
        )

        with pytest.raises(InternalError):
            await resolve_session(backend, "e" * 48, now=_NOW)

        assert len(backend.credentials) == 0
