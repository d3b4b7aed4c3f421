"""Tests for TelegramLoginPoller.

Uses a scripted fake bridge client and short intervals so each test
runs in well under a second.
"""

import asyncio

import pytest

from app.client.bridge_api import BridgeClientError, IssuedHandoff, SessionStatus
from app.client.login_flow import LoginState
from app.client.poller import TelegramLoginPoller
from app.core.config import settings

_TOKEN = "d" * 48
_HANDOFF = f"https://t.me/fondprava_bot?start=auth_{_TOKEN}"
_LINK = "http://localhost:8000/api/v1/auth/telegram/magic-link?token=abc"
_ORIGIN = "http://localhost:5173"
_INTERVAL = 0.01


class _FakeBridgeClient:
    """Returns queued poll results; the last one repeats."""

    def __init__(self, polls: list[SessionStatus | Exception] | None = None) -> None:
        self.polls = polls or [SessionStatus(completed=False)]
        self.issue_error: Exception | None = None
        self.issue_gate: asyncio.Event | None = None
        self.poll_count = 0
        self.cleaned: list[str] = []

    async def issue_state(self, initiating_host_origin: str) -> IssuedHandoff:
        if self.issue_gate is not None:
            await self.issue_gate.wait()
        if self.issue_error is not None:
            raise self.issue_error
        return IssuedHandoff(state=_TOKEN, redirect_url=_HANDOFF)

    async def poll_session(self, state: str) -> SessionStatus:
        index = min(self.poll_count, len(self.polls) - 1)
        self.poll_count += 1
        result = self.polls[index]
        if isinstance(result, Exception):
            raise result
        return result

    async def cleanup_state(self, state: str) -> None:
        self.cleaned.append(state)


class _Recorder:
    """Collects callback invocations."""

    def __init__(self) -> None:
        self.handoffs: list[str] = []
        self.credentials: list[str] = []
        self.errors: list[str] = []
        self.timeouts = 0
        self.done = asyncio.Event()

    async def on_handoff(self, url: str) -> None:
        self.handoffs.append(url)

    async def on_credential(self, link: str) -> None:
        self.credentials.append(link)
        self.done.set()

    async def on_error(self, message: str) -> None:
        self.errors.append(message)
        self.done.set()

    async def on_timeout(self) -> None:
        self.timeouts += 1
        self.done.set()


def _poller(client, recorder, *, timeout: float = 5.0) -> TelegramLoginPoller:
    return TelegramLoginPoller(
        client,
        initiating_host_origin=_ORIGIN,
        on_credential=recorder.on_credential,
        on_handoff=recorder.on_handoff,
        on_error=recorder.on_error,
        on_timeout=recorder.on_timeout,
        poll_interval=_INTERVAL,
        timeout=timeout,
    )


@pytest.fixture
def recorder() -> _Recorder:
    return _Recorder()


class TestSuccessfulLogin:
    async def test_follows_magic_link_once(self, recorder):
        client = _FakeBridgeClient(
            [
                SessionStatus(completed=False),
                SessionStatus(completed=False),
                SessionStatus(completed=True, magic_link=_LINK),
            ]
        )
        poller = _poller(client, recorder)

        await poller.start()
        assert recorder.handoffs == [_HANDOFF]

        await asyncio.wait_for(recorder.done.wait(), timeout=2)
        polls_at_completion = client.poll_count
        await asyncio.sleep(_INTERVAL * 5)

        assert recorder.credentials == [_LINK]
        assert poller.state == LoginState.COMPLETED
        assert client.poll_count == polls_at_completion
        await poller.stop()

    async def test_start_twice_issues_once(self, recorder):
        poller = _poller(_FakeBridgeClient(), recorder)

        await poller.start()
        await poller.start()

        assert recorder.handoffs == [_HANDOFF]
        await poller.stop()


class TestFailures:
    async def test_issue_failure_reports_error_without_polling(self, recorder):
        client = _FakeBridgeClient()
        client.issue_error = BridgeClientError("boom", status_code=500)
        poller = _poller(client, recorder)

        await poller.start()

        assert recorder.errors == ["Failed to generate auth state"]
        assert poller.state == LoginState.FAILED
        await asyncio.sleep(_INTERVAL * 3)
        assert client.poll_count == 0

    async def test_poll_failure_reports_error_and_stops(self, recorder):
        client = _FakeBridgeClient(
            [BridgeClientError("Invalid or expired state", status_code=401)]
        )
        poller = _poller(client, recorder)

        await poller.start()
        await asyncio.wait_for(recorder.done.wait(), timeout=2)
        await asyncio.sleep(_INTERVAL * 3)

        assert recorder.errors == ["Failed to check auth status"]
        assert recorder.credentials == []
        assert client.poll_count == 1


class TestTimeout:
    async def test_timeout_requests_cleanup_and_redirects(self, recorder):
        client = _FakeBridgeClient()
        poller = _poller(client, recorder, timeout=_INTERVAL * 5)

        await poller.start()
        await asyncio.wait_for(recorder.done.wait(), timeout=2)
        await poller.wait_for_cleanup()

        assert poller.state == LoginState.TIMED_OUT
        assert recorder.timeouts == 1
        assert client.cleaned == [_TOKEN]
        assert recorder.credentials == []


class TestStop:
    async def test_stop_halts_polling(self, recorder):
        client = _FakeBridgeClient()
        poller = _poller(client, recorder)

        await poller.start()
        await asyncio.sleep(_INTERVAL * 3)
        await poller.stop()
        count = client.poll_count
        await asyncio.sleep(_INTERVAL * 5)

        assert client.poll_count == count
        assert recorder.timeouts == 0

    async def test_response_after_stop_is_dropped(self, recorder):
        client = _FakeBridgeClient()
        client.issue_gate = asyncio.Event()
        poller = _poller(client, recorder)

        starting = asyncio.create_task(poller.start())
        await asyncio.sleep(0)
        assert poller.state == LoginState.ISSUING

        await poller.stop()
        client.issue_gate.set()
        await starting
        await asyncio.sleep(_INTERVAL * 3)

        assert recorder.handoffs == []
        assert client.poll_count == 0


class TestOpenHandoff:
    async def test_reshows_link_while_polling(self, recorder):
        poller = _poller(_FakeBridgeClient(), recorder)

        await poller.start()
        await asyncio.sleep(_INTERVAL * 3)
        await poller.open_handoff()

        assert recorder.handoffs == [_HANDOFF, _HANDOFF]
        await poller.stop()

    async def test_ignored_before_state_is_issued(self, recorder):
        poller = _poller(_FakeBridgeClient(), recorder)

        await poller.open_handoff()

        assert recorder.handoffs == []
        assert poller.state == LoginState.IDLE

    async def test_ignored_after_completion(self, recorder):
        client = _FakeBridgeClient([SessionStatus(completed=True, magic_link=_LINK)])
        poller = _poller(client, recorder)

        await poller.start()
        await asyncio.wait_for(recorder.done.wait(), timeout=2)
        await poller.open_handoff()

        assert recorder.handoffs == [_HANDOFF]
        await poller.stop()


class TestTimingValidation:
    @pytest.mark.parametrize("value", [0, -1.0])
    def test_non_positive_timeout_rejected(self, recorder, value):
        with pytest.raises(ValueError, match="must be positive"):
            _poller(_FakeBridgeClient(), recorder, timeout=value)

    def test_non_positive_interval_rejected(self, recorder):
        with pytest.raises(ValueError, match="must be positive"):
            TelegramLoginPoller(
                _FakeBridgeClient(),
                initiating_host_origin=_ORIGIN,
                on_credential=recorder.on_credential,
                poll_interval=0,
            )

    def test_non_positive_default_rejected_before_start(self, recorder, monkeypatch):
        monkeypatch.setattr(settings, "auth_client_timeout_seconds", 0)

        with pytest.raises(ValueError, match="must be positive"):
            TelegramLoginPoller(
                _FakeBridgeClient(),
                initiating_host_origin=_ORIGIN,
                on_credential=recorder.on_credential,
            )
