"""Telegram login poller — drives one login attempt end to end.

Owns a LoginFlow, feeds it events from the bridge API and the two
timers, and executes the effects it returns through injected callbacks:

- on_handoff(url): show the bot deep link
- on_credential(magic_link): navigate to the magic link
- on_error(message): show a failure, no redirect
- on_timeout(): leave for the default landing page

Lifecycle:
- start() issues a state and begins polling. Calling it again is a no-op.
- open_handoff() re-shows the bot deep link while the login is waiting.
- stop() cancels the poll interval and the timeout timer.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from app.client.bridge_api import AuthBridgeClient, BridgeClientError
from app.client.login_flow import (
    Effect,
    Event,
    FollowCredential,
    IssueFailed,
    IssueState,
    LoginFlow,
    LoginState,
    OpenHandoff,
    PollFailed,
    PollPending,
    PollReady,
    RedirectHome,
    RequestCleanup,
    ShowError,
    ShowHandoff,
    Start,
    StartPolling,
    StartTimeout,
    StateIssued,
    Stop,
    StopPolling,
    StopTimeout,
    TimeoutElapsed,
    transition,
)
from app.client.scheduling import (
    OneShotTimer,
    RepeatingTask,
    schedule_once,
    schedule_repeating,
)
from app.core.config import settings

logger = logging.getLogger(__name__)

_ISSUE_FAILED_MSG = "Failed to generate auth state"
_POLL_FAILED_MSG = "Failed to check auth status"

UrlCallback = Callable[[str], Awaitable[None]]
NoArgCallback = Callable[[], Awaitable[None]]


async def _noop_url(_value: str) -> None:
    return None


async def _noop() -> None:
    return None


class TelegramLoginPoller:
    """Runs the browser side of the Telegram login handshake.

    Args:
        client: Bridge API client.
        initiating_host_origin: Origin to return to after sign-in.
        on_credential: Called once with the magic link.
        on_handoff: Called with the bot deep link once issued.
        on_error: Called with a user-facing message on failure.
        on_timeout: Called when the login window elapses.
        poll_interval: Seconds between polls. Defaults to settings.
        timeout: Seconds before giving up. Defaults to settings.

    Raises:
        ValueError: If poll_interval or timeout is not positive.
    """

    def __init__(
        self,
        client: AuthBridgeClient,
        *,
        initiating_host_origin: str,
        on_credential: UrlCallback,
        on_handoff: UrlCallback = _noop_url,
        on_error: UrlCallback = _noop_url,
        on_timeout: NoArgCallback = _noop,
        poll_interval: float | None = None,
        timeout: float | None = None,
    ) -> None:
        self._client = client
        self._origin = initiating_host_origin
        self._on_credential = on_credential
        self._on_handoff = on_handoff
        self._on_error = on_error
        self._on_timeout = on_timeout
        if poll_interval is None:
            poll_interval = settings.auth_poll_interval_seconds
        if timeout is None:
            timeout = settings.auth_client_timeout_seconds
        if poll_interval <= 0 or timeout <= 0:
            msg = (
                "poll_interval and timeout must be positive. "
                f"Got: {poll_interval}, {timeout}"
            )
            raise ValueError(msg)
        self._poll_interval = poll_interval
        self._timeout = timeout

        self._flow = LoginFlow()
        self._poll_task: RepeatingTask | None = None
        self._timeout_timer: OneShotTimer | None = None
        self._cleanup_tasks: set[asyncio.Task[None]] = set()
        self._stopped = False

    @property
    def flow(self) -> LoginFlow:
        """Current snapshot of the login attempt."""
        return self._flow

    @property
    def state(self) -> LoginState:
        return self._flow.state

    async def start(self) -> None:
        """Issue a state and begin polling. No-op after the first call."""
        await self._dispatch(Start())

    async def open_handoff(self) -> None:
        """Show the bot deep link again, e.g. from an "Open Telegram" button.

        Only while waiting for approval; ignored before the state is
        issued and after the attempt ends.
        """
        await self._dispatch(OpenHandoff())

    async def stop(self) -> None:
        """Cancel both timers. Safe to call in any state.

        Responses still in flight are dropped afterwards.
        """
        await self._dispatch(Stop())
        self._stopped = True

    async def wait_for_cleanup(self) -> None:
        """Wait for in-flight best-effort cleanup calls to finish."""
        if self._cleanup_tasks:
            await asyncio.gather(*self._cleanup_tasks, return_exceptions=True)

    # -----------------------------------------------------------------
    # Event loop plumbing
    # -----------------------------------------------------------------

    async def _dispatch(self, event: Event) -> None:
        if self._stopped:
            return
        self._flow, effects = transition(self._flow, event)
        for effect in effects:
            await self._run_effect(effect)

    async def _run_effect(self, effect: Effect) -> None:  # noqa: C901
        if isinstance(effect, IssueState):
            await self._issue_state()
        elif isinstance(effect, ShowHandoff):
            await self._on_handoff(effect.url)
        elif isinstance(effect, StartPolling):
            self._poll_task = schedule_repeating(self._poll_interval, self._poll_once)
        elif isinstance(effect, StopPolling):
            if self._poll_task is not None:
                self._poll_task.cancel()
        elif isinstance(effect, StartTimeout):
            self._timeout_timer = schedule_once(self._timeout, self._timeout_elapsed)
        elif isinstance(effect, StopTimeout):
            if self._timeout_timer is not None:
                self._timeout_timer.cancel()
        elif isinstance(effect, FollowCredential):
            await self._on_credential(effect.magic_link)
        elif isinstance(effect, ShowError):
            await self._on_error(effect.message)
        elif isinstance(effect, RequestCleanup):
            task = asyncio.create_task(self._cleanup(effect.token))
            self._cleanup_tasks.add(task)
            task.add_done_callback(self._cleanup_tasks.discard)
        elif isinstance(effect, RedirectHome):
            await self._on_timeout()

    async def _issue_state(self) -> None:
        try:
            issued = await self._client.issue_state(self._origin)
        except BridgeClientError as exc:
            logger.warning("Failed to issue auth state: %s", exc.message)
            await self._dispatch(IssueFailed(_ISSUE_FAILED_MSG))
            return
        await self._dispatch(
            StateIssued(token=issued.state, handoff_url=issued.redirect_url)
        )

    async def _poll_once(self) -> None:
        token = self._flow.token
        if self._flow.is_terminal or token is None:
            return

        try:
            status = await self._client.poll_session(token)
        except BridgeClientError as exc:
            logger.warning("Auth status poll failed: %s", exc.message)
            await self._dispatch(PollFailed(_POLL_FAILED_MSG))
            return

        if status.completed and status.magic_link:
            await self._dispatch(PollReady(status.magic_link))
        else:
            await self._dispatch(PollPending())

    async def _timeout_elapsed(self) -> None:
        await self._dispatch(TimeoutElapsed())

    async def _cleanup(self, token: str) -> None:
        try:
            await self._client.cleanup_state(token)
        except BridgeClientError as exc:
            # Expiry still applies server-side
            logger.warning("Failed to delete auth state: %s", exc.message)
