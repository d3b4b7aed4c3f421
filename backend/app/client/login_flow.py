"""Browser-side Telegram login flow as a pure state machine.

States:
    IDLE -> ISSUING -> AWAITING_HANDOFF -> POLLING
    -> COMPLETED | FAILED | TIMED_OUT

transition(flow, event) never performs I/O. It returns the next flow
and a tuple of effects; the poller executes the effects. Terminal
states absorb every event, which is what keeps a late poll response
from redirecting twice or from replacing a successful sign-in with an
error.
"""

from dataclasses import dataclass, replace
from enum import Enum


class LoginState(str, Enum):
    """Where the browser is in the login handshake."""

    IDLE = "idle"
    ISSUING = "issuing"
    AWAITING_HANDOFF = "awaiting_handoff"
    POLLING = "polling"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


TERMINAL_STATES = frozenset(
    {LoginState.COMPLETED, LoginState.FAILED, LoginState.TIMED_OUT}
)

_WAITING_STATES = frozenset({LoginState.AWAITING_HANDOFF, LoginState.POLLING})


# =============================================================================
# Events
# =============================================================================


@dataclass(frozen=True)
class Start:
    """Login page mounted."""


@dataclass(frozen=True)
class StateIssued:
    """Server issued a state and the bot deep link."""

    token: str
    handoff_url: str


@dataclass(frozen=True)
class IssueFailed:
    """State could not be issued."""

    message: str


@dataclass(frozen=True)
class PollPending:
    """Poll answered; the bot has not completed the handshake yet."""


@dataclass(frozen=True)
class PollReady:
    """Poll answered with the magic link."""

    magic_link: str


@dataclass(frozen=True)
class PollFailed:
    """Poll failed with a non-recoverable error."""

    message: str


@dataclass(frozen=True)
class OpenHandoff:
    """User asked to open the bot deep link again."""


@dataclass(frozen=True)
class TimeoutElapsed:
    """The absolute login timer fired."""


@dataclass(frozen=True)
class Stop:
    """Login page unmounted."""


Event = (
    Start
    | StateIssued
    | IssueFailed
    | PollPending
    | PollReady
    | PollFailed
    | OpenHandoff
    | TimeoutElapsed
    | Stop
)


# =============================================================================
# Effects
# =============================================================================


@dataclass(frozen=True)
class IssueState:
    """Ask the server for a new state."""


@dataclass(frozen=True)
class ShowHandoff:
    """Display the deep link (QR code / open-in-Telegram button)."""

    url: str


@dataclass(frozen=True)
class StartPolling:
    """Begin polling the session endpoint on the fixed interval."""


@dataclass(frozen=True)
class StopPolling:
    """Cancel the poll interval."""


@dataclass(frozen=True)
class StartTimeout:
    """Arm the absolute login timer."""


@dataclass(frozen=True)
class StopTimeout:
    """Disarm the absolute login timer."""


@dataclass(frozen=True)
class FollowCredential:
    """Navigate to the magic link to finish sign-in."""

    magic_link: str


@dataclass(frozen=True)
class ShowError:
    """Surface an error to the user; no redirect."""

    message: str


@dataclass(frozen=True)
class RequestCleanup:
    """Best-effort delete of a state that was never completed."""

    token: str


@dataclass(frozen=True)
class RedirectHome:
    """Leave the login page for the default landing page."""


Effect = (
    IssueState
    | ShowHandoff
    | StartPolling
    | StopPolling
    | StartTimeout
    | StopTimeout
    | FollowCredential
    | ShowError
    | RequestCleanup
    | RedirectHome
)


# =============================================================================
# Machine
# =============================================================================


@dataclass(frozen=True)
class LoginFlow:
    """Snapshot of one login attempt.

    Attributes:
        state: Current state.
        token: Issued state token, once known.
        handoff_url: Bot deep link, once known.
        error: Message shown after a failure.
    """

    state: LoginState = LoginState.IDLE
    token: str | None = None
    handoff_url: str | None = None
    error: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES


_STOP_TIMERS: tuple[Effect, ...] = (StopPolling(), StopTimeout())


def transition(flow: LoginFlow, event: Event) -> tuple[LoginFlow, tuple[Effect, ...]]:
    """Apply one event.

    Args:
        flow: Current snapshot.
        event: What just happened.

    Returns:
        (next snapshot, effects to run in order). Events that do not
        apply to the current state return the snapshot unchanged with
        no effects.
    """
    state = flow.state

    if isinstance(event, Stop):
        # Unmount cancels timers in any state; terminal states already did
        if flow.is_terminal or state == LoginState.IDLE:
            return flow, ()
        return flow, _STOP_TIMERS

    if flow.is_terminal:
        return flow, ()

    if isinstance(event, Start):
        if state != LoginState.IDLE:
            return flow, ()
        return replace(flow, state=LoginState.ISSUING), (IssueState(),)

    if state == LoginState.ISSUING:
        if isinstance(event, StateIssued):
            next_flow = replace(
                flow,
                state=LoginState.AWAITING_HANDOFF,
                token=event.token,
                handoff_url=event.handoff_url,
            )
            return next_flow, (
                ShowHandoff(event.handoff_url),
                StartPolling(),
                StartTimeout(),
            )
        if isinstance(event, IssueFailed):
            return replace(flow, state=LoginState.FAILED, error=event.message), (
                ShowError(event.message),
            )
        return flow, ()

    if state in _WAITING_STATES:
        if isinstance(event, OpenHandoff):
            if flow.handoff_url is None:
                return flow, ()
            return flow, (ShowHandoff(flow.handoff_url),)
        if isinstance(event, PollPending):
            return replace(flow, state=LoginState.POLLING), ()
        if isinstance(event, PollReady):
            return replace(flow, state=LoginState.COMPLETED), (
                *_STOP_TIMERS,
                FollowCredential(event.magic_link),
            )
        if isinstance(event, PollFailed):
            return replace(flow, state=LoginState.FAILED, error=event.message), (
                *_STOP_TIMERS,
                ShowError(event.message),
            )
        if isinstance(event, TimeoutElapsed):
            effects: tuple[Effect, ...] = (StopPolling(),)
            if flow.token is not None:
                effects += (RequestCleanup(flow.token),)
            return replace(flow, state=LoginState.TIMED_OUT), (
                *effects,
                RedirectHome(),
            )

    return flow, ()
