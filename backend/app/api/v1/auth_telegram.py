"""Telegram login bridge endpoints.

The browser cannot talk to Telegram directly, so sign-in is a handshake
coordinated through a short-lived state:

Endpoints:
- POST /auth/telegram/state — issue a state and the bot deep link
- POST /auth/telegram/complete — bot callback once the user approves
- GET /auth/telegram/session — browser poll; returns a magic link once
- POST /auth/telegram/state/cleanup — browser abandons a pending state
- GET /auth/telegram/magic-link — redeem the link, set cookie, redirect

Status mapping lives in the service layer's APIError subclasses; the
handlers here only translate service results into response bodies.

Every handler commits through backend.commit() before it builds the
response. get_db would otherwise commit after the body is sent, and a
browser can follow a magic link faster than that.
"""

import logging
from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, Query, Request
from fastapi.responses import RedirectResponse

from app.api.deps import BridgeBackend
from app.core.auth import create_jwt, set_auth_cookie
from app.core.config import settings
from app.core.errors import ValidationError
from app.core.rate_limiting import limiter
from app.schemas.auth_bridge import (
    CleanupStateRequest,
    CompleteHandshakeRequest,
    CompleteHandshakeResponse,
    IssueStateRequest,
    IssueStateResponse,
    MessageResponse,
    SessionPendingResponse,
    SessionReadyResponse,
)
from app.services.bridge_completer import complete_handshake
from app.services.handshake_cleanup import discard_pending_state
from app.services.session_resolver import SessionReady, resolve_session
from app.services.state_issuer import issue_state
from app.services.user_directory import TelegramIdentity

logger = logging.getLogger(__name__)

router = APIRouter()

_INVALID_MAGIC_LINK_MSG = "Invalid or expired magic link"


# ===================================================================
# POST /auth/telegram/state
# ===================================================================


@router.post("/state")
@limiter.limit(lambda: settings.rate_limit_auth_state)
async def create_auth_state(
    request: Request,  # noqa: ARG001
    body: IssueStateRequest,
    backend: BridgeBackend,
) -> IssueStateResponse:
    """Start a Telegram login.

    Returns the state and the ``https://t.me/<bot>?start=auth_<state>``
    link the browser shows as a QR code or opens directly.

    Rate limit: settings.rate_limit_auth_state per IP.
    """
    issued = await issue_state(backend.handshakes, body.initiating_host_origin)
    await backend.commit()
    return IssueStateResponse(state=issued.token, redirect_url=issued.handoff_url)


# ===================================================================
# POST /auth/telegram/complete
# ===================================================================


@router.post("/complete")
async def complete_auth_state(
    body: CompleteHandshakeRequest,
    backend: BridgeBackend,
) -> CompleteHandshakeResponse:
    """Bind the approving Telegram user to a pending state.

    Called by the bot, never by browsers. The shared webhook secret in
    the body is the only credential; a state can be completed once.
    """
    result = await complete_handshake(
        backend,
        token=body.state,
        identity=TelegramIdentity(
            telegram_user_id=body.telegram_user_id,
            full_name=body.telegram_full_name,
            username=body.telegram_username,
        ),
        webhook_secret=body.webhook_secret,
    )
    await backend.commit()
    return CompleteHandshakeResponse(message=result.message, user_id=result.user_id)


# ===================================================================
# GET /auth/telegram/session
# ===================================================================


@router.get("/session")
@limiter.limit(lambda: settings.rate_limit_auth_poll)
async def get_auth_session(
    request: Request,  # noqa: ARG001
    state: Annotated[str, Query(min_length=1, max_length=128)],
    backend: BridgeBackend,
) -> SessionPendingResponse | SessionReadyResponse:
    """Poll a state.

    Pending states answer 200 with ``completed: false`` and change
    nothing. The first poll after completion receives the magic link;
    the state is gone afterwards, so later polls get 401.

    Rate limit: settings.rate_limit_auth_poll per IP.
    """
    resolution = await resolve_session(backend, state)
    await backend.commit()
    if isinstance(resolution, SessionReady):
        return SessionReadyResponse(
            magic_link=resolution.magic_link,
            user_id=resolution.user_id,
        )
    return SessionPendingResponse()


# ===================================================================
# POST /auth/telegram/state/cleanup
# ===================================================================


@router.post("/state/cleanup")
async def cleanup_auth_state(
    body: CleanupStateRequest,
    backend: BridgeBackend,
) -> MessageResponse:
    """Discard a state the browser gave up on.

    Succeeds whether or not a row was removed; completed states are
    left for the session poll.
    """
    await discard_pending_state(backend, body.state)
    await backend.commit()
    return MessageResponse(message="Auth state deleted")


# ===================================================================
# GET /auth/telegram/magic-link
# ===================================================================


@router.get("/magic-link")
@limiter.limit("10/minute")
async def redeem_magic_link(
    request: Request,  # noqa: ARG001
    token: Annotated[str, Query(min_length=1, max_length=256)],
    backend: BridgeBackend,
) -> RedirectResponse:
    """Redeem a magic link, issue the session cookie, redirect.

    The link is deleted on first use whether or not it was still valid.

    Rate limit: 10 per minute per IP.
    """
    credential = await backend.credentials.redeem(token, now=datetime.now(UTC))
    await backend.commit()
    if credential is None:
        raise ValidationError(_INVALID_MAGIC_LINK_MSG)

    jwt_token = create_jwt(
        user_id=str(credential.user_id),
        secret=settings.auth_secret.get_secret_value(),
    )

    response = RedirectResponse(url=credential.redirect_to, status_code=307)
    set_auth_cookie(response, jwt_token)
    # Prevent token leakage via Referer header
    response.headers["Referrer-Policy"] = "no-referrer"

    logger.info("Magic link redeemed for user %s", credential.user_id)
    return response
