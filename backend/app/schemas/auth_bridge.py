"""Telegram login bridge request/response schemas.

Flow:
1. POST /auth/telegram/state: browser gets a state and the bot deep link
2. POST /auth/telegram/complete: bot reports the approving Telegram user
3. GET /auth/telegram/session: browser polls until a magic link is ready
4. POST /auth/telegram/state/cleanup: browser abandons a pending state

Request bodies accept the camelCase names the browser client has always
sent (``initiatingHostOrigin``) as well as snake_case.
"""

import uuid
from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

# =============================================================================
# Request Schemas
# =============================================================================


class IssueStateRequest(BaseModel):
    """Request body for POST /auth/telegram/state.

    The origin is optional at the schema level so that a missing value
    surfaces the explicit "Missing initiatingHostOrigin parameter" error.
    """

    model_config = ConfigDict(extra="ignore")

    initiating_host_origin: str | None = Field(
        default=None,
        max_length=2048,
        validation_alias=AliasChoices(
            "initiating_host_origin", "initiatingHostOrigin"
        ),
    )


class CompleteHandshakeRequest(BaseModel):
    """Request body for POST /auth/telegram/complete (bot callback).

    Attributes:
        state: State from the bot's ``auth_<state>`` start payload.
        telegram_user_id: Telegram user id; numbers are stringified.
        telegram_full_name: Display name shown in Telegram.
        telegram_username: Telegram @handle without the @.
        webhook_secret: Shared secret proving the caller is the bot.
    """

    model_config = ConfigDict(extra="ignore")

    state: str = Field(..., min_length=1, max_length=128)
    telegram_user_id: str = Field(..., min_length=1, max_length=32)
    telegram_full_name: str | None = Field(default=None, max_length=255)
    telegram_username: str | None = Field(default=None, max_length=64)
    webhook_secret: str | None = Field(default=None, max_length=512)

    @field_validator("telegram_user_id", mode="before")
    @classmethod
    def stringify_user_id(cls, v: object) -> object:
        """Bots send the id as a JSON number; store it as text."""
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v


class CleanupStateRequest(BaseModel):
    """Request body for POST /auth/telegram/state/cleanup."""

    model_config = ConfigDict(extra="ignore")

    state: str | None = Field(default=None, max_length=128)


# =============================================================================
# Response Schemas
# =============================================================================


class IssueStateResponse(BaseModel):
    """Issued state and the Telegram deep link carrying it."""

    success: Literal[True] = True
    state: str
    redirect_url: str


class CompleteHandshakeResponse(BaseModel):
    """Result returned to the bot."""

    success: Literal[True] = True
    message: str
    user_id: uuid.UUID


class SessionPendingResponse(BaseModel):
    """Poll result while the bot has not completed the handshake."""

    success: Literal[True] = True
    completed: Literal[False] = False
    message: str = "Authentication in progress"


class SessionReadyResponse(BaseModel):
    """Poll result once a magic link has been issued.

    Returned at most once per state.
    """

    success: Literal[True] = True
    completed: Literal[True] = True
    magic_link: str
    user_id: uuid.UUID


class MessageResponse(BaseModel):
    """Acknowledgement with a human-readable message."""

    success: Literal[True] = True
    message: str


class UserProfileResponse(BaseModel):
    """Current user for GET /auth/me."""

    id: uuid.UUID
    username: str
    name: str | None = None
    telegram_username: str | None = None
    profile_type: str
