"""Session endpoints for users signed in through the Telegram bridge.

Endpoints:
- GET /auth/me — return current user info
- POST /auth/logout — clear auth cookie
"""

from fastapi import APIRouter, Response

from app.api.deps import BridgeBackend, CurrentUserId
from app.core.auth import clear_auth_cookie
from app.core.errors import UnauthorizedError
from app.schemas.auth_bridge import MessageResponse, UserProfileResponse

router = APIRouter()


@router.get("/me")
async def get_me(
    user_id: CurrentUserId,
    backend: BridgeBackend,
) -> UserProfileResponse:
    """Return current user info from the session cookie.

    Returns 401 if there is no valid cookie or the user no longer exists.
    """
    profile = await backend.users.get_profile(user_id)
    if profile is None:
        raise UnauthorizedError()

    return UserProfileResponse(
        id=profile.id,
        username=profile.username,
        name=profile.name,
        telegram_username=profile.telegram_username,
        profile_type=profile.profile_type,
    )


@router.post("/logout")
async def logout(response: Response) -> MessageResponse:
    """Clear auth cookie.

    No auth required — clears cookie regardless.
    """
    clear_auth_cookie(response)
    return MessageResponse(message="Signed out")
