"""Shared dependencies for API endpoints.

Provides the login-bridge collaborators and the current user from the
session cookie.

WHY DEPENDENCY INJECTION:
- Storage mode (database / in-memory) is chosen in one place
- Tests swap the whole bridge backend via dependency_overrides
"""

import uuid
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import decode_jwt
from app.core.config import settings
from app.core.database import get_db
from app.core.errors import UnauthorizedError
from app.services.bridge_backend import (
    AuthBridgeBackend,
    database_backend,
    get_memory_backend,
)

_AUTH_REQUIRED_MSG = "Authentication required"


async def get_bridge_backend(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> AuthBridgeBackend:
    """Bridge collaborators for the configured storage mode.

    Database mode binds to the request session. Endpoints commit it with
    backend.commit() before responding, so the trailing commit in get_db
    has nothing left to write.
    """
    if settings.auth_bridge_storage == "memory":
        return get_memory_backend()
    return database_backend(db)


async def get_current_user_id(request: Request) -> uuid.UUID:
    """Get current user ID from the session cookie.

    Security: The 401 is intentionally vague; it never says why the
    cookie was rejected.

    Raises:
        UnauthorizedError: Missing, malformed, expired, or forged cookie.
    """
    token = request.cookies.get(settings.auth_cookie_name)
    if not token:
        raise UnauthorizedError(_AUTH_REQUIRED_MSG)

    user_id = decode_jwt(token, secret=settings.auth_secret.get_secret_value())
    if user_id is None:
        raise UnauthorizedError(_AUTH_REQUIRED_MSG)
    return user_id


# Reusable type aliases for dependency injection
BridgeBackend = Annotated[AuthBridgeBackend, Depends(get_bridge_backend)]
CurrentUserId = Annotated[uuid.UUID, Depends(get_current_user_id)]
