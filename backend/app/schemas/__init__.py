"""Pydantic request/response schemas for API endpoints."""

from app.schemas.auth_bridge import (
    CleanupStateRequest,
    CompleteHandshakeRequest,
    CompleteHandshakeResponse,
    IssueStateRequest,
    IssueStateResponse,
    MessageResponse,
    SessionPendingResponse,
    SessionReadyResponse,
    UserProfileResponse,
)

__all__ = [
    # Requests
    "CleanupStateRequest",
    "CompleteHandshakeRequest",
    "IssueStateRequest",
    # Responses
    "CompleteHandshakeResponse",
    "IssueStateResponse",
    "MessageResponse",
    "SessionPendingResponse",
    "SessionReadyResponse",
    "UserProfileResponse",
]
