"""Response envelope models.

Success bodies of the login bridge are flat (``{"success": true, ...}``)
because the bot and the browser client read them directly. Errors share
one envelope so clients can branch on ``error.code``.
"""

from typing import Literal

from pydantic import BaseModel


class ErrorDetail(BaseModel):
    """Error detail for response body.

    Attributes:
        code: Machine-readable error code (e.g., "UNAUTHORIZED").
        message: Human-readable error message.
        details: Optional list of field-level errors (for validation).
    """

    code: str
    message: str
    details: list[dict] | None = None


class ErrorResponse(BaseModel):
    """Standard error response envelope.

    Usage in exception handlers:
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(
                error=ErrorDetail(code=exc.code, message=exc.message)
            ).model_dump(),
        )
    """

    success: Literal[False] = False
    error: ErrorDetail
