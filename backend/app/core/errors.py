"""API error classes.

HTTP status codes and error codes for the Telegram login bridge.

WHY CUSTOM ERROR CLASSES:
- Consistent error response format across all endpoints
- Easy to map to HTTP status codes in exception handlers
- Type-safe error handling in services/repositories
"""


class APIError(Exception):
    """Base class for API errors.

    All API errors have a code, message, and HTTP status.
    Subclasses set default status_code.

    Attributes:
        code: Machine-readable error code (e.g., "UNAUTHORIZED").
        message: Human-readable error message.
        status_code: HTTP status code to return.
        details: Optional list of additional error details.
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: list[dict] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(message)


class ValidationError(APIError):
    """Missing or malformed input (400).

    Use for request body validation errors, query param errors, etc.
    """

    def __init__(
        self,
        message: str,
        details: list[dict] | None = None,
    ) -> None:
        super().__init__(
            code="VALIDATION_ERROR",
            message=message,
            status_code=400,
            details=details,
        )


class UnauthorizedError(APIError):
    """Authentication required (401).

    Use when no valid credentials or shared secret were provided.
    """

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(
            code="UNAUTHORIZED",
            message=message,
            status_code=401,
        )


class InvalidOrExpiredStateError(APIError):
    """Handshake token unknown, deleted, or past its expiry.

    The bot callback reports this as 400; the polling endpoint reports it
    as 401. Callers pick the status for their endpoint.
    """

    def __init__(self, status_code: int = 400) -> None:
        super().__init__(
            code="INVALID_OR_EXPIRED_STATE",
            message="Invalid or expired state",
            status_code=status_code,
        )


class StateAlreadyUsedError(APIError):
    """Handshake token was already completed (400).

    Replay guard: a token may be completed at most once.
    """

    def __init__(self) -> None:
        super().__init__(
            code="STATE_ALREADY_USED",
            message="State already used",
            status_code=400,
        )


class StorageError(APIError):
    """Handshake store could not complete a write (500)."""

    def __init__(self, message: str = "Failed to store state") -> None:
        super().__init__(
            code="STORAGE_ERROR",
            message=message,
            status_code=500,
        )


class InternalError(APIError):
    """Unexpected server error (500).

    Use for unhandled exceptions. Never expose stack traces to clients.
    """

    def __init__(self, message: str = "An unexpected error occurred") -> None:
        super().__init__(
            code="INTERNAL_ERROR",
            message=message,
            status_code=500,
        )
