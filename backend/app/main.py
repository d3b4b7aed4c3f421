"""Telebridge application — FastAPI wiring.

- Security headers, with a no-referrer policy on every bridge route
- CORS for the browser origins that start a Telegram login
- Error envelope for API, validation, rate limit, and unexpected errors
- /api/v1 router and the /health check for load balancers

The bot webhook (POST /complete) is called server-to-server and never
needs CORS; browsers only call /state, /session, /state/cleanup, and
follow the magic link.
"""

import logging

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from app.api.v1.router import router as v1_router
from app.core.config import settings
from app.core.errors import APIError
from app.core.rate_limiting import limiter, rate_limit_exceeded_handler
from app.core.responses import ErrorDetail, ErrorResponse

logger = structlog.get_logger()

# State tokens and magic link tokens travel in query strings under this
# prefix, so no URL from it may leak through a Referer header.
BRIDGE_PATH_PREFIX = "/api/v1/auth/telegram/"

_STATIC_HEADERS: dict[str, str] = {
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    # JSON and redirects only; nothing to load, nothing to frame, no forms
    "Content-Security-Policy": (
        "default-src 'none'; frame-ancestors 'none'; form-action 'none'"
    ),
}

_HSTS = "max-age=31536000; includeSubDomains"


def referrer_policy_for(path: str) -> str:
    """Pick the Referrer-Policy for a request path.

    Args:
        path: Request URL path.

    Returns:
        "no-referrer" for bridge routes, a conservative default elsewhere.
    """
    if path.startswith(BRIDGE_PATH_PREFIX):
        return "no-referrer"
    return "strict-origin-when-cross-origin"


class BridgeSecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to every response.

    API responses carry auth state (states, magic links, user ids), so
    none of them may be cached. HSTS is only sent in production, where
    TLS terminates at the reverse proxy.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        response = await call_next(request)
        path = request.url.path

        response.headers.update(_STATIC_HEADERS)
        response.headers["Referrer-Policy"] = referrer_policy_for(path)

        if path.startswith("/api/"):
            response.headers["Cache-Control"] = "no-store, max-age=0"

        if settings.environment == "production":
            response.headers["Strict-Transport-Security"] = _HSTS

        return response


def _error_response(
    status_code: int,
    code: str,
    message: str,
    details: list[dict] | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=ErrorDetail(code=code, message=message, details=details)
        ).model_dump(),
    )


def api_error_handler(_request: Request, exc: APIError) -> JSONResponse:
    """Render an APIError with its own status and code."""
    return _error_response(exc.status_code, exc.code, exc.message, exc.details)


def validation_error_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Render request validation failures as 400 VALIDATION_ERROR.

    Args:
        request: The incoming request.
        exc: The RequestValidationError from Pydantic.

    Returns:
        JSONResponse with field-level details (location, message, type).
    """
    return _error_response(
        400,
        "VALIDATION_ERROR",
        "Request validation failed",
        [
            {"loc": list(e["loc"]), "msg": e["msg"], "type": e["type"]}
            for e in exc.errors()
        ],
    )


def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unhandled exceptions.

    WHY: A bridge failure must never echo tokens or secrets from the
    exception text. The full error goes to the log only.

    Args:
        request: The incoming request.
        exc: The unhandled exception.

    Returns:
        JSONResponse with a generic INTERNAL_ERROR (500).
    """
    logger.exception("Unhandled exception", exc_info=exc, path=request.url.path)
    return _error_response(500, "INTERNAL_ERROR", "An unexpected error occurred")


def create_app() -> FastAPI:
    """Build the bridge application.

    Returns:
        Configured FastAPI application instance.
    """
    logging.getLogger("app").setLevel(settings.log_level.upper())

    app = FastAPI(
        title="Telebridge API",
        version="1.0.0",
        description="Telegram login bridge for web sign-in",
    )

    # Starlette runs the last added middleware first; CORS must see
    # preflights before anything else.
    app.add_middleware(BridgeSecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Accept"],
    )

    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_exception_handler(Exception, internal_error_handler)

    # Bounds state minting and poll frequency per client
    app.state.limiter = limiter

    app.include_router(v1_router, prefix="/api/v1")

    @app.get("/health")
    def health_check() -> dict:
        """Liveness check; does not touch the database."""
        return {"status": "healthy"}

    logger.info(
        "Auth bridge configured",
        storage=settings.auth_bridge_storage,
        environment=settings.environment,
        state_ttl_seconds=settings.auth_state_ttl_seconds,
    )
    return app


# uvicorn app.main:app
app = create_app()
