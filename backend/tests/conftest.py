import socket
import uuid
from collections.abc import AsyncGenerator, Iterator
from datetime import UTC, datetime, timedelta

import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from pydantic import SecretStr
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.core.config import settings
from app.models.base import Base
from app.services.bridge_backend import AuthBridgeBackend, in_memory_backend

# Use separate test database
TEST_DATABASE_URL = settings.database_url.replace(
    settings.database_name, f"{settings.database_name}_test"
)

# Test user ID (consistent across tests for predictable auth)
TEST_USER_ID = uuid.UUID("00000000-0000-0000-0000-000000000001")

# Security: These are test-only secrets. Production uses real secrets from env.
TEST_AUTH_SECRET = "test-secret-key-that-is-at-least-32-characters-long"  # nosec B105  # gitleaks:allow
TEST_WEBHOOK_SECRET = "test-webhook-secret-for-the-login-bot"  # nosec B105  # gitleaks:allow

TEST_ORIGIN = "http://localhost:5173"


def create_test_jwt(
    user_id: uuid.UUID = TEST_USER_ID,
    *,
    secret: str = TEST_AUTH_SECRET,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a signed JWT for test authentication.

    Args:
        user_id: User UUID to encode in the sub claim.
        secret: Signing secret (must match settings.auth_secret in tests).
        expires_delta: Time until expiration. Defaults to 1 hour.

    Returns:
        Encoded JWT string.
    """
    now = datetime.now(UTC)
    payload = {
        "sub": str(user_id),
        "aud": "telebridge",
        "iss": "telebridge",
        "exp": now + (expires_delta or timedelta(hours=1)),
        "iat": now,
    }
    return jwt.encode(payload, secret, algorithm="HS256")


def _is_postgres_available() -> bool:
    """Check if PostgreSQL is accepting connections.

    Returns:
        True if PostgreSQL is reachable on port 5432, False otherwise.
    """
    try:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.settimeout(1)
        result = sock.connect_ex(("127.0.0.1", 5432))
        sock.close()
        return result == 0
    except OSError:
        return False


# Check once at module load time
_POSTGRES_AVAILABLE = _is_postgres_available()


def skip_if_no_postgres() -> None:
    """Skip test if PostgreSQL is not available.

    Called by fixtures that require database connection.
    """
    if not _POSTGRES_AVAILABLE:
        pytest.skip(
            "PostgreSQL not available on port 5432. "
            "Start database with: docker compose up -d"
        )


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create test database engine.

    Skips test if PostgreSQL is not available (e.g., Docker not running).
    """
    skip_if_no_postgres()

    engine = create_async_engine(TEST_DATABASE_URL, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async_session = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session
        await session.rollback()


# =============================================================================
# Login Bridge Fixtures
# =============================================================================


@pytest.fixture
def memory_backend() -> AuthBridgeBackend:
    """Fresh in-memory bridge backend (handshakes, users, magic links)."""
    return in_memory_backend()


@pytest.fixture
def bridge_secrets() -> Iterator[None]:
    """Configure test auth and webhook secrets, restoring them afterwards."""
    original_auth_secret = settings.auth_secret
    original_webhook_secret = settings.webhook_secret
    settings.auth_secret = SecretStr(TEST_AUTH_SECRET)
    settings.webhook_secret = SecretStr(TEST_WEBHOOK_SECRET)

    yield

    settings.auth_secret = original_auth_secret
    settings.webhook_secret = original_webhook_secret


@pytest_asyncio.fixture
async def bridge_client(
    memory_backend: AuthBridgeBackend,
    bridge_secrets,  # noqa: ARG001 - configures secrets
) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client wired to an in-memory bridge backend.

    No database is needed: get_bridge_backend is overridden, so the
    request session dependency is never resolved.

    Yields:
        AsyncClient that does not follow redirects.
    """
    from app.api.deps import get_bridge_backend
    from app.main import app

    app.dependency_overrides[get_bridge_backend] = lambda: memory_backend

    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        follow_redirects=False,
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


# =============================================================================
# Autouse Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def reset_memory_backend() -> Iterator[None]:
    """Reset the in-memory bridge backend singleton before each test.

    Yields:
        None (autouse fixture).
    """
    from app.services.bridge_backend import reset_memory_backend as _reset

    _reset()
    yield
    _reset()


@pytest.fixture(autouse=True)
def disable_rate_limiting() -> Iterator[None]:
    """Disable rate limiting during tests.

    Security: Rate limiting is tested separately; disable for other tests
    to avoid flaky failures from rate limit triggers.

    Yields:
        None (autouse fixture).
    """
    from app.core.rate_limiting import limiter

    # Store original state and disable
    original_enabled = limiter.enabled
    limiter.enabled = False

    yield

    # Restore original state
    limiter.enabled = original_enabled
