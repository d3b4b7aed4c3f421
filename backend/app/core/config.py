"""Application configuration loaded from environment variables.

Settings for database, API, session cookies, and the Telegram login bridge.
Uses pydantic-settings for validation and .env file support.
"""

from typing import Literal

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Known insecure default password that must not be used in production
# Security: Runtime check in check_production_security() prevents use in production
_INSECURE_DEFAULT_PASSWORD = "telebridge_dev_password"  # nosec B105

# Minimum length for AUTH_SECRET in production (256 bits = 32 bytes)
_MIN_AUTH_SECRET_LENGTH = 32

# Minimum length for the bot webhook secret in production
_MIN_WEBHOOK_SECRET_LENGTH = 24


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Database
    database_host: str = "localhost"
    database_port: int = 5432
    database_name: str = "telebridge"
    database_user: str = "telebridge_user"
    database_password: str = _INSECURE_DEFAULT_PASSWORD

    # API
    # 0.0.0.0 binds to all network interfaces (required for Docker containers)
    api_host: str = "0.0.0.0"  # nosec B104
    api_port: int = 8000

    # CORS (Security)
    # CRITICAL: Never set to ["*"] when allow_credentials=True
    allowed_origins: list[str] = ["http://localhost:3000"]

    # Application
    environment: str = "development"
    log_level: str = "INFO"

    # Session cookie (JWT issued after magic link redemption)
    auth_secret: SecretStr = SecretStr("")
    auth_issuer: str = "telebridge"
    auth_cookie_name: str = "telebridge.session-token"
    auth_cookie_secure: bool = True
    auth_cookie_samesite: Literal["lax", "strict", "none"] = "lax"
    auth_cookie_domain: str = ""

    # Telegram bridge
    telegram_bot_username: str = "fondprava_bot"
    telegram_bot_base_url: str = "https://t.me"
    webhook_secret: SecretStr = SecretStr("")
    auth_state_ttl_seconds: int = 180
    auth_redirect_path: str = "/profile"
    # Empty list accepts any well-formed http(s) origin
    auth_allowed_host_origins: list[str] = []
    auth_bridge_storage: Literal["database", "memory"] = "database"

    # Magic link credentials
    magic_link_ttl_minutes: int = 10
    backend_url: str = "http://localhost:8000"

    # Login client
    auth_poll_interval_seconds: float = 3.0
    auth_client_timeout_seconds: float = 180.0

    # Rate Limiting (Security)
    # Format: "count/period" (e.g., "10/minute", "100/hour")
    rate_limit_auth_state: str = "10/minute"  # POST /auth/telegram/state
    rate_limit_auth_poll: str = "60/minute"  # GET /auth/telegram/session
    rate_limit_enabled: bool = True  # Disable for testing

    @property
    def database_url(self) -> str:
        """Async database URL for SQLAlchemy."""
        return (
            f"postgresql+asyncpg://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    @property
    def database_url_sync(self) -> str:
        """Sync database URL for Alembic."""
        return (
            f"postgresql://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    @property
    def telegram_bot_url(self) -> str:
        """Deep link base for the login bot, without query string."""
        return f"{self.telegram_bot_base_url.rstrip('/')}/{self.telegram_bot_username}"

    @model_validator(mode="after")
    def check_production_security(self) -> "Settings":
        """Validate production security requirements.

        Security: Prevents deployment with known insecure defaults.
        Checks:
        - State TTL, poll cadence, and client timeout must be positive
          (all environments)
        - CORS must not use wildcard origin (incompatible with credentials)
        - SameSite=None requires Secure flag (browser requirement)
        - Database password must not be the default in production
        - AUTH_SECRET and WEBHOOK_SECRET must be set and long enough in production
        """
        if self.auth_cookie_samesite == "none" and not self.auth_cookie_secure:
            msg = (
                "AUTH_COOKIE_SECURE must be true when AUTH_COOKIE_SAMESITE=none. "
                "Browsers reject SameSite=None cookies without the Secure flag."
            )
            raise ValueError(msg)

        if self.auth_state_ttl_seconds <= 0:
            msg = (
                "AUTH_STATE_TTL_SECONDS must be positive. "
                f"Got: {self.auth_state_ttl_seconds}"
            )
            raise ValueError(msg)
        if self.auth_poll_interval_seconds <= 0:
            msg = (
                "AUTH_POLL_INTERVAL_SECONDS must be positive. "
                f"Got: {self.auth_poll_interval_seconds}"
            )
            raise ValueError(msg)
        if self.auth_client_timeout_seconds <= 0:
            msg = (
                "AUTH_CLIENT_TIMEOUT_SECONDS must be positive. "
                f"Got: {self.auth_client_timeout_seconds}"
            )
            raise ValueError(msg)

        if "*" in self.allowed_origins:
            msg = (
                "ALLOWED_ORIGINS must not contain '*' (wildcard). "
                "This application uses credentials (cookies) which are "
                "incompatible with wildcard CORS origins."
            )
            raise ValueError(msg)

        if self.environment == "production":
            if self.database_password == _INSECURE_DEFAULT_PASSWORD:
                msg = (
                    "Cannot use default database password in production. "
                    "Set DATABASE_PASSWORD environment variable to a secure value."
                )
                raise ValueError(msg)

            secret_value = self.auth_secret.get_secret_value()
            if len(secret_value) < _MIN_AUTH_SECRET_LENGTH:
                msg = (
                    f"AUTH_SECRET must be at least {_MIN_AUTH_SECRET_LENGTH} "
                    "characters in production. "
                    'Generate with: python -c "import secrets; '
                    'print(secrets.token_hex(32))"'
                )
                raise ValueError(msg)

            webhook_value = self.webhook_secret.get_secret_value()
            if len(webhook_value) < _MIN_WEBHOOK_SECRET_LENGTH:
                msg = (
                    f"WEBHOOK_SECRET must be at least {_MIN_WEBHOOK_SECRET_LENGTH} "
                    "characters in production."
                )
                raise ValueError(msg)

        return self


settings = Settings()
