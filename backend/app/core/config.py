"""Application configuration loaded from environment variables.

Settings for the database, API, CORS, authentication, and the bookmarklet
token/script pipeline. Uses pydantic-settings for validation and .env file
support.
"""

import uuid

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Known insecure default password that must not be used in production
# Security: Runtime check in check_production_security() prevents use in production
_INSECURE_DEFAULT_PASSWORD = "opptym_dev_password"  # nosec B105

# Minimum length for AUTH_SECRET in production (256 bits = 32 bytes)
_MIN_AUTH_SECRET_LENGTH = 32


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
    database_name: str = "opptym"
    database_user: str = "opptym_user"
    database_password: str = _INSECURE_DEFAULT_PASSWORD

    # API
    # 0.0.0.0 binds to all network interfaces (required for Docker containers)
    api_host: str = "0.0.0.0"  # nosec B104
    api_port: int = 8000

    # CORS for the dashboard (credentialed). The bookmarklet routes are
    # served with a wildcard origin by PublicCORSMiddleware instead.
    allowed_origins: list[str] = ["http://localhost:3000"]

    # Application
    environment: str = "development"
    log_level: str = "INFO"

    # Authentication
    # Local-first mode: DEFAULT_USER_ID provides user context without JWT
    # Hosted mode: auth_enabled=True, JWT cookie required on every request
    default_user_id: uuid.UUID | None = None
    auth_enabled: bool = False
    auth_secret: SecretStr = SecretStr("")
    auth_issuer: str = "opptym"
    auth_audience: str = "opptym"
    auth_cookie_name: str = "opptym.session-token"

    # Public base URL embedded in bookmarklets and generated scripts.
    # Must be reachable from the third-party pages the bookmarklet runs on.
    public_base_url: str = "http://localhost:8000"

    # Bookmarklet tokens
    bookmarklet_token_ttl_hours: int = 24
    bookmarklet_sweep_interval_seconds: int = 300

    # Rate Limiting (Security)
    # Format: "count/period" (e.g., "10/minute", "100/hour")
    rate_limit_token_issue: str = "5/minute"  # POST /bookmarklet/tokens
    rate_limit_script: str = "30/minute"  # GET /bookmarklet/script
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
    def submission_endpoint_url(self) -> str:
        """Absolute URL the generated script reports submissions to."""
        return f"{self.public_base_url.rstrip('/')}/api/v1/bookmarklet/submissions"

    @property
    def script_endpoint_url(self) -> str:
        """Absolute URL the bookmarklet loader fetches the script from."""
        return f"{self.public_base_url.rstrip('/')}/api/v1/bookmarklet/script"

    @model_validator(mode="after")
    def check_production_security(self) -> "Settings":
        """Validate configuration invariants.

        Checks:
        - Token TTL must be positive (all environments)
        - CORS must not use wildcard origin for the credentialed dashboard API
        - Database password must not be the default in production
        - AUTH_SECRET must be set and >= 32 chars when auth is enabled in production
        """
        if self.bookmarklet_token_ttl_hours <= 0:
            msg = (
                "BOOKMARKLET_TOKEN_TTL_HOURS must be positive. "
                f"Got: {self.bookmarklet_token_ttl_hours}"
            )
            raise ValueError(msg)

        if "*" in self.allowed_origins:
            msg = (
                "ALLOWED_ORIGINS must not contain '*' (wildcard). "
                "The dashboard API uses credentials (cookies) which are "
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

            if self.auth_enabled:
                secret_value = self.auth_secret.get_secret_value()
                if len(secret_value) < _MIN_AUTH_SECRET_LENGTH:
                    msg = (
                        f"AUTH_SECRET must be at least {_MIN_AUTH_SECRET_LENGTH} "
                        "characters when AUTH_ENABLED=true in production."
                    )
                    raise ValueError(msg)

        return self


settings = Settings()
