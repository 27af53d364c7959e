"""Application settings and configuration.

This module defines all configuration options for the CheckTheCrowd core.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="CheckTheCrowd", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    environment: str = Field(default="production", alias="NODE_ENV")

    # Database configuration
    database_url: str = Field(default="sqlite:///./checkthecrowd.db", alias="DATABASE_URL")
    test_database_url: str | None = Field(default=None, alias="TEST_DATABASE_URL")
    use_testing_database: bool = Field(default=False, alias="USE_TEST_DATABASE")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Redis configuration for the shared rate-limit gate
    redis_url: str = Field(default="redis://localhost:6379", alias="REDIS_URL")

    # Session signing; SessionIssuer refuses to run without a secret
    session_secret: str | None = Field(default=None, alias="CHECK_THE_CROWD_SESSION_SECRET")
    session_ttl_seconds: int = Field(default=24 * 60 * 60, alias="CHECK_THE_CROWD_SESSION_TTL_SECONDS")
    session_cookie_name: str = Field(
        default="check_the_crowd_session",
        alias="CHECK_THE_CROWD_SESSION_COOKIE",
    )
    session_cookie_secure: bool | None = Field(
        default=None,
        alias="CHECK_THE_CROWD_SESSION_COOKIE_SECURE",
    )

    # Challenge nonces
    nonce_ttl_seconds: int = Field(default=5 * 60, alias="CHECK_THE_CROWD_NONCE_TTL_SECONDS")

    # Rate limits (requests per window)
    rate_limit_window_seconds: int = Field(default=60, alias="RATE_LIMIT_WINDOW_SECONDS")
    rate_limit_nonce: int = Field(default=30, alias="RATE_LIMIT_NONCE")
    rate_limit_verify: int = Field(default=30, alias="RATE_LIMIT_VERIFY")
    rate_limit_votes: int = Field(default=20, alias="RATE_LIMIT_VOTES")
    rate_limit_register: int = Field(default=30, alias="RATE_LIMIT_REGISTER")
    rate_limit_consensus: int = Field(default=120, alias="RATE_LIMIT_CONSENSUS")
    rate_limit_hot: int = Field(default=120, alias="RATE_LIMIT_HOT")

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @property
    def effective_database_url(self) -> str:
        """Return the database URL respecting testing overrides."""
        if self.use_testing_database and self.test_database_url:
            return self.test_database_url
        return self.database_url

    @property
    def cookie_secure(self) -> bool:
        """Return whether the session cookie carries the Secure attribute."""
        if self.session_cookie_secure is not None:
            return self.session_cookie_secure
        return self.environment == "production"

    @property
    def rate_limits(self) -> dict[str, int]:
        """Return per-action request limits as a convenience dictionary."""
        return {
            "auth:nonce": self.rate_limit_nonce,
            "auth:verify": self.rate_limit_verify,
            "votes": self.rate_limit_votes,
            "tokens:register": self.rate_limit_register,
            "tokens:consensus": self.rate_limit_consensus,
            "tokens:hot": self.rate_limit_hot,
        }


settings = Settings()
