"""Application settings and configuration.

This module defines all configuration options for the training relay.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_MIN_CLEANUP_INTERVAL_SECONDS = 30


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Training Relay", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    environment: str = Field(default="production", min_length=1, alias="APP_ENV")
    debug: bool = Field(default=False, alias="DEBUG")
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8080, gt=0, alias="PORT")
    log_level: str = Field(default="INFO", min_length=1, alias="LOG_LEVEL")

    # Database configuration
    database_url: str = Field(default="sqlite:///./data/relay.db", alias="DATABASE_URL")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Downstream sink
    discord_webhook_url: str = Field(min_length=1, alias="DISCORD_WEBHOOK_URL")
    forward_timeout_seconds: float = Field(default=30.0, gt=0, alias="FORWARD_TIMEOUT_SECONDS")

    # Upload authentication
    max_upload_bytes: int = Field(default=26_214_400, gt=0, alias="MAX_UPLOAD_BYTES")
    max_clock_skew_seconds: int = Field(default=300, gt=0, alias="MAX_CLOCK_SKEW_SECONDS")
    nonce_ttl_seconds: int = Field(default=600, gt=0, alias="NONCE_TTL_SECONDS")

    # Request throttling
    rate_limit_per_client_per_minute: int = Field(
        default=30,
        gt=0,
        alias="RATE_LIMIT_PER_CLIENT_PER_MINUTE",
    )
    rate_limit_redeem_per_ip_per_minute: int = Field(
        default=60,
        gt=0,
        alias="RATE_LIMIT_REDEEM_PER_IP_PER_MINUTE",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def nonce_cleanup_interval_seconds(self) -> int:
        """Return how often expired nonces are swept.

        Returns:
            Half the nonce TTL, but never less than thirty seconds
        """
        return max(_MIN_CLEANUP_INTERVAL_SECONDS, self.nonce_ttl_seconds // 2)


settings = Settings()  # type: ignore[call-arg]
