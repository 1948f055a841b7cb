"""Application settings using pydantic-settings.

Settings are loaded from environment variables with sensible defaults
for development. Production deployments should set all values explicitly.
"""

from functools import lru_cache

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Database connection settings.

    Environment variables:
        GATEWAY_DB_HOST: Database host (default: localhost)
        GATEWAY_DB_PORT: Database port (default: 5432)
        GATEWAY_DB_DATABASE: Database name (default: gateway)
        GATEWAY_DB_USERNAME: Database user (default: gateway)
        GATEWAY_DB_PASSWORD: Database password (required in production)
        GATEWAY_DB_POOL_MAX_CONNECTIONS: Maximum connections in pool (default: 10)
        GATEWAY_DB_URL: Full SQLAlchemy URL, overrides the fields above
    """

    model_config = SettingsConfigDict(
        env_prefix="GATEWAY_DB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, description="Database port")
    database: str = Field(default="gateway", description="Database name")
    username: str = Field(default="gateway", description="Database username")
    password: SecretStr = Field(
        default=SecretStr(""),
        description="Database password",
    )
    pool_max_connections: int = Field(
        default=10,
        description="Maximum connections in pool",
        ge=1,
        le=100,
    )
    url: str | None = Field(
        default=None,
        description="Explicit SQLAlchemy URL (e.g. sqlite+aiosqlite:///gateway.db)",
    )

    @property
    def connection_string(self) -> str:
        """Generate a connection string (without password for logging)."""
        if self.url is not None:
            return self.url.split("@")[-1] if "@" in self.url else self.url
        return f"postgresql://{self.username}@{self.host}:{self.port}/{self.database}"


class RetrySettings(BaseSettings):
    """Poison queue retry settings.

    Environment variables:
        GATEWAY_RETRY_MAX_RETRY_ATTEMPTS: Attempts before dead-lettering (default: 3)
        GATEWAY_RETRY_BASE_RETRY_DELAY_MINUTES: Backoff base (default: 2.0)
        GATEWAY_RETRY_USE_JITTER: Randomize delays (default: true)
        GATEWAY_RETRY_MAX_JITTER_PERCENTAGE: Upper jitter bound (default: 0.3)
        GATEWAY_RETRY_MAX_RETRY_DELAY_MINUTES: Optional delay cap (default: none)
        GATEWAY_RETRY_MAX_MESSAGES_PER_BATCH: Leases per sweep (default: 10)
        GATEWAY_RETRY_PROCESSING_VISIBILITY_TIMEOUT_MINUTES: Lease length (default: 5.0)
        GATEWAY_RETRY_SWEEP_INTERVAL_SECONDS: Sweep period (default: 300)
    """

    model_config = SettingsConfigDict(
        env_prefix="GATEWAY_RETRY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    max_retry_attempts: int = Field(
        default=3,
        description="Number of retries before a message is dead-lettered",
        ge=0,
    )
    base_retry_delay_minutes: float = Field(
        default=2.0,
        description="Base of the exponential backoff, in minutes",
        gt=0,
    )
    use_jitter: bool = Field(default=True, description="Randomize retry delays")
    max_jitter_percentage: float = Field(
        default=0.3,
        description="Maximum fractional increase applied by jitter",
        ge=0.0,
        le=1.0,
    )
    max_retry_delay_minutes: float | None = Field(
        default=None,
        description="Upper bound applied to the computed delay",
        gt=0,
    )
    max_messages_per_batch: int = Field(
        default=10,
        description="Maximum leases taken per retry sweep",
        ge=1,
        le=32,
    )
    processing_visibility_timeout_minutes: float = Field(
        default=5.0,
        description="How long a leased message stays invisible",
        gt=0,
    )
    sweep_interval_seconds: float = Field(
        default=300.0,
        description="Seconds between retry sweeps",
        gt=0,
    )

    @model_validator(mode="after")
    def validate_delay_cap(self) -> "RetrySettings":
        """Reject a delay cap below the first computed delay."""
        if (
            self.max_retry_delay_minutes is not None
            and self.max_retry_delay_minutes < self.base_retry_delay_minutes
        ):
            raise ValueError(
                "max_retry_delay_minutes must be at least base_retry_delay_minutes"
            )
        return self


class OutboxSettings(BaseSettings):
    """Outbox store and dispatcher settings.

    Environment variables:
        GATEWAY_OUTBOX_MAX_RETRIES: Dispatch failures before abandoning (default: 3)
        GATEWAY_OUTBOX_RETRY_DELAY_SECONDS: Base dispatch retry delay (default: 30)
        GATEWAY_OUTBOX_CLEANUP_RETENTION_DAYS: Dispatched entry retention (default: 30)
        GATEWAY_OUTBOX_BATCH_SIZE: Entries per dispatch sweep (default: 100)
        GATEWAY_OUTBOX_DISPATCH_TIMEOUT_SECONDS: Per-send timeout (default: 30)
        GATEWAY_OUTBOX_DISPATCH_CONCURRENCY: Concurrent sends (default: 10)
        GATEWAY_OUTBOX_POLL_INTERVAL_SECONDS: Sweep period (default: 30)
    """

    model_config = SettingsConfigDict(
        env_prefix="GATEWAY_OUTBOX_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    max_retries: int = Field(
        default=3,
        description="Dispatch failures tolerated before an entry is abandoned",
        ge=0,
    )
    retry_delay_seconds: float = Field(
        default=30.0,
        description="Base delay between dispatch attempts",
        ge=0,
    )
    cleanup_retention_days: int = Field(
        default=30,
        description="Days to keep dispatched entries",
        ge=1,
    )
    batch_size: int = Field(
        default=100,
        description="Entries loaded per dispatch sweep",
        ge=1,
        le=10000,
    )
    dispatch_timeout_seconds: float = Field(
        default=30.0,
        description="Timeout for a single transport send",
        gt=0,
    )
    dispatch_concurrency: int = Field(
        default=10,
        description="Maximum concurrent transport sends per sweep",
        ge=1,
        le=100,
    )
    poll_interval_seconds: float = Field(
        default=30.0,
        description="Seconds between dispatch sweeps",
        gt=0,
    )


class IdempotencySettings(BaseSettings):
    """Idempotency guard settings.

    Environment variables:
        GATEWAY_IDEMPOTENCY_TTL_HOURS: Duplicate suppression window (default: 24)
    """

    model_config = SettingsConfigDict(
        env_prefix="GATEWAY_IDEMPOTENCY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    ttl_hours: int = Field(
        default=24,
        description="Hours during which a processed payload counts as a duplicate",
        ge=1,
        le=8760,
    )


class DeliverySinkSettings(BaseSettings):
    """Downstream delivery endpoint settings.

    Environment variables:
        GATEWAY_SINK_ENDPOINT_URL: Endpoint receiving delivered payloads
        GATEWAY_SINK_TIMEOUT_SECONDS: Request timeout (default: 30)
        GATEWAY_SINK_CONTENT_TYPE: Content type of the request body (default: text/plain)
    """

    model_config = SettingsConfigDict(
        env_prefix="GATEWAY_SINK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    endpoint_url: str = Field(
        default="http://localhost:8080/messages",
        description="Endpoint receiving delivered payloads",
    )
    timeout_seconds: float = Field(
        default=30.0,
        description="Request timeout in seconds",
        gt=0,
    )
    content_type: str = Field(
        default="text/plain",
        description="Content type of the request body",
    )


class ConsumerSettings(BaseSettings):
    """Processing queue consumer settings.

    Environment variables:
        GATEWAY_CONSUMER_MAX_MESSAGES_PER_BATCH: Leases per sweep (default: 16)
        GATEWAY_CONSUMER_VISIBILITY_TIMEOUT_MINUTES: Lease length (default: 5.0)
        GATEWAY_CONSUMER_POLL_INTERVAL_SECONDS: Sweep period (default: 10)
    """

    model_config = SettingsConfigDict(
        env_prefix="GATEWAY_CONSUMER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    max_messages_per_batch: int = Field(default=16, ge=1, le=32)
    visibility_timeout_minutes: float = Field(default=5.0, gt=0)
    poll_interval_seconds: float = Field(default=10.0, gt=0)


class Settings(BaseSettings):
    """Main application settings aggregating all configuration sections."""

    model_config = SettingsConfigDict(
        env_prefix="GATEWAY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application metadata
    app_name: str = Field(default="Delivery Gateway", description="Application name")
    debug: bool = Field(default=False, description="Debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    @model_validator(mode="after")
    def validate_log_level(self) -> "Settings":
        """Normalize and validate the log level name."""
        level = self.log_level.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {self.log_level}")
        self.log_level = level
        return self

    @property
    def database(self) -> DatabaseSettings:
        """Get database settings."""
        return get_database_settings()

    @property
    def retry(self) -> RetrySettings:
        """Get poison queue retry settings."""
        return get_retry_settings()

    @property
    def outbox(self) -> OutboxSettings:
        """Get outbox settings."""
        return get_outbox_settings()

    @property
    def idempotency(self) -> IdempotencySettings:
        """Get idempotency settings."""
        return get_idempotency_settings()

    @property
    def sink(self) -> DeliverySinkSettings:
        """Get delivery sink settings."""
        return get_sink_settings()

    @property
    def consumer(self) -> ConsumerSettings:
        """Get consumer settings."""
        return get_consumer_settings()


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()


@lru_cache
def get_database_settings() -> DatabaseSettings:
    """Get cached database settings.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return DatabaseSettings()


@lru_cache
def get_retry_settings() -> RetrySettings:
    """Get cached retry settings."""
    return RetrySettings()


@lru_cache
def get_outbox_settings() -> OutboxSettings:
    """Get cached outbox settings."""
    return OutboxSettings()


@lru_cache
def get_idempotency_settings() -> IdempotencySettings:
    """Get cached idempotency settings."""
    return IdempotencySettings()


@lru_cache
def get_sink_settings() -> DeliverySinkSettings:
    """Get cached delivery sink settings."""
    return DeliverySinkSettings()


@lru_cache
def get_consumer_settings() -> ConsumerSettings:
    """Get cached consumer settings."""
    return ConsumerSettings()
