"""Application configuration using pydantic-settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables and .env file.

    Environment variables take precedence over .env file values.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application settings
    app_name: str = Field(default="EventPulse", description="Application name")
    env: str = Field(default="development", description="Deployment environment")
    host: str = Field(default="0.0.0.0", description="Listen address")
    port: int = Field(default=8080, description="Listen port")
    log_level: str = Field(default="INFO", description="Logging level")
    log_dir: str | None = Field(
        default=None,
        description="Directory for rotating JSON log files (disabled when unset)",
    )

    # Database settings
    database_url: str | None = Field(
        default=None,
        description="Full SQLAlchemy URL; overrides the DB_* parts when set",
    )
    db_host: str = Field(default="localhost", description="PostgreSQL host")
    db_port: int = Field(default=5432, description="PostgreSQL port")
    db_user: str = Field(default="eventpulse", description="PostgreSQL user")
    db_password: str = Field(default="", description="PostgreSQL password")
    db_name: str = Field(default="eventpulse_db", description="PostgreSQL database")
    db_sslmode: str = Field(default="disable", description="PostgreSQL sslmode")
    db_pool_size: int = Field(default=5, description="Idle connections kept in the pool")
    db_max_overflow: int = Field(default=20, description="Connections allowed above pool size")
    db_pool_recycle_seconds: int = Field(default=300, description="Connection lifetime")

    # Broker settings
    broker_backend: Literal["redis", "memory"] = Field(
        default="redis",
        description="Pub/sub backend; 'memory' only fans out within one process",
    )
    redis_addr: str = Field(default="localhost:6379", description="Redis host:port")
    redis_password: str = Field(default="", description="Redis password")
    redis_db: int = Field(default=0, description="Redis logical database")

    # Auth settings
    jwt_secret: str = Field(
        default="",
        description="HS256 signing key; a random per-process key is used when empty",
    )
    jwt_expiration_hours: int = Field(default=24, description="Token lifetime in hours")

    # WebSocket settings
    ws_max_message_size: int = Field(default=1024, description="Inbound frame limit in bytes")
    ws_pong_wait_seconds: int = Field(default=60, description="Read deadline in seconds")
    ws_write_wait_seconds: int = Field(default=10, description="Write deadline in seconds")
    ws_send_buffer: int = Field(default=256, description="Outbound frames queued per socket")

    # Lifecycle settings
    shutdown_grace_seconds: int = Field(default=10, description="Drain budget on shutdown")
    startup_checks: bool = Field(default=True, description="Ping database and broker on startup")
    startup_timeout: int = Field(default=5, description="Startup check timeout in seconds")
    max_retries: int = Field(
        default=3,
        description="Maximum retry attempts for transient errors",
    )

    @property
    def is_production(self) -> bool:
        return self.env.lower() == "production"

    @property
    def sqlalchemy_url(self) -> str:
        """Resolve the async database URL from DATABASE_URL or the DB_* parts."""
        if self.database_url:
            url = self.database_url
            if url.startswith("postgres://"):
                url = "postgresql://" + url[len("postgres://") :]
            if url.startswith("postgresql://"):
                url = "postgresql+asyncpg://" + url[len("postgresql://") :]
            return url

        auth = self.db_user
        if self.db_password:
            auth = f"{self.db_user}:{self.db_password}"
        return f"postgresql+asyncpg://{auth}@{self.db_host}:{self.db_port}/{self.db_name}"

    @property
    def ping_interval(self) -> float:
        """Keepalive period, 90% of the pong wait."""
        return self.ws_pong_wait_seconds * 9 / 10


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings instance (cached for performance)

    Example:
        >>> settings = get_settings()
        >>> print(settings.port)
        8080
    """
    return Settings()


__all__ = ["Settings", "get_settings"]
