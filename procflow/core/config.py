"""Application configuration (settings and environment).

Single source of truth for all configuration. Uses pydantic-settings
with .env support. Values are validated at load time; the database URL is
only required once a session is requested, so the engine can be used as a
library (and tested) without a database.
"""

from functools import lru_cache

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Storage calls take at most this many ids in one IN clause.
MAX_BULK_CHUNK_SIZE = 50


class Settings(BaseSettings):
    """Application settings loaded from environment and .env."""

    # App
    app_name: str = "procflow"
    app_version: str = "1.0.0"
    debug: bool = False

    # Database (SQLAlchemy async + Alembic)
    database_url: str = ""
    database_echo: bool = False
    db_pool_size: int | None = None
    db_max_overflow: int | None = None
    db_command_timeout: int | None = None

    # HTTP
    allowed_origins: str = "http://localhost:3000,http://localhost:8080"
    # Authentication is external; the gateway forwards the caller id in this header.
    actor_header_name: str = "X-User-ID"

    # Engine
    bulk_chunk_size: int = MAX_BULK_CHUNK_SIZE
    emitter_timeout_seconds: float = 5.0

    # Redis event transport
    redis_enabled: bool = False
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0
    redis_password: SecretStr | None = None
    event_channel_prefix: str = "workflow_events"

    # OpenTelemetry
    telemetry_enabled: bool = False
    telemetry_exporter: str = "console"
    telemetry_otlp_endpoint: str | None = None
    telemetry_sample_rate: float = 1.0
    telemetry_environment: str = "development"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    @model_validator(mode="after")
    def validate_ranges(self) -> "Settings":
        """Reject values the engine cannot honour.

        - bulk_chunk_size must be within 1..MAX_BULK_CHUNK_SIZE.
        - emitter_timeout_seconds must be positive.
        - telemetry_sample_rate must be within 0.0..1.0.
        - telemetry_exporter "otlp" requires TELEMETRY_OTLP_ENDPOINT.
        """
        if not 1 <= self.bulk_chunk_size <= MAX_BULK_CHUNK_SIZE:
            raise ValueError(
                f"bulk_chunk_size must be between 1 and {MAX_BULK_CHUNK_SIZE}, "
                f"got: {self.bulk_chunk_size}"
            )
        if self.emitter_timeout_seconds <= 0:
            raise ValueError("emitter_timeout_seconds must be greater than 0")
        if not 0.0 <= self.telemetry_sample_rate <= 1.0:
            raise ValueError(
                f"telemetry_sample_rate must be between 0.0 and 1.0, "
                f"got: {self.telemetry_sample_rate}"
            )
        if (
            self.telemetry_enabled
            and self.telemetry_exporter == "otlp"
            and not self.telemetry_otlp_endpoint
        ):
            raise ValueError(
                "TELEMETRY_OTLP_ENDPOINT is required when telemetry_exporter is 'otlp'."
            )
        return self


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings (single instance per process).

    Validation runs on first call, not at import time. In tests, call
    get_settings.cache_clear() before overriding env vars so the next
    get_settings() uses the new values.

    Returns:
        Loaded and validated Settings instance.
    """
    return Settings()
