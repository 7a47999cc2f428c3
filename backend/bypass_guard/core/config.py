"""Application settings and environment configuration loading."""

from __future__ import annotations

from pathlib import Path
from typing import Self

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

BACKEND_ROOT = Path(__file__).resolve().parents[2]
DEFAULT_ENV_FILE = BACKEND_ROOT / ".env"
LOG_FORMATS = frozenset({"text", "json"})


class Settings(BaseSettings):
    """Typed runtime configuration sourced from environment variables."""

    model_config = SettingsConfigDict(
        # Load `backend/.env` regardless of current working directory.
        env_file=[DEFAULT_ENV_FILE, ".env"],
        env_file_encoding="utf-8",
        extra="ignore",
    )

    environment: str = "dev"
    database_url: str = "sqlite+aiosqlite:///./bypass_guard.db"

    cors_origins: str = ""
    base_url: str = ""

    # Database lifecycle
    db_auto_migrate: bool = False

    # Whapi WhatsApp gateway
    whapi_base_url: str = "https://gate.whapi.cloud"
    whapi_token: str = ""
    whapi_timeout_seconds: float = Field(default=10.0, gt=0)

    # Background queue (notifications)
    rq_redis_url: str = "redis://localhost:6379/0"
    rq_queue_name: str = "bypass-notifications"
    rq_dispatch_throttle_seconds: float = 0.5
    rq_dispatch_max_retries: int = 3
    rq_dispatch_retry_base_seconds: float = 10.0
    rq_dispatch_retry_max_seconds: float = 300.0

    # Recurring jobs (rq-scheduler)
    rq_jobs_queue_name: str = "bypass-jobs"
    process_requests_schedule_id: str = "bypass-process-requests"
    process_requests_interval_seconds: int = Field(default=14400, gt=0)
    reactivate_sensors_schedule_id: str = "bypass-reactivate-sensors"
    reactivate_sensors_interval_seconds: int = Field(default=3600, gt=0)
    notification_worker_schedule_id: str = "bypass-notification-flush"
    notification_worker_interval_seconds: int = Field(default=60, gt=0)

    # Logging
    log_level: str = "INFO"
    log_format: str = "text"
    log_use_utc: bool = False
    request_log_slow_ms: int = Field(default=1000, ge=0)
    request_log_include_health: bool = False

    @model_validator(mode="after")
    def _defaults(self) -> Self:
        self.log_format = self.log_format.strip().lower()
        if self.log_format not in LOG_FORMATS:
            raise ValueError(
                f"LOG_FORMAT must be one of: {', '.join(sorted(LOG_FORMATS))}.",
            )
        self.whapi_base_url = self.whapi_base_url.strip().rstrip("/")
        # In dev, default to applying Alembic migrations at startup to avoid
        # schema drift (e.g. missing newly-added columns).
        if "db_auto_migrate" not in self.model_fields_set and self.environment == "dev":
            self.db_auto_migrate = True
        return self


settings = Settings()
