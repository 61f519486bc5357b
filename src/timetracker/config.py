"""Configuration management for the time tracker."""

import logging
from pathlib import Path
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Time tracker configuration loaded from environment variables.

    All settings can be overridden via environment variables with
    the TIMETRACKER_ prefix. For example:
        TIMETRACKER_QDRANT_PATH=/tmp/timetracker
        TIMETRACKER_WEBHOOK_WORKERS=4
    """

    env: Literal["development", "production", "test"] = Field(
        default="development",
        description="Environment: development, production, or test",
    )

    # Storage
    qdrant_url: str | None = Field(
        default=None,
        description="Qdrant server URL. When unset the embedded local store is used.",
    )
    qdrant_api_key: str | None = Field(
        default=None,
        description="Qdrant API key (server mode only)",
    )
    qdrant_path: str = Field(
        default="~/.timetracker/qdrant",
        description="Directory of the embedded local store",
    )
    collection_prefix: str = Field(
        default="timetracker",
        description="Prefix for collection names",
    )

    # Calendar
    timezone: str | None = Field(
        default=None,
        description="IANA zone for calendar months (invoices, monthly totals). "
        "System local time when unset.",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    log_format: Literal["json", "text"] = Field(
        default="json",
        description="Log output format",
    )

    # Webhook configuration defaults
    webhook_user_agent: str = Field(
        default="EnhancedTimeTracker/1.0",
        description="User-Agent header sent with every webhook request",
    )
    webhook_default_retry_attempts: int = Field(
        default=3,
        ge=1,
        le=20,
        description="Retry budget for new webhooks when none is given",
    )
    webhook_default_timeout_ms: int = Field(
        default=30000,
        gt=0,
        description="Request timeout in milliseconds for new webhooks",
    )
    webhook_name_max_length: int = Field(
        default=100,
        ge=1,
        description="Maximum length of a webhook display name",
    )

    # Delivery pipeline
    webhook_workers: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Number of concurrent delivery workers",
    )
    webhook_queue_size: int = Field(
        default=1000,
        ge=1,
        description=(
            "Capacity of the delivery queue. When full, new deliveries stay "
            "pending and are picked up by the retry sweeper."
        ),
    )
    webhook_sweep_interval_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Seconds between retry sweeps",
    )
    webhook_sweep_batch_size: int = Field(
        default=100,
        ge=1,
        description="Maximum deliveries re-submitted per sweep",
    )
    webhook_stale_pending_seconds: int = Field(
        default=300,
        ge=1,
        description="Pending deliveries older than this are re-submitted by the sweeper",
    )
    webhook_drain_timeout_seconds: float = Field(
        default=10.0,
        ge=0,
        description="Seconds to wait for queued deliveries on shutdown",
    )

    model_config = {
        "env_prefix": "TIMETRACKER_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str | None) -> str | None:
        """Reject zone names the tz database does not know."""
        if v is None:
            return v
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {v}") from e
        return v

    @model_validator(mode="after")
    def validate_pipeline_timings(self) -> "Settings":
        """A pending row still being drained must never look orphaned."""
        if self.webhook_stale_pending_seconds <= self.webhook_drain_timeout_seconds:
            raise ValueError(
                f"webhook_stale_pending_seconds ({self.webhook_stale_pending_seconds}) "
                f"must be greater than webhook_drain_timeout_seconds "
                f"({self.webhook_drain_timeout_seconds})."
            )
        if self.qdrant_url and self.env == "production" and not self.qdrant_url.startswith(
            "https://"
        ):
            logger.warning("Qdrant server URL is not using TLS: %s", self.qdrant_url)
        return self

    @property
    def resolved_qdrant_path(self) -> Path:
        """Embedded store directory with ``~`` expanded."""
        return Path(self.qdrant_path).expanduser()


settings = Settings()
