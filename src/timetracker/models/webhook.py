"""Webhook models for outbound event notifications.

Provides webhook configuration, the closed set of event kinds, and the
delivery record whose status follows a one-way state machine:

    pending  -> delivered | retrying | failed
    retrying -> delivered | retrying | failed

``delivered`` and ``failed`` are terminal.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, field_validator

from timetracker.exceptions import DeliveryStateError

from .base import generate_id, utc_now


class WebhookEvent(str, Enum):
    """Domain events that can trigger a webhook."""

    TIME_ENTRY_CREATED = "time_entry_created"
    TIME_ENTRY_UPDATED = "time_entry_updated"
    TIME_ENTRY_DELETED = "time_entry_deleted"
    TIME_ENTRY_STARTED = "time_entry_started"
    TIME_ENTRY_STOPPED = "time_entry_stopped"
    PROJECT_CREATED = "project_created"
    PROJECT_UPDATED = "project_updated"
    CLIENT_CREATED = "client_created"
    CLIENT_UPDATED = "client_updated"
    INVOICE_CREATED = "on_invoice_created"


ALL_EVENTS: list[WebhookEvent] = list(WebhookEvent)

DeliveryStatus = Literal["pending", "delivered", "retrying", "failed"]

TERMINAL_STATUSES: frozenset[str] = frozenset({"delivered", "failed"})


class WebhookConfig(BaseModel):
    """A user-defined webhook subscription.

    Attributes:
        id: Unique, immutable identifier.
        name: Display name, unique case-insensitively among webhooks.
        url: HTTPS endpoint receiving events.
        secret: Shared secret for HMAC-SHA256 signatures. None means unsigned.
        events: Event kinds this webhook subscribes to (non-empty).
        is_active: Inactive webhooks receive nothing.
        retry_attempts: Failed attempts allowed before a delivery is failed.
        timeout_ms: Per-request timeout in milliseconds.
        created_at: When the webhook was created.
        updated_at: When the webhook was last modified.
    """

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    id: str = Field(default_factory=lambda: generate_id("whk"))
    name: str = Field(min_length=1, max_length=100, description="Display name")
    url: HttpUrl = Field(description="HTTPS endpoint to receive events")
    secret: str | None = Field(default=None, description="Shared secret for signatures")
    events: list[WebhookEvent] = Field(min_length=1, description="Subscribed event kinds")
    is_active: bool = Field(default=True, description="Whether webhook is active")
    retry_attempts: int = Field(default=3, ge=1, description="Attempt budget")
    timeout_ms: int = Field(default=30000, gt=0, description="Request timeout (ms)")
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("name must not be blank")
        return stripped

    @field_validator("url")
    @classmethod
    def _require_https(cls, value: HttpUrl) -> HttpUrl:
        if value.scheme != "https":
            raise ValueError("webhook URL must use https")
        return value

    @field_validator("secret")
    @classmethod
    def _empty_secret_is_none(cls, value: str | None) -> str | None:
        return value or None

    @field_validator("events")
    @classmethod
    def _dedupe_events(cls, value: list[WebhookEvent]) -> list[WebhookEvent]:
        return list(dict.fromkeys(value))

    @property
    def timeout_seconds(self) -> float:
        """Request timeout in seconds."""
        return self.timeout_ms / 1000.0

    def subscribes_to(self, event: WebhookEvent) -> bool:
        """Check if this webhook is active and subscribed to the event."""
        return self.is_active and event in self.events


class WebhookDelivery(BaseModel):
    """One delivery lineage of a single event occurrence to a single webhook.

    Attributes:
        id: Unique identifier.
        webhook_id: Owning webhook.
        event: Event kind being delivered.
        payload: Serialized JSON body, captured once and never changed.
        status: pending, delivered, retrying or failed.
        attempts: Number of failed HTTP attempts.
        last_attempt_at: When the last HTTP attempt finished.
        next_retry_at: When the next attempt is due (only while retrying).
        response_code: Last HTTP status code received.
        error: Reason for the last failed attempt.
        created_at: When the record was created.
        completed_at: When the record reached a terminal status.
    """

    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=lambda: generate_id("dlv"))
    webhook_id: str = Field(description="ID of the owning webhook")
    event: WebhookEvent = Field(description="Event kind")
    payload: str = Field(frozen=True, description="JSON body sent on every attempt")
    status: DeliveryStatus = Field(default="pending")
    attempts: int = Field(default=0, ge=0)
    last_attempt_at: datetime | None = Field(default=None)
    next_retry_at: datetime | None = Field(default=None)
    response_code: int | None = Field(default=None)
    error: str | None = Field(default=None)
    created_at: datetime = Field(default_factory=utc_now)
    completed_at: datetime | None = Field(default=None)

    @property
    def is_terminal(self) -> bool:
        """True once delivered or failed."""
        return self.status in TERMINAL_STATUSES

    def is_due(self, now: datetime) -> bool:
        """True when a retrying record's next attempt time has passed."""
        return (
            self.status == "retrying"
            and self.next_retry_at is not None
            and self.next_retry_at <= now
        )

    def _ensure_open(self, target: DeliveryStatus) -> None:
        if self.is_terminal:
            raise DeliveryStateError(
                f"delivery {self.id} is {self.status}; cannot move to {target}"
            )

    def mark_delivered(self, response_code: int, at: datetime | None = None) -> WebhookDelivery:
        """Mark delivery as successful."""
        self._ensure_open("delivered")
        now = at or utc_now()
        self.status = "delivered"
        self.response_code = response_code
        self.last_attempt_at = now
        self.next_retry_at = None
        self.completed_at = now
        return self

    def mark_retrying(
        self,
        next_retry_at: datetime,
        error: str,
        response_code: int | None = None,
        at: datetime | None = None,
    ) -> WebhookDelivery:
        """Record a failed attempt and schedule the next one."""
        self._ensure_open("retrying")
        self.status = "retrying"
        self.attempts += 1
        self.last_attempt_at = at or utc_now()
        self.next_retry_at = next_retry_at
        self.response_code = response_code
        self.error = error
        return self

    def mark_failed(
        self,
        error: str,
        response_code: int | None = None,
        at: datetime | None = None,
        count_attempt: bool = True,
    ) -> WebhookDelivery:
        """Mark delivery as permanently failed.

        ``count_attempt`` is False when the record is abandoned without an
        HTTP attempt (e.g. its webhook was deactivated).
        """
        self._ensure_open("failed")
        now = at or utc_now()
        self.status = "failed"
        if count_attempt:
            self.attempts += 1
            self.last_attempt_at = now
            self.response_code = response_code
        self.next_retry_at = None
        self.error = error
        self.completed_at = now
        return self


__all__ = [
    "ALL_EVENTS",
    "DeliveryStatus",
    "TERMINAL_STATUSES",
    "WebhookConfig",
    "WebhookDelivery",
    "WebhookEvent",
]
