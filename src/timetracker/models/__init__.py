"""Models for the time tracker webhook subsystem.

Webhook Types:
    - WebhookEvent: Closed set of domain events that can trigger webhooks
    - WebhookConfig: User-defined subscription (HTTPS endpoint, events, retry budget)
    - WebhookDelivery: One delivery lineage per (event occurrence, webhook)

Domain Snapshots (read-only inputs, discriminated by ``kind``):
    - TimeEntrySnapshot, ProjectSnapshot, ClientSnapshot
    - ProjectUpdateDiff, ClientUpdateDiff
    - InvoiceData
"""

from .base import format_timestamp, generate_id, utc_now
from .domain import (
    EVENT_PAYLOAD_KINDS,
    ClientSnapshot,
    ClientUpdateDiff,
    DomainSnapshot,
    InvoiceData,
    MonthlyTotals,
    PayloadKind,
    ProjectSnapshot,
    ProjectUpdateDiff,
    TimeEntrySnapshot,
    resolve_hourly_rate,
)
from .webhook import (
    ALL_EVENTS,
    TERMINAL_STATUSES,
    DeliveryStatus,
    WebhookConfig,
    WebhookDelivery,
    WebhookEvent,
)

__all__ = [
    # Helpers
    "format_timestamp",
    "generate_id",
    "utc_now",
    # Webhooks
    "ALL_EVENTS",
    "DeliveryStatus",
    "TERMINAL_STATUSES",
    "WebhookConfig",
    "WebhookDelivery",
    "WebhookEvent",
    # Domain snapshots
    "ClientSnapshot",
    "ClientUpdateDiff",
    "DomainSnapshot",
    "EVENT_PAYLOAD_KINDS",
    "InvoiceData",
    "MonthlyTotals",
    "PayloadKind",
    "ProjectSnapshot",
    "ProjectUpdateDiff",
    "TimeEntrySnapshot",
    "resolve_hourly_rate",
]
