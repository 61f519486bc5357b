"""Read-only snapshots of domain entities handed to the webhook subsystem.

The domain layer (clients, projects, time entries, invoices) owns these
records. Webhook code only reads them, and each event kind accepts exactly
one snapshot variant (see ``EVENT_PAYLOAD_KINDS``).
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from .webhook import WebhookEvent

PayloadKind = Literal[
    "time_entry",
    "project",
    "client",
    "project_update",
    "client_update",
    "invoice",
]


class ClientSnapshot(BaseModel):
    """A client as it was when the event fired."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["client"] = "client"
    id: str
    name: str = ""
    hourly_rate: float = Field(default=0.0, ge=0.0)
    color: str = ""
    is_active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ProjectSnapshot(BaseModel):
    """A project as it was when the event fired."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["project"] = "project"
    id: str
    name: str = ""
    description: str = ""
    hourly_rate: float = Field(default=0.0, ge=0.0)
    is_active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None
    client: ClientSnapshot | None = None


def resolve_hourly_rate(
    project: ProjectSnapshot | None,
    client: ClientSnapshot | None,
) -> float:
    """Project rate if positive, else client rate, else zero."""
    project_rate = project.hourly_rate if project is not None else 0.0
    if project_rate > 0.0:
        return project_rate
    return client.hourly_rate if client is not None else 0.0


class TimeEntrySnapshot(BaseModel):
    """A tracked work session.

    Attributes:
        duration: Tracked time in whole minutes.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["time_entry"] = "time_entry"
    id: str
    description: str = ""
    start_time: datetime | None = None
    end_time: datetime | None = None
    duration: int = Field(default=0, ge=0, description="Duration in minutes")
    is_running: bool = False
    is_manual: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None
    client: ClientSnapshot | None = None
    project: ProjectSnapshot | None = None

    @property
    def effective_hourly_rate(self) -> float:
        """Rate used to price this entry."""
        return resolve_hourly_rate(self.project, self.client)

    @property
    def duration_hours(self) -> float:
        """Duration in fractional hours."""
        return self.duration / 60.0

    @property
    def earnings(self) -> float:
        """Duration in hours times the effective hourly rate."""
        return self.duration_hours * self.effective_hourly_rate


class ProjectUpdateDiff(BaseModel):
    """A project after an update, plus the editable fields as they were before."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["project_update"] = "project_update"
    project: ProjectSnapshot
    old_name: str
    old_description: str = ""
    old_hourly_rate: float = 0.0


class ClientUpdateDiff(BaseModel):
    """A client after an update, plus the editable fields as they were before."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["client_update"] = "client_update"
    client: ClientSnapshot
    old_name: str
    old_hourly_rate: float = 0.0
    old_color: str = ""


class InvoiceData(BaseModel):
    """Free-form invoice document sent with ``on_invoice_created``."""

    model_config = ConfigDict(extra="forbid")

    kind: Literal["invoice"] = "invoice"
    data: dict[str, Any] = Field(default_factory=dict)


DomainSnapshot = Annotated[
    TimeEntrySnapshot
    | ProjectSnapshot
    | ClientSnapshot
    | ProjectUpdateDiff
    | ClientUpdateDiff
    | InvoiceData,
    Field(discriminator="kind"),
]

EVENT_PAYLOAD_KINDS: dict[WebhookEvent, PayloadKind] = {
    WebhookEvent.TIME_ENTRY_CREATED: "time_entry",
    WebhookEvent.TIME_ENTRY_UPDATED: "time_entry",
    WebhookEvent.TIME_ENTRY_DELETED: "time_entry",
    WebhookEvent.TIME_ENTRY_STARTED: "time_entry",
    WebhookEvent.TIME_ENTRY_STOPPED: "time_entry",
    WebhookEvent.PROJECT_CREATED: "project",
    WebhookEvent.PROJECT_UPDATED: "project_update",
    WebhookEvent.CLIENT_CREATED: "client",
    WebhookEvent.CLIENT_UPDATED: "client_update",
    WebhookEvent.INVOICE_CREATED: "invoice",
}


class MonthlyTotals(BaseModel):
    """Hours and earnings tracked in one calendar month."""

    model_config = ConfigDict(extra="forbid")

    total_hours: float = 0.0
    total_earnings: float = 0.0


__all__ = [
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
