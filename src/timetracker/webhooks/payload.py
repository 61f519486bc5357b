"""Webhook payload construction.

Turns an event kind and its domain snapshot into the JSON document sent to
every subscribed webhook:

    {"event": "time_entry_created", "timestamp": "2024-01-15T10:30:00Z", "data": {...}}

Each snapshot variant has its own serializer, selected through
``EVENT_PAYLOAD_KINDS`` rather than by inspecting the data's type.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol

from timetracker.exceptions import PayloadError
from timetracker.models import (
    EVENT_PAYLOAD_KINDS,
    ClientSnapshot,
    ClientUpdateDiff,
    InvoiceData,
    MonthlyTotals,
    PayloadKind,
    ProjectSnapshot,
    ProjectUpdateDiff,
    TimeEntrySnapshot,
    WebhookEvent,
    format_timestamp,
    utc_now,
)
from timetracker.periods import local_wall_time

from .signing import encode_body

if TYPE_CHECKING:
    from timetracker.models import DomainSnapshot

logger = logging.getLogger(__name__)

EMPTY_PAYLOAD = "{}"


class EntryAggregates(Protocol):
    """Read-only aggregate queries the builder needs from the store."""

    async def total_minutes_for_project(self, project_id: str) -> int: ...

    async def monthly_totals(self, moment: datetime) -> MonthlyTotals: ...


Serializer = Callable[[Any, datetime], Awaitable[dict[str, Any]]]


def _client_summary(client: ClientSnapshot | None) -> dict[str, Any]:
    return {
        "id": client.id if client else "",
        "name": client.name if client else "",
        "hourlyRate": client.hourly_rate if client else 0.0,
    }


class PayloadBuilder:
    """Builds the serialized event envelope for a domain event.

    Example:
        ```python
        builder = PayloadBuilder(storage)
        body = await builder.build(WebhookEvent.TIME_ENTRY_CREATED, entry)
        ```
    """

    def __init__(self, storage: EntryAggregates) -> None:
        """Initialize the builder.

        Args:
            storage: Store answering project and monthly aggregate queries.
        """
        self._storage = storage
        self._serializers: dict[PayloadKind, Serializer] = {
            "time_entry": self._time_entry_data,
            "project": self._project_data,
            "client": self._client_data,
            "project_update": self._project_update_data,
            "client_update": self._client_update_data,
            "invoice": self._invoice_data,
        }

    async def build(
        self,
        event: WebhookEvent,
        data: DomainSnapshot,
        now: datetime | None = None,
    ) -> str:
        """Build the JSON payload for an event.

        Args:
            event: Event kind being dispatched.
            data: Snapshot variant the event expects.
            now: Build time. Defaults to the current UTC time.

        Returns:
            UTF-8 JSON string, or "{}" if the data cannot be represented as JSON.

        Raises:
            PayloadError: If ``data`` is not the variant mapped to ``event``.
        """
        expected = EVENT_PAYLOAD_KINDS[event]
        actual = getattr(data, "kind", type(data).__name__)
        if actual != expected:
            raise PayloadError(f"event {event.value} expects {expected} data, got {actual}")

        now = now or utc_now()
        body = await self._serializers[expected](data, now)
        envelope = {
            "event": event.value,
            "timestamp": format_timestamp(now),
            "data": body,
        }
        return self.serialize(envelope)

    @staticmethod
    def serialize(envelope: dict[str, Any]) -> str:
        """Encode an envelope as compact JSON, degrading to "{}" on failure."""
        try:
            text = json.dumps(
                envelope,
                ensure_ascii=False,
                allow_nan=False,
                separators=(",", ":"),
            )
            encode_body(text)
        except (TypeError, ValueError) as e:
            logger.error("Payload serialization failed for %s: %s", envelope.get("event"), e)
            return EMPTY_PAYLOAD
        return text

    # -- aggregates --------------------------------------------------------

    async def _project_total_minutes(self, project_id: str) -> int:
        if not project_id:
            return 0
        try:
            return await self._storage.total_minutes_for_project(project_id)
        except Exception as e:
            logger.warning("Project total unavailable for %s: %s", project_id, e)
            return 0

    async def _monthly_totals(self, now: datetime) -> MonthlyTotals:
        try:
            return await self._storage.monthly_totals(local_wall_time(now))
        except Exception as e:
            logger.warning("Monthly totals unavailable: %s", e)
            return MonthlyTotals()

    # -- serializers -------------------------------------------------------

    async def _time_entry_data(self, entry: TimeEntrySnapshot, now: datetime) -> dict[str, Any]:
        project = entry.project
        total_minutes = await self._project_total_minutes(project.id if project else "")
        monthly = await self._monthly_totals(now)

        return {
            "id": entry.id,
            "description": entry.description,
            "startTime": format_timestamp(entry.start_time),
            "endTime": format_timestamp(entry.end_time),
            "duration": entry.duration,
            "durationInHours": entry.duration_hours,
            "isRunning": entry.is_running,
            "isManual": entry.is_manual,
            "createdAt": format_timestamp(entry.created_at),
            "updatedAt": format_timestamp(entry.updated_at),
            "hourlyRate": entry.effective_hourly_rate,
            "earnings": entry.earnings,
            "totalHoursThisMonth": monthly.total_hours,
            "totallyEarnedThisMonth": monthly.total_earnings,
            "client": _client_summary(entry.client),
            "project": {
                "id": project.id if project else "",
                "name": project.name if project else "",
                "description": project.description if project else "",
                "hourlyRate": project.hourly_rate if project else 0.0,
                "totalTime": total_minutes,
                "totalTimeInHours": total_minutes / 60.0,
            },
        }

    async def _project_data(self, project: ProjectSnapshot, now: datetime) -> dict[str, Any]:
        return {
            "id": project.id,
            "name": project.name,
            "description": project.description,
            "hourlyRate": project.hourly_rate,
            "isActive": project.is_active,
            "createdAt": format_timestamp(project.created_at),
            "updatedAt": format_timestamp(project.updated_at),
            "client": _client_summary(project.client),
        }

    async def _project_update_data(
        self, diff: ProjectUpdateDiff, now: datetime
    ) -> dict[str, Any]:
        project = diff.project
        return {
            "id": project.id,
            "isActive": project.is_active,
            "createdAt": format_timestamp(project.created_at),
            "updatedAt": format_timestamp(project.updated_at),
            "client": _client_summary(project.client),
            "oldValues": {
                "name": diff.old_name,
                "description": diff.old_description,
                "hourlyRate": diff.old_hourly_rate,
            },
            "newValues": {
                "name": project.name,
                "description": project.description,
                "hourlyRate": project.hourly_rate,
            },
        }

    async def _client_data(self, client: ClientSnapshot, now: datetime) -> dict[str, Any]:
        return {
            "id": client.id,
            "name": client.name,
            "hourlyRate": client.hourly_rate,
            "color": client.color,
            "isActive": client.is_active,
            "createdAt": format_timestamp(client.created_at),
            "updatedAt": format_timestamp(client.updated_at),
        }

    async def _client_update_data(self, diff: ClientUpdateDiff, now: datetime) -> dict[str, Any]:
        client = diff.client
        return {
            "id": client.id,
            "isActive": client.is_active,
            "createdAt": format_timestamp(client.created_at),
            "updatedAt": format_timestamp(client.updated_at),
            "oldValues": {
                "name": diff.old_name,
                "hourlyRate": diff.old_hourly_rate,
                "color": diff.old_color,
            },
            "newValues": {
                "name": client.name,
                "hourlyRate": client.hourly_rate,
                "color": client.color,
            },
        }

    async def _invoice_data(self, invoice: InvoiceData, now: datetime) -> dict[str, Any]:
        return invoice.data
