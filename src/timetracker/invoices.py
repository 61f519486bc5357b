"""Monthly invoice generation.

Groups a month's time entries by project and fires one
``on_invoice_created`` event per billable project. Amounts are left to the
receiving system; the document carries the tracked time and the rates.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Iterable
from datetime import datetime
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from timetracker.models import InvoiceData, TimeEntrySnapshot, WebhookEvent
from timetracker.periods import local_wall_time, month_bounds

if TYPE_CHECKING:
    from timetracker.storage import TimeTrackerStorage
    from timetracker.webhooks import WebhookDispatcher

logger = logging.getLogger(__name__)

# Projects with this many tracked minutes or fewer are not invoiced.
MIN_BILLABLE_MINUTES = 1.0


def _new_invoice_id() -> str:
    return str(uuid4()).upper()


def round_to_quarter_hour(hours: float) -> float:
    """Round hours to the nearest 0.25, halves rounding up."""
    return math.floor(hours * 4 + 0.5) / 4


def month_label(month_offset: int) -> str:
    return "this_month" if month_offset == 0 else "last_month"


def _epoch(value: datetime | None) -> float:
    return value.timestamp() if value is not None else 0


def build_monthly_invoices(
    entries: Iterable[TimeEntrySnapshot],
    month_offset: int,
    now: datetime,
    id_factory: Callable[[], str] | None = None,
) -> list[InvoiceData]:
    """Build one invoice document per project for a calendar month.

    Args:
        entries: Time entries that started in the month. Entries without a
            project, or whose project has no client, are ignored.
        month_offset: 0 for the month containing ``now``, -1 for the previous one.
        now: Creation time. Its timezone decides the month boundaries.
        id_factory: Invoice ID generator. Defaults to uppercase UUID4 strings.

    Returns:
        Invoice snapshots in the order projects first appear.
    """
    new_id = id_factory or _new_invoice_id
    start, end = month_bounds(now, month_offset)

    by_project: dict[str, list[TimeEntrySnapshot]] = {}
    for entry in entries:
        if entry.project is None:
            continue
        by_project.setdefault(entry.project.id, []).append(entry)

    invoices: list[InvoiceData] = []
    for project_entries in by_project.values():
        project_entries.sort(key=lambda e: _epoch(e.start_time))
        project = project_entries[0].project
        client = project.client if project else None
        if project is None or client is None:
            continue

        total_minutes = float(sum(e.duration for e in project_entries))
        if total_minutes <= MIN_BILLABLE_MINUTES:
            logger.debug("Skipping project %s: %.0f minutes tracked", project.id, total_minutes)
            continue

        total_hours = total_minutes / 60.0
        document: dict[str, Any] = {
            "invoiceId": new_id(),
            "createdAt": now.timestamp(),
            "month": month_label(month_offset),
            "client": {
                "id": client.id,
                "name": client.name,
                "hourlyRate": client.hourly_rate,
            },
            "project": {
                "id": project.id,
                "name": project.name,
                "description": project.description,
                "hourlyRate": project.hourly_rate,
            },
            "timeEntries": [
                {
                    "id": e.id,
                    "description": e.description,
                    "startTime": _epoch(e.start_time),
                    "endTime": _epoch(e.end_time),
                    "duration": float(e.duration),
                }
                for e in project_entries
            ],
            "summary": {
                "totalTimeMinutes": total_minutes,
                "totalTimeHours": total_hours,
                "totalTimeHoursRounded": round_to_quarter_hour(total_hours),
                "totalEntries": len(project_entries),
                "startDate": start.timestamp(),
                "endDate": end.timestamp(),
            },
        }
        invoices.append(InvoiceData(data=document))

    return invoices


async def create_invoices_for_month(
    storage: TimeTrackerStorage,
    dispatcher: WebhookDispatcher,
    month_offset: int = 0,
    now: datetime | None = None,
) -> int:
    """Fire ``on_invoice_created`` for every billable project of a month.

    Args:
        storage: Store holding the time entries.
        dispatcher: Dispatcher delivering the invoice events.
        month_offset: 0 for this month, -1 for last month.
        now: Reference time. Its timezone decides the month. Defaults to the
            current wall-clock time in the calendar zone.

    Returns:
        Number of invoices triggered.
    """
    now = now or local_wall_time()
    start, end = month_bounds(now, month_offset)
    entries = await storage.list_time_entries(start=start, end=end)

    invoices = build_monthly_invoices(entries, month_offset, now)
    for invoice in invoices:
        await dispatcher.trigger(WebhookEvent.INVOICE_CREATED, invoice)

    logger.info(
        "Created %d invoices for %s (%d entries)",
        len(invoices),
        start.strftime("%Y-%m"),
        len(entries),
    )
    return len(invoices)
