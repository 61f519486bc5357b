"""Time entry storage and read-only aggregates.

Time entries are written by the domain layer. The webhook subsystem only
reads them to enrich payloads (project totals, monthly totals) and to
build invoices.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from qdrant_client import models

from timetracker.models import MonthlyTotals, TimeEntrySnapshot
from timetracker.periods import month_bounds

from .base import match
from .retry import storage_retry

logger = logging.getLogger(__name__)


class TimeEntryMixin:
    """Mixin providing time entry storage and aggregate queries."""

    _upsert: Any
    _retrieve: Any
    _delete_ids: Any
    _scroll_all: Any
    _model_to_payload: Any
    _payload_to_model: Any

    @storage_retry
    async def store_time_entry(self, entry: TimeEntrySnapshot) -> str:
        """Insert or replace a time entry.

        Returns:
            The time entry ID.
        """
        payload = self._model_to_payload(
            entry,
            project_id=entry.project.id if entry.project else None,
            start=entry.start_time.timestamp() if entry.start_time else None,
        )
        await self._upsert("time_entries", entry.id, payload)
        return entry.id

    async def get_time_entry(self, entry_id: str) -> TimeEntrySnapshot | None:
        """Get a time entry by ID."""
        payload = await self._retrieve("time_entries", entry_id)
        if payload is None:
            return None
        entry: TimeEntrySnapshot = self._payload_to_model(payload, TimeEntrySnapshot)
        return entry

    @storage_retry
    async def delete_time_entry(self, entry_id: str) -> None:
        """Delete a time entry."""
        await self._delete_ids("time_entries", [entry_id])

    async def list_time_entries(
        self,
        project_id: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[TimeEntrySnapshot]:
        """List time entries ordered by start time.

        Args:
            project_id: Only entries of this project.
            start: Only entries starting at or after this time.
            end: Only entries starting before this time.
        """
        conditions: list[models.Condition] = []
        if project_id is not None:
            conditions.append(match("idx_project_id", project_id))
        if start is not None or end is not None:
            conditions.append(
                models.FieldCondition(
                    key="idx_start",
                    range=models.Range(
                        gte=start.timestamp() if start else None,
                        lt=end.timestamp() if end else None,
                    ),
                )
            )

        scroll_filter = models.Filter(must=conditions) if conditions else None
        payloads = await self._scroll_all("time_entries", scroll_filter)
        entries: list[TimeEntrySnapshot] = [
            self._payload_to_model(p, TimeEntrySnapshot) for p in payloads
        ]
        entries.sort(key=lambda e: (e.start_time is None, e.start_time or datetime.min))
        return entries

    async def total_minutes_for_project(self, project_id: str) -> int:
        """Total tracked minutes for a project across all time."""
        if not project_id:
            return 0
        entries = await self.list_time_entries(project_id=project_id)
        return sum(entry.duration for entry in entries)

    async def monthly_totals(self, moment: datetime) -> MonthlyTotals:
        """Hours and earnings of entries starting in the month containing ``moment``.

        The calendar month is taken in ``moment``'s timezone. Earnings use each
        entry's effective hourly rate.
        """
        start, end = month_bounds(moment)
        entries = await self.list_time_entries(start=start, end=end)

        total_minutes = sum(entry.duration for entry in entries)
        total_earnings = sum(entry.earnings for entry in entries)
        logger.debug(
            "Monthly totals for %s: %d minutes, %.2f earned",
            start.strftime("%Y-%m"),
            total_minutes,
            total_earnings,
        )
        return MonthlyTotals(total_hours=total_minutes / 60.0, total_earnings=total_earnings)
