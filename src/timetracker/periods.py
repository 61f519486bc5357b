"""Calendar period helpers."""

from __future__ import annotations

from datetime import UTC, datetime
from zoneinfo import ZoneInfo

from timetracker.config import settings


def calendar_zone() -> ZoneInfo | None:
    """Configured calendar zone, or None for system local time."""
    return ZoneInfo(settings.timezone) if settings.timezone else None


def local_wall_time(moment: datetime | None = None) -> datetime:
    """``moment`` (default: now) as a wall-clock time in the calendar zone.

    With a configured zone the result is aware. Otherwise it is a naive
    system-local time, which ``month_bounds`` resolves per date so each bound
    carries the UTC offset in force on that day.
    """
    moment = moment or datetime.now(UTC)
    zone = calendar_zone()
    if zone is not None:
        return moment.astimezone(zone)
    return moment.astimezone().replace(tzinfo=None)


def month_bounds(moment: datetime, offset: int = 0) -> tuple[datetime, datetime]:
    """Start (inclusive) and end (exclusive) of a calendar month.

    The month is taken in ``moment``'s own timezone, shifted by ``offset``
    months (``-1`` is the previous month). Naive moments are read as system
    local time and the returned bounds are aware.

    Examples:
        month_bounds(datetime(2024, 1, 15, tzinfo=UTC)) -> (2024-01-01 00:00, 2024-02-01 00:00)
        month_bounds(datetime(2024, 1, 15, tzinfo=UTC), -1) -> (2023-12-01, 2024-01-01)
    """
    index = moment.year * 12 + (moment.month - 1) + offset
    year, month = divmod(index, 12)
    start = moment.replace(
        year=year, month=month + 1, day=1, hour=0, minute=0, second=0, microsecond=0
    )
    next_year, next_month = divmod(index + 1, 12)
    end = start.replace(year=next_year, month=next_month + 1)
    if moment.tzinfo is None:
        return start.astimezone(), end.astimezone()
    return start, end
