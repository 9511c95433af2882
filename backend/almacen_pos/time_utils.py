from __future__ import annotations

import calendar
from datetime import datetime, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")


def shift_months(dt: datetime, months: int) -> datetime:
    """Move ``dt`` by whole calendar months, clamping the day to the target month."""
    index = dt.year * 12 + (dt.month - 1) + months
    year, month = divmod(index, 12)
    month += 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def start_of_day(dt: datetime) -> datetime:
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)


def range_start(time_range: str, now: datetime, default: str = "month") -> datetime:
    """Start of a week/month/year window ending at ``now``; unknown ranges use ``default``."""
    if time_range not in ("week", "month", "year"):
        time_range = default
    if time_range == "week":
        return now - timedelta(days=7)
    if time_range == "year":
        return shift_months(now, -12)
    return shift_months(now, -1)
