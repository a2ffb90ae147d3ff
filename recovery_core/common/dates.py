# recovery_core/common/dates.py
from __future__ import annotations

from datetime import date, datetime, timedelta, timezone as dt_timezone

from django.utils import timezone


def utc_today() -> date:
    """
    Calendar day in UTC. All day-offset arithmetic is done on these dates.
    """
    return timezone.now().astimezone(dt_timezone.utc).date()


def as_utc_date(value) -> date | None:
    """
    Normalise a date/datetime to a UTC calendar date.
    Naive datetimes are treated as UTC.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        if timezone.is_naive(value):
            return value.date()
        return value.astimezone(dt_timezone.utc).date()
    if isinstance(value, date):
        return value
    raise TypeError(f"Expected date or datetime, got {type(value).__name__}")


def add_days(anchor: date, days: int) -> date:
    return anchor + timedelta(days=int(days))


def days_between(start: date, end: date) -> int:
    """Whole days from start to end (negative when end is before start)."""
    return (end - start).days
