from __future__ import annotations

from datetime import date, datetime, time, timezone


def utcnow() -> datetime:
    """Naive UTC timestamp, the form stored in DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_datetime(value: date | datetime) -> datetime:
    """Promote a date to midnight; strip tzinfo from aware datetimes (after moving to UTC)."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    return datetime.combine(value, time(0, 0))


def as_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return as_datetime(value).date()
    return value


def start_of_day(value: date | datetime) -> datetime:
    return datetime.combine(as_date(value), time(0, 0))


def epoch_ms(value: date | datetime) -> float:
    dt = as_datetime(value).replace(tzinfo=timezone.utc)
    return dt.timestamp() * 1000
