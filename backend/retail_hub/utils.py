"""
Utility functions: UTC clock, timestamp parsing, reporting period boundaries.
All datetimes stored and compared by the app are naive UTC.
"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Optional

PERIODS = ("day", "week", "month")


def utcnow() -> datetime:
    """Current time as naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_datetime(value: Any) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp from an external payload into naive UTC.
    Accepts a trailing 'Z' and explicit offsets; returns None for empty input.
    Raises ValueError for anything unparseable.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def to_float(value: Any) -> float:
    """Amount column to float; None and blanks count as 0."""
    if value is None or value == "":
        return 0.0
    if isinstance(value, Decimal):
        return float(value)
    return float(value)


def period_start(period: str, now: Optional[datetime] = None) -> datetime:
    """
    Start boundary for a reporting period:
    day = midnight today, week = most recent Sunday midnight, month = first of month.
    """
    now = now or utcnow()
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == "day":
        return midnight
    if period == "week":
        # weekday(): Monday=0 .. Sunday=6
        return midnight - timedelta(days=(now.weekday() + 1) % 7)
    if period == "month":
        return midnight.replace(day=1)
    raise ValueError(f"Invalid period '{period}'. Must be day, week, or month")


def week_bounds(now: Optional[datetime] = None) -> tuple[datetime, datetime]:
    """Sunday 00:00 to Saturday 23:59:59.999999 of the current week."""
    start = period_start("week", now)
    end = start + timedelta(days=7) - timedelta(microseconds=1)
    return start, end


def iso_week_label(day: datetime) -> tuple[int, int]:
    """(ISO year, ISO week number) for a date."""
    iso = day.isocalendar()
    return iso[0], iso[1]
