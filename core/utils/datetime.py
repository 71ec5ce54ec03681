"""Datetime utilities for BCQ timing calculations."""

from datetime import datetime, timedelta, timezone


def now() -> datetime:
    """Get current datetime in UTC."""
    return datetime.now(timezone.utc)


def ensure_aware(dt: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def hours_between(start: datetime, end: datetime) -> float:
    """
    Calculate number of hours between two datetimes.

    Args:
        start: Start datetime
        end: End datetime

    Returns:
        Number of hours (can be fractional)
    """
    delta = ensure_aware(end) - ensure_aware(start)
    return delta.total_seconds() / 3600


def minutes_between(start: datetime, end: datetime) -> int:
    """Whole minutes between two datetimes, rounded to nearest."""
    delta = ensure_aware(end) - ensure_aware(start)
    return round(delta.total_seconds() / 60)


def is_delayed(link_opened_at: datetime, completed_at: datetime, threshold_hours: int = 24) -> bool:
    """
    Check whether a BCQ was completed later than the allowed window.

    Args:
        link_opened_at: When the candidate first opened the link
        completed_at: When the last answer was submitted
        threshold_hours: Allowed window in hours

    Returns:
        True if strictly more than threshold_hours elapsed
    """
    elapsed = ensure_aware(completed_at) - ensure_aware(link_opened_at)
    return elapsed > timedelta(hours=threshold_hours)
