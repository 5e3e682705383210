"""Date manipulation utilities"""

from datetime import datetime, timedelta, timezone

ONE_DAY = timedelta(days=1)


def utcnow() -> datetime:
    """Current instant as a timezone-aware UTC datetime"""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC, convert aware ones to UTC"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def whole_days_between(start: datetime, end: datetime) -> int:
    """Number of complete 24h periods from start to end (negative if end precedes start)"""
    return (as_utc(end) - as_utc(start)) // ONE_DAY


def add_days(from_dt: datetime, days: int) -> datetime:
    """Add calendar days to an instant"""
    return as_utc(from_dt) + timedelta(days=days)
