"""
Common date/time utility functions for consistent date/time handling across the application

Storage: All dates are stored in UTC in the backend
Display: Dates are converted to the configured display timezone for emails and status messages

This ensures consistency across frontend and backend:
- Frontend sends a calendar date plus an "HH:MM" time for scheduling
- Backend combines them in SCHEDULE_TIMEZONE and stores UTC
- Backend returns UTC ISO strings to frontend
"""

from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo


def as_utc(dt: datetime) -> datetime:
    """
    Convert dt to tz-aware UTC.
    If dt is naive, we treat it as UTC (SQLite hands back naive values).

    Args:
        dt: datetime object (naive or timezone-aware)

    Returns:
        datetime object in UTC timezone
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def utc_now() -> datetime:
    """
    Get current UTC datetime.

    Returns:
        Current datetime in UTC timezone
    """
    return datetime.now(timezone.utc)


def combine_local_date_time(day: date, time_of_day: time, tz_name: str) -> datetime:
    """
    Combine a calendar date and a wall-clock time in `tz_name` into a UTC datetime.

    Example: (2025-03-10, 10:00, "UTC") -> 2025-03-10T10:00:00+00:00
    """
    local = datetime.combine(day, time_of_day.replace(tzinfo=None), tzinfo=ZoneInfo(tz_name))
    return local.astimezone(timezone.utc)


def to_display_tz(dt: datetime, tz_name: str) -> datetime:
    return as_utc(dt).astimezone(ZoneInfo(tz_name))


def format_long_date(dt: datetime) -> str:
    """
    "Monday, March 10, 2025" (no zero padding on the day).
    """
    return f"{dt:%A}, {dt:%B} {dt.day}, {dt.year}"


def format_clock_time(dt: datetime) -> str:
    """
    "10:00 AM" / "09:05 PM".
    """
    return dt.strftime("%I:%M %p")
