"""
Timezone utility functions for the URide backend.
Instants are stored in UTC; fares and shift times are read in the display
timezone (configurable, default Asia/Kolkata).
"""

from datetime import datetime, timezone
import pytz
from flask import current_app, has_app_context
from typing import Optional

DEFAULT_DISPLAY_TIMEZONE = "Asia/Kolkata"


def get_display_timezone() -> str:
    """
    Get the configured display timezone.
    Reads DISPLAY_TIMEZONE from the Flask config when an app context exists.
    """
    if has_app_context():
        return current_app.config.get("DISPLAY_TIMEZONE", DEFAULT_DISPLAY_TIMEZONE)
    return DEFAULT_DISPLAY_TIMEZONE


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Return `dt` as a timezone-aware UTC datetime.

    SQLite hands DateTime columns back without tzinfo; those values were
    written as UTC, so a naive datetime is taken to be UTC here.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_display_time(dt: datetime) -> datetime:
    """
    Read an instant in the display timezone.

    Naive datetimes are taken to already be display-local wall-clock time,
    which is how callers pass "23:00" without building tzinfo themselves.
    """
    display_tz = pytz.timezone(get_display_timezone())
    if dt.tzinfo is None:
        return display_tz.localize(dt, is_dst=None)
    return dt.astimezone(display_tz)


def convert_display_to_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Convert a datetime to UTC for storage.

    Naive values are display-local wall-clock time, read the same way
    `to_display_time` reads them.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = pytz.timezone(get_display_timezone()).localize(dt, is_dst=None)
    return dt.astimezone(timezone.utc)


def utc_now() -> datetime:
    """
    Get current time in UTC.

    Returns:
        Current datetime in UTC
    """
    return datetime.now(timezone.utc)

