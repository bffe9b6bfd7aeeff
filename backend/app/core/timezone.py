"""Timezone utilities for the barangay's local time (Asia/Manila by default)."""
from datetime import datetime
import pytz

from .config import settings

LOCAL_TIMEZONE = pytz.timezone(settings.LOCAL_TIMEZONE)


def utc_now() -> datetime:
    """Get the current timezone-aware UTC datetime."""
    return datetime.now(pytz.UTC)


def utc_now_iso() -> str:
    """Current UTC timestamp as an ISO 8601 string, for database writes."""
    return utc_now().isoformat()


def to_local(dt: datetime) -> datetime:
    """Convert a datetime to local time, assuming UTC when naive."""
    if dt.tzinfo is None:
        dt = pytz.UTC.localize(dt)
    return dt.astimezone(LOCAL_TIMEZONE)


def format_local_datetime(dt, format_str: str = '%Y-%m-%d %I:%M %p') -> str:
    """Format a datetime (or ISO string) in local time."""
    if isinstance(dt, str):
        dt = datetime.fromisoformat(dt.replace('Z', '+00:00'))
    return to_local(dt).strftime(format_str)
