"""Timestamp utilities for UTC handling and business-timezone formatting.

Everything is stored and compared in UTC. Conversion to the business
timezone happens only when a date or time is rendered into a message.
"""

from datetime import datetime, timezone, tzinfo
from typing import Optional, Union
from zoneinfo import ZoneInfo


def utc_now() -> datetime:
    """Get current UTC time as timezone-aware datetime.

    Example:
        >>> now = utc_now()
        >>> now.tzinfo == timezone.utc
        True
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Ensure a datetime is timezone-aware and in UTC.

    Naive datetimes are treated as UTC; aware ones are converted.

    Args:
        dt: Datetime to convert (can be None)

    Returns:
        Timezone-aware datetime in UTC, or None if input is None
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def parse_iso_datetime(iso_string: Optional[str]) -> Optional[datetime]:
    """Parse an ISO 8601 datetime string to UTC datetime.

    Accepts a trailing 'Z', explicit offsets, and naive values (treated as UTC).

    Args:
        iso_string: ISO 8601 formatted datetime string

    Returns:
        Timezone-aware datetime in UTC, or None if parsing fails

    Example:
        >>> parse_iso_datetime("2026-02-09T15:00:00Z").hour
        15
    """
    if not iso_string or not iso_string.strip():
        return None

    cleaned = iso_string.strip()
    if cleaned.endswith("Z"):
        cleaned = cleaned[:-1] + "+00:00"

    try:
        return ensure_utc(datetime.fromisoformat(cleaned))
    except ValueError:
        return None


def format_timestamp(dt: Optional[datetime]) -> Optional[str]:
    """Format a datetime as an ISO 8601 UTC string with microseconds and 'Z'.

    This is the storage format for every timestamp column.

    Example:
        >>> format_timestamp(datetime(2026, 2, 9, 15, 0, tzinfo=timezone.utc))
        '2026-02-09T15:00:00.000000Z'
    """
    dt_utc = ensure_utc(dt)
    if dt_utc is None:
        return None
    return dt_utc.strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def format_in_timezone(dt: datetime, tz: Union[str, tzinfo], pattern: str) -> str:
    """Render an instant in the given timezone using a strftime pattern.

    Args:
        dt: Instant to render (naive values are treated as UTC)
        tz: IANA zone name or tzinfo instance
        pattern: strftime pattern, e.g. "%d/%m/%Y" or "%H:%M"

    Returns:
        Formatted local date/time string

    Example:
        >>> format_in_timezone(datetime(2026, 2, 9, 15, 0, tzinfo=timezone.utc), "America/Sao_Paulo", "%H:%M")
        '12:00'
    """
    zone = ZoneInfo(tz) if isinstance(tz, str) else tz
    return ensure_utc(dt).astimezone(zone).strftime(pattern)
