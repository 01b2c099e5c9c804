"""Time handling helpers."""

from .timestamps import (
    ensure_utc,
    format_in_timezone,
    format_timestamp,
    parse_iso_datetime,
    utc_now,
)

__all__ = [
    "utc_now",
    "ensure_utc",
    "parse_iso_datetime",
    "format_timestamp",
    "format_in_timezone",
]
