"""Duration strings used by the worker configuration.

Poll intervals, job leases, retry delays and cache TTLs are written either in
compact form ("3s", "5m", "1h30m", "1d") or as ISO-8601 durations ("PT5M",
"P1D"). A bare integer is read as seconds. Everything resolves to whole
seconds.
"""

import re
from typing import Optional

UNIT_SECONDS = {"d": 86400, "h": 3600, "m": 60, "s": 1}

_ISO_PATTERN = re.compile(
    r"^P(?:(?P<d>\d+)D)?(?:T(?:(?P<h>\d+)H)?(?:(?P<m>\d+)M)?(?:(?P<s>\d+(?:\.\d+)?)S)?)?$"
)
_COMPACT_PATTERN = re.compile(r"^(?:(?P<d>\d+)d)?(?:(?P<h>\d+)h)?(?:(?P<m>\d+)m)?(?:(?P<s>\d+)s)?$")


class DurationParseError(ValueError):
    """Raised when a duration string cannot be parsed or is out of range."""


def parse_duration(duration_str: str) -> int:
    """
    Convert a duration string to seconds.

    Args:
        duration_str: Compact ("5m", "1h30m"), ISO-8601 ("PT5M") or bare seconds ("30")

    Returns:
        Duration in whole seconds (always positive)

    Raises:
        DurationParseError: If the string is empty, malformed or zero

    Examples:
        >>> parse_duration("3s")
        3
        >>> parse_duration("PT5M")
        300
        >>> parse_duration("1h30m")
        5400
    """
    text = re.sub(r"\s+", "", duration_str or "")
    if not text:
        raise DurationParseError("Duration string cannot be empty")

    if text.isdigit():
        seconds = int(text)
    else:
        parts = _match_parts(text)
        if parts is None:
            raise DurationParseError(
                f"Invalid duration: '{duration_str}'. "
                "Use forms like '30s', '5m', '1h30m', '2d' or ISO-8601 such as 'PT5M'"
            )
        seconds = sum(
            int(float(value)) * UNIT_SECONDS[unit]
            for unit, value in parts.items()
            if value is not None
        )

    if seconds == 0:
        raise DurationParseError(f"Duration cannot be zero: '{duration_str}'")

    return seconds


def _match_parts(text: str) -> Optional[dict]:
    if text[0] in "pP":
        match = _ISO_PATTERN.match(text.upper())
    else:
        match = _COMPACT_PATTERN.match(text.lower())
    return match.groupdict() if match else None


def validate_duration_range(
    duration_seconds: int,
    min_seconds: int = 1,
    max_seconds: int = 86400,
    label: str = "Duration",
) -> None:
    """Raise DurationParseError when a duration falls outside [min_seconds, max_seconds]."""
    if duration_seconds < min_seconds:
        raise DurationParseError(
            f"{label} too short: {describe_seconds(duration_seconds)}. "
            f"Minimum is {describe_seconds(min_seconds)}."
        )
    if duration_seconds > max_seconds:
        raise DurationParseError(
            f"{label} too long: {describe_seconds(duration_seconds)}. "
            f"Maximum is {describe_seconds(max_seconds)}."
        )


def describe_seconds(seconds: int) -> str:
    """Render seconds in the largest whole unit, e.g. "5 minutes" or "1 day"."""
    for name, size in (("day", 86400), ("hour", 3600), ("minute", 60)):
        if seconds >= size:
            count = seconds // size
            break
    else:
        name, count = "second", seconds
    return f"{count} {name}{'' if count == 1 else 's'}"
