"""Job payload access."""

from typing import Any, Mapping, Optional


def payload_str(data: Optional[Mapping[str, Any]], key: str) -> Optional[str]:
    """Read a payload field as a non-empty string, or None when missing or blank."""
    if not data:
        return None
    value = data.get(key)
    if value is None or isinstance(value, (dict, list, bool)):
        return None
    text = str(value).strip()
    return text or None
