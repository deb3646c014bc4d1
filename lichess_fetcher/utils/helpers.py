"""Utility helpers."""

from datetime import datetime, timezone
from typing import Any, Optional


def get_timestamp() -> str:
    """Return the current UTC time as an ISO-8601 string with millisecond precision.

    Returns:
        str: Timestamp such as ``2024-05-01T12:00:00.000Z``.
    """
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_positive_int(value: Any) -> Optional[int]:
    """Return a positive integer parsed from ``value`` or ``None`` if invalid."""
    if isinstance(value, bool):
        return None
    try:
        if isinstance(value, (int, float)):
            parsed = int(value)
        elif isinstance(value, str) and value.strip():
            parsed = int(float(value))
        else:
            return None
    except (ValueError, OverflowError):
        return None
    return parsed if parsed > 0 else None


def first_present(*values: Any) -> Any:
    """Return the first value that is neither ``None`` nor a blank string."""
    for value in values:
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None
