"""
ISO-8601 timestamp helpers.

Timestamps are persisted as strings in the same shape JavaScript's
``Date.toISOString()`` produces (``2024-01-01T12:00:00.000Z``) so records
written by other tools round-trip unchanged.
"""

from datetime import datetime, timezone


def now_iso() -> str:
    """Return the current UTC time as an ISO-8601 string with millisecond precision."""
    stamp = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
    return stamp.replace("+00:00", "Z")


def parse_iso(value: str) -> datetime:
    """
    Parse an ISO-8601 timestamp into an aware datetime.

    Naive timestamps are assumed to be UTC.

    Raises:
        ValueError: If the value is not a full date-time string
    """
    if "T" not in value:
        raise ValueError(f"Timestamp '{value}' has no time component")
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def is_iso_timestamp(value: object) -> bool:
    """Check whether *value* is a string holding a full ISO-8601 date-time."""
    if not isinstance(value, str) or not value:
        return False
    try:
        parse_iso(value)
    except ValueError:
        return False
    return True


def now_millis() -> int:
    """Current wall-clock time in integer milliseconds since the epoch."""
    return int(datetime.now(timezone.utc).timestamp() * 1000)
