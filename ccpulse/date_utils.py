"""Shared timestamp parsing and formatting helpers."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Fractional seconds first, then whole seconds. Both require an explicit zone.
_ISO_FORMATS = (
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%Y-%m-%dT%H:%M:%S%z",
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_iso8601(value: Any) -> datetime | None:
    """Parse an internet-style ISO-8601 timestamp into an aware UTC datetime.

    Returns None for anything that is not a string in one of the accepted
    forms, so callers can drop the line instead of handling exceptions.
    """
    if not isinstance(value, str):
        return None
    token = value.strip()
    if not token:
        return None
    for fmt in _ISO_FORMATS:
        try:
            parsed = datetime.strptime(token, fmt)
        except ValueError:
            continue
        return parsed.astimezone(timezone.utc)
    return None


def format_datetime_utc(value: datetime) -> str:
    dt = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def epoch_millis(value: datetime) -> int:
    dt = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    return (dt - _EPOCH) // timedelta(milliseconds=1)


def from_epoch_millis(value: Any) -> datetime | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        return datetime.fromtimestamp(float(value) / 1000.0, timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None
