"""
utils/time_utils.py

Purpose: Time and timestamp helpers

- Current time for record stamps
- Conversion between datetimes and sheet cell values
"""

from datetime import datetime, timezone
from typing import Any, Optional


def utcnow() -> datetime:
    """
    Returns the current time as a timezone-aware UTC datetime.
    """
    return datetime.now(timezone.utc)


def to_cell(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes a datetime for storage in a sheet cell (ISO 8601).
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.isoformat()


def parse_cell_datetime(value: Any) -> Optional[datetime]:
    """
    Parses a sheet cell into a datetime.

    Accepts datetimes, ISO strings and epoch milliseconds. Empty cells map
    to None; naive values are treated as UTC.

    Raises:
        ValueError: If the value cannot be interpreted as a timestamp
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)):
        dt = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    else:
        dt = datetime.fromisoformat(str(value))

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt
