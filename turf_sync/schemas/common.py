"""
Common Schema Types
===================

Bounded Context: Shared Data Structures

Types:
- Timestamp: ISO 8601 timestamp wrapper (updatedAt fields)
- created_at_to_millis(): normalises the createdAt representations a
  remote document may carry
"""

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict

SCHEMA_VERSION = "1.0"


@dataclass(frozen=True)
class Timestamp:
    """
    Immutable ISO 8601 timestamp wrapper.

    Attributes:
        value: ISO 8601 formatted timestamp string

    Example:
        >>> ts = Timestamp.now()
        >>> ts.value
        '2026-03-02T15:30:45.123456+00:00'
    """
    value: str

    @classmethod
    def now(cls) -> 'Timestamp':
        """Create timestamp from current time (UTC)."""
        return cls(value=datetime.now(timezone.utc).isoformat())

    @classmethod
    def from_millis(cls, millis: int) -> 'Timestamp':
        return cls(value=datetime.fromtimestamp(millis / 1000.0, tz=timezone.utc).isoformat())

    def to_datetime(self) -> datetime:
        """Parse to an aware datetime (naive values are taken as UTC).

        Raises:
            ValueError: If timestamp format invalid
        """
        dt = datetime.fromisoformat(self.value.replace('Z', '+00:00'))
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt

    def to_millis(self) -> int:
        return int(round(self.to_datetime().timestamp() * 1000))

    def to_dict(self) -> str:
        """Serialize to ISO string."""
        return self.value


def created_at_to_millis(value: Any, default: int) -> int:
    """
    Decode a remote createdAt field to epoch milliseconds.

    Accepted forms:
        1700000000000                               number (epoch ms)
        "2026-03-02T15:30:45Z"                      ISO 8601 string
        {"seconds": 1700000000, "nanoseconds": 0}   server timestamp mapping

    Args:
        value: Raw field value
        default: Returned when value is missing or unreadable

    Returns:
        Epoch milliseconds
    """
    if isinstance(value, bool) or value is None:
        return default
    if isinstance(value, (int, float)):
        return int(value) if math.isfinite(value) else default
    if isinstance(value, str):
        try:
            return Timestamp(value=value).to_millis()
        except ValueError:
            return default
    if isinstance(value, dict):
        return _server_timestamp_to_millis(value, default)
    return default


def _server_timestamp_to_millis(value: Dict[str, Any], default: int) -> int:
    seconds = value.get('seconds', value.get('_seconds'))
    nanos = value.get('nanoseconds', value.get('_nanoseconds', 0))
    try:
        return int(seconds) * 1000 + int(nanos) // 1_000_000
    except (TypeError, ValueError):
        return default
