"""
Geographic Shapes Module
========================

Immutable value objects for GPS geometry - NO state, NO side effects.

Design:
- Frozen dataclasses (a recorded point never changes)
- Validation at construction (fail fast on impossible coordinates)
- to_dict()/from_dict() for the persisted camelCase wire format
"""

import math
from dataclasses import dataclass
from typing import Any, Dict


@dataclass(frozen=True)
class Point:
    """
    A single recorded GPS position.

    Attributes:
        latitude: Latitude in decimal degrees, [-90, 90]
        longitude: Longitude in decimal degrees, [-180, 180]
        timestamp: Unix epoch milliseconds

    Example:
        >>> p = Point(latitude=45.0, longitude=7.0, timestamp=1_700_000_000_000)
        >>> p.to_dict()
        {'latitude': 45.0, 'longitude': 7.0, 'timestamp': 1700000000000}
    """

    latitude: float
    longitude: float
    timestamp: int = 0

    def __post_init__(self):
        """Validate coordinate ranges."""
        if not math.isfinite(self.latitude) or not -90.0 <= self.latitude <= 90.0:
            raise ValueError(f"latitude must be in [-90, 90], got {self.latitude}")
        if not math.isfinite(self.longitude) or not -180.0 <= self.longitude <= 180.0:
            raise ValueError(f"longitude must be in [-180, 180], got {self.longitude}")

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            'latitude': self.latitude,
            'longitude': self.longitude,
            'timestamp': self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], default_timestamp: int = 0) -> 'Point':
        """Deserialize from dict.

        Args:
            data: Dictionary with latitude, longitude and optional timestamp
            default_timestamp: Used when the record carries no timestamp

        Returns:
            Point instance

        Raises:
            ValueError: If data is not a mapping, or coordinates are missing or invalid
        """
        if not isinstance(data, dict):
            raise ValueError(f"Point must be an object, got {type(data).__name__}")
        try:
            timestamp = data.get('timestamp')
            return cls(
                latitude=float(data['latitude']),
                longitude=float(data['longitude']),
                timestamp=int(timestamp) if timestamp is not None else default_timestamp,
            )
        except KeyError as e:
            raise ValueError(f"Missing required Point field: {e}")
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid Point data: {e}")


@dataclass(frozen=True)
class BoundingBox:
    """
    Axis-aligned latitude/longitude box.

    An empty polygon produces an inverted box (min=+inf, max=-inf) that
    overlaps nothing.
    """

    min_lat: float
    min_lon: float
    max_lat: float
    max_lon: float

    def overlaps(self, other: 'BoundingBox') -> bool:
        """Standard AABB intersection test (touching edges count as overlap)."""
        return not (
            self.max_lat < other.min_lat
            or self.min_lat > other.max_lat
            or self.max_lon < other.min_lon
            or self.min_lon > other.max_lon
        )

    @property
    def is_empty(self) -> bool:
        return self.min_lat > self.max_lat or self.min_lon > self.max_lon
