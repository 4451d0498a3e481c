"""
Territory Models
================

Immutable territory records.

Design:
- Frozen dataclasses; ownership changes produce new Territory values
  (replace_owners), never in-place edits
- Validation at construction (polygon >= 3 points, unique owner ids)
- to_dict()/from_dict() use the persisted camelCase keys
  (ownerId, createdAt)
"""

import math
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, Optional, Tuple

from turf_engine.geometry import BoundingBox, Point, bounding_box, polygon_area_square_meters
from turf_engine.tracking.modes import ActivityMode

MIN_POLYGON_POINTS = 3


@dataclass(frozen=True)
class Owner:
    """
    One claimant of a territory.

    Attributes:
        owner_id: Device/player identifier
        strength: Claim intensity, >= 0 (capped at 2.0 by arbitration)
    """

    owner_id: str
    strength: float

    def __post_init__(self):
        if not isinstance(self.owner_id, str) or not self.owner_id:
            raise ValueError(f"owner_id must be a non-empty string, got {self.owner_id!r}")
        if not math.isfinite(self.strength) or self.strength < 0:
            raise ValueError(f"strength must be a finite value >= 0, got {self.strength}")

    def with_strength(self, strength: float) -> 'Owner':
        return replace(self, strength=strength)

    def to_dict(self) -> Dict[str, Any]:
        return {'ownerId': self.owner_id, 'strength': self.strength}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Owner':
        try:
            return cls(owner_id=data['ownerId'], strength=float(data['strength']))
        except KeyError as e:
            raise ValueError(f"Missing required Owner field: {e}")
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid Owner data: {e}")


@dataclass(frozen=True)
class Territory:
    """
    A captured, owned polygon.

    Attributes:
        id: Territory identifier (remote document id once confirmed)
        mode: Activity mode of the capturing session
        polygon: Ordered vertices, implicitly closed, >= 3 points
        created_at: Creation time, epoch milliseconds
        owners: Current claimants, unique by owner_id

    Example:
        >>> t = Territory(id="t1", mode=ActivityMode.WALK, polygon=poly,
        ...               created_at=now_ms, owners=(Owner("alice", 1.0),))
        >>> t.is_contested
        False
    """

    id: str
    mode: ActivityMode
    polygon: Tuple[Point, ...]
    created_at: int
    owners: Tuple[Owner, ...] = ()

    def __post_init__(self):
        """Validate invariants."""
        if len(self.polygon) < MIN_POLYGON_POINTS:
            raise ValueError(
                f"Territory polygon needs >= {MIN_POLYGON_POINTS} points, got {len(self.polygon)}"
            )
        ids = [o.owner_id for o in self.owners]
        if len(ids) != len(set(ids)):
            raise ValueError(f"Territory {self.id} has duplicate owner ids: {ids}")

    @property
    def bbox(self) -> BoundingBox:
        return bounding_box(self.polygon)

    @property
    def area_m2(self) -> float:
        return polygon_area_square_meters(self.polygon)

    @property
    def is_contested(self) -> bool:
        return len(self.owners) > 1

    def owner(self, owner_id: str) -> Optional[Owner]:
        """Owner record for owner_id, if present."""
        for o in self.owners:
            if o.owner_id == owner_id:
                return o
        return None

    def is_owned_by(self, owner_id: str) -> bool:
        return self.owner(owner_id) is not None

    def replace_owners(self, owners: Iterable[Owner]) -> 'Territory':
        return replace(self, owners=tuple(owners))

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            'id': self.id,
            'mode': self.mode.value,
            'polygon': [p.to_dict() for p in self.polygon],
            'createdAt': self.created_at,
            'owners': [o.to_dict() for o in self.owners],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Territory':
        """
        Deserialize from dict.

        Raises:
            ValueError: If required keys are missing or values invalid
        """
        try:
            created_at = int(data['createdAt'])
            return cls(
                id=str(data['id']),
                mode=ActivityMode(data['mode']),
                polygon=tuple(Point.from_dict(p, default_timestamp=created_at) for p in data['polygon']),
                created_at=created_at,
                owners=tuple(Owner.from_dict(o) for o in data.get('owners') or ()),
            )
        except KeyError as e:
            raise ValueError(f"Missing required Territory field: {e}")
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid Territory data: {e}")
