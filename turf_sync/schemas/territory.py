"""
Territory Document Schemas
==========================

Bounded Context: Remote territory documents and their retry records.

Remote document (one retained JSON payload per territory):
    {
        "schema_version": "1.0",
        "id": "9f1c...",
        "mode": "walk",
        "polygon": [{"latitude": .., "longitude": .., "timestamp": ..}, ...],
        "owners": [{"ownerId": "alice", "strength": 1.0}],
        "createdAt": 1700000000000,
        "updatedAt": "2026-03-02T15:30:45+00:00"
    }

Decoding is lenient per element (bad vertices / owners are skipped, a
missing createdAt falls back to the receive time) and strict per document
(fewer than 3 usable vertices or an unknown mode rejects it).

Retry records (pending_territory_uploads):
    {"type": "territory", "payload": <Territory.to_dict()>}
    {"type": "owners", "territoryId": "9f1c...", "owners": [...]}
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Tuple, Union

from turf_engine.geometry import Point
from turf_engine.territory import Owner, Territory
from turf_engine.tracking import ActivityMode

from .common import SCHEMA_VERSION, Timestamp, created_at_to_millis


def encode_territory(territory: Territory) -> Dict[str, Any]:
    """Serialize a territory to its remote document."""
    return {
        'schema_version': SCHEMA_VERSION,
        'id': territory.id,
        'mode': territory.mode.value,
        'polygon': [p.to_dict() for p in territory.polygon],
        'owners': [o.to_dict() for o in territory.owners],
        'createdAt': territory.created_at,
        'updatedAt': Timestamp.now().value,
    }


def _decode_points(raw: Any, created_at: int) -> Tuple[Point, ...]:
    points: List[Point] = []
    for item in raw if isinstance(raw, list) else ():
        if not isinstance(item, dict):
            continue
        try:
            points.append(Point.from_dict(item, default_timestamp=created_at))
        except ValueError:
            continue
    return tuple(points)


def decode_owners(raw: Any) -> Tuple[Owner, ...]:
    """Parse an owners array, skipping malformed entries and duplicate ids."""
    owners: List[Owner] = []
    seen = set()
    for item in raw if isinstance(raw, list) else ():
        if not isinstance(item, dict) or isinstance(item.get('strength'), bool):
            continue
        try:
            owner = Owner.from_dict(item)
        except ValueError:
            continue
        if owner.owner_id in seen:
            continue
        seen.add(owner.owner_id)
        owners.append(owner)
    return tuple(owners)


def decode_territory(doc_id: str, data: Dict[str, Any], received_at: int) -> Territory:
    """
    Build a Territory from a remote document.

    Args:
        doc_id: Document id (topic suffix)
        data: Parsed JSON payload
        received_at: Fallback createdAt, epoch ms

    Returns:
        Territory

    Raises:
        ValueError: If the document cannot form a valid territory
    """
    if not isinstance(data, dict):
        raise ValueError(f"Territory document must be an object, got {type(data).__name__}")

    created_at = created_at_to_millis(data.get('createdAt'), default=received_at)
    try:
        mode = ActivityMode(data.get('mode'))
    except ValueError:
        raise ValueError(f"Invalid territory mode: {data.get('mode')!r}")

    return Territory(
        id=doc_id,
        mode=mode,
        polygon=_decode_points(data.get('polygon'), created_at),
        created_at=created_at,
        owners=decode_owners(data.get('owners')),
    )


@dataclass(frozen=True)
class PendingTerritoryUpload:
    """A territory creation waiting to be written."""
    territory: Territory

    def to_dict(self) -> Dict[str, Any]:
        return {'type': 'territory', 'payload': self.territory.to_dict()}


@dataclass(frozen=True)
class PendingOwnersUpdate:
    """A full owners list waiting to be written (idempotent on retry)."""
    territory_id: str
    owners: Tuple[Owner, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': 'owners',
            'territoryId': self.territory_id,
            'owners': [o.to_dict() for o in self.owners],
        }


PendingTerritoryRecord = Union[PendingTerritoryUpload, PendingOwnersUpdate]


def pending_territory_from_dict(data: Dict[str, Any]) -> PendingTerritoryRecord:
    """
    Deserialize a retry record.

    Raises:
        ValueError: If the record type is unknown or its payload invalid
    """
    if not isinstance(data, dict):
        raise ValueError(f"Pending record must be an object, got {type(data).__name__}")

    kind = data.get('type')
    if kind == 'territory':
        return PendingTerritoryUpload(territory=Territory.from_dict(data.get('payload') or {}))
    if kind == 'owners':
        territory_id = data.get('territoryId')
        if not isinstance(territory_id, str) or not territory_id:
            raise ValueError("Pending owners update has no territoryId")
        return PendingOwnersUpdate(territory_id=territory_id, owners=decode_owners(data.get('owners')))
    raise ValueError(f"Unknown pending territory record type: {kind!r}")
