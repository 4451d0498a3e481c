"""
Session Document Schemas
========================

Remote session document:
    {"schema_version": "1.0", "id": "...", "ownerId": "alice", "mode": "run",
     "path": [...], "distanceMeters": 1234, "startedAt": .., "endedAt": ..,
     "createdAt": "2026-03-02T15:30:45+00:00"}

Retry record (pending_session_uploads):
    {"type": "session", "ownerId": "alice", "payload": <SessionRecord.to_dict()>}
"""

from dataclasses import dataclass
from typing import Any, Dict

from turf_engine.session import SessionRecord

from .common import SCHEMA_VERSION, Timestamp


def encode_session(record: SessionRecord, owner_id: str) -> Dict[str, Any]:
    document = record.to_dict()
    document.update({
        'schema_version': SCHEMA_VERSION,
        'ownerId': owner_id,
        'createdAt': Timestamp.now().value,
    })
    return document


@dataclass(frozen=True)
class PendingSessionUpload:
    """A session record waiting to be written."""
    owner_id: str
    record: SessionRecord

    def to_dict(self) -> Dict[str, Any]:
        return {'type': 'session', 'ownerId': self.owner_id, 'payload': self.record.to_dict()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PendingSessionUpload':
        """
        Raises:
            ValueError: If required fields missing or invalid
        """
        if not isinstance(data, dict):
            raise ValueError(f"Pending record must be an object, got {type(data).__name__}")
        try:
            owner_id = data['ownerId']
            payload = data['payload']
        except KeyError as e:
            raise ValueError(f"Missing required PendingSessionUpload field: {e}")
        if not isinstance(owner_id, str) or not owner_id:
            raise ValueError(f"Invalid ownerId: {owner_id!r}")
        return cls(owner_id=owner_id, record=SessionRecord.from_dict(payload))
