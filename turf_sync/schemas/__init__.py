"""
Turf Sync Schemas
=================

Bounded Context: Data Structures

Wire and persisted shapes for remote territory/session documents and the
retry-queue records.

Public API
----------
Common Types:
    Timestamp: ISO 8601 timestamp wrapper
    created_at_to_millis: createdAt normalisation

Territory:
    encode_territory / decode_territory: remote document codec
    PendingTerritoryUpload, PendingOwnersUpdate: retry records

Session:
    encode_session: remote document
    PendingSessionUpload: retry record
"""

from .common import SCHEMA_VERSION, Timestamp, created_at_to_millis
from .territory import (
    PendingOwnersUpdate,
    PendingTerritoryRecord,
    PendingTerritoryUpload,
    decode_owners,
    decode_territory,
    encode_territory,
    pending_territory_from_dict,
)
from .session import PendingSessionUpload, encode_session

__all__ = [
    # Common types
    'SCHEMA_VERSION',
    'Timestamp',
    'created_at_to_millis',
    # Territory
    'PendingOwnersUpdate',
    'PendingTerritoryRecord',
    'PendingTerritoryUpload',
    'decode_owners',
    'decode_territory',
    'encode_territory',
    'pending_territory_from_dict',
    # Session
    'PendingSessionUpload',
    'encode_session',
]
