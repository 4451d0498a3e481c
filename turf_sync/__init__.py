"""
Turf Sync
=========

Bounded Context: Persistence and remote convergence.

Local-first model: the engine's territory cache is authoritative on the
device; writes go out fire-and-forget, failures land in the outbox, and
every inbound remote snapshot replaces local state (last writer wins).

Components:
- logging: JSON structured logging (LogEvent, StructuredLogger)
- schemas: remote document and retry-record shapes
- blob_store: local key -> string storage
- remote: TerritoryStore contract, MQTT implementation
- outbox: durable retry queue

Example:
    >>> from turf_sync import MQTTTerritoryStore, UploadOutbox, JsonFileBlobStore
    >>> store = MQTTTerritoryStore(broker_host="localhost")
    >>> outbox = UploadOutbox(store, JsonFileBlobStore("~/.turf"))
    >>> outbox.start()
"""

from .logging import LogEvent, StructuredLogger, create_logger
from .blob_store import (
    OWNER_ID_KEY,
    PENDING_SESSION_KEY,
    PENDING_TERRITORY_KEY,
    SESSIONS_KEY,
    TERRITORIES_KEY,
    BlobStore,
    JsonFileBlobStore,
    MemoryBlobStore,
    load_json_list,
    save_json_list,
)
from .remote import MQTTTerritoryStore, RemoteStoreError, TerritoryStore
from .outbox import UploadOutbox

__version__ = "0.1.0"

__all__ = [
    # Logging
    'LogEvent',
    'StructuredLogger',
    'create_logger',
    # Blob store
    'OWNER_ID_KEY',
    'PENDING_SESSION_KEY',
    'PENDING_TERRITORY_KEY',
    'SESSIONS_KEY',
    'TERRITORIES_KEY',
    'BlobStore',
    'JsonFileBlobStore',
    'MemoryBlobStore',
    'load_json_list',
    'save_json_list',
    # Remote
    'MQTTTerritoryStore',
    'RemoteStoreError',
    'TerritoryStore',
    # Outbox
    'UploadOutbox',
]
