"""
Upload Outbox
=============

Bounded Context: Durable retry queue for failed remote writes.

Queues (JSON arrays in the blob store):
    pending_session_uploads     [{"type": "session", ...}]
    pending_territory_uploads   [{"type": "territory", ...}, {"type": "owners", ...}]

Flush:
- Runs every `interval_s` (15 s) on the OutboxFlushThread and on
  on_foreground()
- Sessions first, then territory records, in enqueue order
- An entry is removed only after the store confirms the write;
  RemoteStoreError keeps it for the next pass
- Undecodable entries are dropped with a warning

Owner updates carry the full owners list, so only the newest update per
territory is kept.
"""

import threading
from typing import Any, Dict, List, Optional, Sequence, Tuple

from turf_engine.session import SessionRecord
from turf_engine.territory import Owner, Territory

from .blob_store import (
    PENDING_SESSION_KEY,
    PENDING_TERRITORY_KEY,
    BlobStore,
    load_json_list,
    save_json_list,
)
from .logging import LogEvent, StructuredLogger
from .remote import RemoteStoreError, TerritoryStore
from .schemas import (
    PendingOwnersUpdate,
    PendingSessionUpload,
    PendingTerritoryUpload,
    pending_territory_from_dict,
)

DEFAULT_FLUSH_INTERVAL_S = 15.0


class UploadOutbox:
    """
    Persistent retry queue in front of a TerritoryStore.

    Args:
        store: Remote store writes are retried against
        blob_store: Where the queues are persisted
        interval_s: Seconds between background flushes
        logger: Structured logger (default: component "outbox")

    Thread Safety:
        All queue reads/writes and flushes hold one re-entrant lock.
    """

    def __init__(
        self,
        store: TerritoryStore,
        blob_store: BlobStore,
        interval_s: float = DEFAULT_FLUSH_INTERVAL_S,
        logger: Optional[StructuredLogger] = None,
    ):
        self.store = store
        self.blob_store = blob_store
        self.interval_s = interval_s
        self.logger = logger or StructuredLogger(component="outbox")

        self._lock = threading.RLock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # ========================================================================
    # Enqueue
    # ========================================================================

    def _append(self, key: str, entry: Dict[str, Any]) -> None:
        with self._lock:
            entries = load_json_list(self.blob_store, key)
            entries.append(entry)
            save_json_list(self.blob_store, key, entries)
        self.logger.info(
            event=LogEvent.OUTBOX_QUEUED,
            message="Queued failed write for retry",
            metadata={'queue': key, 'type': entry.get('type'), 'size': len(entries)}
        )

    def enqueue_territory(self, territory: Territory) -> None:
        self._append(PENDING_TERRITORY_KEY, PendingTerritoryUpload(territory).to_dict())

    def enqueue_owners(self, territory_id: str, owners: Sequence[Owner]) -> None:
        """Queue a full owners list, superseding any older queued list for the territory."""
        entry = PendingOwnersUpdate(territory_id=territory_id, owners=tuple(owners)).to_dict()
        with self._lock:
            entries = [
                e for e in load_json_list(self.blob_store, PENDING_TERRITORY_KEY)
                if not (isinstance(e, dict) and e.get('type') == 'owners' and e.get('territoryId') == territory_id)
            ]
            entries.append(entry)
            save_json_list(self.blob_store, PENDING_TERRITORY_KEY, entries)
        self.logger.info(
            event=LogEvent.OUTBOX_QUEUED,
            message="Queued owners update for retry",
            metadata={'territory_id': territory_id, 'size': len(entries)}
        )

    def enqueue_session(self, owner_id: str, record: SessionRecord) -> None:
        self._append(PENDING_SESSION_KEY, PendingSessionUpload(owner_id=owner_id, record=record).to_dict())

    def pending_counts(self) -> Dict[str, int]:
        with self._lock:
            return {
                'sessions': len(load_json_list(self.blob_store, PENDING_SESSION_KEY)),
                'territories': len(load_json_list(self.blob_store, PENDING_TERRITORY_KEY)),
            }

    # ========================================================================
    # Flush
    # ========================================================================

    def _flush_sessions(self) -> Tuple[int, List[Dict[str, Any]]]:
        sent = 0
        kept: List[Dict[str, Any]] = []
        for entry in load_json_list(self.blob_store, PENDING_SESSION_KEY):
            try:
                upload = PendingSessionUpload.from_dict(entry)
            except ValueError as e:
                self.logger.warning(
                    event=LogEvent.STORAGE_DISCARDED,
                    message="Dropped undecodable pending session",
                    exc_info=e,
                )
                continue
            try:
                self.store.create_session(upload.owner_id, upload.record)
                sent += 1
            except RemoteStoreError:
                kept.append(entry)
        return sent, kept

    def _flush_territories(self) -> Tuple[int, List[Dict[str, Any]]]:
        sent = 0
        kept: List[Dict[str, Any]] = []
        for entry in load_json_list(self.blob_store, PENDING_TERRITORY_KEY):
            try:
                record = pending_territory_from_dict(entry)
            except ValueError as e:
                self.logger.warning(
                    event=LogEvent.STORAGE_DISCARDED,
                    message="Dropped undecodable pending territory record",
                    exc_info=e,
                )
                continue
            try:
                if isinstance(record, PendingTerritoryUpload):
                    t = record.territory
                    self.store.create_territory(
                        t.owners, t.mode, t.polygon, territory_id=t.id, created_at=t.created_at
                    )
                else:
                    self.store.update_territory_owners(record.territory_id, record.owners)
                sent += 1
            except RemoteStoreError:
                kept.append(entry)
        return sent, kept

    def flush(self) -> Dict[str, int]:
        """
        Retry every queued write once.

        Returns:
            {'sent': n, 'remaining': m}
        """
        with self._lock:
            sessions_sent, sessions_kept = self._flush_sessions()
            territories_sent, territories_kept = self._flush_territories()
            save_json_list(self.blob_store, PENDING_SESSION_KEY, sessions_kept)
            save_json_list(self.blob_store, PENDING_TERRITORY_KEY, territories_kept)

        result = {
            'sent': sessions_sent + territories_sent,
            'remaining': len(sessions_kept) + len(territories_kept),
        }
        if result['sent'] or result['remaining']:
            self.logger.info(
                event=LogEvent.OUTBOX_FLUSHED,
                message="Retry pass finished",
                metadata=result,
            )
        return result

    def on_foreground(self) -> Dict[str, int]:
        return self.flush()

    # ========================================================================
    # Background thread
    # ========================================================================

    def _flush_safely(self) -> None:
        try:
            self.flush()
        except Exception as e:
            self.logger.error(
                event=LogEvent.OUTBOX_FLUSH_ERROR,
                message="Retry pass failed",
                exc_info=e,
            )

    def _run(self) -> None:
        self._flush_safely()
        while not self._stop_event.wait(self.interval_s):
            self._flush_safely()

    def start(self) -> None:
        """Start the periodic flush thread (first pass runs immediately)."""
        if self._thread and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="OutboxFlushThread", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=timeout)
            self._thread = None
