"""
TrackingService - device-side orchestrator

Wires the engine (session controller + territory cache) to persistence
(blob store), the remote territory store, the upload outbox and the MQTT
control plane.

Data flow:
    sample -> SessionController.ingest -> (capture) arbitration
           -> cache commit -> local persist -> remote write
                                               └─ failure -> outbox
    remote snapshot -> cache.replace_all -> local persist

Threading Model:
- Control Plane Thread (paho-mqtt internal): command handlers
- Remote Store Thread (paho-mqtt internal): snapshot callbacks
- OutboxFlushThread: periodic retry pass
- InactivityThread: auto-pause / auto-stop checks

Controller, cache and session list are only touched under one re-entrant
lock. Remote writes run after the lock is released.
"""

import logging
import threading
import uuid
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from turf_engine.session import (
    IngestOutcome,
    SessionController,
    SessionRecord,
    SessionState,
    now_ms,
)
from turf_engine.territory import (
    ArbitrationResult,
    OwnershipArbiter,
    Standing,
    Territory,
    TerritoryCache,
    leaderboard,
    project_decay,
)
from turf_engine.tracking import ActivityMode, LoopDetector, PathFilter, RawSample
from turf_sync import (
    OWNER_ID_KEY,
    SESSIONS_KEY,
    TERRITORIES_KEY,
    BlobStore,
    RemoteStoreError,
    TerritoryStore,
    UploadOutbox,
    load_json_list,
    save_json_list,
)

from .config import TrackerConfig

logger = logging.getLogger(__name__)


class TrackingService:
    """
    Tracking service for one device.

    Args:
        config: Tracker configuration
        store: Remote territory store
        blob_store: Local durable storage
        control_plane: Optional MQTTControlPlane; commands are registered in setup()
        outbox: Retry queue (built from store/blob_store if None)
        clock: Returns epoch ms
        id_factory: Returns ids for new territories

    Example:
        service = TrackingService(config, store, blob_store, control_plane)
        service.setup()
        service.start(ActivityMode.RUN)
        service.ingest_sample(RawSample(45.0, 7.0, timestamp=..., accuracy=5.0))
        record = service.stop()
    """

    def __init__(
        self,
        config: TrackerConfig,
        store: TerritoryStore,
        blob_store: BlobStore,
        control_plane=None,  # MQTTControlPlane
        outbox: Optional[UploadOutbox] = None,
        clock: Callable[[], int] = now_ms,
        id_factory: Callable[[], str] = lambda: uuid.uuid4().hex,
    ):
        self.config = config
        self.store = store
        self.blob_store = blob_store
        self.control_plane = control_plane
        self.outbox = outbox or UploadOutbox(store, blob_store, interval_s=config.flush_interval_s)
        self.clock = clock

        engine = config.engine
        self.cache = TerritoryCache()
        self.session = SessionController(
            owner_id="",
            cache=self.cache,
            arbiter=OwnershipArbiter(uniform_clamp=engine.uniform_clamp, max_strength=engine.max_strength),
            path_filter=PathFilter(max_accuracy_m=engine.max_accuracy_m, max_jump_m=engine.max_jump_m),
            detector=LoopDetector(
                close_threshold_m=engine.loop_close_threshold_m,
                min_loop_distance_m=engine.min_loop_distance_m,
                min_area_m2=engine.min_territory_area_m2,
            ),
            smoothing_window=engine.smoothing_window,
            clock=clock,
            id_factory=id_factory,
        )

        self.owner_id = ""
        self.sessions: Tuple[SessionRecord, ...] = ()
        self._auto_paused_at: Optional[int] = None

        self._lock = threading.RLock()
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._stop_event = threading.Event()
        self._inactivity_thread: Optional[threading.Thread] = None

        logger.info(f"TrackingService initialized for device_id={config.device_id}")

    # ─────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────────

    def setup(self) -> None:
        """
        Load persisted state, subscribe to remote snapshots, start the
        background threads. Must be called before any other operation.
        """
        with self._lock:
            self.owner_id = self._load_owner_id()
            self.session.owner_id = self.owner_id
            self.sessions = tuple(self._load_records(SESSIONS_KEY, SessionRecord.from_dict))
            self.cache.replace_all(self._load_records(TERRITORIES_KEY, Territory.from_dict))

        logger.info(
            f"Loaded local state: owner={self.owner_id[:8]}, sessions={len(self.sessions)}, "
            f"territories={len(self.cache)}"
        )

        if self.control_plane is not None:
            self._setup_control_handlers()

        self._unsubscribe = self.store.subscribe(self._on_remote_snapshot)
        self.outbox.start()

        self._stop_event.clear()
        self._inactivity_thread = threading.Thread(
            target=self._inactivity_loop,
            name="InactivityThread",
            daemon=True,
        )
        self._inactivity_thread.start()

    def shutdown(self) -> None:
        """Stop background work. An active session is stopped and saved."""
        logger.info("Shutting down tracking service")
        if self.session.state is not SessionState.IDLE:
            self.stop()

        self._stop_event.set()
        if self._inactivity_thread:
            self._inactivity_thread.join(timeout=5.0)
            self._inactivity_thread = None

        self.outbox.stop()
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None

        if self.control_plane is not None:
            self.control_plane.publish_status("stopped")

    def _load_owner_id(self) -> str:
        owner_id = (self.blob_store.get(OWNER_ID_KEY) or "").strip()
        if not owner_id:
            owner_id = uuid.uuid4().hex
            self.blob_store.set(OWNER_ID_KEY, owner_id)
            logger.info(f"Generated new owner id {owner_id[:8]}")
        return owner_id

    def _load_records(self, key: str, decode: Callable[[Dict[str, Any]], Any]) -> List[Any]:
        records = []
        for item in load_json_list(self.blob_store, key):
            try:
                records.append(decode(item))
            except (TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed '{key}' entry: {e}")
        return records

    def _persist_territories(self) -> None:
        save_json_list(self.blob_store, TERRITORIES_KEY, [t.to_dict() for t in self.cache.snapshot()])

    def _persist_sessions(self) -> None:
        save_json_list(self.blob_store, SESSIONS_KEY, [s.to_dict() for s in self.sessions])

    # ─────────────────────────────────────────────────────────────────────
    # Session control
    # ─────────────────────────────────────────────────────────────────────

    def start(self, mode: ActivityMode, step_counter: bool = False) -> bool:
        with self._lock:
            self._auto_paused_at = None
            return self.session.start(ActivityMode(mode), step_counter=step_counter)

    def pause(self) -> bool:
        with self._lock:
            self._auto_paused_at = None
            return self.session.pause()

    def resume(self) -> bool:
        with self._lock:
            self._auto_paused_at = None
            return self.session.resume()

    def stop(self) -> Optional[SessionRecord]:
        """Stop the session, keep its record locally and upload it."""
        with self._lock:
            self._auto_paused_at = None
            record = self.session.stop()
            if record is None:
                return None
            self.sessions = (record,) + self.sessions
            self._persist_sessions()

        try:
            self.store.create_session(self.owner_id, record)
        except RemoteStoreError as e:
            logger.warning(f"Session upload failed, queueing for retry: {e}")
            self.outbox.enqueue_session(self.owner_id, record)
        return record

    def ingest_sample(self, sample: RawSample) -> IngestOutcome:
        with self._lock:
            outcome = self.session.ingest(sample)
            if outcome.arbitration is not None:
                self._persist_territories()
        if outcome.arbitration is not None:
            self._write_arbitration(outcome.arbitration)
        return outcome

    def ingest_background(self, samples: Iterable[RawSample]) -> IngestOutcome:
        """Merge points collected while backgrounded."""
        with self._lock:
            outcome = self.session.ingest_many(samples)
            if outcome.arbitration is not None:
                self._persist_territories()
        if outcome.arbitration is not None:
            self._write_arbitration(outcome.arbitration)
        return outcome

    def record_steps(self, delta: int) -> bool:
        with self._lock:
            return self.session.record_steps(delta)

    def _write_arbitration(self, result: ArbitrationResult) -> None:
        created = result.created
        if created is not None:
            try:
                self.store.create_territory(
                    created.owners,
                    created.mode,
                    created.polygon,
                    territory_id=created.id,
                    created_at=created.created_at,
                )
            except RemoteStoreError as e:
                logger.warning(f"Territory upload failed, queueing for retry: {e}")
                self.outbox.enqueue_territory(created)

        for territory in result.changed:
            try:
                self.store.update_territory_owners(territory.id, territory.owners)
            except RemoteStoreError as e:
                logger.warning(f"Owners update for {territory.id[:8]} failed, queueing for retry: {e}")
                self.outbox.enqueue_owners(territory.id, territory.owners)

    def _on_remote_snapshot(self, territories: Sequence[Territory]) -> None:
        """Inbound snapshot replaces local state."""
        with self._lock:
            self.cache.replace_all(territories)
            self._persist_territories()
            mine = sum(1 for t in territories if t.is_owned_by(self.owner_id))
        logger.info(f"Synced {len(territories)} territories from remote ({mine} yours)")

    # ─────────────────────────────────────────────────────────────────────
    # Reads
    # ─────────────────────────────────────────────────────────────────────

    def territories(self, now_ms: Optional[int] = None) -> List[Territory]:
        """Decayed view of every known territory."""
        now = self.clock() if now_ms is None else now_ms
        return project_decay(self.cache.snapshot(), now, self.config.engine.daily_decay_rate)

    def leaderboard(
        self,
        since_ms: Optional[int] = None,
        mode: Optional[ActivityMode] = None,
        limit: int = 10,
        now_ms: Optional[int] = None,
    ) -> List[Standing]:
        return leaderboard(self.territories(now_ms), since_ms=since_ms, mode=mode, limit=limit)

    def status(self) -> Dict[str, Any]:
        with self._lock:
            status = self.session.status()
            territories = self.cache.snapshot()
            status.update({
                'device_id': self.config.device_id,
                'owner_id': self.owner_id,
                'auto_paused': self._auto_paused_at is not None,
                'territories': len(territories),
                'my_territories': sum(1 for t in territories if t.is_owned_by(self.owner_id)),
                'sessions': len(self.sessions),
            })
        status['pending_uploads'] = self.outbox.pending_counts()
        return status

    # ─────────────────────────────────────────────────────────────────────
    # Deletion
    # ─────────────────────────────────────────────────────────────────────

    def _delete_remote(self, territory_ids: Iterable[str]) -> int:
        deleted = 0
        for territory_id in territory_ids:
            try:
                self.store.delete_territory(territory_id)
                deleted += 1
            except RemoteStoreError as e:
                logger.warning(f"Failed to delete territory {territory_id[:8]}: {e}")
        return deleted

    def delete_session(self, session_id: str) -> bool:
        """
        Remove a session record and the territories this device created
        during its time window, locally and remotely.

        Returns:
            False if no session has that id
        """
        with self._lock:
            record = next((s for s in self.sessions if s.id == session_id), None)
            if record is None:
                logger.warning(f"delete_session: unknown session {session_id}")
                return False

            self.sessions = tuple(s for s in self.sessions if s.id != session_id)
            self._persist_sessions()

            def in_window(t: Territory) -> bool:
                return record.contains(t.created_at) and t.is_owned_by(self.owner_id)

            removed = self.cache.remove_where(in_window)
            self._persist_territories()

        ids = {t.id for t in removed}
        ids.update(t.id for t in self.store.query_by_owner(self.owner_id) if record.contains(t.created_at))
        deleted = self._delete_remote(sorted(ids))
        logger.info(f"Deleted session {session_id}: {len(removed)} local, {deleted} remote territories")
        return True

    def clear_my_territories(self) -> int:
        """
        Delete every territory this device holds a claim on.

        Returns:
            Number of territories removed locally
        """
        with self._lock:
            removed = self.cache.remove_where(lambda t: t.is_owned_by(self.owner_id))
            self._persist_territories()

        ids = {t.id for t in removed}
        ids.update(t.id for t in self.store.query_by_owner(self.owner_id))
        deleted = self._delete_remote(sorted(ids))
        logger.info(f"Cleared territories: {len(removed)} local, {deleted} remote")
        return len(removed)

    # ─────────────────────────────────────────────────────────────────────
    # Inactivity & foreground
    # ─────────────────────────────────────────────────────────────────────

    def check_inactivity(self, now_ms: Optional[int] = None) -> Optional[str]:
        """
        Auto-pause an active session with no movement for
        inactivity_timeout_s; auto-stop it after a further auto_stop_after_s.

        Returns:
            "auto_paused", "auto_stopped" or None
        """
        engine = self.config.engine
        now = self.clock() if now_ms is None else now_ms

        with self._lock:
            state = self.session.state
            if state is SessionState.ACTIVE:
                if self.session.idle_ms(now) < engine.inactivity_timeout_s * 1000:
                    return None
                self.session.pause()
                self._auto_paused_at = now
                logger.info(f"No movement for {engine.inactivity_timeout_s:.0f}s, session auto-paused")
                action = "auto_paused"
            elif state is SessionState.PAUSED and self._auto_paused_at is not None:
                if now - self._auto_paused_at < engine.auto_stop_after_s * 1000:
                    return None
                action = "auto_stopped"
            else:
                return None

        if action == "auto_stopped":
            logger.info("Auto-pause expired, stopping session")
            self.stop()

        if self.control_plane is not None:
            self.control_plane.publish_status(action)
        return action

    def _inactivity_loop(self) -> None:
        while not self._stop_event.wait(self.config.inactivity_check_interval_s):
            self.check_inactivity()

    def on_foreground(self) -> Dict[str, int]:
        """App returned to foreground: retry pending uploads now."""
        return self.outbox.on_foreground()

    # ─────────────────────────────────────────────────────────────────────
    # Command Handlers (called by Control Plane Thread)
    # ─────────────────────────────────────────────────────────────────────

    def _setup_control_handlers(self) -> None:
        registry = self.control_plane.command_registry
        registry.register("start", self._handle_start, "Start a session (mode, step_counter)")
        registry.register("pause", self._handle_pause, "Pause the session")
        registry.register("resume", self._handle_resume, "Resume the session")
        registry.register("stop", self._handle_stop, "Stop and save the session")
        registry.register("location", self._handle_location, "Ingest one location sample")
        registry.register("locations", self._handle_locations, "Ingest a batch collected in the background")
        registry.register("steps", self._handle_steps, "Add a step-count delta")
        registry.register("foreground", self._handle_foreground, "Flush pending uploads")
        registry.register("status", self._handle_status, "Publish service status")
        logger.info("Control handlers registered")

    def _handle_start(self, command: Dict[str, Any]) -> None:
        started = self.start(ActivityMode(command["mode"]), step_counter=bool(command.get("step_counter", False)))
        self.control_plane.publish_status("started" if started else "ignored", {"mode": command["mode"]})

    def _handle_pause(self, command: Dict[str, Any]) -> None:
        self.control_plane.publish_status("paused" if self.pause() else "ignored")

    def _handle_resume(self, command: Dict[str, Any]) -> None:
        self.control_plane.publish_status("resumed" if self.resume() else "ignored")

    def _handle_stop(self, command: Dict[str, Any]) -> None:
        record = self.stop()
        if record is None:
            self.control_plane.publish_status("ignored")
            return
        self.control_plane.publish_status("stopped", {
            "session_id": record.id,
            "distance_m": record.distance_m,
        })

    def _sample_from_command(self, command: Dict[str, Any]) -> RawSample:
        accuracy = command.get("accuracy")
        return RawSample(
            latitude=float(command["latitude"]),
            longitude=float(command["longitude"]),
            timestamp=int(command.get("timestamp", self.clock())),
            accuracy=float(accuracy) if accuracy is not None else None,
        )

    def _publish_capture(self, outcome: IngestOutcome) -> None:
        if not outcome.captured:
            return
        result = outcome.arbitration
        self.control_plane.publish_status("loop_captured", {
            "area_m2": round(outcome.capture.area_m2, 1),
            "distance_m": round(outcome.capture.distance_m, 1),
            "transitions": [[tid, transition.value] for tid, transition in result.transitions],
        })

    def _handle_location(self, command: Dict[str, Any]) -> None:
        self._publish_capture(self.ingest_sample(self._sample_from_command(command)))

    def _handle_locations(self, command: Dict[str, Any]) -> None:
        samples = [self._sample_from_command(s) for s in command["samples"]]
        self._publish_capture(self.ingest_background(samples))

    def _handle_steps(self, command: Dict[str, Any]) -> None:
        self.record_steps(int(command["delta"]))

    def _handle_foreground(self, command: Dict[str, Any]) -> None:
        self.control_plane.publish_status("flushed", self.on_foreground())

    def _handle_status(self, command: Dict[str, Any]) -> None:
        self.control_plane.publish_status("status", self.status())
