"""
Remote Territory Store
======================

Bounded Context: Shared territory state between devices.

Contract (TerritoryStore):
    subscribe(callback) -> unsubscribe
    create_territory(owners, mode, polygon) -> id
    update_territory_owners(id, owners)
    delete_territory(id)
    query_by_owner(owner_id) -> territories
    create_session(owner_id, record) -> id

Writes raise RemoteStoreError on any failure; the caller queues them in
the outbox.

MQTTTerritoryStore layout:
    <prefix>/territories/<id>            retained JSON document per territory
                                         (empty retained payload = deleted)
    <prefix>/sessions/<owner_id>/<id>    retained JSON session document

The store mirrors every retained territory document it receives and, on
each change, hands subscribers the full set ordered by createdAt
descending. Last writer wins per document.
"""

import json
import threading
import time
import uuid
from typing import Callable, Dict, List, Optional, Protocol, Sequence

import paho.mqtt.client as mqtt

from turf_engine.geometry import Point
from turf_engine.session import SessionRecord
from turf_engine.territory import Owner, Territory
from turf_engine.tracking import ActivityMode

from .logging import LogEvent, StructuredLogger
from .schemas import decode_territory, encode_session, encode_territory

SnapshotCallback = Callable[[List[Territory]], None]


class RemoteStoreError(Exception):
    """A remote write could not be confirmed."""


class TerritoryStore(Protocol):
    """Remote territory store contract."""

    def subscribe(self, callback: SnapshotCallback) -> Callable[[], None]:
        ...

    def create_territory(
        self,
        owners: Sequence[Owner],
        mode: ActivityMode,
        polygon: Sequence[Point],
        territory_id: Optional[str] = None,
        created_at: Optional[int] = None,
    ) -> str:
        ...

    def update_territory_owners(self, territory_id: str, owners: Sequence[Owner]) -> None:
        ...

    def delete_territory(self, territory_id: str) -> None:
        ...

    def query_by_owner(self, owner_id: str) -> List[Territory]:
        ...

    def create_session(self, owner_id: str, record: SessionRecord) -> str:
        ...


def _now_ms() -> int:
    return int(time.time() * 1000)


class MQTTTerritoryStore:
    """
    TerritoryStore over retained MQTT messages.

    Attributes:
        broker_host: MQTT broker hostname
        broker_port: MQTT broker port
        topic_prefix: Root of the territory/session topic tree
        qos: Publish/subscribe QoS (1 so writes are acknowledged)
        publish_timeout: Seconds to wait for a publish acknowledgement

    Thread Safety:
        paho-mqtt network loop runs in its own thread (loop_start());
        the mirrored document set is guarded by a lock. Subscriber
        callbacks run on the network thread.

    Example:
        >>> store = MQTTTerritoryStore(broker_host="localhost", topic_prefix="turf")
        >>> store.connect()
        >>> unsubscribe = store.subscribe(lambda territories: print(len(territories)))
    """

    def __init__(
        self,
        broker_host: str,
        broker_port: int = 1883,
        topic_prefix: str = "turf",
        client_id: str = "turf_store",
        logger: Optional[StructuredLogger] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        qos: int = 1,
        publish_timeout: float = 5.0,
    ):
        self.broker_host = broker_host
        self.broker_port = broker_port
        self.topic_prefix = topic_prefix.rstrip("/")
        self.client_id = client_id
        self.logger = logger or StructuredLogger(component="remote")
        self.qos = qos
        self.publish_timeout = publish_timeout

        self.territory_topic = f"{self.topic_prefix}/territories"

        self.client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2, client_id=client_id)
        if username and password:
            self.client.username_pw_set(username, password)

        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect
        self.client.on_message = self._on_message

        self._connected = threading.Event()
        self._lock = threading.Lock()
        self._documents: Dict[str, Territory] = {}
        self._subscribers: List[SnapshotCallback] = []

    # ========================================================================
    # Connection
    # ========================================================================

    def _on_connect(self, client, userdata, flags, reason_code, properties) -> None:
        if reason_code.is_failure:
            self.logger.error(
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message=f"Failed to connect to broker ({reason_code})",
                metadata={'broker': f"{self.broker_host}:{self.broker_port}"}
            )
            return

        self._connected.set()
        client.subscribe(f"{self.territory_topic}/+", qos=self.qos)
        self.logger.info(
            event=LogEvent.MQTT_CONNECTED,
            message="Connected to MQTT broker and subscribed to territories",
            metadata={
                'broker': f"{self.broker_host}:{self.broker_port}",
                'topic': f"{self.territory_topic}/+",
            }
        )

    def _on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties) -> None:
        self._connected.clear()
        self.logger.warning(
            event=LogEvent.MQTT_DISCONNECTED,
            message="Disconnected from MQTT broker",
            metadata={
                'broker': f"{self.broker_host}:{self.broker_port}",
                'reason_code': str(reason_code),
            }
        )

    def connect(self, timeout: float = 10.0) -> bool:
        """
        Connect to broker and start the network loop.

        Returns:
            True if connected within timeout
        """
        try:
            self.client.connect(self.broker_host, self.broker_port)
            self.client.loop_start()
        except (OSError, ValueError) as e:
            self.logger.error(
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message="Failed to connect to broker",
                exc_info=e,
                metadata={'broker': f"{self.broker_host}:{self.broker_port}"}
            )
            return False

        if self._connected.wait(timeout=timeout):
            return True
        self.logger.error(
            event=LogEvent.MQTT_CONNECTION_ERROR,
            message="Connection timeout",
            metadata={'timeout': timeout}
        )
        return False

    def disconnect(self) -> None:
        self.client.loop_stop()
        self.client.disconnect()
        self._connected.clear()
        self.logger.info(event=LogEvent.MQTT_DISCONNECTED, message="Disconnected from broker")

    def is_connected(self) -> bool:
        return self._connected.is_set()

    # ========================================================================
    # Inbound
    # ========================================================================

    def _on_message(self, client, userdata, msg) -> None:
        """Mirror one retained territory document and notify subscribers."""
        prefix = f"{self.territory_topic}/"
        if not msg.topic.startswith(prefix):
            return
        doc_id = msg.topic[len(prefix):]
        if not doc_id or "/" in doc_id:
            return

        if not msg.payload:
            with self._lock:
                removed = self._documents.pop(doc_id, None)
            if removed is None:
                return
        else:
            try:
                data = json.loads(msg.payload.decode('utf-8'))
                territory = decode_territory(doc_id, data, received_at=_now_ms())
            except (UnicodeDecodeError, json.JSONDecodeError, ValueError) as e:
                self.logger.warning(
                    event=LogEvent.DESERIALIZATION_ERROR,
                    message="Ignoring malformed territory document",
                    exc_info=e,
                    metadata={'topic': msg.topic}
                )
                return
            with self._lock:
                self._documents[doc_id] = territory

        self._notify()

    def snapshot(self) -> List[Territory]:
        """Mirrored territory set, newest first."""
        with self._lock:
            territories = list(self._documents.values())
        return sorted(territories, key=lambda t: t.created_at, reverse=True)

    def _notify(self) -> None:
        territories = self.snapshot()
        with self._lock:
            subscribers = list(self._subscribers)
        self.logger.debug(
            event=LogEvent.TERRITORY_SNAPSHOT,
            message="Delivering territory snapshot",
            metadata={'count': len(territories), 'subscribers': len(subscribers)}
        )
        for callback in subscribers:
            callback(territories)

    def subscribe(self, callback: SnapshotCallback) -> Callable[[], None]:
        """
        Register for full-set snapshots.

        Returns:
            Function that removes the subscription
        """
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    # ========================================================================
    # Outbound
    # ========================================================================

    def _publish(self, topic: str, payload: str) -> None:
        if not self._connected.is_set():
            raise RemoteStoreError("Not connected to broker")

        try:
            info = self.client.publish(topic=topic, payload=payload, qos=self.qos, retain=True)
        except (OSError, ValueError) as e:
            raise RemoteStoreError(f"Publish to {topic} failed: {e}") from e

        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise RemoteStoreError(f"Publish to {topic} failed (rc={info.rc})")

        if self.qos > 0:
            try:
                info.wait_for_publish(timeout=self.publish_timeout)
            except (RuntimeError, ValueError) as e:
                raise RemoteStoreError(f"Publish to {topic} not acknowledged: {e}") from e
            if not info.is_published():
                raise RemoteStoreError(f"Publish to {topic} timed out after {self.publish_timeout}s")

        self.logger.debug(
            event=LogEvent.MQTT_PUBLISH_SUCCESS,
            message="Published document",
            metadata={'topic': topic, 'qos': self.qos}
        )

    def create_territory(
        self,
        owners: Sequence[Owner],
        mode: ActivityMode,
        polygon: Sequence[Point],
        territory_id: Optional[str] = None,
        created_at: Optional[int] = None,
    ) -> str:
        """
        Write a new territory document.

        A caller-supplied territory_id makes retries overwrite the same
        document instead of creating a second one.

        Raises:
            RemoteStoreError: If the write is not confirmed
        """
        territory = Territory(
            id=territory_id or uuid.uuid4().hex,
            mode=ActivityMode(mode),
            polygon=tuple(polygon),
            created_at=created_at if created_at is not None else _now_ms(),
            owners=tuple(owners),
        )
        self._publish(f"{self.territory_topic}/{territory.id}", json.dumps(encode_territory(territory)))
        self.logger.info(
            event=LogEvent.TERRITORY_CREATED,
            message="Territory document written",
            metadata={'territory_id': territory.id, 'points': len(territory.polygon)}
        )
        return territory.id

    def update_territory_owners(self, territory_id: str, owners: Sequence[Owner]) -> None:
        """
        Rewrite a territory document with a new owners list.

        Raises:
            RemoteStoreError: If the document is unknown or the write fails
        """
        with self._lock:
            current = self._documents.get(territory_id)
        if current is None:
            raise RemoteStoreError(f"Territory {territory_id} not known to the remote store")

        updated = current.replace_owners(owners)
        self._publish(f"{self.territory_topic}/{territory_id}", json.dumps(encode_territory(updated)))
        self.logger.info(
            event=LogEvent.TERRITORY_OWNERS_UPDATED,
            message="Territory owners written",
            metadata={'territory_id': territory_id, 'owners': [o.owner_id for o in owners]}
        )

    def delete_territory(self, territory_id: str) -> None:
        """
        Raises:
            RemoteStoreError: If the delete is not confirmed
        """
        self._publish(f"{self.territory_topic}/{territory_id}", "")
        self.logger.info(
            event=LogEvent.TERRITORY_DELETED,
            message="Territory document deleted",
            metadata={'territory_id': territory_id}
        )

    def query_by_owner(self, owner_id: str) -> List[Territory]:
        return [t for t in self.snapshot() if t.is_owned_by(owner_id)]

    def create_session(self, owner_id: str, record: SessionRecord) -> str:
        """
        Raises:
            RemoteStoreError: If the write is not confirmed
        """
        topic = f"{self.topic_prefix}/sessions/{owner_id}/{record.id}"
        self._publish(topic, json.dumps(encode_session(record, owner_id)))
        self.logger.info(
            event=LogEvent.SESSION_UPLOADED,
            message="Session document written",
            metadata={'session_id': record.id, 'distance_m': record.distance_m}
        )
        return record.id

