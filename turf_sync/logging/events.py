"""
Structured Log Event Types
==========================

Bounded Context: Observability Event Taxonomy

Typed event names for the sync layer's structured logs.

Event Naming Convention:
    <component>.<category>.<action>

    component: mqtt, territory, session, outbox, storage, error

Example Log Query (CloudWatch Insights):
    fields @timestamp, event, message, metadata.territory_id
    | filter event = "outbox.entry.queued"
    | stats count() by bin(5m)
"""

from enum import Enum


class LogEvent(str, Enum):
    """
    Typed log event names for structured logging.

    Categories:
    - mqtt.*: MQTT broker interactions
    - territory.*: Remote territory documents
    - session.*: Remote session records
    - outbox.*: Retry queue
    - storage.*: Local blob store
    - error.*: Error conditions
    """

    # ========== MQTT Events ==========
    MQTT_CONNECTED = "mqtt.connected"
    """MQTT broker connection established."""

    MQTT_DISCONNECTED = "mqtt.disconnected"
    """MQTT broker connection lost."""

    MQTT_PUBLISH_SUCCESS = "mqtt.publish.success"

    MQTT_PUBLISH_FAILED = "mqtt.publish.failed"

    # ========== Territory Events ==========
    TERRITORY_CREATED = "territory.created"
    """New territory document written."""

    TERRITORY_OWNERS_UPDATED = "territory.owners.updated"

    TERRITORY_DELETED = "territory.deleted"

    TERRITORY_SNAPSHOT = "territory.snapshot"
    """Full territory set delivered to subscribers."""

    # ========== Session Events ==========
    SESSION_UPLOADED = "session.uploaded"

    # ========== Outbox Events ==========
    OUTBOX_QUEUED = "outbox.entry.queued"
    """Failed write appended to the retry queue."""

    OUTBOX_FLUSHED = "outbox.flushed"
    """Retry pass finished (metadata: sent, remaining)."""

    # ========== Storage Events ==========
    STORAGE_LOADED = "storage.loaded"

    STORAGE_DISCARDED = "storage.discarded"
    """Malformed persisted value dropped and key removed."""

    # ========== Error Events ==========
    DESERIALIZATION_ERROR = "error.deserialization"
    """Failed to decode a remote document."""

    MQTT_CONNECTION_ERROR = "error.mqtt_connection"

    REMOTE_WRITE_ERROR = "error.remote_write"
    """Remote write failed (will be retried from the outbox)."""

    OUTBOX_FLUSH_ERROR = "error.outbox_flush"
    """A background retry pass raised; the next pass still runs."""


# Event categories for filtering
MQTT_EVENTS = {
    LogEvent.MQTT_CONNECTED,
    LogEvent.MQTT_DISCONNECTED,
    LogEvent.MQTT_PUBLISH_SUCCESS,
    LogEvent.MQTT_PUBLISH_FAILED,
}

TERRITORY_EVENTS = {
    LogEvent.TERRITORY_CREATED,
    LogEvent.TERRITORY_OWNERS_UPDATED,
    LogEvent.TERRITORY_DELETED,
    LogEvent.TERRITORY_SNAPSHOT,
}

ERROR_EVENTS = {
    LogEvent.DESERIALIZATION_ERROR,
    LogEvent.MQTT_CONNECTION_ERROR,
    LogEvent.REMOTE_WRITE_ERROR,
    LogEvent.OUTBOX_FLUSH_ERROR,
}
