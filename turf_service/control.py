"""
MQTTControlPlane - remote control of a tracking service

Bounded Context: MQTT connection + command reception + status publishing
Responsibilities:
  - Subscribe to <prefix>/control/<device_id>/commands
  - Decode JSON commands and dispatch them through the CommandRegistry
  - Publish retained status documents to <prefix>/control/<device_id>/status

QoS Policy:
  - Commands: QoS 1 (at-least-once delivery)
  - Status: QoS 1 + retained (last status persisted)

Threading:
  - paho-mqtt network loop runs in its own thread (loop_start/loop_stop)
  - Command handlers run in that thread
"""

import json
import logging
from datetime import datetime, timezone
from threading import Event
from typing import Any, Dict, Optional

import paho.mqtt.client as mqtt

from .registry import CommandNotAvailableError, CommandRegistry

logger = logging.getLogger(__name__)


class MQTTControlPlane:
    """
    Command/status channel for one device.

    Example:
        control_plane = MQTTControlPlane(
            broker_host="localhost",
            broker_port=1883,
            command_topic="turf/control/phone_01/commands",
            status_topic="turf/control/phone_01/status",
            client_id="turf_control_phone_01",
        )
        control_plane.command_registry.register('pause', handler, "Pause session")
        control_plane.connect(timeout=5.0)
    """

    def __init__(
        self,
        broker_host: str,
        broker_port: int,
        command_topic: str,
        status_topic: str,
        client_id: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
    ):
        self.broker_host = broker_host
        self.broker_port = broker_port
        self.command_topic = command_topic
        self.status_topic = status_topic
        self.client_id = client_id

        self.client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2, client_id=client_id)
        self.client.on_connect = self._on_connect
        self.client.on_message = self._on_message
        self.client.on_disconnect = self._on_disconnect

        if username and password:
            self.client.username_pw_set(username, password)

        self._connected = Event()
        self._running = False

        self.command_registry = CommandRegistry()

    def connect(self, timeout: float = 5.0) -> bool:
        """
        Connect to the broker and wait for the subscription.

        Returns:
            True if connected within timeout
        """
        try:
            logger.info(f"Connecting control plane to {self.broker_host}:{self.broker_port}")
            self.client.connect(self.broker_host, self.broker_port, keepalive=60)
            self.client.loop_start()
            self._running = True
        except (OSError, ValueError) as e:
            logger.error(f"Error connecting to MQTT: {e}")
            return False

        if self._connected.wait(timeout=timeout):
            logger.info("MQTT control plane connected")
            return True
        logger.error(f"Control plane connection timeout after {timeout}s")
        return False

    def disconnect(self) -> None:
        """Publish a final status and disconnect. Safe to call twice."""
        if not self._running:
            return
        self.publish_status("disconnected")
        self.client.loop_stop()
        self.client.disconnect()
        self._running = False
        self._connected.clear()
        logger.info("MQTT control plane disconnected")

    def publish_status(self, status: str, details: Optional[Dict[str, Any]] = None) -> None:
        """
        Publish a retained status document.

        Args:
            status: Short status word ("connected", "started", "status", ...)
            details: Extra fields merged into the document
        """
        message: Dict[str, Any] = {
            "status": status,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "client_id": self.client_id,
        }
        if details:
            message.update(details)

        info = self.client.publish(self.status_topic, json.dumps(message, default=str), qos=1, retain=True)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            logger.warning(f"Status publish failed (rc={info.rc}): {status}")
            return
        logger.debug(f"Status published: {status}")

    # ===== MQTT Callbacks (run in MQTT thread) =====

    def _on_connect(self, client, userdata, flags, reason_code, properties):
        if reason_code.is_failure:
            logger.error(f"Control plane connection failed ({reason_code})")
            self._connected.clear()
            return

        client.subscribe(self.command_topic, qos=1)
        logger.info(f"Subscribed to: {self.command_topic} (QoS 1)")
        self.publish_status("connected")
        self._connected.set()

    def _on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties):
        if reason_code.is_failure:
            logger.warning(f"Unexpected control plane disconnection ({reason_code})")
        self._connected.clear()

    def _on_message(self, client, userdata, msg):
        """Decode one command and run it; failures are reported on the status topic."""
        try:
            payload = json.loads(msg.payload.decode('utf-8'))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.error(f"Error decoding command: {msg.payload!r} ({e})")
            return

        if not isinstance(payload, dict):
            logger.warning(f"Ignoring non-object command: {payload!r}")
            return

        command = str(payload.get('command', '')).lower()
        if not command:
            logger.warning("Empty command received")
            return

        logger.info(f"Executing command: {command}")
        try:
            self.command_registry.execute(command, payload)
        except CommandNotAvailableError as e:
            logger.warning(str(e))
            self.publish_status("error", {"command": command, "error": str(e)})
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Invalid '{command}' command: {e}")
            self.publish_status("error", {"command": command, "error": f"invalid arguments: {e}"})
