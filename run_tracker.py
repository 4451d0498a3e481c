#!/usr/bin/env python3
"""
Tracking Service - Entry Point
==============================

This script starts the turf TrackingService, which:
- Receives location samples and session commands via the MQTT control plane
- Filters, smooths and measures the live path
- Captures closed loops as territories and arbitrates ownership
- Syncs territories and sessions with the MQTT territory store
- Retries failed uploads from a durable outbox

Usage:
    python run_tracker.py --config config/tracker.yaml

Architecture:
    - TrackingService: Main orchestrator (turf_service)
    - MQTTControlPlane: Command handler (turf_service)
    - MQTTTerritoryStore: Remote territory/session documents (turf_sync)
    - JsonFileBlobStore: Local persistence (turf_sync)

Lifecycle:
    1. Load configuration from YAML
    2. Setup logging (console + file)
    3. Connect territory store and control plane
    4. Create TrackingService and load local state
    5. Wait for stop signal (Ctrl+C or SIGTERM)
    6. Graceful shutdown

Signals:
    - SIGTERM: Graceful shutdown
    - SIGINT (Ctrl+C): Graceful shutdown

Logs:
    - Console: INFO level
    - File: logs/tracker.log (INFO level)
"""

import argparse
import signal
import sys
import logging
import threading
from pathlib import Path
from typing import Optional

from turf_service import MQTTControlPlane, TrackerConfig, TrackingService
from turf_sync import JsonFileBlobStore, MemoryBlobStore, MQTTTerritoryStore, create_logger


# ─────────────────────────────────────────────────────────────────────────────
# Logging Setup
# ─────────────────────────────────────────────────────────────────────────────

def setup_logging(log_file: Optional[Path] = None) -> logging.Logger:
    """
    Setup logging for the tracker.

    Args:
        log_file: Optional path to log file

    Returns:
        Logger instance for the tracker
    """
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
            *(
                [logging.FileHandler(log_file)]
                if log_file
                else []
            )
        ]
    )

    return logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Main Service
# ─────────────────────────────────────────────────────────────────────────────

class TrackerApp:
    """
    Main application wrapper for TrackingService.

    Handles:
    - Configuration loading
    - Component initialization (store, control plane, blob storage)
    - Signal handling (SIGTERM, SIGINT)
    - Graceful shutdown
    """

    def __init__(self, config_path: Path, log_file: Optional[Path] = None):
        self.config_path = config_path
        self.log_file = log_file
        self.logger = setup_logging(log_file)

        # Components (initialized in setup())
        self.config: Optional[TrackerConfig] = None
        self.store: Optional[MQTTTerritoryStore] = None
        self.control_plane: Optional[MQTTControlPlane] = None
        self.service: Optional[TrackingService] = None

        self._stop_event = threading.Event()
        self._shutdown_requested = False

    def setup(self):
        """
        Setup all components.

        Steps:
        1. Load configuration from YAML
        2. Connect the territory store
        3. Create the control plane
        4. Create TrackingService and load local state
        5. Connect the control plane (commands start flowing)
        """
        self.logger.info("=" * 80)
        self.logger.info("🚀 Turf Tracker - Starting")
        self.logger.info("=" * 80)

        # 1. Load configuration
        self.logger.info(f"📄 Loading configuration: {self.config_path}")
        self.config = TrackerConfig.from_yaml(self.config_path)
        self.logger.info(f"✅ Configuration loaded (device_id={self.config.device_id})")

        mqtt_config = self.config.mqtt_config
        device_id = self.config.device_id

        # 2. Territory store
        self.logger.info("🔌 Connecting territory store")
        self.store = MQTTTerritoryStore(
            broker_host=mqtt_config.broker,
            broker_port=mqtt_config.port,
            topic_prefix=mqtt_config.topic_prefix,
            client_id=f"turf_store_{device_id}",
            logger=create_logger(component="territory_store"),
            username=mqtt_config.username,
            password=mqtt_config.password,
            qos=mqtt_config.qos,
            publish_timeout=mqtt_config.publish_timeout_s,
        )
        if not self.store.connect():
            # Offline start: writes go to the outbox until the broker returns
            self.logger.warning("⚠️  Territory store unavailable, running offline")

        # 3. Control plane
        self.control_plane = MQTTControlPlane(
            broker_host=mqtt_config.broker,
            broker_port=mqtt_config.port,
            command_topic=mqtt_config.command_topic(device_id),
            status_topic=mqtt_config.status_topic(device_id),
            client_id=f"turf_control_{device_id}",
            username=mqtt_config.username,
            password=mqtt_config.password,
        )

        # 4. Service
        directory = self.config.storage.directory
        if directory:
            blob_store = JsonFileBlobStore(directory)
            self.logger.info(f"💾 Local storage: {directory}")
        else:
            blob_store = MemoryBlobStore()
            self.logger.warning("⚠️  No storage directory configured, state is in-memory only")

        self.service = TrackingService(
            config=self.config,
            store=self.store,
            blob_store=blob_store,
            control_plane=self.control_plane,
        )
        self.service.setup()
        self.logger.info("✅ Service created")

        # 5. Accept commands
        if not self.control_plane.connect(timeout=10.0):
            raise RuntimeError("Failed to connect control plane to MQTT broker")
        self.logger.info(f"📥 Commands: {mqtt_config.command_topic(device_id)}")
        self.logger.info("=" * 80)

    def run(self):
        """Block until shutdown is requested."""
        if not self.service:
            raise RuntimeError("Service not initialized. Call setup() first.")

        signal.signal(signal.SIGTERM, self._signal_handler)
        signal.signal(signal.SIGINT, self._signal_handler)

        self.logger.info("✅ Tracker running")
        self.logger.info("Press Ctrl+C to stop")
        self._stop_event.wait()

    def shutdown(self):
        """
        Graceful shutdown of all components.

        Order:
        1. Stop service (saves an active session, stops outbox)
        2. Disconnect control plane
        3. Disconnect territory store
        """
        if self._shutdown_requested:
            self.logger.warning("⚠️  Shutdown already in progress")
            return

        self._shutdown_requested = True
        self.logger.info("🛑 Shutting down tracker")

        if self.service:
            self.service.shutdown()
            self.logger.info("✅ Service stopped")

        if self.control_plane:
            self.control_plane.disconnect()
            self.logger.info("✅ Control plane disconnected")

        if self.store:
            self.store.disconnect()
            self.logger.info("✅ Territory store disconnected")

        self._stop_event.set()
        self.logger.info("✅ Shutdown complete")

    def _signal_handler(self, signum, frame):
        signal_name = signal.Signals(signum).name
        self.logger.info(f"⚠️  Received signal {signal_name} ({signum})")
        self.shutdown()


# ─────────────────────────────────────────────────────────────────────────────
# CLI
# ─────────────────────────────────────────────────────────────────────────────

def parse_args():
    parser = argparse.ArgumentParser(
        description="Turf Tracker - GPS loop capture + territory sync over MQTT",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Start with default config
  turf-tracker --config config/tracker.yaml

  # Start without file logging (console only)
  turf-tracker --config config/tracker.yaml --no-log-file
        """
    )

    parser.add_argument(
        '--config',
        type=Path,
        required=True,
        help='Path to tracker configuration YAML file'
    )

    parser.add_argument(
        '--log-file',
        type=Path,
        default=Path('logs/tracker.log'),
        help='Path to log file (default: logs/tracker.log)'
    )

    parser.add_argument(
        '--no-log-file',
        action='store_true',
        help='Disable file logging (console only)'
    )

    return parser.parse_args()


def main():
    """
    Main entry point.

    Workflow:
    1. Parse CLI arguments
    2. Create TrackerApp
    3. Setup components
    4. Run (blocks until stopped)
    """
    args = parse_args()

    log_file = None if args.no_log_file else args.log_file

    if not args.config.exists():
        print(f"❌ Error: Configuration file not found: {args.config}", file=sys.stderr)
        sys.exit(1)

    app = TrackerApp(
        config_path=args.config,
        log_file=log_file
    )

    try:
        app.setup()
        app.run()
    except (RuntimeError, ValueError, KeyError, OSError) as e:
        print(f"❌ Fatal error: {e}", file=sys.stderr)
        app.shutdown()
        sys.exit(1)


if __name__ == '__main__':
    main()
