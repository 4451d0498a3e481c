"""
turf_service - device-side tracking service

Bounded Context: Running the engine as a long-lived process
Responsibilities:
  - YAML configuration (TrackerConfig)
  - MQTT command-and-control (MQTTControlPlane, CommandRegistry)
  - TrackingService: engine + persistence + remote sync + outbox
"""

from .config import EngineConfig, MQTTConfig, StorageConfig, TrackerConfig
from .registry import CommandNotAvailableError, CommandRegistry
from .control import MQTTControlPlane
from .service import TrackingService

__all__ = [
    "EngineConfig",
    "MQTTConfig",
    "StorageConfig",
    "TrackerConfig",
    "CommandNotAvailableError",
    "CommandRegistry",
    "MQTTControlPlane",
    "TrackingService",
]
