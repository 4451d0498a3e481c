"""
Configuration schema for the tracking service.

Covers the engine thresholds, the MQTT broker shared by the remote store
and the control plane, local storage, and service identity.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
import yaml


@dataclass(frozen=True)
class EngineConfig:
    """
    Engine thresholds.

    Defaults are the production values; tests and the replay CLI may
    tighten or relax them.
    """

    max_accuracy_m: float = 50.0
    max_jump_m: float = 100.0
    smoothing_window: int = 3
    loop_close_threshold_m: float = 50.0
    min_loop_distance_m: float = 20.0
    min_territory_area_m2: float = 30.0
    daily_decay_rate: float = 0.02
    max_strength: float = 2.0
    uniform_clamp: bool = True  # False: cap only the exclusive-strengthen branch
    inactivity_timeout_s: float = 300.0
    auto_stop_after_s: float = 180.0

    def __post_init__(self):
        """Validate engine configuration."""
        for name in ("max_accuracy_m", "max_jump_m", "loop_close_threshold_m", "max_strength"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be > 0, got {getattr(self, name)}")

        for name in ("min_loop_distance_m", "min_territory_area_m2", "inactivity_timeout_s", "auto_stop_after_s"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0, got {getattr(self, name)}")

        if not 2 <= self.smoothing_window <= 5:
            raise ValueError(
                f"smoothing_window must be in [2, 5], got {self.smoothing_window}"
            )

        if not 0.0 <= self.daily_decay_rate < 1.0:
            raise ValueError(
                f"daily_decay_rate must be in [0.0, 1.0), got {self.daily_decay_rate}"
            )


@dataclass(frozen=True)
class MQTTConfig:
    """MQTT broker configuration."""

    broker: str = "localhost"
    port: int = 1883
    username: Optional[str] = None
    password: Optional[str] = None
    qos: int = 1  # Territory writes must be acknowledged
    topic_prefix: str = "turf"
    publish_timeout_s: float = 5.0

    def __post_init__(self):
        """Validate MQTT configuration."""
        if not self.broker:
            raise ValueError("broker cannot be empty")

        if not 1 <= self.port <= 65535:
            raise ValueError(
                f"MQTT port must be in [1, 65535], got {self.port}"
            )

        if self.qos not in {0, 1, 2}:
            raise ValueError(
                f"MQTT QoS must be 0, 1, or 2, got {self.qos}"
            )

        if not self.topic_prefix or "+" in self.topic_prefix or "#" in self.topic_prefix:
            raise ValueError(f"Invalid topic_prefix: {self.topic_prefix!r}")

    def command_topic(self, device_id: str) -> str:
        return f"{self.topic_prefix}/control/{device_id}/commands"

    def status_topic(self, device_id: str) -> str:
        return f"{self.topic_prefix}/control/{device_id}/status"


@dataclass(frozen=True)
class StorageConfig:
    """Local blob storage. No directory means in-memory only."""

    directory: Optional[Path] = None

    def __post_init__(self):
        if self.directory is not None and self.directory.exists() and not self.directory.is_dir():
            raise ValueError(
                f"storage directory must be a directory, got file: {self.directory}"
            )


@dataclass(frozen=True)
class TrackerConfig:
    """
    Main configuration for the tracking service.

    Loaded from YAML and validated at startup. Immutable after construction.
    """

    device_id: str
    flush_interval_s: float = 15.0
    inactivity_check_interval_s: float = 10.0
    engine: EngineConfig = field(default_factory=EngineConfig)
    mqtt_config: MQTTConfig = field(default_factory=MQTTConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)

    def __post_init__(self):
        """Validate tracker configuration."""
        if not self.device_id:
            raise ValueError("device_id cannot be empty")

        if self.flush_interval_s <= 0:
            raise ValueError(
                f"flush_interval_s must be > 0, got {self.flush_interval_s}"
            )

        if self.inactivity_check_interval_s <= 0:
            raise ValueError(
                f"inactivity_check_interval_s must be > 0, got {self.inactivity_check_interval_s}"
            )

    @classmethod
    def from_yaml(cls, yaml_path: Path) -> "TrackerConfig":
        """
        Load configuration from YAML file.

        Example YAML:
            device_id: "phone_01"
            flush_interval_s: 15

            engine:
              smoothing_window: 3
              min_territory_area_m2: 30
              uniform_clamp: true

            mqtt_config:
              broker: "localhost"
              port: 1883
              topic_prefix: "turf"

            storage:
              directory: "./data"
        """
        with open(yaml_path) as f:
            data = yaml.safe_load(f) or {}

        engine = EngineConfig(**(data.get("engine") or {}))
        mqtt_config = MQTTConfig(**(data.get("mqtt_config") or {}))

        storage_data = data.get("storage") or {}
        directory = storage_data.get("directory")
        storage = StorageConfig(directory=Path(directory).expanduser() if directory else None)

        return cls(
            device_id=data["device_id"],
            flush_interval_s=data.get("flush_interval_s", 15.0),
            inactivity_check_interval_s=data.get("inactivity_check_interval_s", 10.0),
            engine=engine,
            mqtt_config=mqtt_config,
            storage=storage,
        )
