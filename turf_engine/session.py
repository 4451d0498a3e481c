"""
Session Controller
==================

Single owner of the live path. Every mutation of session state goes
through start / pause / resume / stop / ingest / ingest_many / record_steps.

State machine:
    IDLE --start--> ACTIVE --pause--> PAUSED --resume--> ACTIVE
    ACTIVE|PAUSED --stop--> IDLE

Invalid transitions are ignored (logged, return False/None).

Pipeline per admitted sample:
    filter -> append -> smooth(whole path) -> odometer -> loop detector
    -> (capture) arbitration against the territory cache -> truncate path

Not thread-safe; callers serialise access.
"""

import logging
import time
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Optional, Tuple

from turf_engine.geometry import Point, distance_meters
from turf_engine.territory import ArbitrationResult, OwnershipArbiter, TerritoryCache
from turf_engine.tracking import (
    ActivityMode,
    LoopCapture,
    LoopDetector,
    Odometer,
    Path,
    PathFilter,
    RawSample,
    SegmentReading,
    smooth_path,
)

logger = logging.getLogger(__name__)

LIVE_SMOOTHING_WINDOW = 3
MOVEMENT_THRESHOLD_M = 5.0


def now_ms() -> int:
    return int(time.time() * 1000)


class SessionState(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    PAUSED = "paused"


@dataclass(frozen=True)
class SessionRecord:
    """
    Completed session summary.

    Attributes:
        id: Session identifier (end time in ms, as a string)
        mode: Activity mode
        path: Live path at stop time
        distance_m: Accumulated distance, rounded to whole meters
        started_at: Start time, epoch ms
        ended_at: Stop time, epoch ms
    """

    id: str
    mode: ActivityMode
    path: Tuple[Point, ...]
    distance_m: int
    started_at: int
    ended_at: int

    def contains(self, timestamp_ms: int) -> bool:
        """True if timestamp_ms falls inside [started_at, ended_at]."""
        return self.started_at <= timestamp_ms <= self.ended_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'mode': self.mode.value,
            'path': [p.to_dict() for p in self.path],
            'distanceMeters': self.distance_m,
            'startedAt': self.started_at,
            'endedAt': self.ended_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SessionRecord':
        """
        Deserialize from dict.

        Raises:
            ValueError: If required keys are missing or values invalid
        """
        try:
            return cls(
                id=str(data['id']),
                mode=ActivityMode(data['mode']),
                path=tuple(Point.from_dict(p) for p in data.get('path') or ()),
                distance_m=int(round(float(data.get('distanceMeters', 0)))),
                started_at=int(data['startedAt']),
                ended_at=int(data['endedAt']),
            )
        except KeyError as e:
            raise ValueError(f"Missing required SessionRecord field: {e}")
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid SessionRecord data: {e}")


@dataclass(frozen=True)
class IngestOutcome:
    """
    What one ingest call did.

    accepted is False when the controller is not active or every sample
    was filtered out; the other fields are then empty.
    """

    accepted: bool
    reading: Optional[SegmentReading] = None
    capture: Optional[LoopCapture] = None
    arbitration: Optional[ArbitrationResult] = None

    @property
    def captured(self) -> bool:
        return self.capture is not None


class SessionController:
    """
    Explicit session state for one device.

    Args:
        owner_id: Claimant id used for arbitration
        cache: Territory cache arbitration reads and commits to
        arbiter: Ownership arbiter (default clamp policy if None)
        path_filter: Sample admission gate
        detector: Loop detector
        smoothing_window: Window used for live smoothing
        clock: Returns current epoch ms
        id_factory: Returns ids for newly created territories
    """

    def __init__(
        self,
        owner_id: str,
        cache: TerritoryCache,
        arbiter: Optional[OwnershipArbiter] = None,
        path_filter: Optional[PathFilter] = None,
        detector: Optional[LoopDetector] = None,
        smoothing_window: int = LIVE_SMOOTHING_WINDOW,
        movement_threshold_m: float = MOVEMENT_THRESHOLD_M,
        clock: Callable[[], int] = now_ms,
        id_factory: Callable[[], str] = lambda: uuid.uuid4().hex,
    ):
        self.owner_id = owner_id
        self.cache = cache
        self.arbiter = arbiter or OwnershipArbiter()
        self.path_filter = path_filter or PathFilter()
        self.detector = detector or LoopDetector()
        self.smoothing_window = smoothing_window
        self.movement_threshold_m = movement_threshold_m
        self.clock = clock
        self.id_factory = id_factory
        self._reset()

    def _reset(self) -> None:
        self.state = SessionState.IDLE
        self.mode: Optional[ActivityMode] = None
        self.path: Path = ()
        self.odometer: Optional[Odometer] = None
        self.started_at: Optional[int] = None
        self.paused_at: Optional[int] = None
        self.paused_total_ms = 0
        self.loops_captured = 0
        self.last_capture: Optional[LoopCapture] = None
        self.last_movement_at: Optional[int] = None

    # ========================================================================
    # Lifecycle
    # ========================================================================

    def start(self, mode: ActivityMode, step_counter: bool = False) -> bool:
        """Begin a session; ignored unless idle."""
        if self.state is not SessionState.IDLE:
            logger.warning(f"start ignored: session is {self.state.value}")
            return False

        now = self.clock()
        self._reset()
        self.state = SessionState.ACTIVE
        self.mode = ActivityMode(mode)
        self.odometer = Odometer(self.mode, step_counter=step_counter)
        self.started_at = now
        self.last_movement_at = now
        logger.info(
            f"Session started: mode={self.mode.value}, "
            f"distance_source={'steps' if self.odometer.uses_steps else 'gps'}"
        )
        return True

    def pause(self) -> bool:
        if self.state is not SessionState.ACTIVE:
            logger.warning(f"pause ignored: session is {self.state.value}")
            return False
        self.state = SessionState.PAUSED
        self.paused_at = self.clock()
        logger.info("Session paused")
        return True

    def resume(self) -> bool:
        if self.state is not SessionState.PAUSED:
            logger.warning(f"resume ignored: session is {self.state.value}")
            return False
        now = self.clock()
        self.paused_total_ms += max(0, now - self.paused_at)
        self.paused_at = None
        self.last_movement_at = now
        self.state = SessionState.ACTIVE
        logger.info("Session resumed")
        return True

    def stop(self) -> Optional[SessionRecord]:
        """
        End the session and clear the path.

        Returns:
            SessionRecord, or None when already idle
        """
        if self.state is SessionState.IDLE:
            logger.warning("stop ignored: no session")
            return None

        ended_at = self.clock()
        record = SessionRecord(
            id=str(ended_at),
            mode=self.mode,
            path=self.path,
            distance_m=int(round(self.distance_m)),
            started_at=self.started_at if self.started_at is not None else ended_at,
            ended_at=ended_at,
        )
        logger.info(
            f"Session stopped: distance={record.distance_m}m, loops={self.loops_captured}, "
            f"points={len(self.path)}"
        )
        self._reset()
        return record

    # ========================================================================
    # Inputs
    # ========================================================================

    def ingest(self, sample: RawSample) -> IngestOutcome:
        """Admit one live sample and run the pipeline."""
        if self.state is not SessionState.ACTIVE:
            return IngestOutcome(accepted=False)

        path = self.path_filter.admit(self.path, sample)
        if path is self.path:
            return IngestOutcome(accepted=False)
        return self._process(path)

    def ingest_many(self, samples: Iterable[RawSample]) -> IngestOutcome:
        """Admit a drained batch, then run the pipeline once."""
        if self.state is not SessionState.ACTIVE:
            return IngestOutcome(accepted=False)

        path = self.path_filter.admit_many(self.path, samples)
        if len(path) == len(self.path):
            return IngestOutcome(accepted=False)
        logger.debug(f"Merged {len(path) - len(self.path)} background points")
        return self._process(path)

    def record_steps(self, delta: int) -> bool:
        if self.state is not SessionState.ACTIVE:
            return False
        self.odometer.record_steps(delta)
        return True

    def _process(self, path: Path) -> IngestOutcome:
        previous = self.path[-1] if self.path else None
        self.path = path

        if previous is not None and distance_meters(previous, path[-1]) > self.movement_threshold_m:
            self.last_movement_at = self.clock()

        if len(path) < 2:
            return IngestOutcome(accepted=True)

        smoothed = smooth_path(path, self.smoothing_window)
        reading = self.odometer.update(smoothed)

        capture = self.detector.detect(smoothed)
        if capture is None:
            return IngestOutcome(accepted=True, reading=reading)

        result = self.arbiter.arbitrate(
            self.cache.snapshot(),
            capture.polygon,
            owner_id=self.owner_id,
            mode=self.mode,
            territory_id=self.id_factory(),
            created_at=self.clock(),
        )
        self.cache.commit(result)
        self.path = capture.remaining_path
        self.loops_captured += 1
        self.last_capture = capture
        logger.info(
            f"Loop captured: area={capture.area_m2:.0f}m², distance={capture.distance_m:.0f}m, "
            f"created={result.created is not None}, changed={len(result.changed)}"
        )
        return IngestOutcome(accepted=True, reading=reading, capture=capture, arbitration=result)

    # ========================================================================
    # Queries
    # ========================================================================

    @property
    def distance_m(self) -> float:
        return self.odometer.distance_m if self.odometer else 0.0

    @property
    def steps(self) -> int:
        return self.odometer.steps if self.odometer else 0

    def elapsed_ms(self, now: Optional[int] = None) -> int:
        """Active time, paused intervals excluded."""
        if self.started_at is None:
            return 0
        now = self.clock() if now is None else now
        paused = self.paused_total_ms
        if self.paused_at is not None:
            paused += max(0, now - self.paused_at)
        return max(0, now - self.started_at - paused)

    def idle_ms(self, now: Optional[int] = None) -> int:
        """Time since the last movement beyond the movement threshold."""
        if self.last_movement_at is None:
            return 0
        now = self.clock() if now is None else now
        return max(0, now - self.last_movement_at)

    def status(self) -> Dict[str, Any]:
        return {
            'state': self.state.value,
            'mode': self.mode.value if self.mode else None,
            'points': len(self.path),
            'distance_m': round(self.distance_m, 1),
            'steps': self.steps,
            'elapsed_ms': self.elapsed_ms(),
            'loops_captured': self.loops_captured,
        }
