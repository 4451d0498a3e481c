"""
Tracking Layer
==============

Bounded Context: Turning a noisy sample stream into a clean path.

Responsibilities:
- Accuracy / jump filtering and moving-average smoothing
- Distance accumulation (speed gate, stride)
- Loop-closure detection
- NO ownership, NO persistence
"""

from turf_engine.tracking.modes import ActivityMode
from turf_engine.tracking.path_filter import (
    MAX_ACCURACY_M,
    MAX_JUMP_M,
    Path,
    PathFilter,
    RawSample,
    smooth_path,
)
from turf_engine.tracking.odometer import Odometer, SegmentReading
from turf_engine.tracking.loop_detector import (
    LOOP_CLOSE_THRESHOLD_M,
    MIN_LOOP_DISTANCE_M,
    MIN_TERRITORY_AREA_M2,
    LoopCapture,
    LoopClosure,
    LoopDetector,
)

__all__ = [
    "ActivityMode",
    "MAX_ACCURACY_M",
    "MAX_JUMP_M",
    "Path",
    "PathFilter",
    "RawSample",
    "smooth_path",
    "Odometer",
    "SegmentReading",
    "LOOP_CLOSE_THRESHOLD_M",
    "MIN_LOOP_DISTANCE_M",
    "MIN_TERRITORY_AREA_M2",
    "LoopCapture",
    "LoopClosure",
    "LoopDetector",
]
