"""
Odometer Module
===============

Distance accumulator for an active session.

Two sources:
- GPS: segment between the last two smoothed points, admitted only when
  its speed is within SPEED_TOLERANCE x the mode's max speed
- Steps: steps x stride length, for walk/run when a step counter is
  available (replaces the GPS figure entirely)

Rejected segments are excluded from the distance only; the points stay in
the path for geometry.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from turf_engine.geometry import Point, distance_meters
from turf_engine.tracking.modes import ActivityMode

logger = logging.getLogger(__name__)

SPEED_TOLERANCE = 1.5
MIN_ELAPSED_S = 1.0


@dataclass(frozen=True)
class SegmentReading:
    """Result of evaluating the newest smoothed segment."""
    distance_m: float
    speed_mps: float
    accepted: bool


class Odometer:
    """
    Per-session distance accumulator.

    Args:
        mode: Activity mode (selects speed gate and stride)
        step_counter: True when a step counter feeds record_steps()
    """

    def __init__(self, mode: ActivityMode, step_counter: bool = False):
        self.mode = mode
        self.uses_steps = step_counter and mode.uses_steps
        self.steps = 0
        self._gps_distance_m = 0.0

    @property
    def distance_m(self) -> float:
        if self.uses_steps:
            return self.steps * self.mode.stride_length_m
        return self._gps_distance_m

    @property
    def max_allowed_speed_mps(self) -> float:
        return self.mode.max_speed_mps * SPEED_TOLERANCE

    def record_steps(self, delta: int) -> None:
        """Add a step delta (negative deltas are ignored)."""
        if delta > 0:
            self.steps += delta

    def update(self, smoothed: Sequence[Point]) -> Optional[SegmentReading]:
        """
        Evaluate the last smoothed segment and accumulate it if plausible.

        Returns:
            SegmentReading, or None when fewer than 2 points exist
        """
        if len(smoothed) < 2:
            return None

        prev, last = smoothed[-2], smoothed[-1]
        elapsed_s = max(MIN_ELAPSED_S, (last.timestamp - prev.timestamp) / 1000.0)
        d = distance_meters(prev, last)
        speed = d / elapsed_s
        accepted = speed <= self.max_allowed_speed_mps

        if self.uses_steps:
            return SegmentReading(distance_m=d, speed_mps=speed, accepted=accepted)

        if accepted:
            self._gps_distance_m += d
        else:
            logger.debug(
                f"Speed too high, skipping segment: {speed:.2f} m/s "
                f"(max {self.max_allowed_speed_mps:.2f})"
            )
        return SegmentReading(distance_m=d, speed_mps=speed, accepted=accepted)
