"""
Loop Detector Module
====================

Finds the oldest point of the smoothed path that the newest point has
returned to, and decides whether the enclosed loop is big enough to claim.

Algorithm (re-run on every path update):
1. Skip paths with MIN_PATH_POINTS or fewer points
2. Candidates i in [0, n - CANDIDATE_TAIL) scanned oldest-first
3. Candidate i closes when distance(path[i], last) < close_threshold_m
   AND path distance from i to the end > min_loop_distance_m
4. The first closing candidate wins; its sub-path is the polygon
5. Capture when area >= min_area_m2; the live path keeps path[0..i]

At most one capture per invocation.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np

from turf_engine.geometry import (
    Point,
    distances_to,
    polygon_area_square_meters,
    segment_lengths_meters,
)

logger = logging.getLogger(__name__)

LOOP_CLOSE_THRESHOLD_M = 50.0
MIN_LOOP_DISTANCE_M = 20.0
MIN_TERRITORY_AREA_M2 = 30.0
MIN_PATH_POINTS = 10
CANDIDATE_TAIL = 10


@dataclass(frozen=True)
class LoopClosure:
    """Closing candidate found by the scan (area not yet checked)."""
    start_index: int
    distance_m: float


@dataclass(frozen=True)
class LoopCapture:
    """
    A claimed loop.

    Attributes:
        polygon: smoothed[start_index:], implicitly closed
        area_m2: Enclosed area
        distance_m: Path distance around the loop
        start_index: Closure index in the smoothed path
        remaining_path: smoothed[0..start_index] inclusive, the new live path
    """

    polygon: Tuple[Point, ...]
    area_m2: float
    distance_m: float
    start_index: int
    remaining_path: Tuple[Point, ...]


class LoopDetector:
    """
    Stateless loop-closure scanner.

    Usage:
        detector = LoopDetector()
        capture = detector.detect(smoothed)
        if capture:
            path = capture.remaining_path
    """

    def __init__(
        self,
        close_threshold_m: float = LOOP_CLOSE_THRESHOLD_M,
        min_loop_distance_m: float = MIN_LOOP_DISTANCE_M,
        min_area_m2: float = MIN_TERRITORY_AREA_M2,
    ):
        self.close_threshold_m = close_threshold_m
        self.min_loop_distance_m = min_loop_distance_m
        self.min_area_m2 = min_area_m2

    def find_closure(self, smoothed: Sequence[Point]) -> Optional[LoopClosure]:
        """Oldest candidate index the path has closed on, or None."""
        n = len(smoothed)
        if n <= MIN_PATH_POINTS:
            return None

        candidates = n - CANDIDATE_TAIL
        to_last = distances_to(smoothed[:candidates], smoothed[-1])

        # remaining[i] = path distance from point i to the last point
        segments = segment_lengths_meters(smoothed)
        remaining = np.concatenate((np.cumsum(segments[::-1])[::-1], [0.0]))[:candidates]

        closes = (to_last < self.close_threshold_m) & (remaining > self.min_loop_distance_m)
        if not closes.any():
            return None

        i = int(np.argmax(closes))
        return LoopClosure(start_index=i, distance_m=float(remaining[i]))

    def detect(self, smoothed: Sequence[Point]) -> Optional[LoopCapture]:
        """
        Scan for a loop and check its area.

        Args:
            smoothed: Smoothed live path

        Returns:
            LoopCapture, or None (path stays untouched)
        """
        closure = self.find_closure(smoothed)
        if closure is None:
            return None

        i = closure.start_index
        polygon = tuple(smoothed[i:])
        area = polygon_area_square_meters(polygon)
        logger.debug(
            f"Loop candidate at {i}/{len(smoothed)}: "
            f"distance={closure.distance_m:.1f}m area={area:.0f}m²"
        )

        if area < self.min_area_m2:
            logger.debug(f"Loop area too small, not capturing: {area:.0f}m² < {self.min_area_m2}m²")
            return None

        return LoopCapture(
            polygon=polygon,
            area_m2=area,
            distance_m=closure.distance_m,
            start_index=i,
            remaining_path=tuple(smoothed[:i + 1]),
        )
