"""
Path Filter & Smoother Module
=============================

Ingestion-side cleanup of raw location samples.

Design:
- PathFilter decides admission (accuracy gate, jump gate)
- Paths are tuples; admission returns a new tuple (copy-on-write)
- smooth_path() is a pure function recomputed over the whole path

Filters:
- Accuracy: samples reporting horizontal accuracy > 50 m are dropped
- Jump: samples > 100 m from the current last point are dropped as glitches
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np

from turf_engine.geometry import Point, distance_meters

logger = logging.getLogger(__name__)

MAX_ACCURACY_M = 50.0
MAX_JUMP_M = 100.0
MIN_SMOOTHING_WINDOW = 2
MAX_SMOOTHING_WINDOW = 5

Path = Tuple[Point, ...]


@dataclass(frozen=True)
class RawSample:
    """
    Position sample as delivered by the location source.

    Attributes:
        latitude: Latitude in decimal degrees
        longitude: Longitude in decimal degrees
        timestamp: Unix epoch milliseconds
        accuracy: Reported horizontal accuracy in meters (None if unknown)
    """

    latitude: float
    longitude: float
    timestamp: int
    accuracy: Optional[float] = None

    def to_point(self) -> Point:
        return Point(latitude=self.latitude, longitude=self.longitude, timestamp=self.timestamp)


class PathFilter:
    """
    Admission gate between the location source and the live path.

    Usage:
        path_filter = PathFilter()
        path = path_filter.admit(path, sample)  # same tuple when rejected
    """

    def __init__(self, max_accuracy_m: float = MAX_ACCURACY_M, max_jump_m: float = MAX_JUMP_M):
        self.max_accuracy_m = max_accuracy_m
        self.max_jump_m = max_jump_m

    def accepts_accuracy(self, sample: RawSample) -> bool:
        """True unless the sample reports an accuracy worse than the limit."""
        if sample.accuracy and sample.accuracy > self.max_accuracy_m:
            logger.debug(f"Filtered inaccurate point, accuracy={sample.accuracy:.1f}m")
            return False
        return True

    def is_jump(self, last: Optional[Point], point: Point) -> bool:
        """True when point is implausibly far from the previous one."""
        if last is None:
            return False
        dist = distance_meters(last, point)
        if dist > self.max_jump_m:
            logger.debug(f"Filtered GPS jump: {dist:.1f}m from last point")
            return True
        return False

    def admit(self, path: Path, sample: RawSample) -> Path:
        """
        Append sample to path if it passes both gates.

        Args:
            path: Current live path
            sample: Raw sample

        Returns:
            New path with the point appended, or the input path unchanged
        """
        if not self.accepts_accuracy(sample):
            return path
        try:
            point = sample.to_point()
        except ValueError as e:
            logger.debug(f"Filtered invalid sample: {e}")
            return path
        if self.is_jump(path[-1] if path else None, point):
            return path
        return path + (point,)

    def admit_many(self, path: Path, samples: Iterable[RawSample]) -> Path:
        """Admit a batch in order, each checked against the last admitted point."""
        for sample in samples:
            path = self.admit(path, sample)
        return path


def smooth_path(points: Sequence[Point], window_size: int) -> List[Point]:
    """
    Centred moving-average smoothing.

    The window is clamped to [2, 5]; each output point averages up to
    floor(window/2) neighbours on each side, truncated at the path ends.
    Timestamps are averaged and rounded to whole milliseconds.

    Args:
        points: Accepted path
        window_size: Requested window

    Returns:
        Smoothed path of the same length (input returned as-is for <= 2 points)
    """
    if len(points) <= 2:
        return list(points)

    window = max(MIN_SMOOTHING_WINDOW, min(window_size, MAX_SMOOTHING_WINDOW))
    half = window // 2

    data = np.array(
        [(p.latitude, p.longitude, p.timestamp) for p in points],
        dtype=np.float64,
    )
    n = len(points)
    smoothed: List[Point] = []
    for i in range(n):
        start = max(0, i - half)
        end = min(n - 1, i + half)
        lat, lon, ts = data[start:end + 1].mean(axis=0)
        smoothed.append(Point(latitude=float(lat), longitude=float(lon), timestamp=int(round(ts))))
    return smoothed
