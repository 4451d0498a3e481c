"""
Geo Primitives Module
=====================

Stateless spatial functions over Point sequences.

Design:
- Pure functions (no state)
- numpy for the vectorised projection, shoelace and haversine paths
- Degenerate input degrades to 0 / empty results, never raises

Constants:
- Haversine uses the mean Earth radius (6,371,000 m)
- Local projection uses the WGS-84 semi-major axis (6,378,137 m). The two
  radii differ on purpose; areas are only compared against other areas
  produced by the same projection.
"""

import math
from typing import Sequence, Tuple

import numpy as np

from turf_engine.geometry.shapes import BoundingBox, Point

EARTH_RADIUS_M = 6_371_000.0
WGS84_SEMI_MAJOR_AXIS_M = 6_378_137.0
SQUARE_METERS_PER_SQUARE_MILE = 2_589_988.110336


def distance_meters(a: Point, b: Point) -> float:
    """
    Haversine great-circle distance in meters.

    Args:
        a: First point
        b: Second point

    Returns:
        Distance in meters (0.0 for identical points)
    """
    phi1 = math.radians(a.latitude)
    phi2 = math.radians(b.latitude)
    d_phi = math.radians(b.latitude - a.latitude)
    d_lambda = math.radians(b.longitude - a.longitude)

    h = math.sin(d_phi / 2.0) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2.0) ** 2
    c = 2.0 * math.atan2(math.sqrt(h), math.sqrt(1.0 - h))
    return EARTH_RADIUS_M * c


def _haversine_arrays(
    lat1: np.ndarray,
    lon1: np.ndarray,
    lat2: np.ndarray,
    lon2: np.ndarray,
) -> np.ndarray:
    """Vectorised haversine over degree arrays (broadcasting allowed)."""
    phi1 = np.radians(lat1)
    phi2 = np.radians(lat2)
    d_phi = np.radians(lat2 - lat1)
    d_lambda = np.radians(lon2 - lon1)

    h = np.sin(d_phi / 2.0) ** 2 + np.cos(phi1) * np.cos(phi2) * np.sin(d_lambda / 2.0) ** 2
    h = np.clip(h, 0.0, 1.0)
    return EARTH_RADIUS_M * 2.0 * np.arctan2(np.sqrt(h), np.sqrt(1.0 - h))


def _coordinates(points: Sequence[Point]) -> Tuple[np.ndarray, np.ndarray]:
    lats = np.fromiter((p.latitude for p in points), dtype=np.float64, count=len(points))
    lons = np.fromiter((p.longitude for p in points), dtype=np.float64, count=len(points))
    return lats, lons


def segment_lengths_meters(points: Sequence[Point]) -> np.ndarray:
    """
    Distances between consecutive points.

    Returns:
        Array of shape (N-1,); empty for fewer than 2 points
    """
    if len(points) < 2:
        return np.zeros(0, dtype=np.float64)
    lats, lons = _coordinates(points)
    return _haversine_arrays(lats[:-1], lons[:-1], lats[1:], lons[1:])


def distances_to(points: Sequence[Point], target: Point) -> np.ndarray:
    """Distance from every point to a single target, shape (N,)."""
    if len(points) == 0:
        return np.zeros(0, dtype=np.float64)
    lats, lons = _coordinates(points)
    return _haversine_arrays(lats, lons, np.float64(target.latitude), np.float64(target.longitude))


def path_length_meters(points: Sequence[Point]) -> float:
    """Total length of an open polyline."""
    return float(segment_lengths_meters(points).sum())


def project_local(origin_lat: float, point: Point) -> Tuple[float, float]:
    """
    Equirectangular projection to planar meters.

    Longitude is scaled by cos(origin_lat); latitude is measured from
    origin_lat. Only valid for spans well under a kilometre.

    Args:
        origin_lat: Reference latitude in degrees
        point: Point to project

    Returns:
        (x, y) in meters
    """
    x = WGS84_SEMI_MAJOR_AXIS_M * math.radians(point.longitude) * math.cos(math.radians(origin_lat))
    y = WGS84_SEMI_MAJOR_AXIS_M * math.radians(point.latitude - origin_lat)
    return x, y


def polygon_area_square_meters(polygon: Sequence[Point]) -> float:
    """
    Unsigned polygon area via the shoelace formula.

    All vertices are projected with polygon[0]'s latitude as origin. The
    last vertex connects implicitly back to the first; winding direction
    does not matter.

    Args:
        polygon: Ordered vertices

    Returns:
        Area in square meters; 0.0 for fewer than 3 vertices or when the
        projection is not finite
    """
    if len(polygon) < 3:
        return 0.0

    lats, lons = _coordinates(polygon)
    origin_lat = lats[0]
    x = WGS84_SEMI_MAJOR_AXIS_M * np.radians(lons) * math.cos(math.radians(origin_lat))
    y = WGS84_SEMI_MAJOR_AXIS_M * np.radians(lats - origin_lat)

    cross = x * np.roll(y, -1) - np.roll(x, -1) * y
    area = abs(float(cross.sum())) / 2.0
    if not math.isfinite(area):
        return 0.0
    return area


def bounding_box(polygon: Sequence[Point]) -> BoundingBox:
    """Min/max latitude and longitude of a polygon."""
    if len(polygon) == 0:
        return BoundingBox(math.inf, math.inf, -math.inf, -math.inf)
    lats, lons = _coordinates(polygon)
    return BoundingBox(
        min_lat=float(lats.min()),
        min_lon=float(lons.min()),
        max_lat=float(lats.max()),
        max_lon=float(lons.max()),
    )


def bounding_boxes_overlap(a: Sequence[Point], b: Sequence[Point]) -> bool:
    """
    Conservative overlap test between two polygons.

    Boxes that intersect while the polygons do not still report True.
    """
    return bounding_box(a).overlaps(bounding_box(b))


def square_meters_to_square_miles(area_m2: float) -> float:
    return area_m2 / SQUARE_METERS_PER_SQUARE_MILE
