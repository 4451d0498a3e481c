"""
Geometry Layer
==============

Bounded Context: Pure GPS geometry.

Responsibilities:
- Point and bounding-box value objects
- Great-circle distance, local planar projection, polygon area
- Bounding-box overlap
- NO state, NO tracking, NO ownership
"""

from turf_engine.geometry.shapes import Point, BoundingBox
from turf_engine.geometry.primitives import (
    EARTH_RADIUS_M,
    WGS84_SEMI_MAJOR_AXIS_M,
    distance_meters,
    distances_to,
    segment_lengths_meters,
    path_length_meters,
    project_local,
    polygon_area_square_meters,
    bounding_box,
    bounding_boxes_overlap,
    square_meters_to_square_miles,
)

__all__ = [
    "Point",
    "BoundingBox",
    "EARTH_RADIUS_M",
    "WGS84_SEMI_MAJOR_AXIS_M",
    "distance_meters",
    "distances_to",
    "segment_lengths_meters",
    "path_length_meters",
    "project_local",
    "polygon_area_square_meters",
    "bounding_box",
    "bounding_boxes_overlap",
    "square_meters_to_square_miles",
]
