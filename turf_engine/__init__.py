"""
Turf Engine
===========

Live GPS loop-capture and territory arbitration.

Layers (leaves first):
- geometry: distance, projection, area, bbox overlap
- tracking: filter/smoother, odometer, loop detector
- territory: models, arbitration, decay, standings, cache
- session: the controller that owns the live path

Example:
    >>> from turf_engine import SessionController, TerritoryCache, ActivityMode, RawSample
    >>> session = SessionController(owner_id="alice", cache=TerritoryCache())
    >>> session.start(ActivityMode.WALK)
    >>> outcome = session.ingest(RawSample(45.0, 7.0, timestamp=1_700_000_000_000, accuracy=8.0))
"""

from turf_engine.geometry import Point, BoundingBox
from turf_engine.tracking import ActivityMode, RawSample, LoopCapture
from turf_engine.territory import (
    ArbitrationResult,
    Owner,
    OwnershipArbiter,
    Territory,
    TerritoryCache,
    Transition,
)
from turf_engine.session import IngestOutcome, SessionController, SessionRecord, SessionState

__version__ = "0.1.0"

__all__ = [
    "Point",
    "BoundingBox",
    "ActivityMode",
    "RawSample",
    "LoopCapture",
    "ArbitrationResult",
    "Owner",
    "OwnershipArbiter",
    "Territory",
    "TerritoryCache",
    "Transition",
    "IngestOutcome",
    "SessionController",
    "SessionRecord",
    "SessionState",
]
