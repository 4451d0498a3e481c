"""
Territory Layer
===============

Bounded Context: Who owns which polygon, and how strongly.

Responsibilities:
- Territory / Owner records
- Ownership arbitration (strengthen, contest, claim-over, create)
- Read-time decay projection
- Status classification and leaderboard
- Local copy-on-write cache
"""

from turf_engine.territory.models import Owner, Territory
from turf_engine.territory.arbitration import (
    MAX_STRENGTH,
    ArbitrationResult,
    OwnershipArbiter,
    Transition,
)
from turf_engine.territory.decay import (
    DAILY_DECAY_RATE,
    decay_factor,
    decay_territory,
    project_decay,
)
from turf_engine.territory.standings import (
    Standing,
    TerritoryStatus,
    dominant_owner,
    leaderboard,
    territory_status,
)
from turf_engine.territory.cache import TerritoryCache

__all__ = [
    "Owner",
    "Territory",
    "MAX_STRENGTH",
    "ArbitrationResult",
    "OwnershipArbiter",
    "Transition",
    "DAILY_DECAY_RATE",
    "decay_factor",
    "decay_territory",
    "project_decay",
    "Standing",
    "TerritoryStatus",
    "dominant_owner",
    "leaderboard",
    "territory_status",
    "TerritoryCache",
]
