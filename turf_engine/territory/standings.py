"""
Standings Module
================

Viewer-relative territory status and the area-weighted leaderboard.

Leaderboard score per owner:
    sum over owned territories of area_m2 x strength

Feed it the decayed view so scores fade with time.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional

from turf_engine.geometry import square_meters_to_square_miles
from turf_engine.territory.models import MIN_POLYGON_POINTS, Owner, Territory
from turf_engine.tracking.modes import ActivityMode

DEFAULT_LEADERBOARD_SIZE = 10


class TerritoryStatus(str, Enum):
    """Territory classification from one viewer's perspective."""
    YOURS = "yours"
    OTHERS = "others"
    CONTESTED = "contested"


@dataclass
class Standing:
    """
    Leaderboard row.

    Attributes:
        owner_id: Player identifier
        weighted_area_m2: Sum of area x strength
        territory_count: Territories the player holds a claim on
    """

    owner_id: str
    weighted_area_m2: float = 0.0
    territory_count: int = 0

    @property
    def weighted_area_mi2(self) -> float:
        return square_meters_to_square_miles(self.weighted_area_m2)

    def to_dict(self) -> Dict[str, object]:
        return {
            'ownerId': self.owner_id,
            'weightedAreaM2': self.weighted_area_m2,
            'weightedAreaMi2': self.weighted_area_mi2,
            'territoryCount': self.territory_count,
        }


def territory_status(territory: Territory, viewer_id: str) -> TerritoryStatus:
    if territory.is_contested:
        return TerritoryStatus.CONTESTED
    if territory.owners and territory.owners[0].owner_id == viewer_id:
        return TerritoryStatus.YOURS
    return TerritoryStatus.OTHERS


def dominant_owner(territory: Territory) -> Optional[Owner]:
    """Strongest claimant; the earliest listed wins ties."""
    if not territory.owners:
        return None
    return max(territory.owners, key=lambda o: o.strength)


def leaderboard(
    territories: Iterable[Territory],
    since_ms: Optional[int] = None,
    mode: Optional[ActivityMode] = None,
    limit: int = DEFAULT_LEADERBOARD_SIZE,
) -> List[Standing]:
    """
    Rank owners by strength-weighted area.

    Args:
        territories: Collection to score (usually the decayed view)
        since_ms: Only territories created at or after this time
        mode: Only territories captured in this mode
        limit: Maximum rows returned

    Returns:
        Standings sorted by weighted area, highest first
    """
    stats: Dict[str, Standing] = {}

    for territory in territories:
        if since_ms is not None and territory.created_at < since_ms:
            continue
        if mode is not None and territory.mode != mode:
            continue
        if len(territory.polygon) < MIN_POLYGON_POINTS:
            continue

        area = territory.area_m2
        for owner in territory.owners:
            standing = stats.setdefault(owner.owner_id, Standing(owner.owner_id))
            standing.weighted_area_m2 += area * owner.strength
            standing.territory_count += 1

    ranked = sorted(stats.values(), key=lambda s: s.weighted_area_m2, reverse=True)
    return ranked[:limit]
