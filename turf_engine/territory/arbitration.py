"""
Ownership Arbitration Module
============================

Decides what a newly captured polygon does to the territory collection.

For every existing territory whose bounding box overlaps the capture:

    mine only        -> mine + 0.2 (capped at max_strength)      STRENGTHENED
    others, not mine -> append {claimant, 0.5}                    CONTESTED
    mine and others  -> mine + 0.5, then claim-over when
                        mine >= 1.0 and mine > sum(others)        REINFORCED
                                                                  CLAIMED_OVER
    no owners        -> left as is (still blocks creation)        UNTOUCHED

If nothing overlapped, a new territory {claimant, 1.0} is prepended.

Design:
- Pure: input collection is never mutated; a new tuple is returned
- Overlap is the conservative bbox test, false positives accepted
- Clamp policy: uniform_clamp=True caps every increment at max_strength;
  False caps only the exclusive-strengthen branch
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from turf_engine.geometry import Point, bounding_box
from turf_engine.territory.models import Owner, Territory
from turf_engine.tracking.modes import ActivityMode

logger = logging.getLogger(__name__)

NEW_TERRITORY_STRENGTH = 1.0
EXCLUSIVE_INCREMENT = 0.2
CONTEST_ENTRY_STRENGTH = 0.5
CONTEST_INCREMENT = 0.5
CLAIM_OVER_MIN_STRENGTH = 1.0
CLAIM_OVER_STRENGTH = 1.0
MAX_STRENGTH = 2.0


class Transition(str, Enum):
    """What arbitration did to one territory."""
    CREATED = "created"
    STRENGTHENED = "strengthened"
    CONTESTED = "contested"
    REINFORCED = "reinforced"
    CLAIMED_OVER = "claimed_over"
    UNTOUCHED = "untouched"


@dataclass(frozen=True)
class ArbitrationResult:
    """
    Outcome of arbitrating one capture.

    Attributes:
        territories: New collection (input order kept, created record first)
        created: Inserted territory, None when the capture folded into others
        changed: Existing territories whose owners changed (need a remote write)
        transitions: (territory_id, Transition) per touched territory
    """

    territories: Tuple[Territory, ...]
    created: Optional[Territory] = None
    changed: Tuple[Territory, ...] = ()
    transitions: Tuple[Tuple[str, Transition], ...] = field(default_factory=tuple)

    @property
    def overlapped(self) -> bool:
        return self.created is None


class OwnershipArbiter:
    """
    Ownership-strength state machine.

    Usage:
        arbiter = OwnershipArbiter()
        result = arbiter.arbitrate(territories, polygon, "alice", ActivityMode.WALK,
                                   territory_id="t-42", created_at=now_ms)
    """

    def __init__(self, uniform_clamp: bool = True, max_strength: float = MAX_STRENGTH):
        self.uniform_clamp = uniform_clamp
        self.max_strength = max_strength

    def _cap(self, strength: float) -> float:
        return min(self.max_strength, strength)

    def apply_claim(self, territory: Territory, owner_id: str) -> Tuple[Territory, Transition]:
        """Apply one overlapping claim by owner_id to territory."""
        if not territory.owners:
            return territory, Transition.UNTOUCHED

        mine = territory.owner(owner_id)
        others = [o for o in territory.owners if o.owner_id != owner_id]

        if mine is not None and not others:
            strength = self._cap(mine.strength + EXCLUSIVE_INCREMENT)
            logger.info(f"Strengthened own territory {territory.id[:8]}: {strength:.2f}")
            return territory.replace_owners([mine.with_strength(strength)]), Transition.STRENGTHENED

        if mine is None:
            owners = list(territory.owners) + [Owner(owner_id, CONTEST_ENTRY_STRENGTH)]
            logger.info(f"Territory {territory.id[:8]} now contested ({len(owners)} owners)")
            return territory.replace_owners(owners), Transition.CONTESTED

        strength = mine.strength + CONTEST_INCREMENT
        if self.uniform_clamp:
            strength = self._cap(strength)

        others_total = sum(o.strength for o in others)
        if strength >= CLAIM_OVER_MIN_STRENGTH and strength > others_total:
            logger.info(
                f"Territory {territory.id[:8]} claimed over: {strength:.2f} > {others_total:.2f}"
            )
            return (
                territory.replace_owners([Owner(owner_id, CLAIM_OVER_STRENGTH)]),
                Transition.CLAIMED_OVER,
            )

        owners = [mine.with_strength(strength) if o.owner_id == owner_id else o for o in territory.owners]
        logger.info(f"Reinforced claim on {territory.id[:8]}: {strength:.2f}")
        return territory.replace_owners(owners), Transition.REINFORCED

    def arbitrate(
        self,
        territories: Sequence[Territory],
        polygon: Sequence[Point],
        owner_id: str,
        mode: ActivityMode,
        territory_id: str,
        created_at: int,
    ) -> ArbitrationResult:
        """
        Arbitrate a captured polygon against the current collection.

        Args:
            territories: Current collection (not modified)
            polygon: Captured loop, >= 3 points
            owner_id: Claimant
            mode: Session activity mode
            territory_id: Id for the new record if one is created
            created_at: Capture time, epoch milliseconds

        Returns:
            ArbitrationResult
        """
        candidate = Territory(
            id=territory_id,
            mode=mode,
            polygon=tuple(polygon),
            created_at=created_at,
            owners=(Owner(owner_id, NEW_TERRITORY_STRENGTH),),
        )
        capture_box = bounding_box(candidate.polygon)

        updated: List[Territory] = []
        changed: List[Territory] = []
        transitions: List[Tuple[str, Transition]] = []
        overlapped = False

        for territory in territories:
            if not territory.bbox.overlaps(capture_box):
                updated.append(territory)
                continue

            overlapped = True
            result, transition = self.apply_claim(territory, owner_id)
            updated.append(result)
            transitions.append((territory.id, transition))
            if transition is not Transition.UNTOUCHED:
                changed.append(result)

        if overlapped:
            logger.info(f"Capture folded into {len(transitions)} overlapping territories")
            return ArbitrationResult(
                territories=tuple(updated),
                changed=tuple(changed),
                transitions=tuple(transitions),
            )

        logger.info(f"Created territory {territory_id[:8]}, total={len(updated) + 1}")
        return ArbitrationResult(
            territories=(candidate,) + tuple(updated),
            created=candidate,
            transitions=((candidate.id, Transition.CREATED),),
        )
