"""
Decay projector: read-time strength scaling.

    days   = (now - created_at) / 86_400_000
    factor = (1 - daily_rate) ** max(0, days)

Stored strengths are never touched; callers get new Territory values.
"""

from typing import Iterable, List

from turf_engine.territory.models import Territory

DAILY_DECAY_RATE = 0.02
MS_PER_DAY = 86_400_000


def decay_factor(created_at: int, now_ms: int, daily_rate: float = DAILY_DECAY_RATE) -> float:
    """Multiplier in (0, 1]; 1.0 for territories created now or in the future."""
    days = (now_ms - created_at) / MS_PER_DAY
    return (1.0 - daily_rate) ** max(0.0, days)


def decay_territory(territory: Territory, now_ms: int, daily_rate: float = DAILY_DECAY_RATE) -> Territory:
    factor = decay_factor(territory.created_at, now_ms, daily_rate)
    return territory.replace_owners(o.with_strength(o.strength * factor) for o in territory.owners)


def project_decay(
    territories: Iterable[Territory],
    now_ms: int,
    daily_rate: float = DAILY_DECAY_RATE,
) -> List[Territory]:
    """
    Decayed view of a collection.

    Args:
        territories: Stored territories
        now_ms: Evaluation time, epoch milliseconds
        daily_rate: Fractional strength loss per day

    Returns:
        New list in the same order with scaled owner strengths
    """
    return [decay_territory(t, now_ms, daily_rate) for t in territories]
