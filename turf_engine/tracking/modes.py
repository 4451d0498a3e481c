"""Activity modes and their per-mode movement constants."""

from enum import Enum
from typing import Dict, Optional


class ActivityMode(str, Enum):
    """Activity selected at session start; immutable for the session."""
    WALK = "walk"
    RUN = "run"
    CYCLE = "cycle"

    @property
    def max_speed_mps(self) -> float:
        """Fastest plausible speed for this activity (m/s)."""
        return _MAX_SPEED_MPS[self]

    @property
    def stride_length_m(self) -> Optional[float]:
        """Average stride for step-derived distance; None when steps don't apply."""
        return _STRIDE_LENGTH_M.get(self)

    @property
    def uses_steps(self) -> bool:
        return self in _STRIDE_LENGTH_M


_MAX_SPEED_MPS: Dict[ActivityMode, float] = {
    ActivityMode.WALK: 3.0,
    ActivityMode.RUN: 7.0,
    ActivityMode.CYCLE: 15.0,
}

_STRIDE_LENGTH_M: Dict[ActivityMode, float] = {
    ActivityMode.WALK: 0.762,
    ActivityMode.RUN: 0.914,
}
