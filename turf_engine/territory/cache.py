"""
Territory cache: the local authoritative copy of the collection.

Whole-value replacement only. Readers get an immutable tuple snapshot; every
write swaps the reference under a lock, so a snapshot taken before a write
is never affected by it.
"""

import logging
from threading import Lock
from typing import Callable, Iterable, Tuple

from turf_engine.territory.arbitration import ArbitrationResult
from turf_engine.territory.models import Territory

logger = logging.getLogger(__name__)


class TerritoryCache:
    """
    Copy-on-write territory collection.

    Usage:
        cache = TerritoryCache()
        result = arbiter.arbitrate(cache.snapshot(), ...)
        cache.commit(result)
    """

    def __init__(self, territories: Iterable[Territory] = ()):
        self._territories: Tuple[Territory, ...] = tuple(territories)
        self._lock = Lock()

    def __len__(self) -> int:
        return len(self._territories)

    def snapshot(self) -> Tuple[Territory, ...]:
        return self._territories

    def replace_all(self, territories: Iterable[Territory]) -> Tuple[Territory, ...]:
        """Replace with an inbound snapshot, newest first (last writer wins)."""
        ordered = tuple(sorted(territories, key=lambda t: t.created_at, reverse=True))
        with self._lock:
            self._territories = ordered
        logger.debug(f"Territory cache replaced: {len(ordered)} territories")
        return ordered

    def commit(self, result: ArbitrationResult) -> Tuple[Territory, ...]:
        with self._lock:
            self._territories = result.territories
        return result.territories

    def remove_where(self, predicate: Callable[[Territory], bool]) -> Tuple[Territory, ...]:
        """
        Drop every territory matching predicate.

        Returns:
            The removed territories
        """
        with self._lock:
            removed = tuple(t for t in self._territories if predicate(t))
            self._territories = tuple(t for t in self._territories if not predicate(t))
        if removed:
            logger.info(f"Removed {len(removed)} territories from cache")
        return removed
