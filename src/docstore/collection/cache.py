"""Whole-collection read cache.

The cache is either ``Unloaded`` or ``Loaded`` with a complete snapshot
of the collection.  It is never patched: every write drops it back to
``Unloaded`` and the next read refetches the full collection.  An empty
collection is a valid ``Loaded(())`` state, distinct from ``Unloaded``.

A generation counter guards against a read that started before an
invalidation repopulating the cache with pre-write data.
"""

import copy
import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Unloaded:
    pass


@dataclass(frozen=True)
class Loaded:
    records: tuple[dict, ...]


CacheState = Unloaded | Loaded


class CollectionCache:
    """Snapshot cache for one collection."""

    def __init__(self, name: str) -> None:
        self._name = name
        self._state: CacheState = Unloaded()
        self._generation: int = 0

    @property
    def state(self) -> CacheState:
        return self._state

    @property
    def loaded(self) -> bool:
        return isinstance(self._state, Loaded)

    @property
    def generation(self) -> int:
        return self._generation

    def get(self) -> list[dict] | None:
        """Copies of the cached records, or ``None`` when unloaded."""
        if isinstance(self._state, Loaded):
            return copy.deepcopy(list(self._state.records))
        return None

    def fill(self, records: list[dict], generation: int) -> bool:
        """Store a full snapshot fetched while at *generation*.

        Returns:
            ``False`` (and leaves the cache unloaded) if the cache was
            invalidated since the fetch began.
        """
        if generation != self._generation:
            logger.debug("Discarding stale snapshot of %s", self._name)
            return False
        self._state = Loaded(tuple(copy.deepcopy(records)))
        return True

    def invalidate(self) -> None:
        self._state = Unloaded()
        self._generation += 1
