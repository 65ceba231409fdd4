"""Pattern store with an identity index.

Wraps the persisted collection of learned patterns and keeps a dict from
each pattern's merge identity to the stored pattern, so a candidate finds
its duplicate without scanning the collection.
"""

from __future__ import annotations

from collections.abc import Hashable

from evocore.learning.models import LearnedPattern
from evocore.state.base import Collection
from evocore.state.memory import InMemoryCollection


class PatternStore:
    """Learned patterns indexed by ``(variant, identifying fields)``."""

    def __init__(self, collection: Collection[LearnedPattern]) -> None:
        self.collection = collection
        self._index: dict[Hashable, LearnedPattern] = {}
        for pattern in collection.all():
            key = pattern.identity()
            # Keep the earliest entry if a hand-edited file holds duplicates
            if key is not None and key not in self._index:
                self._index[key] = pattern

    def all(self) -> list[LearnedPattern]:
        return self.collection.all()

    def __len__(self) -> int:
        return len(self.collection)

    def find_match(self, candidate: LearnedPattern) -> LearnedPattern | None:
        """Return the stored pattern ``candidate`` must merge into, if any."""
        key = candidate.identity()
        if key is None:
            return None
        return self._index.get(key)

    def add(self, pattern: LearnedPattern) -> None:
        self.collection.append(pattern)
        key = pattern.identity()
        if key is not None:
            self._index.setdefault(key, pattern)

    def flush(self) -> None:
        self.collection.flush()

    def snapshot(self) -> PatternStore:
        """Deep, unpersisted copy for computing dry-run results."""
        copies = [p.model_copy(deep=True) for p in self.collection.all()]
        return PatternStore(InMemoryCollection(copies))
