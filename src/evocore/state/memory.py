"""In-memory collection storage.

Same interfaces as the JSON backend without filesystem I/O. Used for
ephemeral engines and unit tests.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TypeVar

from evocore.state.base import Collection, Identified, MappingStore

T = TypeVar("T", bound=Identified)
V = TypeVar("V")


class InMemoryCollection(Collection[T]):
    """Collection held in a list. ``flush()`` only counts calls."""

    def __init__(self, items: list[T] | None = None) -> None:
        self._items: list[T] = list(items or [])
        self.flush_count = 0

    def all(self) -> list[T]:
        return list(self._items)

    def append(self, item: T) -> None:
        self._items.append(item)

    def update_in_place(self, item: T) -> None:
        for i, existing in enumerate(self._items):
            if existing.id == item.id:
                self._items[i] = item
                return
        raise KeyError(item.id)

    def retain(self, predicate: Callable[[T], bool]) -> int:
        before = len(self._items)
        self._items = [item for item in self._items if predicate(item)]
        return before - len(self._items)

    def flush(self) -> None:
        self.flush_count += 1


class InMemoryMapping(MappingStore[V]):
    """MappingStore held in a dict."""

    def __init__(self, data: dict[str, V] | None = None) -> None:
        self._data: dict[str, V] = dict(data or {})
        self.flush_count = 0

    def get(self, key: str) -> V | None:
        return self._data.get(key)

    def set(self, key: str, value: V) -> None:
        self._data[key] = value

    def items(self) -> list[tuple[str, V]]:
        return list(self._data.items())

    def flush(self) -> None:
        self.flush_count += 1
