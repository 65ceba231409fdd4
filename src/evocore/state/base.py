"""Abstract bases for persisted collections.

Each persisted collection is held fully in memory for the lifetime of the
process and written back as one snapshot by ``flush()``. Call sites work
against these interfaces and never touch file paths.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator
from typing import Generic, Protocol, TypeVar


class Identified(Protocol):
    """Anything stored in a Collection carries a unique string ``id``."""

    id: str


T = TypeVar("T", bound=Identified)
V = TypeVar("V")


class Collection(ABC, Generic[T]):
    """An ordered collection of records with unique ids."""

    @abstractmethod
    def all(self) -> list[T]:
        """Return the records in insertion order.

        The returned list is a shallow copy; records themselves are live.
        """
        ...

    @abstractmethod
    def append(self, item: T) -> None:
        """Append a record. Not persisted until ``flush()``."""
        ...

    @abstractmethod
    def update_in_place(self, item: T) -> None:
        """Replace the record with the same id, keeping its position.

        Raises:
            KeyError: If no record has that id.
        """
        ...

    @abstractmethod
    def retain(self, predicate: Callable[[T], bool]) -> int:
        """Keep only records matching ``predicate``.

        Returns:
            Number of records removed.
        """
        ...

    @abstractmethod
    def flush(self) -> None:
        """Persist the whole collection."""
        ...

    def get(self, item_id: str) -> T | None:
        for item in self.all():
            if item.id == item_id:
                return item
        return None

    def __len__(self) -> int:
        return len(self.all())

    def __iter__(self) -> Iterator[T]:
        return iter(self.all())


class MappingStore(ABC, Generic[V]):
    """A string-keyed document of values (e.g., vote tallies)."""

    @abstractmethod
    def get(self, key: str) -> V | None:
        ...

    @abstractmethod
    def set(self, key: str, value: V) -> None:
        """Set a value. Not persisted until ``flush()``."""
        ...

    @abstractmethod
    def items(self) -> list[tuple[str, V]]:
        ...

    @abstractmethod
    def flush(self) -> None:
        """Persist the whole mapping."""
        ...
