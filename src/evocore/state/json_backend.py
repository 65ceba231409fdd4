"""JSON file-based collection storage.

Each collection is one pretty-printed UTF-8 JSON document that is replaced
as a whole on every flush. Writes go through a temp file and an atomic
rename while holding an advisory ``fcntl.flock`` on a sidecar ``.lock``
file, so concurrent processes serialize their writes instead of
interleaving them.

Load failures are not fatal: a missing file is an empty collection and a
malformed one is logged and treated as empty. Write failures are raised as
PersistenceError and never retried.
"""

from __future__ import annotations

import fcntl
import json
import os
import tempfile
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, TypeVar

from pydantic import TypeAdapter, ValidationError
from pydantic_core import PydanticSerializationError

from evocore.core.constants import DEFAULT_LOCK_TIMEOUT_SECONDS, LOCK_POLL_INTERVAL_SECONDS
from evocore.core.exceptions import LockTimeoutError, PersistenceError
from evocore.core.logging import get_logger
from evocore.state.base import Collection, Identified, MappingStore

_logger = get_logger("state")

T = TypeVar("T", bound=Identified)
V = TypeVar("V")


@contextmanager
def file_lock(path: Path, timeout: float = DEFAULT_LOCK_TIMEOUT_SECONDS) -> Iterator[None]:
    """Hold an exclusive advisory lock on ``<path>.lock``.

    Raises:
        LockTimeoutError: If the lock is not acquired within ``timeout``.
    """
    lock_path = path.with_name(path.name + ".lock")
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(str(lock_path), os.O_RDWR | os.O_CREAT, 0o644)
    try:
        deadline = time.monotonic() + timeout
        while True:
            try:
                fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                break
            except BlockingIOError:
                if time.monotonic() >= deadline:
                    raise LockTimeoutError(path, timeout) from None
                time.sleep(LOCK_POLL_INTERVAL_SECONDS)
        try:
            yield
        finally:
            fcntl.flock(fd, fcntl.LOCK_UN)
    finally:
        os.close(fd)


def read_document(path: Path, adapter: TypeAdapter[Any], default: Any) -> Any:
    """Read and validate one JSON document, failing open to ``default``."""
    if not path.exists():
        return default

    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        return adapter.validate_python(data)
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        # Best-effort cache: the previous content is discarded
        _logger.warning(
            "collection_load_failed",
            path=str(path),
            error=str(e),
        )
        return default


def dump_document(path: Path, adapter: TypeAdapter[Any], data: Any) -> Any:
    """Serialize ``data`` to JSON-compatible Python for ``path``.

    Raises:
        PersistenceError: If a value cannot be represented as JSON.
    """
    try:
        return adapter.dump_python(data, mode="json")
    except PydanticSerializationError as e:
        raise PersistenceError(path, str(e)) from e


def write_document(path: Path, data: Any, lock_timeout: float) -> None:
    """Atomically replace ``path`` with ``data`` as pretty-printed JSON.

    Raises:
        PersistenceError: If the document cannot be written.
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with file_lock(path, lock_timeout):
            with tempfile.NamedTemporaryFile(
                mode="w",
                encoding="utf-8",
                dir=path.parent,
                prefix=path.name,
                suffix=".tmp",
                delete=False,
            ) as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
                temp_path = Path(f.name)
            temp_path.replace(path)
    except PersistenceError:
        raise
    except OSError as e:
        raise PersistenceError(path, str(e)) from e


class JsonCollection(Collection[T]):
    """A Collection persisted as a JSON array of pydantic models.

    The file is read once at construction time.
    """

    def __init__(
        self,
        path: Path,
        item_type: Any,
        lock_timeout: float = DEFAULT_LOCK_TIMEOUT_SECONDS,
    ) -> None:
        """Initialize and load the collection.

        Args:
            path: JSON file backing this collection.
            item_type: Type of one record (a model or an annotated union).
            lock_timeout: Seconds a flush waits for the advisory lock.
        """
        self.path = Path(path)
        self.lock_timeout = lock_timeout
        self._adapter: TypeAdapter[list[T]] = TypeAdapter(list[item_type])  # type: ignore[valid-type]
        self._items: list[T] = read_document(self.path, self._adapter, [])
        _logger.debug("collection_loaded", path=str(self.path), count=len(self._items))

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
        write_document(
            self.path,
            dump_document(self.path, self._adapter, self._items),
            self.lock_timeout,
        )
        _logger.debug("collection_flushed", path=str(self.path), count=len(self._items))


class JsonMapping(MappingStore[V]):
    """A MappingStore persisted as a JSON object of pydantic models."""

    def __init__(
        self,
        path: Path,
        value_type: Any,
        lock_timeout: float = DEFAULT_LOCK_TIMEOUT_SECONDS,
    ) -> None:
        self.path = Path(path)
        self.lock_timeout = lock_timeout
        self._adapter: TypeAdapter[dict[str, V]] = TypeAdapter(dict[str, value_type])  # type: ignore[valid-type]
        self._data: dict[str, V] = read_document(self.path, self._adapter, {})

    def get(self, key: str) -> V | None:
        return self._data.get(key)

    def set(self, key: str, value: V) -> None:
        self._data[key] = value

    def items(self) -> list[tuple[str, V]]:
        return list(self._data.items())

    def flush(self) -> None:
        write_document(
            self.path,
            dump_document(self.path, self._adapter, self._data),
            self.lock_timeout,
        )
