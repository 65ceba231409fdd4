"""Exception hierarchy for evocore.

All evocore exceptions inherit from EvocoreError, so callers can catch
broadly (EvocoreError) or narrowly (e.g., LockTimeoutError).
"""

from __future__ import annotations

from pathlib import Path


class EvocoreError(Exception):
    """Base exception for all evocore errors."""


class ConfigError(EvocoreError):
    """Raised when an engine configuration file cannot be loaded or validated."""


class PersistenceError(EvocoreError):
    """Raised when a collection snapshot cannot be written to disk.

    The in-memory collection and the file are no longer in sync once this
    is raised. Callers should treat it as fatal for the process rather
    than retry.
    """

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to write {path}: {reason}")


class LockTimeoutError(PersistenceError):
    """Raised when the advisory lock on a collection is not acquired in time."""

    def __init__(self, path: Path, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(path, f"lock not acquired within {timeout:.1f}s")
