"""Core infrastructure: configuration, logging, constants and exceptions."""

from evocore.core.config import EngineConfig, LogConfig
from evocore.core.exceptions import (
    ConfigError,
    EvocoreError,
    LockTimeoutError,
    PersistenceError,
)

__all__ = [
    "ConfigError",
    "EngineConfig",
    "EvocoreError",
    "LockTimeoutError",
    "LogConfig",
    "PersistenceError",
]
