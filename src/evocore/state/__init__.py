"""Persisted collection backends."""

from evocore.state.base import Collection, MappingStore
from evocore.state.json_backend import JsonCollection, JsonMapping, file_lock
from evocore.state.memory import InMemoryCollection, InMemoryMapping

__all__ = [
    "Collection",
    "InMemoryCollection",
    "InMemoryMapping",
    "JsonCollection",
    "JsonMapping",
    "MappingStore",
    "file_lock",
]
