"""Pytest fixtures for evocore tests."""

from __future__ import annotations

import logging
from collections.abc import Generator
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import pytest
import structlog

from evocore.core.config import DATA_DIR_ENV_VAR
from evocore.engine import EvolutionEngine, Storage
from evocore.learning.ranker import SuggestionRanker
from evocore.learning.recorder import LearningSystem
from evocore.learning.store import PatternStore
from evocore.state.memory import InMemoryCollection


@pytest.fixture(autouse=True)
def reset_logging_state() -> Generator[None, None, None]:
    """Reset structlog and root handlers around each test."""
    structlog.reset_defaults()

    root_logger = logging.getLogger()
    original_handlers = root_logger.handlers[:]
    original_level = root_logger.level

    yield

    structlog.reset_defaults()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    for handler in original_handlers:
        root_logger.addHandler(handler)
    root_logger.setLevel(original_level)


@pytest.fixture(autouse=True)
def no_data_dir_override(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep a developer's EVOCORE_DATA_DIR from redirecting test data."""
    monkeypatch.delenv(DATA_DIR_ENV_VAR, raising=False)


class FrozenClock:
    """Deterministic clock that only moves when told to."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2024, 3, 1, 12, 0, tzinfo=UTC))


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    """Directory for persisted collections (not created up front)."""
    return tmp_path / "data"


@pytest.fixture
def learning(clock: FrozenClock) -> LearningSystem:
    """LearningSystem over in-memory collections."""
    return LearningSystem(
        patterns=PatternStore(InMemoryCollection()),
        successes=InMemoryCollection(),
        failures=InMemoryCollection(),
        ranker=SuggestionRanker(),
        clock=clock,
    )


@pytest.fixture
def memory_engine(clock: FrozenClock) -> EvolutionEngine:
    return EvolutionEngine(storage=Storage.in_memory(), clock=clock)


@pytest.fixture
def scrape_workflow() -> dict[str, Any]:
    """Two-step successful browsing workflow."""
    return {
        "tools_used": ["web_search", "browser"],
        "steps": [
            {"tool": "web_search", "description": "Find the site", "parameters": {"query": "shop"}},
            {"tool": "browser", "description": "Open the page", "parameters": {"url": "https://example.com", "wait": 2}},
        ],
        "duration_ms": 4000,
        "capabilities_used": ["search", "navigation"],
        "context": {"goal": "scrape site", "industry": "retail"},
    }
