"""Tests for JSON file-backed collections.

Verifies fail-open loading, atomic pretty-printed writes, write failures
and the advisory lock.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from structlog.testing import capture_logs

from evocore.community.models import VoteTally
from evocore.core import constants
from evocore.core.exceptions import LockTimeoutError, PersistenceError
from evocore.learning.models import (
    AvoidanceRulePattern,
    ErrorKind,
    LearnedPattern,
    Outcome,
    ToolSequencePattern,
    WorkflowRecord,
)
from evocore.state.json_backend import JsonCollection, JsonMapping, file_lock
from evocore.state.memory import InMemoryCollection, InMemoryMapping


@pytest.fixture
def patterns_path(data_dir: Path) -> Path:
    return data_dir / "learned-patterns.json"


class TestLoad:
    def test_missing_file_is_empty(self, patterns_path):
        collection = JsonCollection(patterns_path, LearnedPattern)
        assert collection.all() == []
        assert not patterns_path.exists()

    def test_malformed_json_falls_back_to_empty(self, patterns_path):
        patterns_path.parent.mkdir(parents=True)
        patterns_path.write_text("{not json", encoding="utf-8")

        with capture_logs() as logs:
            collection = JsonCollection(patterns_path, LearnedPattern)

        assert collection.all() == []
        assert any(e["event"] == "collection_load_failed" for e in logs)

    def test_wrong_shape_falls_back_to_empty(self, patterns_path):
        patterns_path.parent.mkdir(parents=True)
        patterns_path.write_text(json.dumps([{"type": "mystery"}]), encoding="utf-8")

        assert JsonCollection(patterns_path, LearnedPattern).all() == []

    def test_variants_round_trip(self, patterns_path):
        collection = JsonCollection(patterns_path, LearnedPattern)
        sequence = ToolSequencePattern(sequence=["a", "b"], use_case="g", count=3)
        rule = AvoidanceRulePattern(error_type=ErrorKind.TIMEOUT, avoid_combination=["a"])
        collection.append(sequence)
        collection.append(rule)
        collection.flush()

        reloaded = JsonCollection(patterns_path, LearnedPattern).all()
        assert reloaded == [sequence, rule]
        assert isinstance(reloaded[1], AvoidanceRulePattern)


class TestFlush:
    def test_writes_pretty_snake_case_json(self, patterns_path):
        collection = JsonCollection(patterns_path, LearnedPattern)
        collection.append(ToolSequencePattern(sequence=["a", "b"], use_case="g"))
        collection.flush()

        text = patterns_path.read_text(encoding="utf-8")
        assert text.startswith("[\n  {")
        [entry] = json.loads(text)
        assert entry["type"] == "tool-sequence"
        assert entry["use_case"] == "g"
        assert entry["success_rate"] == 1.0

    def test_no_temp_files_left(self, patterns_path):
        collection = JsonCollection(patterns_path, LearnedPattern)
        collection.append(ToolSequencePattern(sequence=["a", "b"]))
        collection.flush()
        collection.flush()

        assert list(patterns_path.parent.glob("*.tmp")) == []

    def test_unserializable_value_raises_persistence_error(self, data_dir):
        path = data_dir / constants.SUCCESSFUL_WORKFLOWS_FILE
        collection = JsonCollection(path, WorkflowRecord)
        collection.append(WorkflowRecord(outcome=Outcome.SUCCESS, context={"handle": object()}))

        with pytest.raises(PersistenceError) as exc_info:
            collection.flush()
        assert exc_info.value.path == path
        assert not path.exists()

    def test_unwritable_location_raises(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory", encoding="utf-8")
        collection = JsonCollection(blocker / "learned-patterns.json", LearnedPattern)
        collection.append(ToolSequencePattern(sequence=["a", "b"]))

        with pytest.raises(PersistenceError) as exc_info:
            collection.flush()
        assert exc_info.value.path == blocker / "learned-patterns.json"

    def test_lock_timeout_raises(self, patterns_path):
        collection = JsonCollection(patterns_path, LearnedPattern, lock_timeout=0.1)
        with file_lock(patterns_path):
            with pytest.raises(LockTimeoutError):
                collection.flush()


class TestCollectionOperations:
    def test_update_in_place(self, patterns_path):
        collection = JsonCollection(patterns_path, LearnedPattern)
        pattern = ToolSequencePattern(sequence=["a", "b"])
        collection.append(pattern)

        updated = pattern.model_copy(update={"count": 5})
        collection.update_in_place(updated)
        assert collection.get(pattern.id).count == 5

    def test_update_unknown_raises_key_error(self, patterns_path):
        collection = JsonCollection(patterns_path, LearnedPattern)
        with pytest.raises(KeyError):
            collection.update_in_place(ToolSequencePattern(sequence=["a", "b"]))

    def test_retain_returns_removed_count(self, patterns_path):
        collection = JsonCollection(patterns_path, LearnedPattern)
        for n in range(4):
            collection.append(ToolSequencePattern(sequence=["a", "b"], count=n + 1))

        assert collection.retain(lambda p: p.count > 2) == 2
        assert [p.count for p in collection] == [3, 4]

    def test_get_missing_is_none(self, patterns_path):
        assert JsonCollection(patterns_path, LearnedPattern).get("learn_nope") is None


class TestJsonMapping:
    def test_round_trip(self, data_dir):
        path = data_dir / "votes.json"
        votes = JsonMapping(path, VoteTally)
        votes.set("pattern:comm_1", VoteTally(up=2, down=1))
        votes.flush()

        assert json.loads(path.read_text(encoding="utf-8")) == {
            "pattern:comm_1": {"up": 2, "down": 1}
        }
        assert JsonMapping(path, VoteTally).get("pattern:comm_1") == VoteTally(up=2, down=1)

    def test_malformed_is_empty(self, data_dir):
        path = data_dir / "votes.json"
        data_dir.mkdir()
        path.write_text("[]", encoding="utf-8")
        assert JsonMapping(path, VoteTally).items() == []


class TestInMemory:
    def test_collection_counts_flushes(self):
        collection = InMemoryCollection([ToolSequencePattern(sequence=["a", "b"])])
        collection.flush()
        collection.flush()
        assert collection.flush_count == 2
        assert len(collection) == 1

    def test_all_returns_copy(self):
        collection = InMemoryCollection()
        collection.all().append(ToolSequencePattern(sequence=["a", "b"]))
        assert len(collection) == 0

    def test_mapping(self):
        mapping = InMemoryMapping()
        mapping.set("k", VoteTally(up=1))
        mapping.flush()
        assert mapping.items() == [("k", VoteTally(up=1))]
        assert mapping.flush_count == 1
