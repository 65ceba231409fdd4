"""Workflow recording and learning.

The LearningSystem owns the success and failure logs and the pattern store.
Every recorded workflow is appended to its log, the log is persisted, and
the record is handed to the PatternMiner; the pattern store is persisted
afterwards.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from functools import cmp_to_key
from typing import Any

from evocore.core.constants import (
    DEFAULT_RETENTION_DAYS,
    DURATION_MATCH_THRESHOLD,
    RECENT_LEARNING_DAYS,
    SIMILAR_WORKFLOW_THRESHOLD,
    SIMILAR_WORKFLOW_TOLERANCE,
)
from evocore.core.logging import get_logger
from evocore.learning.classifier import ErrorClassifier
from evocore.learning.miner import MergeResult, PatternMiner
from evocore.learning.models import (
    DurationEstimatePattern,
    ErrorKind,
    Outcome,
    Suggestion,
    WorkflowRecord,
    utc_now,
)
from evocore.learning.ranker import SuggestionContext, SuggestionRanker
from evocore.learning.similarity import similarity
from evocore.learning.store import PatternStore
from evocore.state.base import Collection

_logger = get_logger("recorder")


@dataclass
class LearningReport:
    """Summary of everything the learning system has seen."""

    total_attempts: int
    successful_workflows: int
    failed_attempts: int
    success_rate_percent: float
    learned_patterns: int
    top_tools: list[tuple[str, int]] = field(default_factory=list)
    recent_learning: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_attempts": self.total_attempts,
            "successful_workflows": self.successful_workflows,
            "failed_attempts": self.failed_attempts,
            "success_rate": f"{self.success_rate_percent:.1f}%",
            "learned_patterns": self.learned_patterns,
            "top_tools": [{"tool": t, "count": c} for t, c in self.top_tools],
            "recent_learning": self.recent_learning,
        }


@dataclass
class CleanupResult:
    """How many records a retention pass removed from each log."""

    removed_workflows: int
    removed_failures: int


class LearningSystem:
    """Records workflow outcomes and serves suggestions from what was learned."""

    def __init__(
        self,
        patterns: PatternStore,
        successes: Collection[WorkflowRecord],
        failures: Collection[WorkflowRecord],
        classifier: ErrorClassifier | None = None,
        ranker: SuggestionRanker | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize the learning system.

        Args:
            patterns: Store of learned patterns.
            successes: Append-only log of successful workflows.
            failures: Append-only log of failed attempts.
            classifier: Error classifier for failure messages.
            ranker: Suggestion ranker.
            clock: Source of the current time.
        """
        self.patterns = patterns
        self.successes = successes
        self.failures = failures
        self.classifier = classifier or ErrorClassifier()
        self.ranker = ranker or SuggestionRanker()
        self._clock = clock
        _logger.info(
            "learning_system_loaded",
            patterns=len(patterns),
            successful_workflows=len(successes),
            failed_attempts=len(failures),
        )

    # -------------------------------------------------------------------------
    # Recording
    # -------------------------------------------------------------------------

    def record_success(
        self, workflow: Mapping[str, Any] | None, dry_run: bool = False
    ) -> str:
        """Record a successful workflow and mine it for patterns.

        Args:
            workflow: Free-form workflow description (tools_used, steps,
                duration_ms, capabilities_used, context).
            dry_run: Compute everything against a snapshot without persisting.

        Returns:
            The id of the (would-be) workflow record.
        """
        record = WorkflowRecord.from_input(
            workflow, Outcome.SUCCESS, timestamp=self._clock()
        )

        if dry_run:
            results = PatternMiner(self.patterns.snapshot(), self._clock).mine_success(record)
            self._log_mined(record, results, dry_run=True)
            return record.id

        self.successes.append(record)
        self.successes.flush()

        results = PatternMiner(self.patterns, self._clock).mine_success(record)
        self.patterns.flush()
        self._log_mined(record, results, dry_run=False)
        return record.id

    def record_failure(
        self, failure: Mapping[str, Any] | None, dry_run: bool = False
    ) -> str:
        """Record a failed attempt and learn an avoidance rule from it.

        Args:
            failure: Free-form failure description (error, tools_used, step,
                context, suggestion).
            dry_run: Compute everything against a snapshot without persisting.

        Returns:
            The id of the (would-be) failure record.
        """
        data = failure if isinstance(failure, Mapping) else {}
        error = data.get("error")
        error_type = self.classifier.classify(error if isinstance(error, str) else None)

        draft = WorkflowRecord.from_input(data, Outcome.FAILURE)
        occurrence_count = self._next_occurrence_count(error_type, draft.tools_used)
        record = draft.model_copy(
            update={
                "timestamp": self._clock(),
                "error_type": error_type,
                "occurrence_count": occurrence_count,
            }
        )

        if dry_run:
            PatternMiner(self.patterns.snapshot(), self._clock).mine_failure(record)
            _logger.info(
                "failure_recorded",
                workflow_id=record.id,
                error_type=error_type.value,
                occurrence_count=occurrence_count,
                dry_run=True,
            )
            return record.id

        self.failures.append(record)
        self.failures.flush()

        PatternMiner(self.patterns, self._clock).mine_failure(record)
        self.patterns.flush()
        _logger.info(
            "failure_recorded",
            workflow_id=record.id,
            error_type=error_type.value,
            occurrence_count=occurrence_count,
        )
        return record.id

    def _next_occurrence_count(self, error_type: ErrorKind, tools_used: list[str]) -> int:
        """Carry forward the count of the latest matching prior failure."""
        for prior in reversed(self.failures.all()):
            prior_type = prior.error_type or self.classifier.classify(prior.error)
            if prior_type == error_type and prior.tools_used == tools_used:
                return prior.occurrence_count + 1
        return 1

    def _log_mined(
        self, record: WorkflowRecord, results: list[MergeResult], dry_run: bool
    ) -> None:
        _logger.info(
            "workflow_recorded",
            workflow_id=record.id,
            steps=len(record.steps),
            new_patterns=sum(1 for r in results if not r.merged),
            merged_patterns=sum(1 for r in results if r.merged),
            dry_run=dry_run,
        )

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_suggestions(self, context: Mapping[str, Any] | None) -> list[Suggestion]:
        """Rank stored patterns by relevance to ``context``."""
        return self.ranker.rank(self.patterns.all(), SuggestionContext.from_input(context))

    def estimate_duration(self, context: Mapping[str, Any] | None) -> int | None:
        """Confidence-weighted duration estimate for a goal, in milliseconds.

        Returns:
            Rounded estimate, or None when no estimate is similar enough.
        """
        goal = SuggestionContext.from_input(context).goal
        matches = [
            p
            for p in self.patterns.all()
            if isinstance(p, DurationEstimatePattern)
            and similarity(p.context, goal) > DURATION_MATCH_THRESHOLD
        ]
        total_weight = sum(m.confidence for m in matches)
        if not matches or total_weight == 0:
            return None

        weighted = sum(m.estimated_duration_ms * m.confidence for m in matches)
        return round(weighted / total_weight)

    def get_similar_workflows(
        self, context: Mapping[str, Any] | None, limit: int = 3
    ) -> list[WorkflowRecord]:
        """Successful workflows with a goal similar to ``context``'s.

        Ordered by similarity; within a small similarity band the more
        recent workflow comes first.
        """
        goal = SuggestionContext.from_input(context).goal
        scored = [
            (similarity(wf.goal, goal), wf)
            for wf in self.successes.all()
            if wf.goal
        ]
        scored = [(s, wf) for s, wf in scored if s > SIMILAR_WORKFLOW_THRESHOLD]

        def _compare(a: tuple[float, WorkflowRecord], b: tuple[float, WorkflowRecord]) -> int:
            diff = b[0] - a[0]
            if abs(diff) > SIMILAR_WORKFLOW_TOLERANCE:
                return 1 if diff > 0 else -1
            return (b[1].timestamp > a[1].timestamp) - (b[1].timestamp < a[1].timestamp)

        scored.sort(key=cmp_to_key(_compare))
        return [wf for _, wf in scored[:limit]]

    def generate_report(self) -> LearningReport:
        """Summarize recorded workflows and learned patterns."""
        successes = self.successes.all()
        failures = self.failures.all()
        total = len(successes) + len(failures)

        tool_usage: Counter[str] = Counter()
        for wf in successes:
            tool_usage.update(wf.tools_used)

        cutoff = self._clock() - timedelta(days=RECENT_LEARNING_DAYS)
        patterns = self.patterns.all()
        return LearningReport(
            total_attempts=total,
            successful_workflows=len(successes),
            failed_attempts=len(failures),
            success_rate_percent=(len(successes) / total * 100) if total else 0.0,
            learned_patterns=len(patterns),
            top_tools=tool_usage.most_common(5),
            recent_learning=sum(1 for p in patterns if p.created_at > cutoff),
        )

    # -------------------------------------------------------------------------
    # Retention
    # -------------------------------------------------------------------------

    def cleanup_old_entries(
        self, days_old: int = DEFAULT_RETENTION_DAYS, dry_run: bool = False
    ) -> CleanupResult:
        """Drop workflow and failure records older than ``days_old`` days.

        Learned patterns are kept.
        """
        cutoff = self._clock() - timedelta(days=days_old)

        def _is_recent(record: WorkflowRecord) -> bool:
            return record.timestamp > cutoff

        if dry_run:
            return CleanupResult(
                removed_workflows=sum(1 for r in self.successes.all() if not _is_recent(r)),
                removed_failures=sum(1 for r in self.failures.all() if not _is_recent(r)),
            )

        result = CleanupResult(
            removed_workflows=self.successes.retain(_is_recent),
            removed_failures=self.failures.retain(_is_recent),
        )
        self.successes.flush()
        self.failures.flush()
        _logger.info(
            "old_entries_removed",
            days_old=days_old,
            removed_workflows=result.removed_workflows,
            removed_failures=result.removed_failures,
        )
        return result
