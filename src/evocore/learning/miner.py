"""Pattern mining from recorded workflows.

A successful workflow yields up to three candidate patterns (tool sequence,
capability combination, duration estimate), each merged into the store
under its identity. A failed workflow yields one avoidance rule, which is
always appended as a new entry.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from evocore.core.logging import get_logger
from evocore.learning.models import (
    AvoidanceRulePattern,
    CapabilityCombinationPattern,
    DurationEstimatePattern,
    ErrorKind,
    LearnedPattern,
    Outcome,
    ToolSequencePattern,
    WorkflowRecord,
    utc_now,
)
from evocore.learning.store import PatternStore

_logger = get_logger("miner")

UNKNOWN_USE_CASE = "Unknown"


@dataclass
class MergeResult:
    """The stored pattern a candidate ended up in."""

    pattern: LearnedPattern
    merged: bool


class PatternMiner:
    """Derives learned patterns from workflow records into a PatternStore.

    The miner only mutates the store in memory; persisting is left to the
    caller so a dry run can mine into a snapshot.
    """

    def __init__(
        self, store: PatternStore, clock: Callable[[], datetime] = utc_now
    ) -> None:
        self.store = store
        self._clock = clock

    def candidates_from_success(self, record: WorkflowRecord) -> list[LearnedPattern]:
        """Build the candidate patterns of one successful workflow.

        Returns:
            Zero to three unsaved patterns; empty when the workflow has no steps.
        """
        if record.outcome is not Outcome.SUCCESS or not record.steps:
            return []

        use_case = record.goal or UNKNOWN_USE_CASE
        now = self._clock()
        candidates: list[LearnedPattern] = []

        if len(record.steps) > 1:
            sequence = [step.tool for step in record.steps if step.tool]
            if len(sequence) >= 2:
                candidates.append(
                    ToolSequencePattern(sequence=sequence, use_case=use_case, created_at=now)
                )

        if len(record.capabilities_used) > 1:
            candidates.append(
                CapabilityCombinationPattern(
                    capabilities=list(record.capabilities_used),
                    use_case=use_case,
                    created_at=now,
                )
            )

        if record.duration_ms is not None:
            candidates.append(
                DurationEstimatePattern(
                    context=record.goal or "",
                    estimated_duration_ms=record.duration_ms,
                    created_at=now,
                )
            )

        return candidates

    def mine_success(self, record: WorkflowRecord) -> list[MergeResult]:
        """Merge every candidate of a successful workflow into the store."""
        results = [self.merge(c) for c in self.candidates_from_success(record)]
        _logger.debug(
            "success_mined",
            workflow_id=record.id,
            candidates=len(results),
            merged=sum(1 for r in results if r.merged),
        )
        return results

    def merge(self, candidate: LearnedPattern) -> MergeResult:
        """Fold ``candidate`` into its stored duplicate, or store it as new.

        Counts are incremented and rates are running averages where the new
        observation (always a success) has weight one.
        """
        existing = self.store.find_match(candidate)
        if existing is None:
            self.store.add(candidate)
            _logger.info("pattern_learned", pattern_id=candidate.id, type=candidate.type)
            return MergeResult(pattern=candidate, merged=False)

        match existing, candidate:
            case (ToolSequencePattern() | CapabilityCombinationPattern(), _):
                previous = existing.count
                existing.count = previous + 1
                existing.success_rate = min(
                    1.0, (existing.success_rate * previous + 1.0) / existing.count
                )
            case (DurationEstimatePattern(), DurationEstimatePattern()):
                previous = existing.count
                existing.count = previous + 1
                existing.estimated_duration_ms = (
                    existing.estimated_duration_ms * previous
                    + candidate.estimated_duration_ms
                ) / existing.count
            case _:
                raise TypeError(f"Cannot merge pattern of type {candidate.type}")

        _logger.info(
            "pattern_merged",
            pattern_id=existing.id,
            type=existing.type,
            count=existing.count,
        )
        return MergeResult(pattern=existing, merged=True)

    def mine_failure(self, record: WorkflowRecord) -> MergeResult:
        """Append an avoidance rule for a failed workflow.

        The record is expected to carry the classified ``error_type`` and the
        ``occurrence_count`` computed by the recorder. Identical rules are not
        merged; each failure appends a new entry.
        """
        rule = AvoidanceRulePattern(
            error_type=record.error_type or ErrorKind.UNKNOWN,
            avoid_combination=list(record.tools_used),
            recommended_alternative=record.suggestion,
            occurrence_count=record.occurrence_count,
            created_at=self._clock(),
        )
        self.store.add(rule)
        _logger.info(
            "avoidance_rule_learned",
            pattern_id=rule.id,
            error_type=rule.error_type.value,
            occurrence_count=rule.occurrence_count,
        )
        return MergeResult(pattern=rule, merged=False)
