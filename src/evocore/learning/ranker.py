"""Contextual ranking of learned patterns into suggestions.

Each pattern variant has its own notion of relevance to a context. Patterns
at or below the relevance threshold are dropped; the rest are ordered by
success rate, except that success rates within a tolerance band of each
other are ordered by relevance instead.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from functools import cmp_to_key
from typing import Any

from evocore.core.constants import (
    DEFAULT_MAX_SUGGESTIONS,
    DEFAULT_RELEVANCE_THRESHOLD,
    DEFAULT_SUCCESS_RATE_TOLERANCE,
)
from evocore.core.logging import get_logger
from evocore.learning.models import (
    AvoidanceRulePattern,
    CapabilityCombinationPattern,
    DurationEstimatePattern,
    LearnedPattern,
    Suggestion,
    ToolSequencePattern,
)
from evocore.learning.similarity import similarity

_logger = get_logger("ranker")


@dataclass(frozen=True)
class SuggestionContext:
    """What the caller is about to do.

    Attributes:
        goal: Free-text goal of the upcoming workflow.
        required_capabilities: Capabilities the workflow needs, if known.
        tools_to_use: Tools the workflow plans to invoke, if known.
    """

    goal: str | None = None
    required_capabilities: frozenset[str] | None = None
    tools_to_use: frozenset[str] | None = field(default=None)

    @classmethod
    def from_input(cls, data: Mapping[str, Any] | None) -> SuggestionContext:
        """Build a context from loosely shaped input; bad fields are dropped."""
        if not isinstance(data, Mapping):
            return cls()

        def _names(*keys: str) -> frozenset[str] | None:
            for key in keys:
                value = data.get(key)
                if isinstance(value, (list, tuple, set, frozenset)):
                    return frozenset(v for v in value if isinstance(v, str))
            return None

        goal = data.get("goal")
        return cls(
            goal=goal if isinstance(goal, str) else None,
            required_capabilities=_names("required_capabilities", "requiredCapabilities"),
            tools_to_use=_names("tools_to_use", "toolsToUse"),
        )


def suggestion_reason(pattern: LearnedPattern) -> str:
    """Human-readable explanation of why a pattern is suggested."""
    match pattern:
        case ToolSequencePattern():
            return "Similar successful workflow used this sequence"
        case CapabilityCombinationPattern():
            return "These capabilities worked well together"
        case DurationEstimatePattern():
            return "Estimated duration based on similar tasks"
        case AvoidanceRulePattern():
            return "Avoiding known error pattern"


class SuggestionRanker:
    """Scores stored patterns against a context and returns the top few."""

    def __init__(
        self,
        relevance_threshold: float = DEFAULT_RELEVANCE_THRESHOLD,
        success_rate_tolerance: float = DEFAULT_SUCCESS_RATE_TOLERANCE,
        limit: int = DEFAULT_MAX_SUGGESTIONS,
    ) -> None:
        self.relevance_threshold = relevance_threshold
        self.success_rate_tolerance = success_rate_tolerance
        self.limit = limit

    def relevance(self, pattern: LearnedPattern, context: SuggestionContext) -> float:
        """Relevance of ``pattern`` to ``context`` in [0, 1]."""
        match pattern:
            case ToolSequencePattern():
                return similarity(pattern.use_case, context.goal)
            case CapabilityCombinationPattern():
                if context.required_capabilities is None or not pattern.capabilities:
                    return 0.0
                overlap = sum(
                    1 for c in pattern.capabilities if c in context.required_capabilities
                )
                return overlap / len(pattern.capabilities)
            case DurationEstimatePattern():
                return similarity(pattern.context, context.goal)
            case AvoidanceRulePattern():
                if context.tools_to_use is None:
                    return 0.0
                if all(t in context.tools_to_use for t in pattern.avoid_combination):
                    return 1.0
                return 0.0

    def _compare(self, a: Suggestion, b: Suggestion) -> int:
        rate_diff = b.success_rate - a.success_rate
        if abs(rate_diff) > self.success_rate_tolerance:
            return 1 if rate_diff > 0 else -1
        return (b.relevance > a.relevance) - (b.relevance < a.relevance)

    def rank(
        self,
        patterns: Iterable[LearnedPattern],
        context: SuggestionContext,
    ) -> list[Suggestion]:
        """Return at most ``limit`` suggestions, best first."""
        suggestions: list[Suggestion] = []
        considered = 0
        for pattern in patterns:
            considered += 1
            score = self.relevance(pattern, context)
            if score > self.relevance_threshold:
                suggestions.append(
                    Suggestion(
                        pattern=pattern,
                        relevance=score,
                        reason=suggestion_reason(pattern),
                    )
                )

        suggestions.sort(key=cmp_to_key(self._compare))
        _logger.debug(
            "suggestions_ranked",
            considered=considered,
            relevant=len(suggestions),
        )
        return suggestions[: self.limit]
