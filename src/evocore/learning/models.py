"""Data models for workflow learning.

Defines the immutable workflow records, the four learned pattern variants
and the skill templates that get persisted between runs.

Learned patterns form a tagged union discriminated on ``type``; each variant
carries only its own fields and exposes ``identity()``, the key under which
duplicate observations are merged.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic_core import to_jsonable_python


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(UTC)


def new_id(prefix: str) -> str:
    """Generate a globally unique identifier such as ``learn_3f2a...``."""
    return f"{prefix}_{uuid.uuid4().hex}"


class Outcome(str, Enum):
    """How a recorded workflow ended."""

    SUCCESS = "success"
    FAILURE = "failure"


class ErrorKind(str, Enum):
    """Fixed taxonomy of workflow failure causes."""

    PERMISSION = "permission-error"
    MISSING_DEPENDENCY = "missing-dependency"
    TIMEOUT = "timeout"
    AUTHENTICATION = "authentication-error"
    SYNTAX = "syntax-error"
    UNKNOWN = "unknown-error"


class TemplateCategory(str, Enum):
    """Categories a skill template is filed under."""

    BROWSER_AUTOMATION = "browser-automation"
    DATABASE_OPERATIONS = "database-operations"
    FILE_OPERATIONS = "file-operations"
    TESTING = "testing"
    API_INTEGRATION = "api-integration"
    MEDIA_PROCESSING = "media-processing"
    GENERAL_AUTOMATION = "general-automation"


# =============================================================================
# Tolerant input coercion
# =============================================================================
# Caller input is never rejected: anything of the wrong shape degrades to an
# empty value so mining produces fewer patterns instead of failing.


def _pick(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return None


def json_safe(value: Any) -> Any:
    """Copy of free-form ``value`` that is guaranteed to serialize as JSON.

    Mapping keys become strings and any collection becomes a list. A value
    pydantic cannot serialize is replaced by its ``str()``.
    """
    if isinstance(value, Mapping):
        return {str(k): json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [json_safe(v) for v in value]
    return to_jsonable_python(value, fallback=str)


def _as_mapping(value: Any) -> dict[str, Any]:
    return json_safe(value) if isinstance(value, Mapping) else {}


def _as_str_list(value: Any) -> list[str]:
    if not isinstance(value, (list, tuple, set, frozenset)):
        return []
    return [v for v in value if isinstance(v, str) and v]


def _as_unique_str_list(value: Any) -> list[str]:
    return list(dict.fromkeys(_as_str_list(value)))


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def _as_text(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


# =============================================================================
# Workflow records
# =============================================================================


class WorkflowStep(BaseModel):
    """One tool invocation inside a workflow."""

    model_config = ConfigDict(frozen=True)

    tool: str | None = None
    description: str = ""
    parameters: dict[str, Any] = Field(default_factory=dict)
    code: str | None = None
    duration_ms: float | None = None

    @classmethod
    def from_input(cls, data: Any) -> WorkflowStep:
        """Build a step from loosely shaped caller input."""
        if not isinstance(data, Mapping):
            return cls()
        return cls(
            tool=_as_text(data.get("tool")),
            description=_as_text(data.get("description")) or "",
            parameters=_as_mapping(data.get("parameters")),
            code=_as_text(data.get("code")),
            duration_ms=_as_number(_pick(data, "duration_ms", "duration")),
        )


class WorkflowRecord(BaseModel):
    """An immutable entry of the success or failure log.

    Failure records additionally carry the error message, its classified
    kind and how many times the same kind of failure has been seen for the
    same ordered tool list.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: new_id("wf"))
    timestamp: datetime = Field(default_factory=utc_now)
    outcome: Outcome
    tools_used: list[str] = Field(default_factory=list)
    steps: list[WorkflowStep] = Field(default_factory=list)
    duration_ms: float | None = None
    capabilities_used: list[str] = Field(default_factory=list)
    context: dict[str, Any] = Field(default_factory=dict)

    # Failure-only fields
    error: str | None = None
    failed_step: Any = None
    suggestion: str | None = None
    error_type: ErrorKind | None = None
    occurrence_count: int = Field(default=1, ge=1)

    @property
    def goal(self) -> str | None:
        """The recognized ``goal`` entry of the free-form context."""
        return _as_text(self.context.get("goal"))

    @classmethod
    def from_input(
        cls,
        data: Mapping[str, Any] | None,
        outcome: Outcome,
        **extra: Any,
    ) -> WorkflowRecord:
        """Build a record from caller input, defaulting anything missing.

        Both snake_case keys and the camelCase keys used by older callers
        (``toolsUsed``, ``capabilitiesUsed``) are accepted.

        Args:
            data: Free-form workflow description.
            outcome: Whether this is a success or failure record.
            **extra: Fields computed by the recorder (e.g., ``error_type``).
        """
        data = data if isinstance(data, Mapping) else {}
        steps = _pick(data, "steps")
        return cls(
            outcome=outcome,
            tools_used=_as_str_list(_pick(data, "tools_used", "toolsUsed")),
            steps=[WorkflowStep.from_input(s) for s in steps]
            if isinstance(steps, (list, tuple))
            else [],
            duration_ms=_as_number(_pick(data, "duration_ms", "duration")),
            capabilities_used=_as_unique_str_list(
                _pick(data, "capabilities_used", "capabilitiesUsed", "capabilities")
            ),
            context=_as_mapping(data.get("context")),
            error=_as_text(data.get("error")) if outcome is Outcome.FAILURE else None,
            failed_step=json_safe(data.get("step")) if outcome is Outcome.FAILURE else None,
            suggestion=_as_text(data.get("suggestion"))
            if outcome is Outcome.FAILURE
            else None,
            **extra,
        )


# =============================================================================
# Learned patterns
# =============================================================================


class _PatternBase(BaseModel):
    id: str = Field(default_factory=lambda: new_id("learn"))
    created_at: datetime = Field(default_factory=utc_now)


class ToolSequencePattern(_PatternBase):
    """An ordered sequence of tools that completed a goal."""

    type: Literal["tool-sequence"] = "tool-sequence"
    sequence: list[str]
    use_case: str = "Unknown"
    success_rate: float = Field(default=1.0, ge=0.0, le=1.0)
    count: int = Field(default=1, ge=1)

    def identity(self) -> tuple[str, tuple[str, ...]]:
        return (self.type, tuple(self.sequence))


class CapabilityCombinationPattern(_PatternBase):
    """A set of capabilities that worked well together."""

    type: Literal["capability-combination"] = "capability-combination"
    capabilities: list[str]
    use_case: str = "Unknown"
    success_rate: float = Field(default=1.0, ge=0.0, le=1.0)
    count: int = Field(default=1, ge=1)

    def identity(self) -> tuple[str, frozenset[str]]:
        return (self.type, frozenset(self.capabilities))


class DurationEstimatePattern(_PatternBase):
    """Running average duration of workflows with the same goal."""

    type: Literal["duration-estimate"] = "duration-estimate"
    context: str = ""
    estimated_duration_ms: float
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    count: int = Field(default=1, ge=1)

    def identity(self) -> tuple[str, str]:
        return (self.type, self.context)


class AvoidanceRulePattern(_PatternBase):
    """A tool combination that led to a classified error.

    Avoidance rules have no merge identity: every failure appends a new one.
    """

    type: Literal["avoidance-rule"] = "avoidance-rule"
    error_type: ErrorKind
    avoid_combination: list[str] = Field(default_factory=list)
    recommended_alternative: str | None = None
    occurrence_count: int = Field(default=1, ge=1)

    def identity(self) -> None:
        return None


LearnedPattern = Annotated[
    ToolSequencePattern
    | CapabilityCombinationPattern
    | DurationEstimatePattern
    | AvoidanceRulePattern,
    Field(discriminator="type"),
]


def pattern_success_rate(pattern: BaseModel) -> float:
    """Success rate used for ranking; variants without one rank as 0."""
    match pattern:
        case ToolSequencePattern() | CapabilityCombinationPattern():
            return pattern.success_rate
        case _:
            return 0.0


@dataclass
class Suggestion:
    """A stored pattern judged relevant to a context."""

    pattern: ToolSequencePattern | CapabilityCombinationPattern | DurationEstimatePattern | AvoidanceRulePattern
    relevance: float
    reason: str

    @property
    def success_rate(self) -> float:
        return pattern_success_rate(self.pattern)

    def to_dict(self) -> dict[str, Any]:
        """Flatten into the pattern's fields plus relevance and reason."""
        return {
            **self.pattern.model_dump(mode="json"),
            "relevance": self.relevance,
            "reason": self.reason,
        }


# =============================================================================
# Skill templates
# =============================================================================


class TemplateStep(BaseModel):
    """A normalized workflow step inside a template."""

    tool: str = "unknown"
    description: str = "Execute step"
    parameters: dict[str, Any] = Field(default_factory=dict)
    code: str | None = None
    duration_ms: float | None = None


class ParameterSpec(BaseModel):
    """Type and description of one template parameter."""

    type: str = "string"
    description: str = ""


class SkillTemplate(BaseModel):
    """A reusable packaging of a successful workflow's shape."""

    id: str = Field(default_factory=lambda: new_id("tmpl"))
    name: str
    description: str
    category: TemplateCategory
    use_cases: list[str] = Field(default_factory=list)
    steps: list[TemplateStep] = Field(default_factory=list)
    tools_required: list[str] = Field(default_factory=list)
    capabilities_required: list[str] = Field(default_factory=list)
    parameters: dict[str, ParameterSpec] = Field(default_factory=dict)
    estimated_duration_ms: float | None = None
    success_count: int = Field(default=1, ge=1)
    last_used: datetime = Field(default_factory=utc_now)
    examples: list[dict[str, Any]] = Field(default_factory=list)

    def signature(self) -> tuple[TemplateCategory, frozenset[str]]:
        """Merge identity: category plus the unordered set of tools."""
        return (self.category, frozenset(self.tools_required))
