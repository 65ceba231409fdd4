"""Data models for community sharing.

Shared patterns, capability requests, vote tallies and feedback are stored
locally; nothing here talks to a remote service.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

from evocore.core.constants import DEFAULT_AUTHOR
from evocore.learning.models import new_id, utc_now

T = TypeVar("T")


class TargetType(str, Enum):
    """What a vote is cast on."""

    PATTERN = "pattern"
    REQUEST = "request"


class VoteDirection(str, Enum):
    UP = "up"
    DOWN = "down"


class Urgency(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"


class RequestStatus(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    FULFILLED = "fulfilled"
    CLOSED = "closed"


class SharedPatternMetadata(BaseModel):
    tools_used: list[str] = Field(default_factory=list)
    capabilities: list[str] = Field(default_factory=list)
    estimated_duration_ms: float | None = None


class SharedPattern(BaseModel):
    """Community projection of a learned pattern or skill template."""

    id: str = Field(default_factory=lambda: new_id("comm"))
    pattern_id: str | None = None
    name: str
    description: str = ""
    type: str = "unknown"
    category: str = "general"
    success_rate: float = Field(default=1.0, ge=0.0, le=1.0)
    use_cases: list[str] = Field(default_factory=list)
    author: str = DEFAULT_AUTHOR
    created_at: datetime = Field(default_factory=utc_now)
    examples: list[dict[str, Any]] = Field(default_factory=list)
    metadata: SharedPatternMetadata = Field(default_factory=SharedPatternMetadata)


class CapabilityRequest(BaseModel):
    """A capability asked for from the community."""

    id: str = Field(default_factory=lambda: new_id("comm"))
    name: str
    description: str = ""
    category: str = "general"
    urgency: Urgency = Urgency.NORMAL
    proposed_implementation: str = ""
    use_cases: list[str] = Field(default_factory=list)
    author: str = DEFAULT_AUTHOR
    status: RequestStatus = RequestStatus.OPEN
    votes: int = Field(default=0, ge=0)
    comments: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)


class VoteTally(BaseModel):
    """Up and down votes on one target."""

    up: int = Field(default=0, ge=0)
    down: int = Field(default=0, ge=0)

    @property
    def net(self) -> int:
        return self.up - self.down


class FeedbackRecord(BaseModel):
    """A rating of a shared pattern."""

    id: str = Field(default_factory=lambda: new_id("comm"))
    pattern_id: str
    rating: int = Field(ge=1, le=5)
    comment: str = ""
    tags: list[str] = Field(default_factory=list)
    author: str = DEFAULT_AUTHOR
    created_at: datetime = Field(default_factory=utc_now)


@dataclass
class CommunityResult(Generic[T]):
    """Result of a community operation.

    ``item`` is the stored record, or the would-be record on a dry run.
    """

    success: bool
    message: str
    item: T | None = None
    dry_run: bool = False


def vote_key(target_type: TargetType, target_id: str) -> str:
    """Key of a tally in the votes document, e.g. ``pattern:comm_ab12``."""
    return f"{target_type.value}:{target_id}"
