"""Community sharing of learned patterns.

Agents share patterns and templates, request capabilities, vote and leave
feedback. Everything is kept in local collections; a remote community
service is not contacted.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

from pydantic import BaseModel

from evocore.community.models import (
    CapabilityRequest,
    CommunityResult,
    FeedbackRecord,
    SharedPattern,
    SharedPatternMetadata,
    TargetType,
    Urgency,
    VoteDirection,
    VoteTally,
    vote_key,
)
from evocore.community.trending import ScoredPattern, ScoredRequest, TrendingScorer
from evocore.core.constants import ANONYMOUS_AUTHOR, DEFAULT_AUTHOR, SHARED_EXAMPLES_LIMIT
from evocore.core.logging import get_logger
from evocore.learning.models import json_safe, utc_now
from evocore.state.base import Collection, MappingStore

_logger = get_logger("community")

NEUTRAL_RATING = 3


def _as_dict(item: BaseModel | Mapping[str, Any] | None) -> dict[str, Any]:
    if isinstance(item, BaseModel):
        return item.model_dump(mode="json")
    if isinstance(item, Mapping):
        return json_safe(item)
    return {}


def _first(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return None


def _str_list(value: Any) -> list[str]:
    if not isinstance(value, (list, tuple, set, frozenset)):
        return []
    return [v for v in value if isinstance(v, str)]


def _text(value: Any, default: str = "") -> str:
    return value if isinstance(value, str) and value else default


def _number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def _clamp_rating(value: Any) -> int:
    rating = _number(value)
    if rating is None:
        return NEUTRAL_RATING
    return int(min(5, max(1, round(rating))))


class CommunityShare:
    """Local community hub for shared patterns, requests, votes and feedback."""

    def __init__(
        self,
        shared: Collection[SharedPattern],
        requests: Collection[CapabilityRequest],
        votes: MappingStore[VoteTally],
        feedback: Collection[FeedbackRecord],
        scorer: TrendingScorer | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.shared = shared
        self.requests = requests
        self.votes = votes
        self.feedback = feedback
        self._clock = clock
        self.scorer = scorer or TrendingScorer(clock)
        _logger.info(
            "community_loaded",
            shared_patterns=len(shared),
            requests=len(requests),
        )

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def share_pattern(
        self,
        pattern: BaseModel | Mapping[str, Any] | None,
        anonymous: bool = False,
        include_examples: bool = True,
        dry_run: bool = False,
    ) -> CommunityResult[SharedPattern]:
        """Publish a learned pattern or skill template to the community.

        Args:
            pattern: A LearnedPattern, SkillTemplate or plain mapping.
            anonymous: Hide the author.
            include_examples: Carry up to three examples along.
            dry_run: Build the shared record without storing it.
        """
        data = _as_dict(pattern)
        success_rate = _number(data.get("success_rate"))
        examples = data.get("examples") if include_examples else None
        shared = SharedPattern(
            pattern_id=_text(data.get("id")) or None,
            name=_text(data.get("name")) or _text(data.get("type"), "unknown"),
            description=_text(data.get("description")),
            type=_text(data.get("type"), "unknown"),
            category=_text(data.get("category"), "general"),
            success_rate=1.0 if success_rate is None else min(1.0, max(0.0, success_rate)),
            use_cases=_str_list(data.get("use_cases"))
            or _str_list([data.get("use_case")]),
            author=ANONYMOUS_AUTHOR if anonymous else DEFAULT_AUTHOR,
            created_at=self._clock(),
            examples=[e for e in examples if isinstance(e, dict)][:SHARED_EXAMPLES_LIMIT]
            if isinstance(examples, list)
            else [],
            metadata=SharedPatternMetadata(
                tools_used=_str_list(
                    _first(data, "tools_used", "tools_required", "sequence", "avoid_combination")
                ),
                capabilities=_str_list(_first(data, "capabilities", "capabilities_required")),
                estimated_duration_ms=_number(data.get("estimated_duration_ms")),
            ),
        )

        if dry_run:
            return CommunityResult(True, "Dry run: pattern not shared", shared, dry_run=True)

        self.shared.append(shared)
        self.shared.flush()
        _logger.info("pattern_shared", shared_id=shared.id, name=shared.name)
        return CommunityResult(True, f'Pattern "{shared.name}" shared with community', shared)

    def request_capability(
        self,
        request: Mapping[str, Any] | None,
        priority: Urgency | str = Urgency.NORMAL,
        dry_run: bool = False,
    ) -> CommunityResult[CapabilityRequest]:
        """Ask the community for a capability."""
        data = _as_dict(request)
        try:
            urgency = Urgency(priority)
        except ValueError:
            urgency = Urgency.NORMAL

        capability_request = CapabilityRequest(
            name=_text(data.get("name"), "unnamed capability"),
            description=_text(data.get("description")),
            category=_text(data.get("category"), "general"),
            urgency=urgency,
            proposed_implementation=_text(data.get("proposed_implementation")),
            use_cases=_str_list(data.get("use_cases")),
            created_at=self._clock(),
        )

        if dry_run:
            return CommunityResult(
                True, "Dry run: capability not requested", capability_request, dry_run=True
            )

        self.requests.append(capability_request)
        self.requests.flush()
        _logger.info(
            "capability_requested",
            request_id=capability_request.id,
            urgency=urgency.value,
        )
        return CommunityResult(
            True,
            f'Capability "{capability_request.name}" requested from community',
            capability_request,
        )

    def vote(
        self,
        target_type: TargetType | str,
        target_id: str,
        direction: VoteDirection | str,
        dry_run: bool = False,
    ) -> CommunityResult[VoteTally]:
        """Cast an up or down vote on a shared pattern or capability request.

        Returns:
            The updated (or would-be) tally; unsuccessful for an unknown
            target type or a direction other than up/down.
        """
        try:
            target = TargetType(target_type)
            vote_direction = VoteDirection(direction)
        except ValueError:
            return CommunityResult(False, 'Vote must be "up" or "down" on a pattern or request')

        key = vote_key(target, target_id)
        current = self.votes.get(key) or VoteTally()
        updated = current.model_copy(
            update={vote_direction.value: getattr(current, vote_direction.value) + 1}
        )

        if dry_run:
            return CommunityResult(True, "Dry run: vote not recorded", updated, dry_run=True)

        self.votes.set(key, updated)
        self.votes.flush()
        if target is TargetType.REQUEST:
            self._sync_request_votes(target_id, updated)
        _logger.info("vote_recorded", key=key, direction=vote_direction.value)
        return CommunityResult(True, f"Vote recorded for {target.value} {target_id}", updated)

    def _sync_request_votes(self, request_id: str, tally: VoteTally) -> None:
        request = self.requests.get(request_id)
        if request is None:
            return
        request.votes = tally.up
        self.requests.update_in_place(request)
        self.requests.flush()

    def provide_feedback(
        self,
        pattern_id: str,
        feedback: Mapping[str, Any] | None,
        anonymous: bool = False,
        dry_run: bool = False,
    ) -> CommunityResult[FeedbackRecord]:
        """Rate a shared pattern. Ratings are clamped into 1..5."""
        data = _as_dict(feedback)
        record = FeedbackRecord(
            pattern_id=pattern_id,
            rating=_clamp_rating(data.get("rating")),
            comment=_text(data.get("comment")),
            tags=_str_list(data.get("tags")),
            author=ANONYMOUS_AUTHOR if anonymous else DEFAULT_AUTHOR,
            created_at=self._clock(),
        )

        if dry_run:
            return CommunityResult(True, "Dry run: feedback not stored", record, dry_run=True)

        self.feedback.append(record)
        self.feedback.flush()
        _logger.info("feedback_recorded", pattern_id=pattern_id, rating=record.rating)
        return CommunityResult(True, f"Feedback provided for pattern {pattern_id}", record)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def search_community_patterns(
        self,
        query: str,
        category: str | None = None,
        min_success_rate: float = 0.5,
        limit: int = 10,
    ) -> list[SharedPattern]:
        """Shared patterns mentioning ``query``, best rated first."""
        needle = query.lower()
        results = []
        for pattern in self.shared.all():
            if category and pattern.category != category:
                continue
            if pattern.success_rate < min_success_rate:
                continue
            text = f"{pattern.name} {pattern.description} {' '.join(pattern.use_cases)}"
            if needle in text.lower():
                results.append(pattern)

        def _score(pattern: SharedPattern) -> float:
            tally = self.votes.get(vote_key(TargetType.PATTERN, pattern.id))
            return pattern.success_rate * 100 + (tally.net if tally else 0)

        return sorted(results, key=_score, reverse=True)[:limit]

    def get_trending_patterns(self, limit: int = 10) -> list[ScoredPattern]:
        return self.scorer.rank_patterns(self.shared.all(), self.votes.get, limit)

    def get_top_requests(self, limit: int = 10) -> list[ScoredRequest]:
        return self.scorer.rank_requests(self.requests.all(), self.votes.get, limit)

    def get_statistics(self) -> dict[str, Any]:
        feedback = self.feedback.all()
        average_rating = (
            round(sum(f.rating for f in feedback) / len(feedback), 2) if feedback else 0.0
        )
        categories = Counter(p.category for p in self.shared.all())
        return {
            "shared_patterns": len(self.shared),
            "requested_capabilities": len(self.requests),
            "total_votes": sum(t.up + t.down for _, t in self.votes.items()),
            "total_feedback": len(feedback),
            "average_rating": average_rating,
            "top_categories": [
                {"category": c, "count": n} for c, n in categories.most_common(5)
            ],
        }
