"""Trending scores for shared patterns and capability requests.

Scores are derived on demand and never stored:

    pattern score = success_rate * 100 + net votes - whole weeks of age
    request score = up votes * 10 + 50 if urgency is high

Rankings sort by score descending and keep the stored order among equal
scores.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta

from evocore.community.models import (
    CapabilityRequest,
    SharedPattern,
    TargetType,
    Urgency,
    VoteTally,
    vote_key,
)
from evocore.core.constants import HIGH_URGENCY_BONUS, MILLIS_PER_WEEK, REQUEST_VOTE_WEIGHT
from evocore.learning.models import utc_now

VoteLookup = Callable[[str], VoteTally | None]


@dataclass
class ScoredPattern:
    pattern: SharedPattern
    score: float
    votes: int


@dataclass
class ScoredRequest:
    request: CapabilityRequest
    score: int
    votes: int


class TrendingScorer:
    """Computes and ranks trending scores."""

    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        self._clock = clock

    @staticmethod
    def weekly_age_penalty(created_at: datetime, now: datetime) -> int:
        """Whole weeks elapsed since ``created_at``; never negative."""
        age_ms = (now - created_at) / timedelta(milliseconds=1)
        if age_ms <= 0:
            return 0
        return int(age_ms // MILLIS_PER_WEEK)

    def pattern_score(
        self,
        pattern: SharedPattern,
        tally: VoteTally | None,
        now: datetime | None = None,
    ) -> float:
        net = tally.net if tally else 0
        penalty = self.weekly_age_penalty(pattern.created_at, now or self._clock())
        return pattern.success_rate * 100 + net - penalty

    @staticmethod
    def request_score(request: CapabilityRequest, tally: VoteTally | None) -> int:
        up = tally.up if tally else 0
        bonus = HIGH_URGENCY_BONUS if request.urgency is Urgency.HIGH else 0
        return up * REQUEST_VOTE_WEIGHT + bonus

    def rank_patterns(
        self,
        patterns: Iterable[SharedPattern],
        votes: VoteLookup,
        limit: int | None = None,
    ) -> list[ScoredPattern]:
        now = self._clock()
        scored = []
        for pattern in patterns:
            tally = votes(vote_key(TargetType.PATTERN, pattern.id))
            scored.append(
                ScoredPattern(
                    pattern=pattern,
                    score=self.pattern_score(pattern, tally, now),
                    votes=tally.net if tally else 0,
                )
            )
        # Stable: equal scores keep stored order
        scored = sorted(scored, key=lambda s: s.score, reverse=True)
        return scored if limit is None else scored[:limit]

    def rank_requests(
        self,
        requests: Iterable[CapabilityRequest],
        votes: VoteLookup,
        limit: int | None = None,
    ) -> list[ScoredRequest]:
        scored = []
        for request in requests:
            tally = votes(vote_key(TargetType.REQUEST, request.id))
            scored.append(
                ScoredRequest(
                    request=request,
                    score=self.request_score(request, tally),
                    votes=tally.up if tally else 0,
                )
            )
        scored = sorted(scored, key=lambda s: s.score, reverse=True)
        return scored if limit is None else scored[:limit]
