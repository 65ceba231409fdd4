"""Tests for trending scores of shared patterns and capability requests."""

from __future__ import annotations

from datetime import timedelta

import pytest

from evocore.community.models import (
    CapabilityRequest,
    SharedPattern,
    TargetType,
    Urgency,
    VoteTally,
    vote_key,
)
from evocore.community.trending import TrendingScorer


@pytest.fixture
def scorer(clock) -> TrendingScorer:
    return TrendingScorer(clock)


class TestWeeklyAgePenalty:
    @pytest.mark.parametrize(
        "age,expected",
        [
            (timedelta(0), 0),
            (timedelta(days=6, hours=23), 0),
            (timedelta(days=7), 1),
            (timedelta(days=13), 1),
            (timedelta(days=21), 3),
            (timedelta(days=-3), 0),
        ],
    )
    def test_whole_weeks(self, clock, age, expected):
        now = clock()
        assert TrendingScorer.weekly_age_penalty(now - age, now) == expected


class TestPatternScore:
    def test_week_older_pattern_scores_exactly_one_less(self, scorer, clock):
        tally = VoteTally(up=6, down=1)
        fresh = SharedPattern(name="fresh", success_rate=0.9, created_at=clock())
        older = SharedPattern(
            name="older", success_rate=0.9, created_at=clock() - timedelta(weeks=1)
        )

        assert scorer.pattern_score(fresh, tally) - scorer.pattern_score(older, tally) == 1

    def test_components(self, scorer, clock):
        pattern = SharedPattern(name="p", success_rate=0.5, created_at=clock())
        assert scorer.pattern_score(pattern, VoteTally(up=3, down=1)) == pytest.approx(52)
        assert scorer.pattern_score(pattern, None) == pytest.approx(50)

    def test_strictly_decreases_week_over_week(self, scorer, clock):
        pattern = SharedPattern(name="p", success_rate=0.8, created_at=clock())
        tally = VoteTally(up=2)
        scores = []
        for _ in range(4):
            scores.append(scorer.pattern_score(pattern, tally))
            clock.advance(weeks=1)
        assert scores == sorted(scores, reverse=True)
        assert len(set(scores)) == 4


class TestRequestScore:
    @pytest.mark.parametrize(
        "urgency,tally,expected",
        [
            (Urgency.NORMAL, VoteTally(up=3, down=10), 30),
            (Urgency.HIGH, VoteTally(up=3), 80),
            (Urgency.HIGH, None, 50),
            (Urgency.LOW, None, 0),
        ],
    )
    def test_score(self, urgency, tally, expected):
        request = CapabilityRequest(name="r", urgency=urgency)
        assert TrendingScorer.request_score(request, tally) == expected


class TestRanking:
    def test_patterns_sorted_by_score_descending(self, scorer, clock):
        low = SharedPattern(name="low", success_rate=0.2, created_at=clock())
        high = SharedPattern(name="high", success_rate=0.9, created_at=clock())
        votes = {vote_key(TargetType.PATTERN, low.id): VoteTally(up=1)}

        ranked = scorer.rank_patterns([low, high], votes.get)
        assert [s.pattern.name for s in ranked] == ["high", "low"]
        assert ranked[1].votes == 1

    def test_ties_keep_stored_order(self, scorer, clock):
        patterns = [
            SharedPattern(name=n, success_rate=0.5, created_at=clock()) for n in "abcd"
        ]
        ranked = scorer.rank_patterns(patterns, {}.get)
        assert [s.pattern.name for s in ranked] == ["a", "b", "c", "d"]

    def test_limit(self, scorer, clock):
        patterns = [SharedPattern(name=str(i), created_at=clock()) for i in range(5)]
        assert len(scorer.rank_patterns(patterns, {}.get, limit=2)) == 2

    def test_requests_ranked_with_stable_ties(self, scorer):
        first = CapabilityRequest(name="first")
        urgent = CapabilityRequest(name="urgent", urgency=Urgency.HIGH)
        second = CapabilityRequest(name="second")

        ranked = scorer.rank_requests([first, urgent, second], {}.get)
        assert [s.request.name for s in ranked] == ["urgent", "first", "second"]
        assert ranked[0].score == 50
