"""Tests for local community sharing, voting and feedback."""

from __future__ import annotations

import pytest

from evocore.community.models import (
    RequestStatus,
    TargetType,
    Urgency,
    VoteTally,
    vote_key,
)
from evocore.community.share import CommunityShare
from evocore.community.trending import TrendingScorer
from evocore.core.constants import ANONYMOUS_AUTHOR, DEFAULT_AUTHOR
from evocore.learning.models import SkillTemplate, TemplateCategory, ToolSequencePattern
from evocore.state.memory import InMemoryCollection, InMemoryMapping


@pytest.fixture
def community(clock) -> CommunityShare:
    return CommunityShare(
        shared=InMemoryCollection(),
        requests=InMemoryCollection(),
        votes=InMemoryMapping(),
        feedback=InMemoryCollection(),
        scorer=TrendingScorer(clock),
        clock=clock,
    )


def _template(**kw) -> SkillTemplate:
    defaults = {
        "name": "Scrape site",
        "description": "A 2-step workflow",
        "category": TemplateCategory.BROWSER_AUTOMATION,
        "use_cases": ["scrape site", "research"],
        "tools_required": ["web_search", "browser"],
        "estimated_duration_ms": 1200,
        "examples": [{"goal": str(i)} for i in range(5)],
    }
    return SkillTemplate(**{**defaults, **kw})


class TestSharePattern:
    def test_share_learned_pattern(self, community, clock):
        pattern = ToolSequencePattern(
            sequence=["web_search", "browser"], use_case="scrape site", success_rate=0.8
        )
        result = community.share_pattern(pattern)

        assert result.success
        shared = result.item
        assert shared.id.startswith("comm_")
        assert shared.pattern_id == pattern.id
        assert shared.name == "tool-sequence"
        assert shared.type == "tool-sequence"
        assert shared.success_rate == 0.8
        assert shared.use_cases == ["scrape site"]
        assert shared.metadata.tools_used == ["web_search", "browser"]
        assert shared.author == DEFAULT_AUTHOR
        assert shared.created_at == clock()
        assert community.shared.all() == [shared]
        assert community.shared.flush_count == 1

    def test_share_template_limits_examples(self, community):
        shared = community.share_pattern(_template()).item
        assert shared.name == "Scrape site"
        assert shared.category == "browser-automation"
        assert shared.examples == [{"goal": "0"}, {"goal": "1"}, {"goal": "2"}]
        assert shared.metadata.tools_used == ["web_search", "browser"]
        assert shared.metadata.estimated_duration_ms == 1200

    def test_without_examples(self, community):
        shared = community.share_pattern(_template(), include_examples=False).item
        assert shared.examples == []

    def test_anonymous(self, community):
        shared = community.share_pattern(_template(), anonymous=True).item
        assert shared.author == ANONYMOUS_AUTHOR

    def test_plain_mapping_is_coerced(self, community):
        shared = community.share_pattern({"name": "x", "success_rate": 1.7, "tags": 3}).item
        assert shared.success_rate == 1.0
        assert shared.type == "unknown"
        assert shared.pattern_id is None

    def test_none_input_degrades(self, community):
        result = community.share_pattern(None)
        assert result.success
        assert result.item.name == "unknown"

    def test_dry_run(self, community):
        result = community.share_pattern(_template(), dry_run=True)
        assert result.success
        assert result.dry_run
        assert result.item.name == "Scrape site"
        assert len(community.shared) == 0
        assert community.shared.flush_count == 0


class TestRequestCapability:
    def test_request(self, community):
        result = community.request_capability(
            {"name": "pdf export", "description": "Render reports", "use_cases": ["reports"]},
            priority="high",
        )
        request = result.item
        assert result.success
        assert request.urgency is Urgency.HIGH
        assert request.status is RequestStatus.OPEN
        assert request.votes == 0
        assert request.use_cases == ["reports"]
        assert community.requests.all() == [request]

    def test_invalid_priority_is_normal(self, community):
        request = community.request_capability({"name": "x"}, priority="urgent!").item
        assert request.urgency is Urgency.NORMAL

    def test_missing_name(self, community):
        assert community.request_capability(None).item.name == "unnamed capability"

    def test_dry_run(self, community):
        result = community.request_capability({"name": "x"}, dry_run=True)
        assert result.dry_run
        assert len(community.requests) == 0


class TestVote:
    def test_votes_accumulate(self, community):
        community.vote("pattern", "comm_1", "up")
        community.vote("pattern", "comm_1", "up")
        result = community.vote(TargetType.PATTERN, "comm_1", "down")

        assert result.success
        assert result.item == VoteTally(up=2, down=1)
        assert community.votes.get("pattern:comm_1") == VoteTally(up=2, down=1)
        assert community.votes.flush_count == 3

    @pytest.mark.parametrize(
        "target_type,direction",
        [("pattern", "sideways"), ("template", "up")],
    )
    def test_invalid_vote_is_rejected(self, community, target_type, direction):
        result = community.vote(target_type, "comm_1", direction)
        assert not result.success
        assert result.item is None
        assert community.votes.items() == []

    def test_request_votes_are_synced(self, community):
        request = community.request_capability({"name": "x"}).item
        community.vote("request", request.id, "up")
        community.vote("request", request.id, "up")
        community.vote("request", request.id, "down")

        assert community.requests.get(request.id).votes == 2

    def test_dry_run(self, community):
        community.vote("pattern", "comm_1", "up")
        result = community.vote("pattern", "comm_1", "up", dry_run=True)
        assert result.item.up == 2
        assert community.votes.get("pattern:comm_1").up == 1


class TestFeedback:
    @pytest.mark.parametrize(
        "rating,expected",
        [(4, 4), (9, 5), (0, 1), (-2, 1), (2.6, 3), (None, 3), ("great", 3), (True, 3)],
    )
    def test_rating_is_clamped(self, community, rating, expected):
        record = community.provide_feedback("comm_1", {"rating": rating}).item
        assert record.rating == expected

    def test_feedback_fields(self, community):
        result = community.provide_feedback(
            "comm_1", {"rating": 5, "comment": "works", "tags": ["fast"]}, anonymous=True
        )
        record = result.item
        assert record.id.startswith("comm_")
        assert record.pattern_id == "comm_1"
        assert record.comment == "works"
        assert record.tags == ["fast"]
        assert record.author == ANONYMOUS_AUTHOR
        assert community.feedback.all() == [record]

    def test_dry_run(self, community):
        community.provide_feedback("comm_1", {"rating": 5}, dry_run=True)
        assert len(community.feedback) == 0


class TestQueries:
    @pytest.fixture
    def populated(self, community) -> CommunityShare:
        community.share_pattern(_template(name="Scrape site", use_cases=["scraping"]))
        community.share_pattern(_template(name="Scrape prices", category=TemplateCategory.TESTING))
        community.share_pattern({"name": "Scrape badly", "success_rate": 0.2})
        return community

    def test_search_filters_by_success_rate(self, populated):
        names = [p.name for p in populated.search_community_patterns("scrape")]
        assert "Scrape badly" not in names
        assert len(names) == 2

    def test_search_by_category(self, populated):
        [pattern] = populated.search_community_patterns("scrape", category="testing")
        assert pattern.name == "Scrape prices"

    def test_search_orders_by_votes(self, populated):
        prices = populated.search_community_patterns("prices")[0]
        populated.vote("pattern", prices.id, "up")
        names = [p.name for p in populated.search_community_patterns("scrape")]
        assert names == ["Scrape prices", "Scrape site"]

    def test_search_matches_use_cases(self, populated):
        [pattern] = populated.search_community_patterns("scraping")
        assert pattern.name == "Scrape site"

    def test_trending(self, populated):
        badly = populated.search_community_patterns("badly", min_success_rate=0)[0]
        for _ in range(3):
            populated.vote("pattern", badly.id, "up")

        trending = populated.get_trending_patterns(limit=2)
        assert [s.pattern.name for s in trending] == ["Scrape site", "Scrape prices"]
        assert trending[0].score == pytest.approx(100)

    def test_top_requests(self, community):
        normal = community.request_capability({"name": "normal"}).item
        community.request_capability({"name": "urgent"}, priority="high")
        for _ in range(6):
            community.vote("request", normal.id, "up")

        top = community.get_top_requests()
        assert [s.request.name for s in top] == ["normal", "urgent"]
        assert top[0].score == 60
        assert top[0].votes == 6

    def test_statistics(self, populated):
        pattern_id = populated.shared.all()[0].id
        populated.vote("pattern", pattern_id, "up")
        populated.vote("pattern", pattern_id, "down")
        populated.provide_feedback(pattern_id, {"rating": 4})
        populated.provide_feedback(pattern_id, {"rating": 5})
        populated.request_capability({"name": "x"})

        stats = populated.get_statistics()
        assert stats["shared_patterns"] == 3
        assert stats["requested_capabilities"] == 1
        assert stats["total_votes"] == 2
        assert stats["total_feedback"] == 2
        assert stats["average_rating"] == 4.5
        assert stats["top_categories"][0] == {"category": "browser-automation", "count": 1}

    def test_vote_key(self):
        assert vote_key(TargetType.REQUEST, "comm_9") == "request:comm_9"
