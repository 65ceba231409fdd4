"""Community module: shared patterns, capability requests, votes and trending."""

from evocore.community.models import (
    CapabilityRequest,
    CommunityResult,
    FeedbackRecord,
    SharedPattern,
    TargetType,
    Urgency,
    VoteDirection,
    VoteTally,
)
from evocore.community.share import CommunityShare
from evocore.community.trending import ScoredPattern, ScoredRequest, TrendingScorer

__all__ = [
    "CapabilityRequest",
    "CommunityResult",
    "CommunityShare",
    "FeedbackRecord",
    "ScoredPattern",
    "ScoredRequest",
    "SharedPattern",
    "TargetType",
    "TrendingScorer",
    "Urgency",
    "VoteDirection",
    "VoteTally",
]
