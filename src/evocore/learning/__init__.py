"""Learning module: workflow recording, pattern mining, ranking and templates."""

from evocore.learning.classifier import DEFAULT_ERROR_RULES, ErrorClassifier, KeywordRule
from evocore.learning.miner import MergeResult, PatternMiner
from evocore.learning.models import (
    AvoidanceRulePattern,
    CapabilityCombinationPattern,
    DurationEstimatePattern,
    ErrorKind,
    LearnedPattern,
    Outcome,
    SkillTemplate,
    Suggestion,
    TemplateCategory,
    ToolSequencePattern,
    WorkflowRecord,
    WorkflowStep,
)
from evocore.learning.ranker import SuggestionContext, SuggestionRanker
from evocore.learning.recorder import CleanupResult, LearningReport, LearningSystem
from evocore.learning.similarity import similarity
from evocore.learning.store import PatternStore
from evocore.learning.templates import ExtractionResult, TemplateExtractor, TemplateMatch

__all__ = [
    # Models
    "AvoidanceRulePattern",
    "CapabilityCombinationPattern",
    "DurationEstimatePattern",
    "ErrorKind",
    "LearnedPattern",
    "Outcome",
    "SkillTemplate",
    "Suggestion",
    "TemplateCategory",
    "ToolSequencePattern",
    "WorkflowRecord",
    "WorkflowStep",
    # Components
    "DEFAULT_ERROR_RULES",
    "ErrorClassifier",
    "KeywordRule",
    "LearningSystem",
    "LearningReport",
    "CleanupResult",
    "MergeResult",
    "PatternMiner",
    "PatternStore",
    "SuggestionContext",
    "SuggestionRanker",
    "ExtractionResult",
    "TemplateExtractor",
    "TemplateMatch",
    "similarity",
]
