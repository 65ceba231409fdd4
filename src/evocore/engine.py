"""Evolution engine facade.

Wires the learning system, template extractor and community hub to their
persisted collections and exposes the operations consumed by the outer
CLI/install layer. Every operation runs inside an OperationContext so all
log entries it produces are correlated.

Example:
    engine = EvolutionEngine(EngineConfig(data_dir=Path("data")))
    engine.record_success({
        "tools_used": ["web_search", "browser"],
        "steps": [{"tool": "web_search"}, {"tool": "browser"}],
        "context": {"goal": "scrape site"},
    })
    engine.get_suggestions({"goal": "scrape another site"})
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel

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
from evocore.core import constants
from evocore.core.config import EngineConfig, LogConfig
from evocore.core.logging import OperationContext, configure_logging, with_context
from evocore.learning.classifier import ErrorClassifier
from evocore.learning.models import (
    LearnedPattern,
    SkillTemplate,
    Suggestion,
    TemplateCategory,
    WorkflowRecord,
    utc_now,
)
from evocore.learning.ranker import SuggestionRanker
from evocore.learning.recorder import CleanupResult, LearningReport, LearningSystem
from evocore.learning.store import PatternStore
from evocore.learning.templates import (
    BatchExtractionResult,
    ExtractionResult,
    TemplateExtractor,
    TemplateMatch,
)
from evocore.state.base import Collection, MappingStore
from evocore.state.json_backend import JsonCollection, JsonMapping
from evocore.state.memory import InMemoryCollection, InMemoryMapping


@dataclass
class Storage:
    """The persisted collections the engine works on."""

    patterns: Collection[LearnedPattern]
    successes: Collection[WorkflowRecord]
    failures: Collection[WorkflowRecord]
    templates: Collection[SkillTemplate]
    shared: Collection[SharedPattern]
    requests: Collection[CapabilityRequest]
    votes: MappingStore[VoteTally]
    feedback: Collection[FeedbackRecord]

    @classmethod
    def json(
        cls,
        data_dir: Path,
        lock_timeout: float = constants.DEFAULT_LOCK_TIMEOUT_SECONDS,
    ) -> Storage:
        """One JSON document per collection under ``data_dir``."""

        def _collection(name: str, item_type: Any) -> JsonCollection[Any]:
            return JsonCollection(data_dir / name, item_type, lock_timeout)

        return cls(
            patterns=_collection(constants.LEARNED_PATTERNS_FILE, LearnedPattern),
            successes=_collection(constants.SUCCESSFUL_WORKFLOWS_FILE, WorkflowRecord),
            failures=_collection(constants.FAILED_ATTEMPTS_FILE, WorkflowRecord),
            templates=_collection(constants.SKILL_TEMPLATES_FILE, SkillTemplate),
            shared=_collection(constants.SHARED_PATTERNS_FILE, SharedPattern),
            requests=_collection(constants.REQUESTED_CAPABILITIES_FILE, CapabilityRequest),
            votes=JsonMapping(data_dir / constants.VOTES_FILE, VoteTally, lock_timeout),
            feedback=_collection(constants.FEEDBACK_FILE, FeedbackRecord),
        )

    @classmethod
    def in_memory(cls) -> Storage:
        """Ephemeral collections that are never written to disk."""
        return cls(
            patterns=InMemoryCollection(),
            successes=InMemoryCollection(),
            failures=InMemoryCollection(),
            templates=InMemoryCollection(),
            shared=InMemoryCollection(),
            requests=InMemoryCollection(),
            votes=InMemoryMapping(),
            feedback=InMemoryCollection(),
        )


def setup_logging(config: LogConfig) -> None:
    """Apply a LogConfig to the structlog configuration."""
    configure_logging(
        level=config.level,
        format=config.format,
        file_path=config.file_path,
        max_file_size_mb=config.max_file_size_mb,
        backup_count=config.backup_count,
    )


class EvolutionEngine:
    """Single entry point for recording, learning, templating and sharing."""

    def __init__(
        self,
        config: EngineConfig | None = None,
        storage: Storage | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize the engine and load every collection.

        Args:
            config: Engine configuration; defaults apply when omitted.
            storage: Collections to use. Defaults to JSON files in
                ``config.data_dir``.
            clock: Source of the current time.
        """
        self.config = config or EngineConfig()
        self.storage = storage or Storage.json(
            self.config.data_dir, self.config.lock_timeout_seconds
        )

        self.learning = LearningSystem(
            patterns=PatternStore(self.storage.patterns),
            successes=self.storage.successes,
            failures=self.storage.failures,
            classifier=ErrorClassifier(),
            ranker=SuggestionRanker(
                relevance_threshold=self.config.relevance_threshold,
                success_rate_tolerance=self.config.success_rate_tolerance,
                limit=self.config.max_suggestions,
            ),
            clock=clock,
        )
        self.extractor = TemplateExtractor(
            self.storage.templates,
            max_examples=self.config.max_template_examples,
            clock=clock,
        )
        self.community = CommunityShare(
            shared=self.storage.shared,
            requests=self.storage.requests,
            votes=self.storage.votes,
            feedback=self.storage.feedback,
            scorer=TrendingScorer(clock),
            clock=clock,
        )

    @classmethod
    def from_config_file(cls, path: Path) -> EvolutionEngine:
        """Load a YAML config, configure logging and build the engine."""
        config = EngineConfig.from_yaml(path)
        setup_logging(config.logging)
        return cls(config)

    # -------------------------------------------------------------------------
    # Learning
    # -------------------------------------------------------------------------

    def record_success(self, workflow: Mapping[str, Any], dry_run: bool = False) -> str:
        with with_context(OperationContext("record_success", dry_run=dry_run)):
            return self.learning.record_success(workflow, dry_run=dry_run)

    def record_failure(self, failure: Mapping[str, Any], dry_run: bool = False) -> str:
        with with_context(OperationContext("record_failure", dry_run=dry_run)):
            return self.learning.record_failure(failure, dry_run=dry_run)

    def get_suggestions(self, context: Mapping[str, Any]) -> list[Suggestion]:
        with with_context(OperationContext("get_suggestions")):
            return self.learning.get_suggestions(context)

    def estimate_duration(self, context: Mapping[str, Any]) -> int | None:
        return self.learning.estimate_duration(context)

    def get_similar_workflows(
        self, context: Mapping[str, Any], limit: int = 3
    ) -> list[WorkflowRecord]:
        return self.learning.get_similar_workflows(context, limit)

    def generate_report(self) -> LearningReport:
        return self.learning.generate_report()

    def cleanup_old_entries(
        self, days_old: int | None = None, dry_run: bool = False
    ) -> CleanupResult:
        with with_context(OperationContext("cleanup_old_entries", dry_run=dry_run)):
            return self.learning.cleanup_old_entries(
                self.config.retention_days if days_old is None else days_old, dry_run=dry_run
            )

    # -------------------------------------------------------------------------
    # Templates
    # -------------------------------------------------------------------------

    def extract_from_workflow(
        self, workflow: WorkflowRecord | Mapping[str, Any], dry_run: bool = False
    ) -> ExtractionResult | None:
        with with_context(OperationContext("extract_from_workflow", dry_run=dry_run)):
            return self.extractor.extract_from_workflow(workflow, dry_run=dry_run)

    def extract_from_workflows(
        self,
        workflows: Iterable[WorkflowRecord | Mapping[str, Any]],
        dry_run: bool = False,
    ) -> BatchExtractionResult:
        with with_context(OperationContext("extract_from_workflows", dry_run=dry_run)):
            return self.extractor.extract_from_workflows(workflows, dry_run=dry_run)

    def search_templates(self, query: str) -> list[TemplateMatch]:
        return self.extractor.search_templates(query)

    def get_templates_by_category(self, category: TemplateCategory | str) -> list[SkillTemplate]:
        return self.extractor.get_templates_by_category(category)

    def get_top_templates(self, limit: int = 10) -> list[SkillTemplate]:
        return self.extractor.get_top_templates(limit)

    # -------------------------------------------------------------------------
    # Community
    # -------------------------------------------------------------------------

    def share_pattern(
        self,
        pattern: BaseModel | Mapping[str, Any],
        anonymous: bool = False,
        include_examples: bool = True,
        dry_run: bool = False,
    ) -> CommunityResult[SharedPattern]:
        with with_context(OperationContext("share_pattern", dry_run=dry_run)):
            return self.community.share_pattern(
                pattern,
                anonymous=anonymous,
                include_examples=include_examples,
                dry_run=dry_run,
            )

    def request_capability(
        self,
        request: Mapping[str, Any],
        priority: Urgency | str = Urgency.NORMAL,
        dry_run: bool = False,
    ) -> CommunityResult[CapabilityRequest]:
        with with_context(OperationContext("request_capability", dry_run=dry_run)):
            return self.community.request_capability(request, priority, dry_run=dry_run)

    def vote(
        self,
        target_type: TargetType | str,
        target_id: str,
        direction: VoteDirection | str,
        dry_run: bool = False,
    ) -> CommunityResult[VoteTally]:
        with with_context(OperationContext("vote", dry_run=dry_run)):
            return self.community.vote(target_type, target_id, direction, dry_run=dry_run)

    def provide_feedback(
        self,
        pattern_id: str,
        feedback: Mapping[str, Any],
        anonymous: bool = False,
        dry_run: bool = False,
    ) -> CommunityResult[FeedbackRecord]:
        with with_context(OperationContext("provide_feedback", dry_run=dry_run)):
            return self.community.provide_feedback(
                pattern_id, feedback, anonymous=anonymous, dry_run=dry_run
            )

    def search_community_patterns(
        self,
        query: str,
        category: str | None = None,
        min_success_rate: float = 0.5,
        limit: int = 10,
    ) -> list[SharedPattern]:
        return self.community.search_community_patterns(
            query, category=category, min_success_rate=min_success_rate, limit=limit
        )

    def get_trending_patterns(self, limit: int = 10) -> list[ScoredPattern]:
        return self.community.get_trending_patterns(limit)

    def get_top_requests(self, limit: int = 10) -> list[ScoredRequest]:
        return self.community.get_top_requests(limit)

    # -------------------------------------------------------------------------
    # Reporting
    # -------------------------------------------------------------------------

    def get_statistics(self) -> dict[str, Any]:
        """Learning report, template statistics and community statistics."""
        return {
            "learning": self.learning.generate_report().to_dict(),
            "templates": self.extractor.get_statistics(),
            "community": self.community.get_statistics(),
        }
