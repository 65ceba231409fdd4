"""Skill template extraction from successful workflows.

A workflow with at least two steps is normalized into a SkillTemplate.
Templates with the same category and the same set of tools are the same
template: extracting a matching workflow bumps its success count and adds
the workflow's context to its examples instead of creating a new entry.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from evocore.core.constants import DEFAULT_MAX_TEMPLATE_EXAMPLES, TEMPLATE_SEARCH_LIMIT
from evocore.core.logging import get_logger
from evocore.learning.models import (
    Outcome,
    ParameterSpec,
    SkillTemplate,
    TemplateCategory,
    TemplateStep,
    WorkflowRecord,
    WorkflowStep,
    utc_now,
)
from evocore.state.base import Collection

_logger = get_logger("templates")

DEFAULT_TEMPLATE_NAME = "Workflow Pattern"
MIN_TEMPLATE_STEPS = 2


@dataclass(frozen=True)
class CategoryRule:
    """File a template under ``category`` when any tool contains a keyword."""

    category: TemplateCategory
    keywords: tuple[str, ...]

    def matches(self, tools: Iterable[str]) -> bool:
        return any(keyword in tool for tool in tools for keyword in self.keywords)


CATEGORY_RULES: tuple[CategoryRule, ...] = (
    CategoryRule(TemplateCategory.BROWSER_AUTOMATION, ("browser", "web")),
    CategoryRule(TemplateCategory.DATABASE_OPERATIONS, ("database", "db")),
    CategoryRule(TemplateCategory.FILE_OPERATIONS, ("file", "fs")),
    CategoryRule(TemplateCategory.TESTING, ("test",)),
    CategoryRule(TemplateCategory.API_INTEGRATION, ("api",)),
    CategoryRule(TemplateCategory.MEDIA_PROCESSING, ("image", "video")),
)

TOOL_USE_CASES: dict[str, tuple[str, ...]] = {
    "web_search": ("research", "information gathering"),
    "browser": ("web automation", "scraping"),
    "message": ("communication", "notifications"),
}


@dataclass
class ExtractionResult:
    """Outcome of extracting one workflow."""

    merged: bool
    template: SkillTemplate


@dataclass
class BatchExtractionResult:
    new_templates: int = 0
    merged_templates: int = 0
    templates: list[SkillTemplate] = field(default_factory=list)


@dataclass
class TemplateMatch:
    """A template returned by a search, with why it matched."""

    template: SkillTemplate
    score: int
    reasons: list[str] = field(default_factory=list)


def classify_category(tools: Iterable[str]) -> TemplateCategory:
    """First matching category rule for ``tools``, else general automation."""
    tools = list(tools)
    for rule in CATEGORY_RULES:
        if rule.matches(tools):
            return rule.category
    return TemplateCategory.GENERAL_AUTOMATION


def json_type_name(value: Any) -> str:
    """JSON type name of a parameter value."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    return "object"


class TemplateExtractor:
    """Builds, merges and searches skill templates."""

    def __init__(
        self,
        templates: Collection[SkillTemplate],
        max_examples: int = DEFAULT_MAX_TEMPLATE_EXAMPLES,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize the extractor.

        Args:
            templates: Persisted template collection.
            max_examples: Context snapshots kept per template.
            clock: Source of the current time.
        """
        self.templates = templates
        self.max_examples = max_examples
        self._clock = clock

    # -------------------------------------------------------------------------
    # Extraction
    # -------------------------------------------------------------------------

    def build_template(self, record: WorkflowRecord) -> SkillTemplate:
        """Normalize a workflow into an unsaved template."""
        goal = record.goal
        tools_required = list(dict.fromkeys(s.tool for s in record.steps if s.tool))
        return SkillTemplate(
            name=goal.capitalize() if goal else DEFAULT_TEMPLATE_NAME,
            description=(
                f"A {len(record.steps)}-step workflow using {', '.join(record.tools_used)} "
                f"that accomplishes {goal or 'a common task'}"
            ),
            category=classify_category(record.tools_used),
            use_cases=self._extract_use_cases(record),
            steps=[self._normalize_step(s) for s in record.steps],
            tools_required=tools_required,
            capabilities_required=list(record.capabilities_used),
            parameters=self._extract_parameters(record.steps),
            estimated_duration_ms=record.duration_ms,
            success_count=1,
            last_used=self._clock(),
            examples=[dict(record.context)],
        )

    def extract_from_workflow(
        self,
        workflow: WorkflowRecord | Mapping[str, Any] | None,
        dry_run: bool = False,
    ) -> ExtractionResult | None:
        """Create or merge the template for one successful workflow.

        Args:
            workflow: A recorded workflow or free-form workflow input.
            dry_run: Return the would-be template without persisting.

        Returns:
            The result, or None for workflows with fewer than two steps.
        """
        record = (
            workflow
            if isinstance(workflow, WorkflowRecord)
            else WorkflowRecord.from_input(workflow, Outcome.SUCCESS)
        )
        if len(record.steps) < MIN_TEMPLATE_STEPS:
            return None

        candidate = self.build_template(record)
        existing = self.find_similar(candidate)

        if existing is None:
            if not dry_run:
                self.templates.append(candidate)
                self.templates.flush()
            _logger.info(
                "template_created",
                template_id=candidate.id,
                category=candidate.category.value,
                dry_run=dry_run,
            )
            return ExtractionResult(merged=False, template=candidate)

        target = existing.model_copy(deep=True) if dry_run else existing
        self._merge_into(target, candidate)
        if not dry_run:
            self.templates.update_in_place(target)
            self.templates.flush()
        _logger.info(
            "template_merged",
            template_id=target.id,
            success_count=target.success_count,
            dry_run=dry_run,
        )
        return ExtractionResult(merged=True, template=target)

    def extract_from_workflows(
        self,
        workflows: Iterable[WorkflowRecord | Mapping[str, Any]],
        dry_run: bool = False,
    ) -> BatchExtractionResult:
        """Extract each workflow in turn; short workflows are skipped."""
        batch = BatchExtractionResult()
        for workflow in workflows:
            result = self.extract_from_workflow(workflow, dry_run=dry_run)
            if result is None:
                continue
            batch.templates.append(result.template)
            if result.merged:
                batch.merged_templates += 1
            else:
                batch.new_templates += 1
        return batch

    def find_similar(self, candidate: SkillTemplate) -> SkillTemplate | None:
        """Stored template with the same category and tool set, if any."""
        signature = candidate.signature()
        for template in self.templates.all():
            if template.signature() == signature:
                return template
        return None

    def _merge_into(self, target: SkillTemplate, candidate: SkillTemplate) -> None:
        target.success_count += 1
        target.examples = (target.examples + candidate.examples)[-self.max_examples :]
        target.last_used = candidate.last_used
        if candidate.estimated_duration_ms is not None:
            target.estimated_duration_ms = candidate.estimated_duration_ms

    def _extract_use_cases(self, record: WorkflowRecord) -> list[str]:
        use_cases: list[str] = []
        if record.goal:
            use_cases.append(record.goal)
        industry = record.context.get("industry")
        if isinstance(industry, str) and industry:
            use_cases.append(f"{industry} automation")
        for tool in record.tools_used:
            use_cases.extend(TOOL_USE_CASES.get(tool, ()))
        return list(dict.fromkeys(use_cases))

    @staticmethod
    def _normalize_step(step: WorkflowStep) -> TemplateStep:
        return TemplateStep(
            tool=step.tool or "unknown",
            description=step.description or "Execute step",
            parameters=dict(step.parameters),
            code=step.code,
            duration_ms=step.duration_ms,
        )

    @staticmethod
    def _extract_parameters(steps: Iterable[WorkflowStep]) -> dict[str, ParameterSpec]:
        parameters: dict[str, ParameterSpec] = {}
        for step in steps:
            for name, value in step.parameters.items():
                if name not in parameters:
                    parameters[name] = ParameterSpec(
                        type=json_type_name(value),
                        description=f"Parameter from step: {step.description}",
                    )
        return parameters

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def search_templates(self, query: str) -> list[TemplateMatch]:
        """Substring search over names, descriptions, use cases and tools.

        Name hits score 3, description and use case hits 2, tool hits 1.
        Results are ordered by score, then by success count.
        """
        needle = query.lower()
        matches: list[TemplateMatch] = []

        for template in self.templates.all():
            score = 0
            reasons: list[str] = []
            if needle in template.name.lower():
                score += 3
                reasons.append("Name match")
            if needle in template.description.lower():
                score += 2
                reasons.append("Description match")
            for use_case in template.use_cases:
                if needle in use_case.lower():
                    score += 2
                    reasons.append(f"Use case: {use_case}")
            score += sum(1 for tool in template.tools_required if needle in tool.lower())

            if score > 0:
                matches.append(TemplateMatch(template=template, score=score, reasons=reasons))

        matches.sort(key=lambda m: (m.score, m.template.success_count), reverse=True)
        return matches[:TEMPLATE_SEARCH_LIMIT]

    def get_templates_by_category(self, category: TemplateCategory | str) -> list[SkillTemplate]:
        try:
            wanted = TemplateCategory(category)
        except ValueError:
            return []
        return [t for t in self.templates.all() if t.category is wanted]

    def get_top_templates(self, limit: int = 10) -> list[SkillTemplate]:
        """Templates with the highest success count first."""
        return sorted(self.templates.all(), key=lambda t: t.success_count, reverse=True)[:limit]

    def get_statistics(self) -> dict[str, Any]:
        templates = self.templates.all()
        categories = Counter(t.category.value for t in templates)
        average = (
            sum(t.success_count for t in templates) / len(templates) if templates else 0
        )
        return {
            "total_templates": len(templates),
            "categories": dict(categories),
            "average_success_count": round(average),
            "most_successful": self.get_top_templates(5),
            "recently_used": sorted(templates, key=lambda t: t.last_used, reverse=True)[:5],
        }
