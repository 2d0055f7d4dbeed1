"""
docgen-orchestrator — shared domain models

File: src/docgen_orchestrator/domain/models.py
Last updated: 2026-02-13

Purpose
- Value objects exchanged between the orchestrator, provider client, validator and
  fallback engine.

What should be included in this file
- Section, error, provider and severity enumerations.
- Immutable request/result envelopes with deterministic serialization helpers.

Functional requirements
- Results must be produced once and only degrade (never raise) confidence afterwards.
- Validation results must derive validity and score from their issues so that adding
  an issue can only lower the score.

Non-functional requirements
- Domain layer must stay free of I/O and third-party imports.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from enum import StrEnum
from types import MappingProxyType
from typing import Final

from docgen_orchestrator.constants import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_MAX_TOKENS,
    DEFAULT_MODEL,
    DEFAULT_TEMPERATURE,
    DEFAULT_TIMEOUT_SECONDS,
)


class SectionKind(StrEnum):
    GENERAL_PRODUCT_DESCRIPTION = "general_product_description"
    SYSTEM_ARCHITECTURE = "system_architecture"
    DATA_MODEL = "data_model"
    API_SPECIFICATION = "api_specification"
    USER_STORIES = "user_stories"
    WORK_TICKETS = "work_tickets"


class ErrorKind(StrEnum):
    VALIDATION_ERROR = "validation_error"
    AUTHENTICATION_ERROR = "authentication_error"
    RATE_LIMIT_ERROR = "rate_limit_error"
    HTTP_ERROR = "http_error"
    SERVER_ERROR = "server_error"
    TIMEOUT = "timeout"
    OVERLOADED_ERROR = "overloaded_error"
    PARSE_ERROR = "parse_error"
    CLIENT_ERROR = "client_error"


class ProviderName(StrEnum):
    CLAUDE = "claude"
    OFFLINE = "offline"


class ResultSource(StrEnum):
    LIVE = "live"
    CACHE = "cache"
    TEMPLATE = "template"
    RULE_BASED = "rule_based"


class ValidationSeverity(StrEnum):
    MINOR = "minor"
    WARNING = "warning"
    MAJOR = "major"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK: Final[dict[ValidationSeverity, int]] = {
    ValidationSeverity.MINOR: 0,
    ValidationSeverity.WARNING: 1,
    ValidationSeverity.MAJOR: 2,
    ValidationSeverity.CRITICAL: 3,
}


class EnhancementType(StrEnum):
    IMPROVE = "improve"
    EXPAND = "expand"
    SUMMARIZE = "summarize"
    RESTRUCTURE = "restructure"
    PROOFREAD = "proofread"
    ADD_EXAMPLES = "add_examples"
    ADD_DIAGRAMS = "add_diagrams"
    TRANSLATE = "translate"


class SuggestionType(StrEnum):
    PROJECT_STRUCTURE = "project_structure"
    BEST_PRACTICES = "best_practices"
    ARCHITECTURE = "architecture"
    PERFORMANCE = "performance"
    SECURITY = "security"
    TESTING = "testing"
    DOCUMENTATION = "documentation"
    TEMPLATES = "templates"


def _freeze_mapping(value: Mapping[str, object]) -> Mapping[str, object]:
    return MappingProxyType(dict(value))


@dataclass(frozen=True, slots=True)
class ProjectContext:
    """Project facts supplied by analyzers; used only as a substitution source."""

    project_name: str = ""
    description: str = ""
    target_platform: str = ""
    engine_version: str = ""
    attributes: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        normalized: dict[str, str] = {}
        for key, value in self.attributes.items():
            if not isinstance(key, str) or not isinstance(value, str):
                raise TypeError("ProjectContext.attributes must map str to str")
            normalized[key] = value
        object.__setattr__(self, "attributes", MappingProxyType(normalized))

    def describe(self) -> str:
        """Render a short bullet list for prompt context blocks."""

        lines: list[str] = []
        if self.project_name:
            lines.append(f"- Name: {self.project_name}")
        if self.description:
            lines.append(f"- Description: {self.description}")
        if self.engine_version:
            lines.append(f"- Unity Version: {self.engine_version}")
        if self.target_platform:
            lines.append(f"- Target Platform: {self.target_platform}")
        for key in sorted(self.attributes):
            lines.append(f"- {key}: {self.attributes[key]}")
        return "\n".join(lines)


@dataclass(frozen=True, slots=True)
class GenerationConfig:
    """Per-request provider configuration."""

    provider: ProviderName = ProviderName.CLAUDE
    model: str = DEFAULT_MODEL
    max_tokens: int = DEFAULT_MAX_TOKENS
    temperature: float = DEFAULT_TEMPERATURE
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    max_retries: int = DEFAULT_MAX_RETRIES

    def problems(self) -> tuple[str, ...]:
        """Return human-readable configuration problems; empty when valid."""

        found: list[str] = []
        if not self.model.strip():
            found.append("model must not be empty")
        if self.max_tokens <= 0:
            found.append("max_tokens must be > 0")
        if not (0.0 <= self.temperature <= 1.0):
            found.append("temperature must be between 0 and 1")
        if self.timeout_seconds <= 0:
            found.append("timeout_seconds must be > 0")
        if self.max_retries < 0:
            found.append("max_retries must be >= 0")
        return tuple(found)

    @property
    def is_valid(self) -> bool:
        return not self.problems()


@dataclass(frozen=True, slots=True)
class GenerationRequest:
    """Immutable content-generation intent submitted by a caller."""

    prompt: str
    section_kind: SectionKind | None = None
    project_context: ProjectContext = field(default_factory=ProjectContext)
    configuration: GenerationConfig = field(default_factory=GenerationConfig)
    parameters: Mapping[str, str] = field(default_factory=dict)
    conversation_id: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "parameters", MappingProxyType(dict(self.parameters)))


@dataclass(frozen=True, slots=True)
class EnhancementRequest:
    """Request to rework existing content with one enhancement instruction."""

    content: str
    enhancement_type: EnhancementType = EnhancementType.IMPROVE
    instructions: str = ""
    focus_areas: tuple[str, ...] = ()
    target_word_count: int | None = None
    style: str = "professional"
    section_kind: SectionKind | None = None
    project_context: ProjectContext = field(default_factory=ProjectContext)
    configuration: GenerationConfig = field(default_factory=GenerationConfig)


@dataclass(frozen=True, slots=True)
class OperationResult:
    """Normalized outcome of one generation-style operation."""

    success: bool
    content: str = ""
    provider: ProviderName = ProviderName.CLAUDE
    processing_time_seconds: float = 0.0
    tokens_used: int = 0
    confidence: float = 0.0
    error_message: str = ""
    error_kind: ErrorKind | None = None
    metadata: Mapping[str, object] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not (0.0 <= self.confidence <= 1.0):
            raise ValueError("confidence must be between 0 and 1")
        if self.tokens_used < 0:
            raise ValueError("tokens_used must be >= 0")
        object.__setattr__(self, "metadata", _freeze_mapping(self.metadata))

    @classmethod
    def failure(
        cls,
        kind: ErrorKind,
        message: str,
        *,
        provider: ProviderName = ProviderName.CLAUDE,
        processing_time_seconds: float = 0.0,
        metadata: Mapping[str, object] | None = None,
    ) -> OperationResult:
        merged: dict[str, object] = {"error_kind": kind.value}
        if metadata:
            merged.update(metadata)
        return cls(
            success=False,
            provider=provider,
            processing_time_seconds=processing_time_seconds,
            error_message=message,
            error_kind=kind,
            metadata=merged,
        )

    def with_confidence_penalty(self, factor: float, **metadata: object) -> OperationResult:
        """Scale confidence down by ``factor``; values above 1 are ignored."""

        lowered = self.confidence * min(1.0, max(0.0, factor))
        return replace(
            self,
            confidence=min(self.confidence, lowered),
            metadata={**self.metadata, **metadata},
        )

    def with_metadata(self, **metadata: object) -> OperationResult:
        return replace(self, metadata={**self.metadata, **metadata})

    def with_processing_time(self, seconds: float) -> OperationResult:
        return replace(self, processing_time_seconds=max(0.0, seconds))

    def to_dict(self) -> dict[str, object]:
        return {
            "success": self.success,
            "content": self.content,
            "provider": self.provider.value,
            "processing_time_seconds": round(self.processing_time_seconds, 6),
            "tokens_used": self.tokens_used,
            "confidence": round(self.confidence, 6),
            "error_message": self.error_message,
            "error_kind": self.error_kind.value if self.error_kind is not None else None,
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True, slots=True)
class ValidationIssue:
    message: str
    severity: ValidationSeverity


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """Outcome of one content validation call.

    ``overall_score`` and ``is_valid`` are derived from the issue list and the
    language sub-scores, so every view of the result stays consistent.
    """

    issues: tuple[ValidationIssue, ...] = ()
    suggestions: tuple[str, ...] = ()
    word_count: int = 0
    readability_score: float = 0.0
    grammar_score: float = 0.0
    clarity_score: float = 0.0
    domain_relevance_score: float = 0.0
    score_ceiling: float = 1.0

    @property
    def is_valid(self) -> bool:
        return all(issue.severity is not ValidationSeverity.CRITICAL for issue in self.issues)

    @property
    def structure_score(self) -> float:
        hits = sum(
            1 for issue in self.issues if "structure" in issue.message or "element" in issue.message
        )
        return max(0.0, 1.0 - 0.2 * hits)

    @property
    def quality_score(self) -> float:
        return (self.readability_score + self.grammar_score + self.clarity_score) / 3.0

    @property
    def completeness_score(self) -> float:
        return 0.5 if any("incomplete" in issue.message for issue in self.issues) else 1.0

    @property
    def format_score(self) -> float:
        return 0.8 if any("format" in issue.message for issue in self.issues) else 1.0

    @property
    def overall_score(self) -> float:
        blended = (
            0.3 * self.structure_score
            + 0.4 * self.quality_score
            + 0.2 * self.completeness_score
            + 0.1 * self.format_score
        )
        blended = max(0.0, min(1.0, blended))
        critical = sum(1 for issue in self.issues if issue.severity is ValidationSeverity.CRITICAL)
        major = sum(1 for issue in self.issues if issue.severity is ValidationSeverity.MAJOR)
        penalized = max(0.0, blended - (0.3 * critical + 0.1 * major))
        return min(self.score_ceiling, penalized)

    def with_issue(self, issue: ValidationIssue) -> ValidationResult:
        return replace(self, issues=(*self.issues, issue))

    def issues_at_least(self, severity: ValidationSeverity) -> tuple[ValidationIssue, ...]:
        return tuple(issue for issue in self.issues if issue.severity.rank >= severity.rank)

    def to_dict(self) -> dict[str, object]:
        return {
            "is_valid": self.is_valid,
            "overall_score": round(self.overall_score, 6),
            "word_count": self.word_count,
            "issues": [
                {"message": issue.message, "severity": issue.severity.value}
                for issue in self.issues
            ],
            "suggestions": list(self.suggestions),
            "scores": {
                "structure": round(self.structure_score, 6),
                "quality": round(self.quality_score, 6),
                "completeness": round(self.completeness_score, 6),
                "format": round(self.format_score, 6),
                "readability": round(self.readability_score, 6),
                "grammar": round(self.grammar_score, 6),
                "clarity": round(self.clarity_score, 6),
                "domain_relevance": round(self.domain_relevance_score, 6),
            },
        }


__all__ = [
    "EnhancementRequest",
    "EnhancementType",
    "ErrorKind",
    "GenerationConfig",
    "GenerationRequest",
    "OperationResult",
    "ProjectContext",
    "ProviderName",
    "ResultSource",
    "SectionKind",
    "SuggestionType",
    "ValidationIssue",
    "ValidationResult",
    "ValidationSeverity",
]
