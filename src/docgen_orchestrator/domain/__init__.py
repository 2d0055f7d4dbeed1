"""Domain value objects shared by every component."""

from __future__ import annotations

from docgen_orchestrator.domain.models import (
    EnhancementRequest,
    EnhancementType,
    ErrorKind,
    GenerationConfig,
    GenerationRequest,
    OperationResult,
    ProjectContext,
    ProviderName,
    ResultSource,
    SectionKind,
    SuggestionType,
    ValidationIssue,
    ValidationResult,
    ValidationSeverity,
)

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
