"""Documentation assistant: the orchestrator, its usage statistics and construction."""

from __future__ import annotations

from docgen_orchestrator.assistant.factory import build_assistant, generation_config_from
from docgen_orchestrator.assistant.orchestrator import (
    DEADLINE_EXCEEDED_MESSAGE,
    FALLBACK_TRIGGER_KINDS,
    DocumentationAssistant,
)
from docgen_orchestrator.assistant.statistics import UsageStatistics, UsageTracker

__all__ = [
    "DEADLINE_EXCEEDED_MESSAGE",
    "FALLBACK_TRIGGER_KINDS",
    "DocumentationAssistant",
    "UsageStatistics",
    "UsageTracker",
    "build_assistant",
    "generation_config_from",
]
