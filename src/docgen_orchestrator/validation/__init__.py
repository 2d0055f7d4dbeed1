"""Content validation: section rule table and heuristic scorer."""

from __future__ import annotations

from docgen_orchestrator.validation.rules import SECTION_RULES, SectionRule, StructurePattern
from docgen_orchestrator.validation.validator import ContentValidator, StructureReport

__all__ = [
    "SECTION_RULES",
    "ContentValidator",
    "SectionRule",
    "StructurePattern",
    "StructureReport",
]
