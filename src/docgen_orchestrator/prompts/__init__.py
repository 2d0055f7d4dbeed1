"""Prompt construction and token-budget optimization."""

from __future__ import annotations

from docgen_orchestrator.prompts.optimizer import (
    OptimizationGoal,
    PromptOptimizer,
    PromptValidation,
)
from docgen_orchestrator.prompts.sections import (
    build_analysis_prompt,
    build_enhancement_prompt,
    build_generation_prompt,
    build_section_prompt,
    build_suggestion_prompt,
    suggestion_category,
)

__all__ = [
    "OptimizationGoal",
    "PromptOptimizer",
    "PromptValidation",
    "build_analysis_prompt",
    "build_enhancement_prompt",
    "build_generation_prompt",
    "build_section_prompt",
    "build_suggestion_prompt",
    "suggestion_category",
]
