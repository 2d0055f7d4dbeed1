"""Unit tests for section, enhancement, analysis and suggestion prompt builders."""

from __future__ import annotations

import pytest

from docgen_orchestrator.domain.models import (
    EnhancementRequest,
    EnhancementType,
    ProjectContext,
    SectionKind,
    SuggestionType,
)
from docgen_orchestrator.prompts.sections import (
    ENHANCEMENT_INSTRUCTIONS,
    NO_CONTEXT_TEXT,
    SECTION_PROMPTS,
    build_analysis_prompt,
    build_enhancement_prompt,
    build_generation_prompt,
    build_section_prompt,
    build_suggestion_prompt,
    render_project_context,
    suggestion_category,
)

_CONTEXT = ProjectContext(
    project_name="Acme",
    description="A puzzle game",
    engine_version="2023.3",
    attributes={"genre": "puzzle"},
)


def test_every_section_kind_has_a_prompt_with_context_slot() -> None:
    assert set(SECTION_PROMPTS) == set(SectionKind)
    for prompt in SECTION_PROMPTS.values():
        assert "{project_context}" in prompt


def test_render_project_context_lists_known_fields() -> None:
    assert render_project_context(_CONTEXT) == (
        "- Name: Acme\n"
        "- Description: A puzzle game\n"
        "- Unity Version: 2023.3\n"
        "- genre: puzzle"
    )
    assert render_project_context(ProjectContext()) == NO_CONTEXT_TEXT


@pytest.mark.parametrize("kind", list(SectionKind))
def test_section_prompt_fills_context_slot(kind: SectionKind) -> None:
    prompt = build_section_prompt(kind, _CONTEXT)

    assert "{project_context}" not in prompt
    assert "- Name: Acme" in prompt


def test_generation_prompt_combines_conversation_section_and_instructions() -> None:
    prompt = build_generation_prompt(
        "Focus on multiplayer.",
        SectionKind.DATA_MODEL,
        _CONTEXT,
        conversation_context="user: hello",
    )

    assert prompt.startswith(
        "Conversation Context:\nuser: hello\n\nWrite the Data Model documentation"
    )
    assert prompt.endswith("Additional Instructions:\nFocus on multiplayer.")


def test_generation_prompt_without_section_is_the_user_prompt() -> None:
    assert build_generation_prompt("  Just this.  ", None, _CONTEXT) == "Just this."


def test_enhancement_prompt_includes_optional_parts_in_order() -> None:
    request = EnhancementRequest(
        content="Original text.",
        enhancement_type=EnhancementType.SUMMARIZE,
        instructions="Keep headings",
        focus_areas=("clarity", "brevity"),
        target_word_count=120,
        style="technical",
    )

    prompt = build_enhancement_prompt(request)

    assert prompt.split("\n\n") == [
        ENHANCEMENT_INSTRUCTIONS[EnhancementType.SUMMARIZE],
        "Additional Instructions: Keep headings",
        "Focus Areas: clarity, brevity",
        "Target Word Count: Approximately 120 words",
        "Style: technical",
        "Original Content:\nOriginal text.",
    ]


def test_analysis_and_suggestion_prompts_embed_context() -> None:
    analysis = build_analysis_prompt(_CONTEXT)
    suggestion = build_suggestion_prompt(SuggestionType.PERFORMANCE, ProjectContext())

    assert "- Name: Acme" in analysis
    assert "{project_context}" not in analysis
    assert suggestion.startswith("Identify potential performance bottlenecks")
    assert suggestion.endswith(f"Project Context:\n{NO_CONTEXT_TEXT}")


@pytest.mark.parametrize(
    ("suggestion_type", "category"),
    [
        (SuggestionType.PROJECT_STRUCTURE, "Architecture"),
        (SuggestionType.SECURITY, "Optimization"),
        (SuggestionType.TESTING, "Quality"),
        (SuggestionType.TEMPLATES, "Development"),
    ],
)
def test_suggestion_category(suggestion_type: SuggestionType, category: str) -> None:
    assert suggestion_category(suggestion_type) == category
