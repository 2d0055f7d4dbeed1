"""
docgen-orchestrator — prompt library

File: src/docgen_orchestrator/prompts/sections.py
Last updated: 2026-02-13

Purpose
- Build every prompt the orchestrator sends: section generation, content enhancement,
  project analysis and improvement suggestions.

Functional requirements
- Section prompts carry a ``{project_context}`` slot filled from ``ProjectContext``.
- Builders are pure string functions; no provider or I/O knowledge lives here.
"""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType
from typing import Final

from docgen_orchestrator.domain.models import (
    EnhancementRequest,
    EnhancementType,
    ProjectContext,
    SectionKind,
    SuggestionType,
)

NO_CONTEXT_TEXT: Final[str] = "No project context supplied."

SECTION_PROMPTS: Final[Mapping[SectionKind, str]] = MappingProxyType(
    {
        SectionKind.GENERAL_PRODUCT_DESCRIPTION: (
            "Write the General Product Description for this Unity project.\n\n"
            "**Requirements:**\n"
            "- Explain the purpose and scope of the project\n"
            "- List the key features and capabilities\n"
            "- Describe the target audience and main use cases\n"
            "- Keep the language clear for technical and non-technical readers\n\n"
            "**Format:**\n"
            "Markdown with the sections Project Overview, Key Features, Target Audience,\n"
            "Technical Highlights and Use Cases. Use bullet points for features.\n\n"
            "**Output length:** 300-500 words\n\n"
            "Project Context:\n{project_context}"
        ),
        SectionKind.SYSTEM_ARCHITECTURE: (
            "Write the System Architecture documentation for this Unity project.\n\n"
            "**Requirements:**\n"
            "- Describe the overall architecture and the design patterns in use\n"
            "- Break the system down into components and their responsibilities\n"
            "- Explain data flow between components\n"
            "- Cover Unity-specific choices such as ScriptableObjects and MonoBehaviours\n"
            "- Note performance and scalability considerations\n\n"
            "**Format:**\n"
            "Markdown with the sections Architecture Overview, Component Breakdown,\n"
            "Design Patterns, Data Flow, Unity Integration and Extension Points.\n\n"
            "**Output length:** 500-800 words\n\n"
            "Project Context:\n{project_context}"
        ),
        SectionKind.DATA_MODEL: (
            "Write the Data Model documentation for this Unity project.\n\n"
            "**Requirements:**\n"
            "- Document the main data structures and models and what they are for\n"
            "- Explain relationships and dependencies between models\n"
            "- Describe the serialization strategy (ScriptableObjects, JSON, binary)\n"
            "- Cover validation and persistence of data\n\n"
            "**Format:**\n"
            "Markdown with the sections Data Model Overview, Core Data Structures,\n"
            "Relationships, Serialization and Validation.\n\n"
            "**Output length:** 400-600 words\n\n"
            "Project Context:\n{project_context}"
        ),
        SectionKind.API_SPECIFICATION: (
            "Write the API Specification for this Unity project.\n\n"
            "**Requirements:**\n"
            "- Document the public interfaces and their methods\n"
            "- Describe parameters and return values\n"
            "- Include usage examples and error handling\n"
            "- Cover Unity Editor extensions exposed as APIs\n\n"
            "**Format:**\n"
            "Markdown with the sections API Overview, Core Interfaces, Utility Classes,\n"
            "Usage Examples and Error Handling. Use bullet points for method lists.\n\n"
            "**Output length:** 600-900 words\n\n"
            "Project Context:\n{project_context}"
        ),
        SectionKind.USER_STORIES: (
            "Write the User Stories for this Unity project.\n\n"
            "**Requirements:**\n"
            "- Follow the form: As a <user>, I want <goal>, so that <benefit>\n"
            "- Group stories by user type\n"
            "- Give each story acceptance criteria\n"
            "- Cover both player-facing and developer-facing stories\n\n"
            "**Format:**\n"
            "Markdown bullet lists, one story per group of bullets.\n\n"
            "**Output length:** 200-400 words\n\n"
            "Project Context:\n{project_context}"
        ),
        SectionKind.WORK_TICKETS: (
            "Write the Work Tickets for this Unity project.\n\n"
            "**Requirements:**\n"
            "- Break the implementation down into concrete tasks\n"
            "- Give each ticket a priority, implementation steps and requirements\n"
            "- Define acceptance criteria for every ticket\n\n"
            "**Format:**\n"
            "Markdown with a Task Breakdown section and one sub-section per ticket.\n\n"
            "**Output length:** 300-600 words\n\n"
            "Project Context:\n{project_context}"
        ),
    }
)

ENHANCEMENT_INSTRUCTIONS: Final[Mapping[EnhancementType, str]] = MappingProxyType(
    {
        EnhancementType.IMPROVE: (
            "Improve the quality, clarity, and readability of the following content while "
            "preserving the original meaning and structure."
        ),
        EnhancementType.EXPAND: (
            "Expand the following content with additional relevant details, examples, and "
            "explanations while maintaining coherence."
        ),
        EnhancementType.SUMMARIZE: (
            "Create a concise summary of the following content, highlighting the key points "
            "and main ideas."
        ),
        EnhancementType.RESTRUCTURE: (
            "Restructure the following content for better organization, flow, and logical "
            "presentation."
        ),
        EnhancementType.PROOFREAD: (
            "Proofread the following content for grammar, spelling, punctuation, and style "
            "improvements."
        ),
        EnhancementType.ADD_EXAMPLES: (
            "Add relevant examples, code samples, and practical illustrations to the "
            "following content."
        ),
        EnhancementType.ADD_DIAGRAMS: (
            "Suggest and describe diagrams, charts, or visual elements that would enhance "
            "the following content."
        ),
        EnhancementType.TRANSLATE: (
            "Translate the following content while preserving technical accuracy and context."
        ),
    }
)
DEFAULT_ENHANCEMENT_INSTRUCTION: Final[str] = (
    "Enhance the following content according to best practices."
)

SUGGESTION_INSTRUCTIONS: Final[Mapping[SuggestionType, str]] = MappingProxyType(
    {
        SuggestionType.PROJECT_STRUCTURE: (
            "Analyze the project structure and provide suggestions for better organization, "
            "folder hierarchy, and architectural improvements."
        ),
        SuggestionType.BEST_PRACTICES: (
            "Review the project and suggest Unity best practices, coding standards, and "
            "development workflow improvements."
        ),
        SuggestionType.ARCHITECTURE: (
            "Analyze the system architecture and recommend design patterns, architectural "
            "improvements, and scalability enhancements."
        ),
        SuggestionType.PERFORMANCE: (
            "Identify potential performance bottlenecks and suggest optimization strategies "
            "for better runtime performance."
        ),
        SuggestionType.SECURITY: (
            "Review the project for security considerations and recommend security best "
            "practices and vulnerability mitigation."
        ),
        SuggestionType.TESTING: (
            "Suggest testing strategies, unit test coverage improvements, and quality "
            "assurance practices."
        ),
        SuggestionType.DOCUMENTATION: (
            "Recommend documentation improvements, missing documentation areas, and "
            "documentation best practices."
        ),
        SuggestionType.TEMPLATES: (
            "Suggest project templates, code generation opportunities, and automation "
            "possibilities."
        ),
    }
)
DEFAULT_SUGGESTION_INSTRUCTION: Final[str] = "Provide general suggestions for project improvement."

SUGGESTION_CATEGORIES: Final[Mapping[SuggestionType, str]] = MappingProxyType(
    {
        SuggestionType.PROJECT_STRUCTURE: "Architecture",
        SuggestionType.ARCHITECTURE: "Architecture",
        SuggestionType.PERFORMANCE: "Optimization",
        SuggestionType.SECURITY: "Optimization",
        SuggestionType.TESTING: "Quality",
        SuggestionType.DOCUMENTATION: "Quality",
        SuggestionType.BEST_PRACTICES: "Development",
        SuggestionType.TEMPLATES: "Development",
    }
)

ANALYSIS_PROMPT: Final[str] = (
    "Analyze this Unity project and report on its current state.\n\n"
    "**Requirements:**\n"
    "- Summarize the project structure and the main systems\n"
    "- Identify architectural strengths and weaknesses\n"
    "- Point out missing documentation and risky areas\n"
    "- Recommend concrete next steps in priority order\n\n"
    "**Format:**\n"
    "Markdown with the sections Summary, Strengths, Risks and Recommendations.\n\n"
    "Project Context:\n{project_context}"
)


def render_project_context(context: ProjectContext) -> str:
    described = context.describe()
    return described if described else NO_CONTEXT_TEXT


def build_section_prompt(section_kind: SectionKind, context: ProjectContext) -> str:
    template = SECTION_PROMPTS[section_kind]
    return template.replace("{project_context}", render_project_context(context))


def build_generation_prompt(
    user_prompt: str,
    section_kind: SectionKind | None,
    context: ProjectContext,
    conversation_context: str = "",
) -> str:
    """Combine conversation context, the section prompt and the caller's prompt."""

    parts: list[str] = []
    if conversation_context.strip():
        parts.append(f"Conversation Context:\n{conversation_context.strip()}")
    if section_kind is not None:
        section = build_section_prompt(section_kind, context)
        if user_prompt.strip():
            parts.append(f"{section}\n\nAdditional Instructions:\n{user_prompt.strip()}")
        else:
            parts.append(section)
    else:
        parts.append(user_prompt.strip())
    return "\n\n".join(part for part in parts if part)


def build_enhancement_prompt(request: EnhancementRequest) -> str:
    instruction = ENHANCEMENT_INSTRUCTIONS.get(
        request.enhancement_type, DEFAULT_ENHANCEMENT_INSTRUCTION
    )
    parts = [instruction]
    if request.instructions.strip():
        parts.append(f"Additional Instructions: {request.instructions.strip()}")
    if request.focus_areas:
        parts.append(f"Focus Areas: {', '.join(request.focus_areas)}")
    if request.target_word_count:
        parts.append(f"Target Word Count: Approximately {request.target_word_count} words")
    if request.style.strip():
        parts.append(f"Style: {request.style.strip()}")
    parts.append(f"Original Content:\n{request.content}")
    return "\n\n".join(parts)


def build_analysis_prompt(context: ProjectContext) -> str:
    return ANALYSIS_PROMPT.replace("{project_context}", render_project_context(context))


def build_suggestion_prompt(suggestion_type: SuggestionType, context: ProjectContext) -> str:
    instruction = SUGGESTION_INSTRUCTIONS.get(suggestion_type, DEFAULT_SUGGESTION_INSTRUCTION)
    return f"{instruction}\n\nProject Context:\n{render_project_context(context)}"


def suggestion_category(suggestion_type: SuggestionType) -> str:
    return SUGGESTION_CATEGORIES.get(suggestion_type, "General")


__all__ = [
    "ANALYSIS_PROMPT",
    "DEFAULT_ENHANCEMENT_INSTRUCTION",
    "DEFAULT_SUGGESTION_INSTRUCTION",
    "ENHANCEMENT_INSTRUCTIONS",
    "NO_CONTEXT_TEXT",
    "SECTION_PROMPTS",
    "SUGGESTION_CATEGORIES",
    "SUGGESTION_INSTRUCTIONS",
    "build_analysis_prompt",
    "build_enhancement_prompt",
    "build_generation_prompt",
    "build_section_prompt",
    "build_suggestion_prompt",
    "render_project_context",
    "suggestion_category",
]
