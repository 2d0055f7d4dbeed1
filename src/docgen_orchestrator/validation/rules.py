"""Static per-section validation rule table and heuristic vocabularies."""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Final

from docgen_orchestrator.domain.models import SectionKind

GENERAL_MIN_WORDS: Final[int] = 50
GENERAL_MAX_WORDS: Final[int] = 2000
READABILITY_FLOOR: Final[float] = 0.3
GRAMMAR_FLOOR: Final[float] = 0.7
CLARITY_FLOOR: Final[float] = 0.6
DOMAIN_RELEVANCE_FLOOR: Final[float] = 0.3
IDEAL_SENTENCE_WORDS: Final[float] = 17.5
IDEAL_WORD_CHARS: Final[float] = 5.0
SINGLE_PARAGRAPH_MAX_WORDS: Final[int] = 200
LIST_SUGGESTION_MIN_WORDS: Final[int] = 100


@dataclass(frozen=True, slots=True)
class StructurePattern:
    pattern: str
    description: str

    def matches(self, content: str) -> bool:
        return self.pattern.lower() in content.lower()


@dataclass(frozen=True, slots=True)
class SectionRule:
    required_elements: tuple[str, ...]
    min_words: int
    max_words: int
    requires_headers: bool
    requires_bullets: bool
    structure_patterns: tuple[StructurePattern, ...] = ()

    def __post_init__(self) -> None:
        if self.min_words < 0 or self.max_words < self.min_words:
            raise ValueError("word bounds must satisfy 0 <= min_words <= max_words")


SECTION_RULES: Final[Mapping[SectionKind, SectionRule]] = MappingProxyType(
    {
        SectionKind.GENERAL_PRODUCT_DESCRIPTION: SectionRule(
            required_elements=("purpose", "features", "target audience"),
            min_words=150,
            max_words=500,
            requires_headers=True,
            requires_bullets=True,
            structure_patterns=(
                StructurePattern("project overview", "Should include project name and description"),
                StructurePattern("key features", "Should list main features or capabilities"),
            ),
        ),
        SectionKind.SYSTEM_ARCHITECTURE: SectionRule(
            required_elements=("components", "architecture", "patterns"),
            min_words=200,
            max_words=800,
            requires_headers=True,
            requires_bullets=True,
            structure_patterns=(
                StructurePattern("architecture overview", "Should describe overall system design"),
                StructurePattern("component", "Should list major components"),
            ),
        ),
        SectionKind.DATA_MODEL: SectionRule(
            required_elements=("data structures", "models", "relationships"),
            min_words=100,
            max_words=600,
            requires_headers=True,
            requires_bullets=False,
            structure_patterns=(
                StructurePattern("data model", "Should describe key data structures"),
                StructurePattern("relationship", "Should explain how data models relate"),
            ),
        ),
        SectionKind.API_SPECIFICATION: SectionRule(
            required_elements=("interfaces", "methods", "parameters"),
            min_words=150,
            max_words=1000,
            requires_headers=True,
            requires_bullets=True,
            structure_patterns=(
                StructurePattern("api overview", "Should describe API purpose and scope"),
                StructurePattern("interface", "Should list key interfaces and methods"),
            ),
        ),
        SectionKind.USER_STORIES: SectionRule(
            required_elements=("user", "goal", "benefit"),
            min_words=100,
            max_words=400,
            requires_headers=False,
            requires_bullets=True,
            structure_patterns=(
                StructurePattern(
                    "as a", "Should follow 'As a..., I want..., So that...' format"
                ),
            ),
        ),
        SectionKind.WORK_TICKETS: SectionRule(
            required_elements=("tasks", "implementation", "requirements"),
            min_words=200,
            max_words=600,
            requires_headers=True,
            requires_bullets=True,
            structure_patterns=(
                StructurePattern("task", "Should list specific implementation tasks"),
                StructurePattern("acceptance criteria", "Should define completion criteria"),
            ),
        ),
    }
)

DOMAIN_SENSITIVE_SECTIONS: Final[frozenset[SectionKind]] = frozenset(
    {
        SectionKind.SYSTEM_ARCHITECTURE,
        SectionKind.DATA_MODEL,
        SectionKind.API_SPECIFICATION,
    }
)

DOMAIN_TERMS: Final[tuple[str, ...]] = (
    "GameObject",
    "Component",
    "MonoBehaviour",
    "ScriptableObject",
    "Transform",
    "Unity Editor",
    "Prefab",
    "Scene",
    "Asset",
    "Inspector",
    "Hierarchy",
    "Project Window",
    "Console",
    "Build Settings",
    "Player Settings",
)

DOMAIN_CONCEPTS: Final[tuple[str, ...]] = (
    "component-based",
    "entity component",
    "game loop",
    "lifecycle",
    "serialization",
)

# (trigger, required companion, message)
DOMAIN_VIOLATIONS: Final[tuple[tuple[str, str, str], ...]] = (
    (
        "update()",
        "performance",
        "Update() usage mentioned without performance considerations",
    ),
    ("singleton", "careful", "Singleton pattern mentioned without cautions"),
)

INFORMAL_WORDS: Final[tuple[str, ...]] = (
    "gonna",
    "wanna",
    "kinda",
    "sorta",
    "yeah",
    "ok",
    "btw",
    "lol",
)

PLACEHOLDER_MARKERS: Final[tuple[str, ...]] = ("todo", "tbd", "...")

HEADER_RE: Final[re.Pattern[str]] = re.compile(r"^#+\s+.+", re.MULTILINE)
BULLET_RE: Final[re.Pattern[str]] = re.compile(r"^\s*[-*+]\s+.+", re.MULTILINE)
NUMBERED_RE: Final[re.Pattern[str]] = re.compile(r"^\s*\d+\.\s+.+", re.MULTILINE)
SENTENCE_SPLIT_RE: Final[re.Pattern[str]] = re.compile(r"[.!?]+")
THERE_MISUSE_RE: Final[re.Pattern[str]] = re.compile(
    r"\b(there|their|they're)\s+(is|are)\b", re.IGNORECASE
)
ITS_CONTRACTION_RE: Final[re.Pattern[str]] = re.compile(r"\bit's\b", re.IGNORECASE)
ITS_POSSESSIVE_RE: Final[re.Pattern[str]] = re.compile(r"\bits\b", re.IGNORECASE)
PASSIVE_RE: Final[re.Pattern[str]] = re.compile(
    r"\b(was|were|been|being)\s+\w+ed\b", re.IGNORECASE
)
VOWEL_RUN_RE: Final[re.Pattern[str]] = re.compile(r"[aeiouy]+")


def rule_for(section_kind: SectionKind) -> SectionRule:
    return SECTION_RULES[section_kind]


def section_label(section_kind: SectionKind) -> str:
    """Human label used in issue messages, e.g. ``System Architecture``."""

    return section_kind.value.replace("_", " ").title().replace("Api ", "API ")


__all__ = [
    "BULLET_RE",
    "CLARITY_FLOOR",
    "DOMAIN_CONCEPTS",
    "DOMAIN_RELEVANCE_FLOOR",
    "DOMAIN_SENSITIVE_SECTIONS",
    "DOMAIN_TERMS",
    "DOMAIN_VIOLATIONS",
    "GENERAL_MAX_WORDS",
    "GENERAL_MIN_WORDS",
    "GRAMMAR_FLOOR",
    "HEADER_RE",
    "IDEAL_SENTENCE_WORDS",
    "IDEAL_WORD_CHARS",
    "INFORMAL_WORDS",
    "ITS_CONTRACTION_RE",
    "ITS_POSSESSIVE_RE",
    "LIST_SUGGESTION_MIN_WORDS",
    "NUMBERED_RE",
    "PASSIVE_RE",
    "PLACEHOLDER_MARKERS",
    "READABILITY_FLOOR",
    "SECTION_RULES",
    "SENTENCE_SPLIT_RE",
    "SINGLE_PARAGRAPH_MAX_WORDS",
    "SectionRule",
    "StructurePattern",
    "THERE_MISUSE_RE",
    "VOWEL_RUN_RE",
    "rule_for",
    "section_label",
]
