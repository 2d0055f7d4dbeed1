"""
docgen-orchestrator — content validator

File: src/docgen_orchestrator/validation/validator.py
Last updated: 2026-02-13

Purpose
- Score generated documentation against per-section structural rules and a small set
  of language heuristics.

What should be included in this file
- Word-count, required-element, placeholder and markdown-format checks.
- Readability, grammar, clarity and domain-relevance sub-scores.
- A structure-only report for callers that do not need scoring.

Functional requirements
- Pure function of (content, section kind) and the static rule table.
- Only critical issues make a result invalid; everything else lowers the score.

Non-functional requirements
- No I/O; logging is limited to one summary event per call.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

import structlog

from docgen_orchestrator.domain.models import (
    SectionKind,
    ValidationIssue,
    ValidationResult,
    ValidationSeverity,
)
from docgen_orchestrator.validation.rules import (
    BULLET_RE,
    CLARITY_FLOOR,
    DOMAIN_CONCEPTS,
    DOMAIN_RELEVANCE_FLOOR,
    DOMAIN_SENSITIVE_SECTIONS,
    DOMAIN_TERMS,
    DOMAIN_VIOLATIONS,
    GENERAL_MAX_WORDS,
    GENERAL_MIN_WORDS,
    GRAMMAR_FLOOR,
    HEADER_RE,
    IDEAL_SENTENCE_WORDS,
    IDEAL_WORD_CHARS,
    INFORMAL_WORDS,
    ITS_CONTRACTION_RE,
    ITS_POSSESSIVE_RE,
    LIST_SUGGESTION_MIN_WORDS,
    NUMBERED_RE,
    PASSIVE_RE,
    PLACEHOLDER_MARKERS,
    READABILITY_FLOOR,
    SENTENCE_SPLIT_RE,
    SINGLE_PARAGRAPH_MAX_WORDS,
    THERE_MISUSE_RE,
    VOWEL_RUN_RE,
    rule_for,
    section_label,
)

_INFORMAL_RE = re.compile(r"\b(" + "|".join(INFORMAL_WORDS) + r")\b")
_NON_LETTERS_RE = re.compile(r"[^a-z]")


@dataclass(frozen=True, slots=True)
class StructureReport:
    missing_elements: tuple[str, ...] = ()
    structure_issues: tuple[str, ...] = ()
    format_issues: tuple[str, ...] = ()

    @property
    def is_well_structured(self) -> bool:
        return not (self.missing_elements or self.structure_issues or self.format_issues)


def count_words(content: str) -> int:
    return len(content.split())


def split_sentences(content: str) -> list[str]:
    return [part for part in SENTENCE_SPLIT_RE.split(content) if part.strip()]


def has_headers(content: str) -> bool:
    return HEADER_RE.search(content) is not None


def has_lists(content: str) -> bool:
    return BULLET_RE.search(content) is not None or NUMBERED_RE.search(content) is not None


def readability_score(content: str) -> float:
    """Blend of sentence-length and word-length closeness to plain-prose norms."""

    words = count_words(content)
    sentences = split_sentences(content)
    if not sentences or words == 0:
        return 0.0
    average_sentence = words / len(sentences)
    average_word = len(content) / words
    sentence_score = max(0.0, 1.0 - abs(average_sentence - IDEAL_SENTENCE_WORDS) / 10.0)
    word_score = max(0.0, 1.0 - abs(average_word - IDEAL_WORD_CHARS) / 3.0)
    return (sentence_score + word_score) / 2.0


def grammar_score(content: str) -> float:
    score = 1.0
    if THERE_MISUSE_RE.search(content):
        score -= 0.1
    contractions = len(ITS_CONTRACTION_RE.findall(content))
    possessives = len(ITS_POSSESSIVE_RE.findall(content))
    if (contractions or possessives) and contractions > possessives * 2:
        score -= 0.1
    return max(0.0, score)


def estimate_syllables(word: str) -> int:
    if len(word) <= 3:
        return 1
    count = len(VOWEL_RUN_RE.findall(word))
    if word.endswith("e"):
        count -= 1
    return max(1, count)


def clarity_score(content: str) -> float:
    score = 1.0
    sentences = split_sentences(content)
    if sentences and len(PASSIVE_RE.findall(content)) / len(sentences) > 0.3:
        score -= 0.2
    words = [_NON_LETTERS_RE.sub("", word.lower()) for word in content.split()]
    words = [word for word in words if word]
    if words:
        complex_words = sum(1 for word in words if estimate_syllables(word) > 3)
        if complex_words / len(words) > 0.15:
            score -= 0.1
    return max(0.0, score)


class ContentValidator:
    """Rule-table validator for generated documentation sections."""

    def __init__(self, *, logger: Any | None = None) -> None:
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    def validate(self, content: str, section_kind: SectionKind | None = None) -> ValidationResult:
        if not content or not content.strip():
            return ValidationResult(
                issues=(ValidationIssue("Content cannot be empty", ValidationSeverity.CRITICAL),),
                score_ceiling=0.0,
            )

        issues: list[ValidationIssue] = []
        suggestions: list[str] = []
        words = count_words(content)
        readability = readability_score(content)

        self._check_general(content, words, readability, issues)
        if section_kind is not None:
            self._check_section(content, words, section_kind, issues)
        self._check_format(content, words, issues, suggestions)
        domain_relevance = self._check_domain(content, section_kind, issues, suggestions)

        grammar = grammar_score(content)
        clarity = clarity_score(content)
        if grammar < GRAMMAR_FLOOR:
            issues.append(
                ValidationIssue(
                    "Content may contain grammar or language issues", ValidationSeverity.MINOR
                )
            )
        if clarity < CLARITY_FLOOR:
            issues.append(
                ValidationIssue(
                    "Content clarity could be improved - consider simplifying complex sentences",
                    ValidationSeverity.MINOR,
                )
            )
        if _INFORMAL_RE.search(content.lower()):
            issues.append(
                ValidationIssue(
                    "Content contains informal language - consider using more professional tone",
                    ValidationSeverity.MINOR,
                )
            )

        result = ValidationResult(
            issues=tuple(issues),
            suggestions=tuple(suggestions),
            word_count=words,
            readability_score=readability,
            grammar_score=grammar,
            clarity_score=clarity,
            domain_relevance_score=domain_relevance,
        )
        self._logger.info(
            "content_validated",
            section_kind=section_kind.value if section_kind is not None else None,
            word_count=words,
            issue_count=len(issues),
            is_valid=result.is_valid,
            overall_score=round(result.overall_score, 4),
        )
        return result

    def validate_structure(self, content: str, section_kind: SectionKind) -> StructureReport:
        rule = rule_for(section_kind)
        lowered = content.lower()
        missing = tuple(
            element for element in rule.required_elements if element.lower() not in lowered
        )
        structure = tuple(
            f"Missing or invalid structure: {pattern.description}"
            for pattern in rule.structure_patterns
            if not pattern.matches(content)
        )
        format_issues: list[str] = []
        if rule.requires_headers and not has_headers(content):
            format_issues.append("Content should include proper section headers")
        if rule.requires_bullets and not has_lists(content):
            format_issues.append("Content should include bullet points or lists")
        return StructureReport(
            missing_elements=missing,
            structure_issues=structure,
            format_issues=tuple(format_issues),
        )

    def _check_general(
        self, content: str, words: int, readability: float, issues: list[ValidationIssue]
    ) -> None:
        if words < GENERAL_MIN_WORDS:
            issues.append(
                ValidationIssue(
                    f"Content too short: {words} words (minimum: {GENERAL_MIN_WORDS})",
                    ValidationSeverity.WARNING,
                )
            )
        elif words > GENERAL_MAX_WORDS:
            issues.append(
                ValidationIssue(
                    f"Content too long: {words} words (maximum: {GENERAL_MAX_WORDS})",
                    ValidationSeverity.WARNING,
                )
            )
        if readability < READABILITY_FLOOR:
            issues.append(
                ValidationIssue(
                    "Content may be difficult to read - consider simplifying language",
                    ValidationSeverity.MINOR,
                )
            )
        lowered = content.lower()
        if any(marker in lowered for marker in PLACEHOLDER_MARKERS):
            issues.append(
                ValidationIssue(
                    "Content appears incomplete - contains TODO, TBD, or placeholder text",
                    ValidationSeverity.MAJOR,
                )
            )

    def _check_section(
        self,
        content: str,
        words: int,
        section_kind: SectionKind,
        issues: list[ValidationIssue],
    ) -> None:
        rule = rule_for(section_kind)
        label = section_label(section_kind)
        report = self.validate_structure(content, section_kind)

        for element in report.missing_elements:
            issues.append(
                ValidationIssue(f"Missing required element: {element}", ValidationSeverity.MAJOR)
            )
        if words < rule.min_words:
            issues.append(
                ValidationIssue(
                    f"Section too short: {words} words (minimum for {label}: {rule.min_words})",
                    ValidationSeverity.WARNING,
                )
            )
        elif words > rule.max_words:
            issues.append(
                ValidationIssue(
                    f"Section too long: {words} words (maximum for {label}: {rule.max_words})",
                    ValidationSeverity.WARNING,
                )
            )
        for pattern in rule.structure_patterns:
            if not pattern.matches(content):
                issues.append(
                    ValidationIssue(
                        f"Missing expected structure: {pattern.description}",
                        ValidationSeverity.MINOR,
                    )
                )
        if rule.requires_headers and not has_headers(content):
            issues.append(
                ValidationIssue(
                    "Missing expected format: section headers", ValidationSeverity.MINOR
                )
            )
        if rule.requires_bullets and not has_lists(content):
            issues.append(
                ValidationIssue(
                    "Missing expected format: bullet or numbered lists", ValidationSeverity.MINOR
                )
            )

    def _check_format(
        self,
        content: str,
        words: int,
        issues: list[ValidationIssue],
        suggestions: list[str],
    ) -> None:
        if not has_headers(content):
            suggestions.append("Consider adding section headers using markdown (# ## ###)")
        if not has_lists(content) and words > LIST_SUGGESTION_MIN_WORDS:
            suggestions.append(
                "Consider using bullet points or numbered lists for better readability"
            )
        if "code" in content.lower() and "`" not in content:
            suggestions.append("Consider formatting code examples with markdown code blocks")
        paragraphs = [part for part in content.split("\n\n") if part.strip()]
        if len(paragraphs) == 1 and words > SINGLE_PARAGRAPH_MAX_WORDS:
            issues.append(
                ValidationIssue(
                    f"Content formatting: single paragraph exceeds "
                    f"{SINGLE_PARAGRAPH_MAX_WORDS} words",
                    ValidationSeverity.MINOR,
                )
            )

    def _check_domain(
        self,
        content: str,
        section_kind: SectionKind | None,
        issues: list[ValidationIssue],
        suggestions: list[str],
    ) -> float:
        lowered = content.lower()
        terms = sum(1 for term in DOMAIN_TERMS if term.lower() in lowered)
        concepts = sum(1 for concept in DOMAIN_CONCEPTS if concept in lowered)
        violations = [
            message
            for trigger, companion, message in DOMAIN_VIOLATIONS
            if trigger in lowered and companion not in lowered
        ]
        score = max(0.0, min(1.0, 0.1 * terms + 0.2 * concepts - 0.1 * len(violations)))

        if terms < 3:
            suggestions.append("Consider including more Unity-specific terminology")
        if concepts == 0:
            suggestions.append(
                "Consider explaining relevant Unity concepts and architecture patterns"
            )
        for message in violations:
            issues.append(ValidationIssue(message, ValidationSeverity.MINOR))

        if section_kind in DOMAIN_SENSITIVE_SECTIONS:
            if score < DOMAIN_RELEVANCE_FLOOR:
                issues.append(
                    ValidationIssue(
                        f"Content should be more Unity-specific for "
                        f"{section_label(section_kind)} section",
                        ValidationSeverity.MINOR,
                    )
                )
            if terms == 0:
                suggestions.append("Consider including Unity-specific terminology and concepts")
        return score


__all__ = [
    "ContentValidator",
    "StructureReport",
    "clarity_score",
    "count_words",
    "estimate_syllables",
    "grammar_score",
    "has_headers",
    "has_lists",
    "readability_score",
    "split_sentences",
]
