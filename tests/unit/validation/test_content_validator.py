"""Unit tests for section-aware content validation and scoring."""

from __future__ import annotations

from dataclasses import dataclass, field

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from docgen_orchestrator.domain.models import (
    SectionKind,
    ValidationIssue,
    ValidationResult,
    ValidationSeverity,
)
from docgen_orchestrator.validation.rules import section_label
from docgen_orchestrator.validation.validator import (
    ContentValidator,
    count_words,
    estimate_syllables,
    grammar_score,
    has_headers,
    has_lists,
    split_sentences,
)


@dataclass(slots=True)
class RecordingLogger:
    events: list[tuple[str, dict[str, object]]] = field(default_factory=list)

    def info(self, event: str, **kwargs: object) -> None:
        self.events.append((event, dict(kwargs)))


def _words(count: int, word: str = "gameplay") -> str:
    return " ".join([word] * count)


_SHORT_DESCRIPTION = (
    "# Project Overview\n\n"
    "The purpose of this tool is to help teams plan levels. "
    "Key features include:\n\n"
    "- Level layout editing\n"
    "- Shared asset browsing\n\n"
    "The target audience is small indie studios building their first game "
    "quickly and with confidence."
)


def test_helpers_detect_markdown_and_sentences() -> None:
    assert count_words("one  two\nthree") == 3
    assert split_sentences("First one. Second one! Third?") == [
        "First one",
        " Second one",
        " Third",
    ]
    assert has_headers("intro\n## Details\n") is True
    assert has_headers("#hashtag") is False
    assert has_lists("- item") is True
    assert has_lists("1. step") is True
    assert has_lists("plain text") is False
    assert estimate_syllables("api") == 1
    assert estimate_syllables("serialization") > 3


def test_grammar_score_penalizes_common_misuse() -> None:
    assert grammar_score("The scene loads quickly.") == 1.0
    assert grammar_score("Their is a problem and it's broken, it's bad.") == pytest.approx(0.8)


def test_empty_content_is_a_single_critical_issue_with_zero_score() -> None:
    result = ContentValidator(logger=RecordingLogger()).validate("   \n")

    assert result.is_valid is False
    assert [issue.message for issue in result.issues] == ["Content cannot be empty"]
    assert result.issues[0].severity is ValidationSeverity.CRITICAL
    assert result.overall_score == 0.0


def test_short_section_yields_word_count_warning_but_stays_valid() -> None:
    validator = ContentValidator(logger=RecordingLogger())
    assert count_words(_SHORT_DESCRIPTION) == 40

    result = validator.validate(_SHORT_DESCRIPTION, SectionKind.GENERAL_PRODUCT_DESCRIPTION)

    warnings = result.issues_at_least(ValidationSeverity.WARNING)
    label = section_label(SectionKind.GENERAL_PRODUCT_DESCRIPTION)
    assert any("words" in issue.message for issue in warnings)
    assert any(
        issue.message == f"Section too short: 40 words (minimum for {label}: 150)"
        for issue in result.issues
    )
    assert not any("Missing required element" in issue.message for issue in result.issues)
    assert result.is_valid is True
    assert result.word_count == 40


def test_placeholder_text_is_a_major_incomplete_issue() -> None:
    content = f"# Notes\n\n{_words(60)}\n\nTODO: describe the save system."

    result = ContentValidator(logger=RecordingLogger()).validate(content)

    majors = [i for i in result.issues if i.severity is ValidationSeverity.MAJOR]
    assert [issue.message for issue in majors] == [
        "Content appears incomplete - contains TODO, TBD, or placeholder text"
    ]
    assert result.completeness_score == 0.5
    assert result.is_valid is True


def test_missing_required_elements_are_major_issues() -> None:
    content = "# Architecture Overview\n\n- component list\n\n" + _words(210, "systems")

    result = ContentValidator(logger=RecordingLogger()).validate(
        content, SectionKind.SYSTEM_ARCHITECTURE
    )

    missing = [i.message for i in result.issues if i.message.startswith("Missing required")]
    assert missing == [
        "Missing required element: components",
        "Missing required element: patterns",
    ]
    assert all(
        issue.severity is ValidationSeverity.MAJOR
        for issue in result.issues
        if issue.message in missing
    )


def test_informal_words_match_whole_words_only() -> None:
    validator = ContentValidator(logger=RecordingLogger())
    informal_message = "Content contains informal language - consider using more professional tone"

    flagged = validator.validate(f"# Title\n\nYeah this is fine. {_words(60)}")
    unflagged = validator.validate(f"# Title\n\nThe token bucket works. {_words(60)}")

    assert any(issue.message == informal_message for issue in flagged.issues)
    assert not any(issue.message == informal_message for issue in unflagged.issues)


def test_domain_sensitive_section_suggests_terminology() -> None:
    content = "# Data Model\n\n" + _words(120, "records")

    result = ContentValidator(logger=RecordingLogger()).validate(content, SectionKind.DATA_MODEL)

    assert result.domain_relevance_score == 0.0
    assert any("more Unity-specific" in issue.message for issue in result.issues)
    assert "Consider including Unity-specific terminology and concepts" in result.suggestions


def test_domain_violation_requires_companion_term() -> None:
    validator = ContentValidator(logger=RecordingLogger())

    without = validator.validate("Use a singleton manager. " + _words(60))
    with_caution = validator.validate("Use a singleton manager, but be careful. " + _words(60))

    message = "Singleton pattern mentioned without cautions"
    assert any(issue.message == message for issue in without.issues)
    assert not any(issue.message == message for issue in with_caution.issues)


def test_validate_structure_reports_each_category() -> None:
    validator = ContentValidator(logger=RecordingLogger())

    report = validator.validate_structure("plain text only", SectionKind.USER_STORIES)

    assert report.missing_elements == ("user", "goal", "benefit")
    assert report.structure_issues == (
        "Missing or invalid structure: Should follow 'As a..., I want..., So that...' format",
    )
    assert report.format_issues == ("Content should include bullet points or lists",)
    assert report.is_well_structured is False


def test_validation_logs_one_summary_event() -> None:
    logger = RecordingLogger()

    ContentValidator(logger=logger).validate(_SHORT_DESCRIPTION, SectionKind.USER_STORIES)

    assert [event for event, _ in logger.events] == ["content_validated"]
    assert logger.events[0][1]["section_kind"] == "user_stories"


def test_to_dict_exposes_scores_and_issues() -> None:
    result = ValidationResult(
        issues=(ValidationIssue("Content formatting: too dense", ValidationSeverity.MINOR),),
        readability_score=1.0,
        grammar_score=1.0,
        clarity_score=1.0,
    )

    payload = result.to_dict()

    assert payload["is_valid"] is True
    assert payload["scores"]["format"] == 0.8
    assert payload["overall_score"] == pytest.approx(0.98)
    assert payload["issues"] == [{"message": "Content formatting: too dense", "severity": "minor"}]


@settings(max_examples=20, deadline=None)
@given(
    severity=st.sampled_from(list(ValidationSeverity)),
    message=st.sampled_from(
        [
            "Missing required element: purpose",
            "Content appears incomplete",
            "Content formatting issue",
            "Something else",
        ]
    ),
    readability=st.floats(min_value=0.0, max_value=1.0),
    grammar=st.floats(min_value=0.0, max_value=1.0),
    clarity=st.floats(min_value=0.0, max_value=1.0),
)
def test_adding_an_issue_never_raises_the_overall_score(
    severity: ValidationSeverity,
    message: str,
    readability: float,
    grammar: float,
    clarity: float,
) -> None:
    base = ValidationResult(
        readability_score=readability, grammar_score=grammar, clarity_score=clarity
    )

    worse = base.with_issue(ValidationIssue(message, severity))

    assert worse.overall_score <= base.overall_score
    assert 0.0 <= worse.overall_score <= 1.0
    assert worse.is_valid is (severity is not ValidationSeverity.CRITICAL)
