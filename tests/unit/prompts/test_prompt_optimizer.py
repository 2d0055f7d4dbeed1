"""Unit tests for prompt token estimation, compression and trimming."""

from __future__ import annotations

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from docgen_orchestrator.prompts.optimizer import OptimizationGoal, PromptOptimizer


def test_estimate_tokens_counts_chars_terms_and_symbols() -> None:
    optimizer = PromptOptimizer()

    assert optimizer.estimate_tokens("") == 0
    # 12 chars -> 3, no technical terms, no symbols
    assert optimizer.estimate_tokens("abcd efgh ij") == 3
    # "unity api" -> 9 chars -> 2, two technical terms -> +4
    assert optimizer.estimate_tokens("unity api") == 6
    assert optimizer.estimate_tokens("a.b") == 1


def test_token_reduction_replaces_verbose_phrases_and_fillers() -> None:
    optimizer = PromptOptimizer()

    result = optimizer.optimize(
        "Please note that you should write a very clear and concise guide "
        "in order to help readers."
    )

    assert result == "write a clear guide to help readers."


def test_clarity_goal_swaps_weak_verbs() -> None:
    result = PromptOptimizer().optimize("Make a list and tell me why.", OptimizationGoal.CLARITY)

    assert result == "create a list and explain me why."


def test_conciseness_goal_drops_redundant_phrases() -> None:
    result = PromptOptimizer().optimize(
        "As mentioned before, the scene is really big.", OptimizationGoal.CONCISENESS
    )

    assert result == "the scene is big."


def test_enforce_token_limit_keeps_protected_paragraphs() -> None:
    optimizer = PromptOptimizer()
    protected = "**Requirements:**\n- Keep this line"
    text = protected + "\n\n" + ("Filler sentence about the level. " * 40).strip()

    result = optimizer.enforce_token_limit(text, 120)

    assert result.startswith(protected)
    assert optimizer.estimate_tokens(result) <= 120
    assert len(result) < len(text)


def test_enforce_token_limit_returns_short_text_unchanged() -> None:
    assert PromptOptimizer().enforce_token_limit("short prompt", 100) == "short prompt"
    with pytest.raises(ValueError, match="limit"):
        PromptOptimizer().enforce_token_limit("x", 0)


@settings(max_examples=20, deadline=None)
@given(
    text=st.text(alphabet=st.characters(codec="ascii"), min_size=0, max_size=2000),
    limit=st.integers(min_value=1, max_value=400),
)
def test_enforced_prompts_never_exceed_the_limit(text: str, limit: int) -> None:
    optimizer = PromptOptimizer()

    result = optimizer.enforce_token_limit(text, limit)

    assert optimizer.estimate_tokens(result) <= limit


def test_validate_prompt_reports_issues_and_suggestions() -> None:
    optimizer = PromptOptimizer()

    empty = optimizer.validate_prompt("   ")
    oversized = optimizer.validate_prompt("Describe the level. " * 400, max_tokens=100)
    vague = optimizer.validate_prompt("Levels and enemies")

    assert empty.is_valid is False
    assert "Prompt cannot be empty" in empty.issues
    assert any(issue.startswith("Prompt exceeds token limit") for issue in oversized.issues)
    assert any("redundant" in suggestion for suggestion in oversized.suggestions)
    assert vague.is_valid is True
    assert any("instruction verbs" in suggestion for suggestion in vague.suggestions)
