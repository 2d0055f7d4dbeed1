"""Token-budget prompt optimizer: estimation, compression and paragraph-wise trimming."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import StrEnum
from typing import Final

AVERAGE_TOKENS_PER_CHAR: Final[float] = 0.25
DEFAULT_PROMPT_TOKEN_LIMIT: Final[int] = 4000
OPTIMAL_PROMPT_TOKENS: Final[int] = 1500
EXAMPLE_SECTION_FACTOR: Final[float] = 0.7
SENTENCE_BREAK_THRESHOLD: Final[float] = 0.8
ELLIPSIS: Final[str] = "..."

_TECHNICAL_TERMS: Final[tuple[str, ...]] = (
    "unity",
    "scriptableobject",
    "monobehaviour",
    "gameobject",
    "api",
    "interface",
    "namespace",
    "class",
)

_PHRASE_REPLACEMENTS: Final[tuple[tuple[str, str], ...]] = (
    ("in order to", "to"),
    ("it is important to", ""),
    ("please note that", ""),
    ("it should be noted that", ""),
    ("make sure to", ""),
    ("be sure to", ""),
    ("you should", ""),
    ("it is recommended to", ""),
    ("for the purpose of", "for"),
    ("in the event that", "if"),
    ("at this point in time", "now"),
    ("due to the fact that", "because"),
    ("in a manner that", "to"),
    ("comprehensive and detailed", "comprehensive"),
    ("clear and concise", "clear"),
    ("accurate and precise", "accurate"),
)

_FILLER_WORDS: Final[tuple[str, ...]] = ("very", "really", "quite", "rather", "somewhat")
_REDUNDANT_PHRASES: Final[tuple[str, ...]] = (
    "as mentioned before",
    "as stated earlier",
    "it is worth noting",
    "it should be emphasized",
)
_CLARITY_VERBS: Final[tuple[tuple[str, str], ...]] = (
    ("make", "create"),
    ("write", "generate"),
    ("put", "include"),
    ("tell", "explain"),
)
_INSTRUCTION_VERBS_RE: Final[re.Pattern[str]] = re.compile(
    r"\b(generate|create|analyze|write|describe|document|explain|list)\b", re.IGNORECASE
)

_WHITESPACE_RE: Final[re.Pattern[str]] = re.compile(r"\s+")
_BLANK_LINES_RE: Final[re.Pattern[str]] = re.compile(r"\n{3,}")
_SPACES_RE: Final[re.Pattern[str]] = re.compile(r"[ \t]{2,}")


class OptimizationGoal(StrEnum):
    TOKEN_REDUCTION = "token_reduction"
    CLARITY = "clarity"
    CONCISENESS = "conciseness"


@dataclass(frozen=True, slots=True)
class PromptValidation:
    estimated_tokens: int
    issues: tuple[str, ...] = ()
    suggestions: tuple[str, ...] = ()

    @property
    def is_valid(self) -> bool:
        return not self.issues


class PromptOptimizer:
    """Stateless prompt compressor; safe to share between concurrent calls."""

    def estimate_tokens(self, text: str) -> int:
        if not text:
            return 0
        normalized = _WHITESPACE_RE.sub(" ", text).strip()
        lowered = normalized.lower()
        base = int(len(normalized) * AVERAGE_TOKENS_PER_CHAR)
        technical = sum(1 for term in _TECHNICAL_TERMS if term in lowered) * 2
        special = sum(1 for char in normalized if not char.isalnum() and not char.isspace())
        return base + technical + special

    def optimize(
        self,
        text: str,
        goal: OptimizationGoal = OptimizationGoal.TOKEN_REDUCTION,
        target_tokens: int | None = None,
    ) -> str:
        if goal is OptimizationGoal.TOKEN_REDUCTION:
            result = self._reduce_tokens(text)
        elif goal is OptimizationGoal.CLARITY:
            result = self._improve_clarity(text)
        else:
            result = self._make_concise(text)
        if target_tokens is not None and target_tokens > 0:
            result = self.enforce_token_limit(result, target_tokens)
        return result

    def enforce_token_limit(self, text: str, limit: int) -> str:
        """Trim ``text`` paragraph by paragraph until it fits ``limit`` tokens.

        Paragraphs that start with ``**`` or carry ``Requirements:``/``Format:`` are
        kept whole; paragraphs mentioning examples are cut harder than the rest.
        """

        if limit <= 0:
            raise ValueError("limit must be > 0")
        current = self.estimate_tokens(text)
        if current <= limit:
            return text

        ratio = limit / current
        trimmed: list[str] = []
        for paragraph in text.split("\n\n"):
            if _is_protected(paragraph):
                trimmed.append(paragraph)
                continue
            factor = ratio * EXAMPLE_SECTION_FACTOR if "example" in paragraph.lower() else ratio
            cut = _truncate(paragraph, int(len(paragraph) * factor))
            if cut:
                trimmed.append(cut)
        result = "\n\n".join(trimmed)

        # Protected paragraphs can still overflow; fall back to cutting the whole text.
        current = self.estimate_tokens(result)
        while result and current > limit:
            shrink = min(limit / current, 0.95)
            result = _truncate(result, int(len(result) * shrink))
            current = self.estimate_tokens(result)
        return result

    def validate_prompt(
        self, text: str, max_tokens: int = DEFAULT_PROMPT_TOKEN_LIMIT
    ) -> PromptValidation:
        estimated = self.estimate_tokens(text)
        issues: list[str] = []
        suggestions: list[str] = []
        if not text.strip():
            issues.append("Prompt cannot be empty")
        if estimated > max_tokens:
            issues.append(f"Prompt exceeds token limit: {estimated} > {max_tokens}")
        if estimated > OPTIMAL_PROMPT_TOKENS:
            suggestions.append("Consider reducing prompt length for better token efficiency")
        if text.strip() and not _INSTRUCTION_VERBS_RE.search(text):
            suggestions.append(
                "Add clear instruction verbs (generate, create, analyze) for better AI "
                "understanding"
            )
        if _redundancy(text) > 0.2:
            suggestions.append("Remove redundant words and phrases to improve conciseness")
        return PromptValidation(
            estimated_tokens=estimated,
            issues=tuple(issues),
            suggestions=tuple(suggestions),
        )

    def _reduce_tokens(self, text: str) -> str:
        result = text
        for phrase, replacement in _PHRASE_REPLACEMENTS:
            result = re.sub(
                rf"\b{re.escape(phrase)}\b\s*",
                f"{replacement} " if replacement else "",
                result,
                flags=re.IGNORECASE,
            )
        result = _remove_words(result, _FILLER_WORDS)
        return _collapse_whitespace(result)

    def _improve_clarity(self, text: str) -> str:
        result = text
        for weak, strong in _CLARITY_VERBS:
            result = re.sub(rf"\b{weak}\b", strong, result, flags=re.IGNORECASE)
        return _collapse_whitespace(result)

    def _make_concise(self, text: str) -> str:
        result = _remove_words(text, _FILLER_WORDS)
        for phrase in _REDUNDANT_PHRASES:
            result = re.sub(rf"\b{re.escape(phrase)}\b,?\s*", "", result, flags=re.IGNORECASE)
        return _collapse_whitespace(result)


def _is_protected(paragraph: str) -> bool:
    stripped = paragraph.lstrip()
    return stripped.startswith("**") or "Requirements:" in paragraph or "Format:" in paragraph


def _truncate(text: str, max_chars: int) -> str:
    if len(text) <= max_chars:
        return text
    if max_chars <= len(ELLIPSIS):
        return text[: max(0, max_chars)]
    cut = text[:max_chars]
    sentence_end = cut.rfind(". ")
    if sentence_end > max_chars * SENTENCE_BREAK_THRESHOLD:
        return cut[: sentence_end + 1]
    # The ellipsis counts against the budget.
    room = cut[: max_chars - len(ELLIPSIS)]
    word_end = room.rfind(" ")
    if word_end > 0:
        return room[:word_end] + ELLIPSIS
    return room + ELLIPSIS


def _remove_words(text: str, words: tuple[str, ...]) -> str:
    pattern = r"\b(" + "|".join(words) + r")\s+"
    return re.sub(pattern, "", text, flags=re.IGNORECASE)


def _collapse_whitespace(text: str) -> str:
    result = _BLANK_LINES_RE.sub("\n\n", text)
    result = _SPACES_RE.sub(" ", result)
    return result.strip()


def _redundancy(text: str) -> float:
    words = text.lower().split()
    if not words:
        return 0.0
    return (len(words) - len(set(words))) / len(words)


__all__ = [
    "DEFAULT_PROMPT_TOKEN_LIMIT",
    "OptimizationGoal",
    "PromptOptimizer",
    "PromptValidation",
]
