"""Output rendering for the docgen CLI.

File: src/docgen_orchestrator/ui/render.py
Last updated: 2026-02-14

Purpose
- Provide a thin rendering layer for human-readable CLI output.
- Render operation results and validation reports consistently across commands.

Functional requirements
- Plain-text rendering must always work without external dependencies.
- JSON output is handled by the CLI, not here.
"""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING, TextIO

if TYPE_CHECKING:
    from collections.abc import Sequence

    from docgen_orchestrator.domain.models import OperationResult, ValidationResult


class CLIRenderer:
    """Thin CLI output renderer writing deterministic plain text."""

    def __init__(self, *, verbose: bool = False, stream: TextIO | None = None) -> None:
        self.verbose = verbose
        self._stream = stream if stream is not None else sys.stdout

    def _write(self, line: str) -> None:
        print(line, file=self._stream)

    def heading(self, text: str) -> None:
        self._write(text)

    def kv(self, key: str, value: object) -> None:
        self._write(f"{key}: {value}")

    def text(self, line: str) -> None:
        self._write(line)

    def section(self, title: str) -> None:
        self._write(f"\n{title}")

    def warning(self, text: str) -> None:
        self._write(f"  Warning: {text}")

    def items(self, entries: Sequence[str], *, prefix: str = "- ") -> None:
        for entry in entries:
            self._write(f"  {prefix}{entry}")

    def ok(self, label: str) -> None:
        self._write(f"  OK  {label}")

    def fail(self, label: str) -> None:
        self._write(f"  FAIL  {label}")

    def result(self, result: OperationResult) -> None:
        """Print generated content, or the failure, followed by a short summary."""

        if result.success:
            self.text(result.content)
            self.section("Summary:")
            self.kv("  provider", result.provider.value)
            self.kv("  confidence", f"{result.confidence:.2f}")
            self.kv("  tokens", result.tokens_used)
            source = result.metadata.get("source")
            if source is not None:
                self.kv("  source", source)
        else:
            kind = result.error_kind.value if result.error_kind is not None else "unknown"
            self.fail(f"{kind}: {result.error_message}")
        if self.verbose:
            self.section("Metadata:")
            for key in sorted(result.metadata):
                self.kv(f"  {key}", result.metadata[key])

    def validation(self, report: ValidationResult) -> None:
        self.kv("Valid", "yes" if report.is_valid else "no")
        self.kv("Overall score", f"{report.overall_score:.2f}")
        self.kv("Words", report.word_count)
        if report.issues:
            self.section("Issues:")
            self.items([f"[{issue.severity.value}] {issue.message}" for issue in report.issues])
        if report.suggestions:
            self.section("Suggestions:")
            self.items(list(report.suggestions))


def create_renderer(*, verbose: bool = False) -> CLIRenderer:
    """Create a CLI renderer with the given settings."""

    return CLIRenderer(verbose=verbose)


__all__ = ["CLIRenderer", "create_renderer"]
