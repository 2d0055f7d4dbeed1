"""Command-line interface for docgen-orchestrator."""

from __future__ import annotations

from docgen_orchestrator.ui.cli import CLIError, build_parser, run_cli

__all__ = ["CLIError", "build_parser", "run_cli"]
