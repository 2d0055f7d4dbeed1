"""
docgen-orchestrator — package root

File: src/docgen_orchestrator/__init__.py
Last updated: 2026-02-13

Purpose
- Resilient orchestration of LLM-backed documentation generation.

What should be included in this file
- Version export and a minimal public API surface.

Functional requirements
- Must not have side effects at import time (no config loading, no logging init).
"""

from __future__ import annotations

__version__ = "0.1.0"

__all__ = ["__version__"]
