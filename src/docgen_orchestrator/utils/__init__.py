"""Small shared helpers."""

from __future__ import annotations

from docgen_orchestrator.utils.fs import atomic_write_text

__all__ = ["atomic_write_text"]
