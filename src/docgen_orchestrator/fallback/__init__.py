"""Offline fallback: template table, response cache and degraded-mode generation."""

from __future__ import annotations

from docgen_orchestrator.fallback.manager import (
    FallbackConfig,
    FallbackStatus,
    OfflineFallbackManager,
    cache_key_for,
)
from docgen_orchestrator.fallback.templates import (
    FallbackTemplate,
    TemplateLibrary,
    load_template_library,
)

__all__ = [
    "FallbackConfig",
    "FallbackStatus",
    "FallbackTemplate",
    "OfflineFallbackManager",
    "TemplateLibrary",
    "cache_key_for",
    "load_template_library",
]
