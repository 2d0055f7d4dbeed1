"""
docgen-orchestrator — offline fallback manager

File: src/docgen_orchestrator/fallback/manager.py
Last updated: 2026-02-13

Purpose
- Keep producing documentation-shaped output when the live provider is unavailable.

What should be included in this file
- Online/fallback mode switch with idempotent activate/deactivate.
- Template rendering from project context with static defaults.
- Bounded response cache keyed by section, project and prompt hash, persisted as JSON.
- Rule-based project analysis and offline suggestion lists.

Functional requirements
- Offline results are tagged with provider ``offline`` and a lower confidence than live
  results; cache hits rank below fresh template output.
- Rendered output never contains raw placeholder syntax.
- Cache persistence is best effort: I/O failures are logged, never raised.

Non-functional requirements
- The cache lock guards map mutation only; file I/O runs outside it in a worker thread.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import time
from collections import OrderedDict
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Final

import structlog

from docgen_orchestrator.constants import CHARS_PER_TOKEN
from docgen_orchestrator.domain.models import (
    ErrorKind,
    GenerationRequest,
    OperationResult,
    ProjectContext,
    ProviderName,
    ResultSource,
    SuggestionType,
)
from docgen_orchestrator.fallback.templates import TemplateLibrary, load_template_library
from docgen_orchestrator.providers.base import NowFn
from docgen_orchestrator.utils.fs import atomic_write_text

TEMPLATE_CONFIDENCE: Final[float] = 0.7
CACHE_CONFIDENCE: Final[float] = 0.6
SUGGESTION_CONFIDENCE: Final[float] = 0.6
ANALYSIS_CONFIDENCE: Final[float] = 0.5
DEFAULT_ACTIVATION_REASON: Final[str] = "AI service unavailable"
_CACHE_SCHEMA_VERSION: Final[int] = 1

_GENERIC_RECOMMENDATIONS: Final[tuple[str, ...]] = (
    "Consider implementing automated testing",
    "Establish coding standards and conventions",
    "Plan for scalable architecture patterns",
)


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


def _estimate_tokens(content: str) -> int:
    return max(1, len(content) // CHARS_PER_TOKEN)


@dataclass(frozen=True, slots=True)
class FallbackConfig:
    cache_reads: bool = True
    cache_generated_content: bool = True
    max_cache_entries: int = 100
    cache_path: Path | None = None

    def __post_init__(self) -> None:
        if self.max_cache_entries <= 0:
            raise ValueError("max_cache_entries must be > 0")


@dataclass(frozen=True, slots=True)
class FallbackStatus:
    is_fallback_mode: bool
    reason: str
    activated_at: datetime | None
    last_online_time: datetime | None
    template_count: int
    template_ids: tuple[str, ...]
    cached_responses: int
    memory_estimate_bytes: int

    def to_dict(self) -> dict[str, object]:
        return {
            "is_fallback_mode": self.is_fallback_mode,
            "reason": self.reason,
            "activated_at": self.activated_at.isoformat() if self.activated_at else None,
            "last_online_time": (
                self.last_online_time.isoformat() if self.last_online_time else None
            ),
            "template_count": self.template_count,
            "template_ids": list(self.template_ids),
            "cached_responses": self.cached_responses,
            "memory_estimate_bytes": self.memory_estimate_bytes,
        }


def cache_key_for(request: GenerationRequest) -> str:
    section = request.section_kind.value if request.section_kind is not None else "general"
    project = request.project_context.project_name or "unknown"
    digest = hashlib.sha256(request.prompt.encode("utf-8")).hexdigest()[:16]
    return f"{section}_{project}_{digest}"


class OfflineFallbackManager:
    """Template and cache backed content engine for degraded operation."""

    def __init__(
        self,
        *,
        config: FallbackConfig | None = None,
        library: TemplateLibrary | None = None,
        template_path: Path | None = None,
        now_fn: NowFn = _utc_now,
        monotonic: Any = time.perf_counter,
        logger: Any | None = None,
    ) -> None:
        self._config = config if config is not None else FallbackConfig()
        self._template_path = template_path
        self._library_injected = library is not None
        self._library = library if library is not None else load_template_library(template_path)
        self._now_fn = now_fn
        self._monotonic = monotonic
        self._logger = logger if logger is not None else structlog.get_logger(__name__)
        self._cache: OrderedDict[str, str] = OrderedDict()
        self._cache_lock = asyncio.Lock()
        self._cache_loaded = False
        self._is_fallback_mode = False
        self._reason = ""
        self._activated_at: datetime | None = None
        self._last_online_time: datetime | None = None

    @property
    def is_fallback_mode(self) -> bool:
        return self._is_fallback_mode

    @property
    def library(self) -> TemplateLibrary:
        return self._library

    @property
    def cached_responses_count(self) -> int:
        return len(self._cache)

    async def activate(self, reason: str = DEFAULT_ACTIVATION_REASON) -> bool:
        """Enter fallback mode; a no-op returning True when already active."""

        if self._is_fallback_mode:
            return True
        if not self._library_injected:
            try:
                self._library = await asyncio.to_thread(load_template_library, self._template_path)
            except (OSError, ValueError):
                self._logger.exception("fallback_template_load_failed")
                return False
        if not self._cache_loaded:
            await self.load_cache()

        self._is_fallback_mode = True
        self._reason = reason
        self._activated_at = self._now_fn()
        self._logger.warning(
            "fallback_activated",
            reason=reason,
            template_count=len(self._library.templates),
            cached_responses=len(self._cache),
        )
        return True

    async def deactivate(self) -> bool:
        """Leave fallback mode and persist the cache; a no-op when already online."""

        if not self._is_fallback_mode:
            return True
        self._is_fallback_mode = False
        self._reason = ""
        self._last_online_time = self._now_fn()
        self._logger.info("fallback_deactivated")
        await self.save_cache()
        return True

    async def generate_offline_content(self, request: GenerationRequest) -> OperationResult:
        started = self._monotonic()
        if not self._is_fallback_mode:
            return OperationResult.failure(
                ErrorKind.VALIDATION_ERROR,
                "Offline fallback not activated",
                provider=ProviderName.OFFLINE,
            )

        key = cache_key_for(request)
        if self._config.cache_reads:
            async with self._cache_lock:
                cached = self._cache.get(key)
            if cached is not None:
                self._logger.info("fallback_cache_hit", cache_key=key)
                return OperationResult(
                    success=True,
                    content=cached,
                    provider=ProviderName.OFFLINE,
                    processing_time_seconds=max(0.0, self._monotonic() - started),
                    tokens_used=_estimate_tokens(cached),
                    confidence=CACHE_CONFIDENCE,
                    metadata={
                        "source": ResultSource.CACHE.value,
                        "cache_key": key,
                        "fallback_mode": True,
                    },
                )

        template = self._library.template_for(request.section_kind)
        content = template.render(self._template_variables(request))
        if self._config.cache_generated_content:
            await self._store(key, content)

        self._logger.info(
            "fallback_template_used",
            template_id=template.id,
            cache_key=key,
            content_chars=len(content),
        )
        return OperationResult(
            success=True,
            content=content,
            provider=ProviderName.OFFLINE,
            processing_time_seconds=max(0.0, self._monotonic() - started),
            tokens_used=_estimate_tokens(content),
            confidence=TEMPLATE_CONFIDENCE,
            metadata={
                "source": ResultSource.TEMPLATE.value,
                "template_id": template.id,
                "cache_key": key,
                "fallback_mode": True,
            },
        )

    async def analyze_project_offline(self, context: ProjectContext) -> OperationResult:
        started = self._monotonic()
        if not self._is_fallback_mode:
            return OperationResult.failure(
                ErrorKind.VALIDATION_ERROR,
                "Offline mode not active",
                provider=ProviderName.OFFLINE,
            )

        components: list[str] = []
        if context.engine_version:
            components.append(f"Unity version: {context.engine_version}")
        if context.target_platform:
            components.append(f"Target platform: {context.target_platform}")
        components.extend(f"{key}: {context.attributes[key]}" for key in sorted(context.attributes))
        if not components:
            components.append("No project metadata supplied")

        issues: list[str] = []
        recommendations: list[str] = []
        if not context.description:
            issues.append("Project description is missing")
            recommendations.append("Add a short project description")
        if not context.engine_version:
            issues.append("Unity version is not specified")
            recommendations.append("Record the target Unity version")
        recommendations.extend(_GENERIC_RECOMMENDATIONS)

        name = context.project_name or self._library.defaults.get("project_name", "Unity Project")
        lines = [
            f"# Project Analysis Report: {name}",
            f"**Generated:** {self._now_fn():%Y-%m-%d %H:%M:%S} (Offline Mode)",
            "",
            "## Components Found",
            *(f"- {item}" for item in components),
            "",
        ]
        if issues:
            lines.extend(["## Potential Issues", *(f"- {item}" for item in issues), ""])
        lines.extend(["## Recommendations", *(f"- {item}" for item in recommendations), ""])
        lines.append(
            "*Note: This analysis was generated in offline mode using rule-based patterns. "
            "Reconnect to the AI service for more detailed insights.*"
        )
        content = "\n".join(lines)

        return OperationResult(
            success=True,
            content=content,
            provider=ProviderName.OFFLINE,
            processing_time_seconds=max(0.0, self._monotonic() - started),
            tokens_used=_estimate_tokens(content),
            confidence=ANALYSIS_CONFIDENCE,
            metadata={
                "source": ResultSource.RULE_BASED.value,
                "analysis_type": "rule_based",
                "components_analyzed": len(components),
                "issues_found": len(issues),
                "fallback_mode": True,
            },
        )

    async def get_offline_suggestions(self, suggestion_type: SuggestionType) -> OperationResult:
        started = self._monotonic()
        suggestions = self._library.suggestions_for(suggestion_type.value)
        content = "\n".join(f"- {item}" for item in suggestions)
        self._logger.info(
            "fallback_suggestions_generated",
            suggestion_type=suggestion_type.value,
            count=len(suggestions),
        )
        return OperationResult(
            success=True,
            content=content,
            provider=ProviderName.OFFLINE,
            processing_time_seconds=max(0.0, self._monotonic() - started),
            tokens_used=_estimate_tokens(content),
            confidence=SUGGESTION_CONFIDENCE,
            metadata={
                "source": ResultSource.RULE_BASED.value,
                "suggestion_type": suggestion_type.value,
                "suggestion_count": len(suggestions),
                "fallback_mode": self._is_fallback_mode,
            },
        )

    async def cache_response(self, request: GenerationRequest, result: OperationResult) -> bool:
        """Store a successful live result for later offline reuse."""

        if not result.success or not result.content:
            return False
        key = cache_key_for(request)
        await self._store(key, result.content)
        self._logger.info("fallback_response_cached", cache_key=key)
        return True

    async def save_cache(self) -> bool:
        path = self._config.cache_path
        if path is None:
            return False
        async with self._cache_lock:
            snapshot = dict(self._cache)
        payload = json.dumps(
            {"schema_version": _CACHE_SCHEMA_VERSION, "entries": snapshot},
            indent=2,
            sort_keys=True,
            ensure_ascii=False,
        )
        try:
            await asyncio.to_thread(atomic_write_text, path, payload + "\n")
        except OSError:
            self._logger.exception("fallback_cache_save_failed", path=str(path))
            return False
        self._logger.info("fallback_cache_saved", path=str(path), entries=len(snapshot))
        return True

    async def load_cache(self) -> int:
        """Merge persisted entries into the cache; returns the number loaded."""

        self._cache_loaded = True
        path = self._config.cache_path
        if path is None:
            return 0
        try:
            text = await asyncio.to_thread(path.read_text, encoding="utf-8")
        except FileNotFoundError:
            return 0
        except OSError:
            self._logger.exception("fallback_cache_load_failed", path=str(path))
            return 0

        try:
            payload = json.loads(text)
        except json.JSONDecodeError:
            self._logger.warning("fallback_cache_corrupt", path=str(path))
            return 0
        entries = payload.get("entries") if isinstance(payload, dict) else None
        if not isinstance(entries, dict):
            self._logger.warning("fallback_cache_corrupt", path=str(path))
            return 0

        loaded = 0
        for key, content in entries.items():
            if isinstance(key, str) and isinstance(content, str):
                await self._store(key, content)
                loaded += 1
        self._logger.info("fallback_cache_loaded", path=str(path), entries=loaded)
        return loaded

    def status(self) -> FallbackStatus:
        templates = self._library.templates
        memory = sum(len(value) * 2 for value in self._cache.values()) + sum(
            len(template.template_text) * 2 for template in templates.values()
        )
        return FallbackStatus(
            is_fallback_mode=self._is_fallback_mode,
            reason=self._reason,
            activated_at=self._activated_at if self._is_fallback_mode else None,
            last_online_time=self._last_online_time,
            template_count=len(templates),
            template_ids=tuple(sorted(templates)),
            cached_responses=len(self._cache),
            memory_estimate_bytes=memory,
        )

    async def _store(self, key: str, content: str) -> None:
        async with self._cache_lock:
            self._cache[key] = content
            self._cache.move_to_end(key)
            while len(self._cache) > self._config.max_cache_entries:
                evicted, _ = self._cache.popitem(last=False)
                self._logger.info("fallback_cache_evicted", cache_key=evicted)

    def _template_variables(self, request: GenerationRequest) -> dict[str, str]:
        variables = dict(self._library.defaults)
        context = request.project_context
        overrides = {
            "project_name": context.project_name,
            "project_description": context.description,
            "unity_version": context.engine_version,
            "target_platform": context.target_platform,
        }
        variables.update({name: value for name, value in overrides.items() if value})
        variables.update({name: value for name, value in context.attributes.items() if value})
        variables.update({name: value for name, value in request.parameters.items() if value})
        variables["generated_date"] = f"{self._now_fn():%Y-%m-%d}"
        return variables


__all__ = [
    "ANALYSIS_CONFIDENCE",
    "CACHE_CONFIDENCE",
    "SUGGESTION_CONFIDENCE",
    "TEMPLATE_CONFIDENCE",
    "FallbackConfig",
    "FallbackStatus",
    "OfflineFallbackManager",
    "cache_key_for",
]
