"""Thread-safe cumulative usage statistics for the documentation assistant."""

from __future__ import annotations

import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from types import MappingProxyType

from docgen_orchestrator.domain.models import OperationResult, SectionKind
from docgen_orchestrator.providers.base import NowFn


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(frozen=True, slots=True)
class UsageStatistics:
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    total_tokens: int = 0
    total_processing_time_seconds: float = 0.0
    average_confidence: float = 0.0
    requests_by_provider: Mapping[str, int] = field(default_factory=dict)
    requests_by_section: Mapping[str, int] = field(default_factory=dict)
    requests_by_operation: Mapping[str, int] = field(default_factory=dict)
    last_request_at: datetime | None = None

    @property
    def success_rate(self) -> float:
        return self.successful_requests / self.total_requests if self.total_requests else 0.0

    def to_dict(self) -> dict[str, object]:
        return {
            "total_requests": self.total_requests,
            "successful_requests": self.successful_requests,
            "failed_requests": self.failed_requests,
            "success_rate": round(self.success_rate, 6),
            "total_tokens": self.total_tokens,
            "total_processing_time_seconds": round(self.total_processing_time_seconds, 6),
            "average_confidence": round(self.average_confidence, 6),
            "requests_by_provider": dict(sorted(self.requests_by_provider.items())),
            "requests_by_section": dict(sorted(self.requests_by_section.items())),
            "requests_by_operation": dict(sorted(self.requests_by_operation.items())),
            "last_request_at": self.last_request_at.isoformat() if self.last_request_at else None,
        }


class UsageTracker:
    """In-memory counters updated once per completed assistant operation."""

    def __init__(self, *, now_fn: NowFn = _utc_now) -> None:
        self._lock = threading.Lock()
        self._now_fn = now_fn
        self._reset_state()

    def _reset_state(self) -> None:
        self._total = 0
        self._succeeded = 0
        self._failed = 0
        self._tokens = 0
        self._processing_time = 0.0
        self._confidence_samples = 0
        self._average_confidence = 0.0
        self._by_provider: dict[str, int] = {}
        self._by_section: dict[str, int] = {}
        self._by_operation: dict[str, int] = {}
        self._last_request_at: datetime | None = None

    def record(
        self,
        result: OperationResult,
        *,
        operation: str,
        section_kind: SectionKind | None = None,
    ) -> None:
        with self._lock:
            self._total += 1
            if result.success:
                self._succeeded += 1
            else:
                self._failed += 1
            self._tokens += result.tokens_used
            self._processing_time += result.processing_time_seconds
            if result.confidence > 0:
                self._confidence_samples += 1
                self._average_confidence += (
                    result.confidence - self._average_confidence
                ) / self._confidence_samples
            provider = result.provider.value
            self._by_provider[provider] = self._by_provider.get(provider, 0) + 1
            if section_kind is not None:
                self._by_section[section_kind.value] = (
                    self._by_section.get(section_kind.value, 0) + 1
                )
            self._by_operation[operation] = self._by_operation.get(operation, 0) + 1
            self._last_request_at = self._now_fn()

    def snapshot(self) -> UsageStatistics:
        with self._lock:
            return UsageStatistics(
                total_requests=self._total,
                successful_requests=self._succeeded,
                failed_requests=self._failed,
                total_tokens=self._tokens,
                total_processing_time_seconds=self._processing_time,
                average_confidence=self._average_confidence,
                requests_by_provider=MappingProxyType(dict(self._by_provider)),
                requests_by_section=MappingProxyType(dict(self._by_section)),
                requests_by_operation=MappingProxyType(dict(self._by_operation)),
                last_request_at=self._last_request_at,
            )

    def reset(self) -> None:
        with self._lock:
            self._reset_state()


__all__ = ["UsageStatistics", "UsageTracker"]
