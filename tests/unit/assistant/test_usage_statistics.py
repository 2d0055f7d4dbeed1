"""Unit tests for cumulative usage statistics."""

from __future__ import annotations

import threading
from datetime import UTC, datetime

import pytest

from docgen_orchestrator.assistant.statistics import UsageStatistics, UsageTracker
from docgen_orchestrator.domain.models import ErrorKind, OperationResult, ProviderName, SectionKind

FIXED_NOW = datetime(2026, 2, 13, 9, 30, tzinfo=UTC)


def _tracker() -> UsageTracker:
    return UsageTracker(now_fn=lambda: FIXED_NOW)


def test_empty_snapshot_has_zero_success_rate() -> None:
    stats = _tracker().snapshot()

    assert stats == UsageStatistics()
    assert stats.success_rate == 0.0
    assert stats.to_dict()["last_request_at"] is None


def test_record_accumulates_counters_and_breakdowns() -> None:
    tracker = _tracker()
    tracker.record(
        OperationResult(success=True, content="a", tokens_used=30, confidence=0.8,
                        processing_time_seconds=1.5),
        operation="generate",
        section_kind=SectionKind.DATA_MODEL,
    )
    tracker.record(
        OperationResult(success=True, content="b", provider=ProviderName.OFFLINE,
                        tokens_used=0, confidence=0.4, processing_time_seconds=0.5),
        operation="generate",
        section_kind=SectionKind.DATA_MODEL,
    )
    tracker.record(
        OperationResult.failure(ErrorKind.TIMEOUT, "timed out"),
        operation="enhance",
    )

    stats = tracker.snapshot()

    assert stats.total_requests == 3
    assert stats.successful_requests == 2
    assert stats.failed_requests == 1
    assert stats.success_rate == pytest.approx(2 / 3)
    assert stats.total_tokens == 30
    assert stats.total_processing_time_seconds == pytest.approx(2.0)
    assert stats.average_confidence == pytest.approx(0.6)
    assert dict(stats.requests_by_provider) == {"claude": 2, "offline": 1}
    assert dict(stats.requests_by_section) == {"data_model": 2}
    assert dict(stats.requests_by_operation) == {"generate": 2, "enhance": 1}
    assert stats.last_request_at == FIXED_NOW


def test_snapshot_is_isolated_from_later_records() -> None:
    tracker = _tracker()
    tracker.record(OperationResult(success=True, content="x"), operation="generate")
    before = tracker.snapshot()

    tracker.record(OperationResult(success=True, content="y"), operation="generate")

    assert before.total_requests == 1
    assert before.requests_by_operation["generate"] == 1
    with pytest.raises(TypeError):
        before.requests_by_operation["generate"] = 5  # type: ignore[index]


def test_reset_clears_everything() -> None:
    tracker = _tracker()
    tracker.record(OperationResult(success=True, content="x", tokens_used=4), operation="analyze")

    tracker.reset()

    assert tracker.snapshot() == UsageStatistics()


def test_to_dict_is_sorted_and_rounded() -> None:
    tracker = _tracker()
    tracker.record(
        OperationResult(success=True, content="x", confidence=1 / 3),
        operation="suggest",
        section_kind=SectionKind.WORK_TICKETS,
    )
    tracker.record(
        OperationResult(success=True, content="y"),
        operation="analyze",
        section_kind=SectionKind.API_SPECIFICATION,
    )

    payload = tracker.snapshot().to_dict()

    assert payload["average_confidence"] == round(1 / 3, 6)
    assert list(payload["requests_by_operation"]) == ["analyze", "suggest"]
    assert list(payload["requests_by_section"]) == ["api_specification", "work_tickets"]
    assert payload["last_request_at"] == FIXED_NOW.isoformat()


def test_concurrent_records_are_not_lost() -> None:
    tracker = _tracker()
    result = OperationResult(success=True, content="x", tokens_used=1)

    def worker() -> None:
        for _ in range(200):
            tracker.record(result, operation="generate")

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    stats = tracker.snapshot()
    assert stats.total_requests == 1600
    assert stats.total_tokens == 1600
