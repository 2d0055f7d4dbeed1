"""
docgen-orchestrator — unit tests for observability logging

File: tests/unit/observability/test_logging.py
Last updated: 2026-02-20

Purpose
- Validate the per-run docgen.jsonl sink, redaction and correlation metadata.

What this test file should cover
- JSON line validity and redaction guarantees for API keys and auth headers.
- Correlation field propagation (run, request and conversation ids).
- structlog component events routed into the JSON-lines sink.
- Queue drain on shutdown under concurrent writers.
- Key-segment redaction that leaves token counts visible.

Functional requirements
- Offline operation.

Non-functional requirements
- Deterministic and non-flaky.
"""

from __future__ import annotations

import json
import logging
import logging.handlers
import threading
from typing import TYPE_CHECKING
from uuid import uuid4

import pytest
import structlog

from docgen_orchestrator.observability.logging import (
    LoggingConfig,
    configure_structlog,
    correlation_scope,
    default_log_redactor,
    get_active_logging_handle,
    redact_text,
    setup_logging,
    setup_structured_logging,
    shutdown_logging,
)

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path


@pytest.fixture(autouse=True)
def _cleanup_logging() -> Iterator[None]:
    yield
    shutdown_logging()


def _logger_name() -> str:
    return f"docgen_orchestrator.tests.logging.{uuid4().hex}"


def _read_json_lines(path: Path) -> list[dict[str, object]]:
    lines = path.read_text(encoding="utf-8").splitlines()
    return [json.loads(line) for line in lines]


@pytest.mark.parametrize(
    ("text", "leaked"),
    [
        ("api_key=sk-FAKE123456789012345", "sk-FAKE"),
        ("x-api-key: sk-ant-abcdefghijklmnop", "sk-ant-abc"),
        ("upstream said Bearer abc.def.ghi", "abc.def"),
        ("retrying with sk-ABCDEFGHIJKL1234 in hand", "sk-ABCDEF"),
    ],
)
def test_redact_text_scrubs_credential_shapes(text: str, leaked: str) -> None:
    redacted = redact_text(text)

    assert leaked not in redacted
    assert "***REDACTED***" in redacted


def test_redact_text_leaves_plain_text_alone() -> None:
    assert redact_text("generated 3 sections in 1.2s") == "generated 3 sections in 1.2s"


def test_json_logging_redacts_secrets_and_preserves_correlation_fields(tmp_path: Path) -> None:
    logger_name = _logger_name()
    handle = setup_structured_logging(
        LoggingConfig(
            run_id="run-logging-redaction",
            base_log_dir=tmp_path,
            logger_name=logger_name,
            log_to_stdout=False,
        )
    )
    logger = logging.getLogger(logger_name)

    with correlation_scope(request_id="req-123", conversation_id="conv-1"):
        logger.info(
            "sending with api_key=sk-FAKE123456789012345",
            extra={"headers": {"x-api-key": "sk-ant-secret-value-0000", "safe": "ok"}},
        )

    shutdown_logging(handle)

    assert handle.log_path.exists()
    parsed = _read_json_lines(handle.log_path)
    assert len(parsed) == 1
    first = parsed[0]
    assert first["run_id"] == "run-logging-redaction"
    assert first["request_id"] == "req-123"
    assert first["conversation_id"] == "conv-1"
    assert first["fields"] == {"headers": {"x-api-key": "***REDACTED***", "safe": "ok"}}

    line = handle.log_path.read_text(encoding="utf-8")
    assert "sk-FAKE" not in line
    assert "sk-ant-secret" not in line


def test_setup_logging_wrapper_uses_observability_config(tmp_path: Path) -> None:
    setup_logging(
        {
            "log_level": "INFO",
            "log_dir": str(tmp_path),
            "redact_secrets": True,
        },
        run_id="run-wrapper",
    )
    handle = get_active_logging_handle()
    assert handle is not None

    logging.getLogger("docgen_orchestrator.tests").info("hello", extra={"credential": "c-123"})
    shutdown_logging()

    assert handle.log_path == tmp_path / "run-wrapper" / "docgen.jsonl"
    content = handle.log_path.read_text(encoding="utf-8")
    assert "hello" in content
    assert "c-123" not in content


def test_redaction_can_be_disabled_by_config(tmp_path: Path) -> None:
    setup_logging(
        {"log_dir": str(tmp_path), "redact_secrets": False},
        run_id="run-plain",
    )

    logging.getLogger("docgen_orchestrator.tests").info("token", extra={"password": "visible"})
    shutdown_logging()

    content = (tmp_path / "run-plain" / "docgen.jsonl").read_text(encoding="utf-8")
    assert "visible" in content


def test_structlog_events_land_in_json_sink(tmp_path: Path) -> None:
    setup_logging({"log_dir": str(tmp_path)}, run_id="run-structlog")
    configure_structlog()

    structlog.get_logger("docgen_orchestrator.tests.structlog").info(
        "provider_retry_scheduled",
        request_id="req-9",
        attempt=2,
        module="claude",
        api_key="sk-ant-abcdefghijklmnop",
    )
    shutdown_logging()

    parsed = _read_json_lines(tmp_path / "run-structlog" / "docgen.jsonl")
    assert len(parsed) == 1
    event = parsed[0]
    assert event["message"] == "provider_retry_scheduled"
    assert event["request_id"] == "req-9"
    assert event["fields"] == {
        "api_key": "***REDACTED***",
        "attempt": 2,
        "field_module": "claude",
    }


def test_multithreaded_logging_produces_valid_json_lines(tmp_path: Path) -> None:
    logger_name = _logger_name()
    handle = setup_structured_logging(
        LoggingConfig(
            run_id="run-threaded",
            base_log_dir=tmp_path,
            logger_name=logger_name,
            log_to_stdout=False,
        )
    )
    logger = logging.getLogger(logger_name)

    total_threads = 8
    per_thread = 40

    def worker(thread_idx: int) -> None:
        for i in range(per_thread):
            logger.info(
                f"thread={thread_idx} index={i} secret=s-{thread_idx}-{i}",
                extra={"api_key": f"sk-FAKE-{thread_idx}-{i}"},
            )

    threads = [threading.Thread(target=worker, args=(idx,)) for idx in range(total_threads)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    shutdown_logging(handle)

    lines = handle.log_path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == total_threads * per_thread
    for line in lines:
        parsed = json.loads(line)
        assert isinstance(parsed, dict)
        assert "message" in parsed
        assert "secret=s-" not in line
        assert "sk-FAKE" not in line


def test_records_go_through_queue_and_shutdown_drains_them(tmp_path: Path) -> None:
    logger_name = _logger_name()
    handle = setup_structured_logging(
        LoggingConfig(run_id="run-flush", base_log_dir=tmp_path, logger_name=logger_name)
    )
    logger = logging.getLogger(logger_name)

    assert len(logger.handlers) == 1
    assert isinstance(logger.handlers[0], logging.handlers.QueueHandler)

    expected = 300
    for i in range(expected):
        logger.info("message %s", i)

    shutdown_logging(handle)
    shutdown_logging(handle)

    lines = handle.log_path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == expected
    assert handle.is_shutdown
    assert logger.handlers == []
    assert get_active_logging_handle() is None


@pytest.mark.parametrize(
    ("key", "redacted"),
    [
        ("api_key", True),
        ("x-api-key", True),
        ("access_token", True),
        ("client_secret", True),
        ("credentials", True),
        ("max_tokens", False),
        ("estimated_tokens", False),
        ("tokens_used", False),
        ("model", False),
    ],
)
def test_redactor_matches_sensitive_key_segments(key: str, redacted: bool) -> None:
    scrubbed = default_log_redactor({key: "value"})

    assert (scrubbed[key] == "***REDACTED***") is redacted


def test_redactor_scrubs_nested_lists_and_leaves_numbers() -> None:
    scrubbed = default_log_redactor(
        {"attempts": [{"error": "401 for sk-ant-abcdefghijklmnop"}], "max_tokens": 4096}
    )

    assert scrubbed == {"attempts": [{"error": "401 for ***REDACTED***"}], "max_tokens": 4096}


def test_logging_config_reads_observability_section() -> None:
    config = LoggingConfig.from_observability(
        {
            "log_level": "DEBUG",
            "log_dir": "/var/log/docgen",
            "log_to_stdout": True,
            "redact_secrets": False,
        },
        run_id="run-cfg",
    )

    assert config == LoggingConfig(
        run_id="run-cfg",
        base_log_dir="/var/log/docgen",
        level="DEBUG",
        log_to_stdout=True,
        redact_secrets=False,
    )


def test_stdout_sink_mirrors_json_lines(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    handle = setup_logging(
        {"log_dir": str(tmp_path), "log_to_stdout": True}, run_id="run-stdout"
    )

    logging.getLogger("docgen_orchestrator.tests").warning("fallback_activated")
    shutdown_logging()

    printed = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
    assert printed == _read_json_lines(handle.log_path)
    assert printed[0]["level"] == "WARNING"


def test_nested_scopes_restore_outer_correlation(tmp_path: Path) -> None:
    logger_name = _logger_name()
    handle = setup_structured_logging(
        LoggingConfig(run_id="run-nested", base_log_dir=tmp_path, logger_name=logger_name)
    )
    logger = logging.getLogger(logger_name)

    with correlation_scope(conversation_id="conv-outer"):
        with correlation_scope(request_id="req-inner", conversation_id=None):
            logger.info("inner")
        logger.info("outer")
    logger.info("unscoped")
    shutdown_logging(handle)

    inner, outer, unscoped = _read_json_lines(handle.log_path)
    assert (inner["request_id"], inner["conversation_id"]) == ("req-inner", "conv-outer")
    assert "request_id" not in outer
    assert outer["conversation_id"] == "conv-outer"
    assert "conversation_id" not in unscoped
    assert unscoped["run_id"] == "run-nested"


def test_invalid_setup_arguments_are_rejected(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="run_id must not be empty"):
        setup_structured_logging(LoggingConfig(run_id=" ", base_log_dir=tmp_path))
    with pytest.raises(ValueError, match="path separators"):
        setup_structured_logging(
            LoggingConfig(run_id="r", base_log_dir=tmp_path, log_filename="a/b.jsonl")
        )
    with pytest.raises(ValueError, match="unsupported logging level"):
        setup_structured_logging(LoggingConfig(run_id="r", base_log_dir=tmp_path, level="LOUD"))
