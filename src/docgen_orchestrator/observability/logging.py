"""
docgen-orchestrator — run logging and redaction

File: src/docgen_orchestrator/observability/logging.py
Last updated: 2026-02-20

Purpose
- Write one JSON object per log record to ``<log_dir>/<run_id>/docgen.jsonl``.

What should be included in this file
- ``setup_logging`` driven by the ``[observability]`` config section.
- A queue between emitting threads and the file/stdout sinks.
- ``configure_structlog`` so component events reach the same sinks.
- Correlation fields (``run_id``, ``request_id``, ``conversation_id``) on every line.
- Redaction of credential-shaped keys and values.

Non-functional requirements
- Credentials never reach a sink while ``redact_secrets`` is on.
"""

from __future__ import annotations

import json
import logging
import logging.handlers
import queue
import re
import sys
from collections.abc import Iterator, Mapping, MutableMapping
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Final

import structlog

REDACTED: Final[str] = "***REDACTED***"
LOG_FILENAME: Final[str] = "docgen.jsonl"
ROOT_LOGGER_NAME: Final[str] = "docgen_orchestrator"

CORRELATION_KEYS: Final[tuple[str, ...]] = ("run_id", "request_id", "conversation_id")

# Matched against ``_``/``-`` separated key segments so ``max_tokens`` stays visible.
_SENSITIVE_SEGMENTS: Final[frozenset[str]] = frozenset(
    {"secret", "token", "password", "authorization", "credential", "credentials"}
)
_SENSITIVE_SUBSTRINGS: Final[tuple[str, ...]] = ("api_key", "apikey", "api-key")

_ASSIGNMENT_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"(?i)\b(x-api-key|api[_-]?key|password|secret|authorization)\b\s*([:=])\s*([^\s,;]+)"
)
_BEARER_PATTERN: Final[re.Pattern[str]] = re.compile(r"(?i)\bbearer\s+[A-Za-z0-9._~+/-]+=*")
_KEY_PATTERN: Final[re.Pattern[str]] = re.compile(r"\bsk-(?:ant-)?[A-Za-z0-9_-]{12,}")

_RECORD_ATTRIBUTES: Final[frozenset[str]] = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__
) | {"message", "asctime", "correlation"}

_active: StructuredLoggingHandle | None = None
_structlog_configured = False


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    run_id: str
    base_log_dir: Path | str = Path("logs")
    logger_name: str = ROOT_LOGGER_NAME
    level: int | str = "INFO"
    log_filename: str = LOG_FILENAME
    log_to_stdout: bool = False
    redact_secrets: bool = True

    @classmethod
    def from_observability(
        cls, section: Mapping[str, object], *, run_id: str
    ) -> LoggingConfig:
        """Build from the ``[observability]`` config section."""

        level = section.get("log_level", "INFO")
        return cls(
            run_id=run_id,
            base_log_dir=str(section.get("log_dir", "logs")),
            level=level if isinstance(level, (int, str)) else "INFO",
            log_to_stdout=bool(section.get("log_to_stdout", False)),
            redact_secrets=bool(section.get("redact_secrets", True)),
        )


@dataclass(slots=True)
class StructuredLoggingHandle:
    logger: logging.Logger
    run_id: str
    log_path: Path
    _queue_handler: logging.handlers.QueueHandler
    _listener: logging.handlers.QueueListener
    _sinks: tuple[logging.Handler, ...]
    is_shutdown: bool = False

    def shutdown(self) -> None:
        """Drain the queue into the sinks and close them; safe to call twice."""

        if self.is_shutdown:
            return
        self._listener.stop()
        self.logger.removeHandler(self._queue_handler)
        for sink in self._sinks:
            sink.flush()
            sink.close()
        self.is_shutdown = True


class _CorrelatingQueueHandler(logging.handlers.QueueHandler):
    # Context variables belong to the emitting thread, so they are captured here and
    # not in the listener thread that formats the record.
    def prepare(self, record: logging.LogRecord) -> logging.LogRecord:
        record.correlation = _bound_correlation()
        return super().prepare(record)


class _JsonLineFormatter(logging.Formatter):
    def __init__(self, *, run_id: str, redact_secrets: bool) -> None:
        super().__init__()
        self._run_id = run_id
        self._redact = redact_secrets

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        event: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC)
            .isoformat(timespec="milliseconds")
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": redact_text(message) if self._redact else message,
            "run_id": self._run_id,
        }
        event.update(getattr(record, "correlation", None) or {})
        for key in CORRELATION_KEYS:
            value = getattr(record, key, None)
            if isinstance(value, str) and value.strip():
                event[key] = value.strip()

        extras = {
            key: _jsonable(value)
            for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRIBUTES
            and key not in CORRELATION_KEYS
            and not key.startswith("_")
        }
        if extras:
            event["fields"] = default_log_redactor(extras) if self._redact else extras
        if record.exc_info is not None:
            trace = self.formatException(record.exc_info)
            event["exception"] = redact_text(trace) if self._redact else trace
        return json.dumps(event, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def setup_logging(
    observability_config: Mapping[str, object], *, run_id: str
) -> StructuredLoggingHandle:
    """Start run logging from the ``[observability]`` section and hook up structlog."""

    handle = setup_structured_logging(
        LoggingConfig.from_observability(observability_config, run_id=run_id)
    )
    configure_structlog()
    return handle


def setup_structured_logging(config: LoggingConfig) -> StructuredLoggingHandle:
    """Attach a queue-fed JSON-lines sink to ``config.logger_name``.

    Any handle set up earlier is shut down first; one run logs at a time.
    """

    run_id = config.run_id.strip()
    if not run_id:
        raise ValueError("run_id must not be empty")
    if Path(config.log_filename).name != config.log_filename:
        raise ValueError("log_filename must not include path separators")
    level = _parse_level(config.level)

    shutdown_logging()

    run_dir = Path(config.base_log_dir) / run_id
    run_dir.mkdir(parents=True, exist_ok=True)
    log_path = run_dir / config.log_filename

    formatter = _JsonLineFormatter(run_id=run_id, redact_secrets=config.redact_secrets)
    sinks: list[logging.Handler] = [logging.FileHandler(log_path, encoding="utf-8")]
    if config.log_to_stdout:
        sinks.append(logging.StreamHandler(sys.stdout))
    for sink in sinks:
        sink.setFormatter(formatter)

    log_queue: queue.SimpleQueue[logging.LogRecord] = queue.SimpleQueue()
    queue_handler = _CorrelatingQueueHandler(log_queue)
    listener = logging.handlers.QueueListener(log_queue, *sinks)

    logger = logging.getLogger(config.logger_name)
    logger.setLevel(level)
    logger.propagate = False
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
        existing.close()
    logger.addHandler(queue_handler)
    listener.start()

    global _active
    _active = StructuredLoggingHandle(
        logger=logger,
        run_id=run_id,
        log_path=log_path,
        _queue_handler=queue_handler,
        _listener=listener,
        _sinks=tuple(sinks),
    )
    return _active


def shutdown_logging(handle: StructuredLoggingHandle | None = None) -> None:
    global _active
    target = handle if handle is not None else _active
    if target is None:
        return
    target.shutdown()
    if target is _active:
        _active = None


def get_active_logging_handle() -> StructuredLoggingHandle | None:
    return _active


def configure_structlog() -> None:
    """Send structlog events through stdlib logging so the run sink receives them.

    Event keywords become record extras; keys that clash with ``LogRecord`` attributes
    are written as ``field_<key>``.
    """

    global _structlog_configured
    if _structlog_configured:
        return
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            _rename_reserved_keys,
            structlog.stdlib.render_to_log_kwargs,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    _structlog_configured = True


@contextmanager
def correlation_scope(**fields: str | None) -> Iterator[None]:
    """Bind correlation ids for everything logged inside the block; ``None`` is skipped."""

    bound = {key: value for key, value in fields.items() if value}
    with structlog.contextvars.bound_contextvars(**bound):
        yield


def redact_text(text: str) -> str:
    """Scrub API keys, bearer tokens and ``key=value`` secrets from free text."""

    redacted = _ASSIGNMENT_PATTERN.sub(lambda m: f"{m.group(1)}{m.group(2)}{REDACTED}", text)
    redacted = _BEARER_PATTERN.sub(f"Bearer {REDACTED}", redacted)
    return _KEY_PATTERN.sub(REDACTED, redacted)


def default_log_redactor(value: Any, *, key: str | None = None) -> Any:
    if key is not None and _is_sensitive_key(key):
        return REDACTED
    if isinstance(value, str):
        return redact_text(value)
    if isinstance(value, dict):
        return {k: default_log_redactor(v, key=k) for k, v in value.items()}
    if isinstance(value, list):
        return [default_log_redactor(item) for item in value]
    return value


def _is_sensitive_key(key: str) -> bool:
    lowered = key.lower()
    if any(part in lowered for part in _SENSITIVE_SUBSTRINGS):
        return True
    return any(segment in _SENSITIVE_SEGMENTS for segment in re.split(r"[_\-]", lowered))


def _bound_correlation() -> dict[str, str]:
    bound = structlog.contextvars.get_contextvars()
    return {key: str(bound[key]) for key in CORRELATION_KEYS if bound.get(key)}


def _rename_reserved_keys(
    _logger: Any, _method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    for key in [key for key in event_dict if key in _RECORD_ATTRIBUTES]:
        event_dict[f"field_{key}"] = event_dict.pop(key)
    return event_dict


def _parse_level(value: int | str) -> int:
    if isinstance(value, int):
        return value
    parsed = logging.getLevelName(value.strip().upper())
    if isinstance(parsed, int):
        return parsed
    raise ValueError(f"unsupported logging level {value!r}")


def _jsonable(value: object) -> Any:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Mapping):
        return {str(key): _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_jsonable(item) for item in value]
    if isinstance(value, Path):
        return value.as_posix()
    return repr(value)


__all__ = [
    "CORRELATION_KEYS",
    "LOG_FILENAME",
    "REDACTED",
    "LoggingConfig",
    "StructuredLoggingHandle",
    "configure_structlog",
    "correlation_scope",
    "default_log_redactor",
    "get_active_logging_handle",
    "redact_text",
    "setup_logging",
    "setup_structured_logging",
    "shutdown_logging",
]
