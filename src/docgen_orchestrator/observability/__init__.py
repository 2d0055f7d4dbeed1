"""Observability helpers: structured logging and redaction."""

from __future__ import annotations

from docgen_orchestrator.observability.logging import (
    LoggingConfig,
    StructuredLoggingHandle,
    configure_structlog,
    correlation_scope,
    default_log_redactor,
    redact_text,
    setup_logging,
    setup_structured_logging,
    shutdown_logging,
)

__all__ = [
    "LoggingConfig",
    "StructuredLoggingHandle",
    "configure_structlog",
    "correlation_scope",
    "default_log_redactor",
    "redact_text",
    "setup_logging",
    "setup_structured_logging",
    "shutdown_logging",
]
