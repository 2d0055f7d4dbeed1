"""
docgen-orchestrator — configuration schema and validation.

File: src/docgen_orchestrator/config/schema.py
Last updated: 2026-02-13

Purpose
- Define authoritative configuration defaults and strict validation rules.

What should be included in this file
- Schema versioning and migration guidance.
- Per-section field tables: type, bounds and allowed values.
- Deterministic deep-merge helpers.
- Redaction rules for sensitive fields.

Functional requirements
- Validate config payloads and return structured errors (field path + message).
- Reject unknown keys and embedded secrets; credentials are named by env var only.

Non-functional requirements
- Keep rules deterministic and easy to audit.
"""

from __future__ import annotations

import copy
import math
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final, Literal, TypedDict

from docgen_orchestrator.constants import (
    CONFIG_SCHEMA_VERSION,
    DEFAULT_API_KEY_ENV,
    DEFAULT_API_URL,
    DEFAULT_API_VERSION,
    DEFAULT_CACHE_PATH,
    DEFAULT_LOG_DIR,
    DEFAULT_MAX_RETRIES,
    DEFAULT_MAX_TOKENS,
    DEFAULT_MODEL,
    DEFAULT_RATE_LIMIT_MAX_WAIT_SECONDS,
    DEFAULT_REQUESTS_PER_MINUTE,
    DEFAULT_RETRY_BASE_DELAY_SECONDS,
    DEFAULT_RETRY_MAX_DELAY_SECONDS,
    DEFAULT_TEMPERATURE,
    DEFAULT_TIMEOUT_SECONDS,
    DEFAULT_TOKENS_PER_MINUTE,
    MAX_OUTPUT_TOKENS,
)

ConfigSchemaVersion: Final[int] = CONFIG_SCHEMA_VERSION

_ENV_NAME_PATTERN = re.compile(r"^[A-Z_][A-Z0-9_]*$")
_CAMEL_CASE_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")
_NON_ALNUM = re.compile(r"[^a-z0-9]+")

_SENSITIVE_KEY_TOKENS: Final[frozenset[str]] = frozenset(
    {
        "secret",
        "token",
        "password",
        "passwd",
        "key",
        "apikey",
        "private",
        "credential",
        "credentials",
        "auth",
        "authorization",
    }
)
_SENSITIVE_KEY_PHRASES: Final[tuple[str, ...]] = (
    "api_key",
    "access_token",
    "client_secret",
    "private_key",
    "password",
    "secret",
)
# Numeric budget fields whose names contain "token" but carry no secret.
_NON_SECRET_KEYS: Final[frozenset[str]] = frozenset(
    {"max_tokens", "tokens_per_minute", "max_tokens_per_message"}
)

# Config paths that should be normalized relative to config file location.
PATH_FIELDS: Final[tuple[tuple[str, ...], ...]] = (
    ("fallback", "cache_path"),
    ("observability", "log_dir"),
)

LOG_LEVELS: Final[tuple[str, ...]] = ("DEBUG", "INFO", "WARNING", "ERROR")
PROVIDER_NAMES: Final[tuple[str, ...]] = ("claude",)


class MetaConfig(TypedDict):
    schema_version: int


class ProviderConfig(TypedDict):
    name: str
    model: str
    api_url: str
    api_version: str
    api_key_env: str
    max_tokens: int
    temperature: float
    timeout_seconds: float
    max_retries: int
    retry_base_delay_seconds: float
    retry_max_delay_seconds: float


class RateLimitConfig(TypedDict):
    requests_per_minute: int
    tokens_per_minute: int
    max_wait_seconds: float


class ConversationsConfig(TypedDict):
    max_conversations: int
    eviction_batch: int
    max_messages: int
    max_tokens_per_message: int
    inactivity_timeout_minutes: int
    sweep_interval_minutes: int


class FallbackSettings(TypedDict):
    auto_activate: bool
    failure_threshold: int
    cache_reads: bool
    cache_generated_content: bool
    max_cache_entries: int
    cache_path: str


class ObservabilityConfig(TypedDict):
    log_level: str
    log_dir: str
    log_to_stdout: bool
    redact_secrets: bool


class DocgenConfig(TypedDict):
    meta: MetaConfig
    provider: ProviderConfig
    rate_limit: RateLimitConfig
    conversations: ConversationsConfig
    fallback: FallbackSettings
    observability: ObservabilityConfig


DEFAULT_CONFIG: Final[DocgenConfig] = {
    "meta": {"schema_version": ConfigSchemaVersion},
    "provider": {
        "name": "claude",
        "model": DEFAULT_MODEL,
        "api_url": DEFAULT_API_URL,
        "api_version": DEFAULT_API_VERSION,
        "api_key_env": DEFAULT_API_KEY_ENV,
        "max_tokens": DEFAULT_MAX_TOKENS,
        "temperature": DEFAULT_TEMPERATURE,
        "timeout_seconds": DEFAULT_TIMEOUT_SECONDS,
        "max_retries": DEFAULT_MAX_RETRIES,
        "retry_base_delay_seconds": DEFAULT_RETRY_BASE_DELAY_SECONDS,
        "retry_max_delay_seconds": DEFAULT_RETRY_MAX_DELAY_SECONDS,
    },
    "rate_limit": {
        "requests_per_minute": DEFAULT_REQUESTS_PER_MINUTE,
        "tokens_per_minute": DEFAULT_TOKENS_PER_MINUTE,
        "max_wait_seconds": DEFAULT_RATE_LIMIT_MAX_WAIT_SECONDS,
    },
    "conversations": {
        "max_conversations": 50,
        "eviction_batch": 5,
        "max_messages": 100,
        "max_tokens_per_message": 4000,
        "inactivity_timeout_minutes": 120,
        "sweep_interval_minutes": 30,
    },
    "fallback": {
        "auto_activate": False,
        "failure_threshold": 1,
        "cache_reads": True,
        "cache_generated_content": True,
        "max_cache_entries": 100,
        "cache_path": DEFAULT_CACHE_PATH.as_posix(),
    },
    "observability": {
        "log_level": "INFO",
        "log_dir": DEFAULT_LOG_DIR.as_posix(),
        "log_to_stdout": False,
        "redact_secrets": True,
    },
}


FieldKind = Literal["str", "path", "env", "url", "int", "float", "bool"]


@dataclass(frozen=True, slots=True)
class _Field:
    kind: FieldKind
    minimum: float | None = None
    maximum: float | None = None
    choices: tuple[str, ...] = ()
    exclusive_minimum: bool = False


_SECTION_FIELDS: Final[Mapping[str, Mapping[str, _Field]]] = {
    "meta": {"schema_version": _Field("int", minimum=1)},
    "provider": {
        "name": _Field("str", choices=PROVIDER_NAMES),
        "model": _Field("str"),
        "api_url": _Field("url"),
        "api_version": _Field("str"),
        "api_key_env": _Field("env"),
        "max_tokens": _Field("int", minimum=1, maximum=MAX_OUTPUT_TOKENS),
        "temperature": _Field("float", minimum=0.0, maximum=1.0),
        "timeout_seconds": _Field("float", minimum=0.0, exclusive_minimum=True),
        "max_retries": _Field("int", minimum=0, maximum=10),
        "retry_base_delay_seconds": _Field("float", minimum=0.0),
        "retry_max_delay_seconds": _Field("float", minimum=0.0),
    },
    "rate_limit": {
        "requests_per_minute": _Field("int", minimum=1),
        "tokens_per_minute": _Field("int", minimum=1),
        "max_wait_seconds": _Field("float", minimum=0.0),
    },
    "conversations": {
        "max_conversations": _Field("int", minimum=1),
        "eviction_batch": _Field("int", minimum=1),
        "max_messages": _Field("int", minimum=2),
        "max_tokens_per_message": _Field("int", minimum=1),
        "inactivity_timeout_minutes": _Field("int", minimum=1),
        "sweep_interval_minutes": _Field("int", minimum=1),
    },
    "fallback": {
        "auto_activate": _Field("bool"),
        "failure_threshold": _Field("int", minimum=1),
        "cache_reads": _Field("bool"),
        "cache_generated_content": _Field("bool"),
        "max_cache_entries": _Field("int", minimum=1),
        "cache_path": _Field("path"),
    },
    "observability": {
        "log_level": _Field("str", choices=LOG_LEVELS),
        "log_dir": _Field("path"),
        "log_to_stdout": _Field("bool"),
        "redact_secrets": _Field("bool"),
    },
}


@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    """Single structured validation failure."""

    path: str
    message: str


@dataclass(frozen=True, slots=True)
class ConfigValidationResult:
    """Validation result with normalized config when no issues were found."""

    config: dict[str, Any] | None
    issues: tuple[ConfigValidationIssue, ...]

    @property
    def is_valid(self) -> bool:
        return self.config is not None and not self.issues


class ConfigValidationError(ValueError):
    """Raised when strict config validation fails."""

    def __init__(self, issues: Sequence[ConfigValidationIssue]) -> None:
        self.issues = tuple(issues)
        if not self.issues:
            rendered = "unknown validation failure"
        else:
            rendered = "\n".join(f"- {item.path}: {item.message}" for item in self.issues)
        super().__init__(f"invalid config:\n{rendered}")


class _IssueCollector:
    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[ConfigValidationIssue] = []

    def add(self, path: str, message: str) -> None:
        self._items.append(ConfigValidationIssue(path=path, message=message))

    def items(self) -> tuple[ConfigValidationIssue, ...]:
        return tuple(self._items)

    @property
    def has_issues(self) -> bool:
        return bool(self._items)


def default_config() -> DocgenConfig:
    """Return a deep copy of deterministic built-in defaults."""

    return copy.deepcopy(DEFAULT_CONFIG)


def field_kinds() -> dict[tuple[str, str], FieldKind]:
    """Return the declared kind of every ``(section, key)`` field, in sorted order."""

    return {
        (section, key): _SECTION_FIELDS[section][key].kind
        for section in sorted(_SECTION_FIELDS)
        for key in sorted(_SECTION_FIELDS[section])
    }


def migration_guidance(found_version: int) -> str:
    """Return deterministic migration guidance for schema version mismatch."""

    if found_version < ConfigSchemaVersion:
        return (
            f"schema version {found_version} is older than supported {ConfigSchemaVersion}; "
            "upgrade docgen.toml to the current schema"
        )
    if found_version > ConfigSchemaVersion:
        return (
            f"schema version {found_version} is newer than supported {ConfigSchemaVersion}; "
            "upgrade the docgen-orchestrator runtime"
        )
    return "schema version is current"


def merge_config(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """Deterministically deep-merge ``overlay`` onto ``base``."""

    merged = _deep_copy_mapping(base)
    _merge_into(merged, overlay)
    return merged


def validate_config(config: Mapping[str, object] | object) -> ConfigValidationResult:
    """Validate config and return structured issues with deterministic paths."""

    issues = _IssueCollector()
    root = _as_object(config, "<root>", issues)
    if root is None:
        return ConfigValidationResult(config=None, issues=issues.items())

    _reject_unknown_keys(root, set(_SECTION_FIELDS), "", issues)
    _require_keys(root, set(_SECTION_FIELDS), "", issues)

    out: dict[str, Any] = {}
    for section_name in sorted(_SECTION_FIELDS):
        raw = root.get(section_name)
        if raw is None:
            continue
        section = _as_object(raw, section_name, issues)
        if section is None:
            continue
        out[section_name] = _validate_section(
            section, section_name, _SECTION_FIELDS[section_name], issues
        )

    _validate_schema_version(out.get("meta"), issues)
    _validate_cross_fields(out, issues)

    if issues.has_issues:
        return ConfigValidationResult(config=None, issues=issues.items())
    return ConfigValidationResult(config=out, issues=())


def assert_valid_config(config: Mapping[str, object] | object) -> dict[str, Any]:
    """Validate config and raise ``ConfigValidationError`` on failure."""

    result = validate_config(config)
    if result.config is None:
        raise ConfigValidationError(result.issues)
    return result.config


def redact_config(config: Mapping[str, object] | object) -> dict[str, Any]:
    """Return deterministic redacted representation for logs and dumps."""

    if not isinstance(config, Mapping):
        return {}
    redacted = _redact_value(config, parent_key=None)
    if isinstance(redacted, dict):
        return redacted
    return {}


def _validate_section(
    payload: Mapping[str, object],
    path: str,
    fields: Mapping[str, _Field],
    issues: _IssueCollector,
) -> dict[str, Any]:
    _reject_unknown_keys(payload, set(fields), path, issues)
    _require_keys(payload, set(fields), path, issues)

    out: dict[str, Any] = {}
    for key in sorted(fields):
        if key not in payload:
            continue
        parsed = _parse_field(payload[key], _join(path, key), fields[key], issues)
        if parsed is not None:
            out[key] = parsed
    return out


def _parse_field(value: object, path: str, declared: _Field, issues: _IssueCollector) -> object:
    if declared.kind == "bool":
        return _as_bool(value, path, issues)
    if declared.kind == "int":
        return _as_int(value, path, issues, minimum=declared.minimum, maximum=declared.maximum)
    if declared.kind == "float":
        return _as_float(
            value,
            path,
            issues,
            minimum=declared.minimum,
            maximum=declared.maximum,
            exclusive_minimum=declared.exclusive_minimum,
        )
    if declared.kind == "path":
        return _as_path_text(value, path, issues)
    if declared.kind == "env":
        return _as_env_name(value, path, issues)
    if declared.kind == "url":
        return _as_url(value, path, issues)
    if declared.choices:
        return _as_enum(value, path, issues, allowed_values=declared.choices)
    return _as_str(value, path, issues)


def _validate_schema_version(meta: object, issues: _IssueCollector) -> None:
    if not isinstance(meta, Mapping):
        return
    version = meta.get("schema_version")
    if isinstance(version, int) and version != ConfigSchemaVersion:
        issues.add("meta.schema_version", migration_guidance(version))


def _validate_cross_fields(config: Mapping[str, Any], issues: _IssueCollector) -> None:
    provider = config.get("provider")
    if isinstance(provider, Mapping):
        base = provider.get("retry_base_delay_seconds")
        ceiling = provider.get("retry_max_delay_seconds")
        if isinstance(base, float) and isinstance(ceiling, float) and ceiling < base:
            issues.add(
                "provider.retry_max_delay_seconds",
                "must be >= provider.retry_base_delay_seconds",
            )

    conversations = config.get("conversations")
    if isinstance(conversations, Mapping):
        batch = conversations.get("eviction_batch")
        capacity = conversations.get("max_conversations")
        if isinstance(batch, int) and isinstance(capacity, int) and batch > capacity:
            issues.add(
                "conversations.eviction_batch",
                "must be <= conversations.max_conversations",
            )


def _as_object(value: object, path: str, issues: _IssueCollector) -> dict[str, object] | None:
    if not isinstance(value, Mapping):
        issues.add(path, f"expected object, got {type(value).__name__}")
        return None
    out: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            issues.add(path, f"object key must be string, got {type(key).__name__}")
            continue
        out[key] = item
    return out


def _as_str(value: object, path: str, issues: _IssueCollector) -> str | None:
    if not isinstance(value, str):
        issues.add(path, f"expected string, got {type(value).__name__}")
        return None
    parsed = value.strip()
    if not parsed:
        issues.add(path, "must not be empty")
        return None
    return parsed


def _as_path_text(value: object, path: str, issues: _IssueCollector) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if "\x00" in parsed:
        issues.add(path, "must not contain NUL bytes")
        return None
    return parsed


def _as_env_name(value: object, path: str, issues: _IssueCollector) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if not _ENV_NAME_PATTERN.fullmatch(parsed):
        issues.add(path, "must be an env var name (example: ANTHROPIC_API_KEY)")
        return None
    return parsed


def _as_url(value: object, path: str, issues: _IssueCollector) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if not parsed.startswith(("https://", "http://")):
        issues.add(path, "must be an http(s) URL")
        return None
    return parsed


def _as_bool(value: object, path: str, issues: _IssueCollector) -> bool | None:
    if isinstance(value, bool):
        return value
    issues.add(path, f"expected boolean, got {type(value).__name__}")
    return None


def _as_int(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    minimum: float | None = None,
    maximum: float | None = None,
) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        issues.add(path, f"expected integer, got {type(value).__name__}")
        return None
    if minimum is not None and value < minimum:
        issues.add(path, f"must be >= {int(minimum)}")
        return None
    if maximum is not None and value > maximum:
        issues.add(path, f"must be <= {int(maximum)}")
        return None
    return value


def _as_float(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    minimum: float | None = None,
    maximum: float | None = None,
    exclusive_minimum: bool = False,
) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        issues.add(path, f"expected number, got {type(value).__name__}")
        return None
    parsed = float(value)
    if not math.isfinite(parsed):
        issues.add(path, "must be finite")
        return None
    if minimum is not None:
        if exclusive_minimum and parsed <= minimum:
            issues.add(path, f"must be > {minimum}")
            return None
        if parsed < minimum:
            issues.add(path, f"must be >= {minimum}")
            return None
    if maximum is not None and parsed > maximum:
        issues.add(path, f"must be <= {maximum}")
        return None
    return parsed


def _as_enum(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    allowed_values: tuple[str, ...],
) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if parsed not in allowed_values:
        expected = ", ".join(sorted(allowed_values))
        issues.add(path, f"invalid value {parsed!r}; expected one of: {expected}")
        return None
    return parsed


def _reject_unknown_keys(
    payload: Mapping[str, object],
    allowed: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(payload):
        if key in allowed:
            continue
        key_path = _join(path, key)
        if _looks_sensitive_key(key):
            issues.add(
                key_path,
                "embedded secret values are forbidden; use an *_env key with an env var name",
            )
        else:
            issues.add(key_path, "unknown field")


def _require_keys(
    payload: Mapping[str, object],
    required: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(required):
        if key not in payload:
            issues.add(_join(path, key), "missing required field")


def _looks_sensitive_key(key: str) -> bool:
    normalized = _normalize_key(key)
    if normalized.endswith("_env") or normalized in _NON_SECRET_KEYS:
        return False
    if any(phrase in normalized for phrase in _SENSITIVE_KEY_PHRASES):
        return True
    tokens = tuple(token for token in normalized.split("_") if token)
    return any(token in _SENSITIVE_KEY_TOKENS for token in tokens)


def _normalize_key(key: str) -> str:
    with_boundaries = _CAMEL_CASE_BOUNDARY.sub(r"\1_\2", key.strip())
    return _NON_ALNUM.sub("_", with_boundaries.lower()).strip("_")


def _join(path: str, key: str) -> str:
    if not path:
        return key
    return f"{path}.{key}"


def _merge_into(target: dict[str, Any], overlay: Mapping[str, object]) -> None:
    for key in sorted(overlay):
        value = overlay[key]
        if isinstance(value, Mapping):
            existing = target.get(key)
            if isinstance(existing, dict):
                _merge_into(existing, value)
            else:
                nested: dict[str, Any] = {}
                _merge_into(nested, value)
                target[key] = nested
        else:
            target[key] = copy.deepcopy(value)


def _deep_copy_mapping(value: Mapping[str, object]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key in sorted(value):
        item = value[key]
        out[key] = _deep_copy_mapping(item) if isinstance(item, Mapping) else copy.deepcopy(item)
    return out


def _redact_value(value: object, parent_key: str | None) -> object:
    if isinstance(value, Mapping):
        out: dict[str, object] = {}
        for key in sorted(value):
            item = value[key]
            if _looks_sensitive_key(key):
                out[key] = "<redacted>"
            else:
                out[key] = _redact_value(item, key)
        return out
    if isinstance(value, (list, tuple)):
        return [_redact_value(item, parent_key) for item in value]
    return value


__all__ = [
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "DEFAULT_CONFIG",
    "DocgenConfig",
    "FieldKind",
    "LOG_LEVELS",
    "PATH_FIELDS",
    "PROVIDER_NAMES",
    "assert_valid_config",
    "default_config",
    "field_kinds",
    "merge_config",
    "migration_guidance",
    "redact_config",
    "validate_config",
]
