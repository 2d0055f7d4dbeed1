"""
docgen-orchestrator — unit tests for config schema validation

File: tests/unit/config/test_schema.py
Last updated: 2026-02-13

Purpose
- Validate strict config schema behavior, structured errors, and redaction.

What this test file should cover
- Validates the repository's docgen.toml successfully.
- Rejects unknown keys and invalid types with actionable paths.
- Rejects embedded secrets while accepting env-var references.
- Cross-field rules and schema version guidance.
- Ensures redaction is recursive and non-destructive.

Functional requirements
- No network usage.

Non-functional requirements
- Deterministic and fast.
"""

from __future__ import annotations

import tomllib
from collections.abc import Mapping
from pathlib import Path

import pytest

from docgen_orchestrator.config.schema import (
    ConfigSchemaVersion,
    ConfigValidationError,
    assert_valid_config,
    default_config,
    field_kinds,
    merge_config,
    migration_guidance,
    redact_config,
    validate_config,
)

REPO_ROOT = Path(__file__).resolve().parents[3]


def _load_toml(path: Path) -> dict[str, object]:
    with path.open("rb") as handle:
        data = tomllib.load(handle)
    assert isinstance(data, dict)
    return data


def _issue_map(config: Mapping[str, object]) -> dict[str, str]:
    result = validate_config(config)
    assert result.config is None
    return {issue.path: issue.message for issue in result.issues}


def test_docgen_toml_validates_successfully() -> None:
    config = _load_toml(REPO_ROOT / "docgen.toml")

    result = validate_config(config)

    assert result.is_valid, result.issues
    assert result.config is not None
    assert result.config["meta"]["schema_version"] == ConfigSchemaVersion


def test_defaults_validate_and_are_deep_copies() -> None:
    first = default_config()
    first["provider"]["model"] = "changed"

    assert default_config()["provider"]["model"] != "changed"
    assert validate_config(default_config()).is_valid


def test_unknown_key_rejection_is_explicit() -> None:
    config = merge_config(default_config(), {"provider": {"colour": "blue"}, "extras": {}})

    issues = _issue_map(config)

    assert issues["provider.colour"] == "unknown field"
    assert issues["extras"] == "unknown field"


def test_type_validation_reports_structured_paths() -> None:
    config = merge_config(
        default_config(),
        {
            "provider": {"max_tokens": "many"},
            "fallback": {"auto_activate": "yes"},
            "rate_limit": {"max_wait_seconds": True},
        },
    )

    issues = _issue_map(config)

    assert issues["provider.max_tokens"] == "expected integer, got str"
    assert issues["fallback.auto_activate"] == "expected boolean, got str"
    assert issues["rate_limit.max_wait_seconds"] == "expected number, got bool"


@pytest.mark.parametrize(
    ("overlay", "path", "message"),
    [
        ({"provider": {"temperature": 1.5}}, "provider.temperature", "must be <= 1.0"),
        ({"provider": {"max_tokens": 0}}, "provider.max_tokens", "must be >= 1"),
        ({"provider": {"timeout_seconds": 0}}, "provider.timeout_seconds", "must be > 0.0"),
        ({"provider": {"max_retries": 11}}, "provider.max_retries", "must be <= 10"),
        ({"provider": {"api_url": "ftp://host"}}, "provider.api_url", "must be an http(s) URL"),
        (
            {"provider": {"name": "gpt"}},
            "provider.name",
            "invalid value 'gpt'; expected one of: claude",
        ),
        (
            {"observability": {"log_level": "TRACE"}},
            "observability.log_level",
            "invalid value 'TRACE'; expected one of: DEBUG, ERROR, INFO, WARNING",
        ),
        ({"conversations": {"max_messages": 1}}, "conversations.max_messages", "must be >= 2"),
    ],
)
def test_range_violation_reports_exact_path(
    overlay: dict[str, object], path: str, message: str
) -> None:
    issues = _issue_map(merge_config(default_config(), overlay))

    assert issues[path] == message


def test_embedded_secret_is_rejected_but_api_key_env_is_allowed() -> None:
    allowed = merge_config(default_config(), {"provider": {"api_key_env": "MY_CLAUDE_KEY"}})
    embedded = merge_config(default_config(), {"provider": {"apiKey": "sk-secret-value"}})
    bad_env = merge_config(default_config(), {"provider": {"api_key_env": "sk-not-an-env"}})

    assert validate_config(allowed).is_valid
    assert _issue_map(embedded)["provider.apiKey"].startswith(
        "embedded secret values are forbidden"
    )
    assert _issue_map(bad_env)["provider.api_key_env"].startswith("must be an env var name")


def test_missing_sections_and_fields_are_reported() -> None:
    config = default_config()
    del config["rate_limit"]
    del config["provider"]["model"]

    issues = _issue_map(config)

    assert issues["rate_limit"] == "missing required field"
    assert issues["provider.model"] == "missing required field"


def test_cross_field_rules() -> None:
    config = merge_config(
        default_config(),
        {
            "provider": {"retry_base_delay_seconds": 10.0, "retry_max_delay_seconds": 5.0},
            "conversations": {"max_conversations": 3, "eviction_batch": 4},
        },
    )

    issues = _issue_map(config)

    assert issues["provider.retry_max_delay_seconds"] == (
        "must be >= provider.retry_base_delay_seconds"
    )
    assert issues["conversations.eviction_batch"] == (
        "must be <= conversations.max_conversations"
    )


def test_schema_version_mismatch_gives_migration_guidance() -> None:
    config = merge_config(default_config(), {"meta": {"schema_version": 2}})

    issues = _issue_map(config)

    assert issues["meta.schema_version"] == migration_guidance(2)
    assert "newer than supported" in migration_guidance(2)
    assert migration_guidance(ConfigSchemaVersion) == "schema version is current"


def test_assert_valid_config_renders_all_issues() -> None:
    config = merge_config(default_config(), {"provider": {"max_tokens": 0, "extra": 1}})

    with pytest.raises(ConfigValidationError) as excinfo:
        assert_valid_config(config)

    message = str(excinfo.value)
    assert message.startswith("invalid config:\n")
    assert "- provider.extra: unknown field" in message
    assert "- provider.max_tokens: must be >= 1" in message
    assert len(excinfo.value.issues) == 2


def test_redaction_is_recursive_and_preserves_shape() -> None:
    payload = {
        "provider": {"api_key_env": "ANTHROPIC_API_KEY", "password": "hunter2", "max_tokens": 5},
        "nested": [{"client_secret": "x"}, {"plain": "y"}],
    }

    redacted = redact_config(payload)

    assert redacted == {
        "nested": [{"client_secret": "<redacted>"}, {"plain": "y"}],
        "provider": {
            "api_key_env": "ANTHROPIC_API_KEY",
            "max_tokens": 5,
            "password": "<redacted>",
        },
    }
    assert payload["provider"]["password"] == "hunter2"
    assert redact_config("not a mapping") == {}


def test_merge_config_is_deep_and_does_not_mutate_inputs() -> None:
    base = {"a": {"b": 1, "c": 2}}
    overlay = {"a": {"c": 3}, "d": 4}

    merged = merge_config(base, overlay)

    assert merged == {"a": {"b": 1, "c": 3}, "d": 4}
    assert base == {"a": {"b": 1, "c": 2}}


def test_field_kinds_cover_every_default_key() -> None:
    kinds = field_kinds()
    defaults = default_config()

    assert set(kinds) == {
        (section, key) for section, block in defaults.items() for key in block
    }
    assert kinds[("provider", "max_retries")] == "int"
    assert kinds[("provider", "temperature")] == "float"
    assert kinds[("observability", "redact_secrets")] == "bool"
    assert kinds[("fallback", "cache_path")] == "path"
