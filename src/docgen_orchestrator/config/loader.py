"""
docgen-orchestrator — docgen.toml loader

File: src/docgen_orchestrator/config/loader.py
Last updated: 2026-02-20

Purpose
- Produce the effective runtime config for the CLI and ``build_assistant``.

What should be included in this file
- Layering of built-in defaults, ``docgen.toml``, ``DOCGEN_<SECTION>_<KEY>`` variables and
  dotted CLI overrides, later layers winning.
- Env coercion driven by the schema's declared field kinds.
- Resolution of ``fallback.cache_path`` and ``observability.log_dir`` against the
  directory holding the config file.

Functional requirements
- Every layer is validated; a bad env value names the variable it came from.
"""

from __future__ import annotations

import json
import os
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Final

from docgen_orchestrator.config.schema import (
    PATH_FIELDS,
    FieldKind,
    assert_valid_config,
    default_config,
    field_kinds,
    merge_config,
    redact_config,
)
from docgen_orchestrator.constants import DEFAULT_CONFIG_FILENAME
from docgen_orchestrator.constants import ENV_PREFIX as _ENV_PREFIX

DEFAULT_CONFIG_FILE: Final[str] = DEFAULT_CONFIG_FILENAME
ENV_PREFIX: Final[str] = _ENV_PREFIX

_TRUTHY: Final[frozenset[str]] = frozenset({"1", "true", "t", "yes", "y", "on"})
_FALSY: Final[frozenset[str]] = frozenset({"0", "false", "f", "no", "n", "off"})

FieldKey = tuple[str, str]


class ConfigLoadError(ValueError):
    """The config file or an override could not be read or converted."""


def load_config(
    config_path: str | Path | None = None,
    *,
    cli_overrides: Mapping[str, object] | None = None,
    environ: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Return the validated effective config.

    Without ``config_path`` a ``docgen.toml`` in the working directory is used when it
    exists; an explicitly named file must exist.
    """

    if config_path is None:
        path = (Path.cwd() / DEFAULT_CONFIG_FILE).resolve()
        file_layer = _read_toml(path) if path.exists() else {}
    else:
        path = Path(config_path).expanduser().resolve()
        if not path.exists():
            raise ConfigLoadError(f"config file not found: {path}")
        file_layer = _read_toml(path)

    config = assert_valid_config(merge_config(default_config(), file_layer))
    env_layer = _env_layer(os.environ if environ is None else environ)
    config = merge_config(config, env_layer)
    config = merge_config(config, _cli_layer(cli_overrides or {}))
    config = assert_valid_config(config)
    return normalize_paths(config, base_dir=path.parent)


def normalize_paths(config: Mapping[str, object], *, base_dir: Path) -> dict[str, Any]:
    """Anchor relative path fields at ``base_dir``; absolute paths are only normalized."""

    resolved = merge_config({}, config)
    for section, key in PATH_FIELDS:
        block = resolved.get(section)
        if isinstance(block, dict) and isinstance(block.get(key), str):
            block[key] = _anchor(block[key], base_dir)
    return resolved


def effective_config(config: Mapping[str, object]) -> dict[str, Any]:
    return redact_config(config)


def dump_effective_config(config: Mapping[str, object]) -> str:
    """Redacted config as sorted, indented JSON (what ``docgen config`` prints)."""

    return json.dumps(effective_config(config), sort_keys=True, indent=2, ensure_ascii=False)


def env_variable_names() -> tuple[str, ...]:
    return tuple(sorted(_env_name(field) for field in field_kinds()))


def _env_name(field: FieldKey) -> str:
    section, key = field
    return f"{ENV_PREFIX}{section.upper()}_{key.upper()}"


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as handle:
            return tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigLoadError(f"invalid TOML in {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigLoadError(f"unable to read config file {path}: {exc}") from exc


def _env_layer(environ: Mapping[str, str]) -> dict[str, dict[str, object]]:
    layer: dict[str, dict[str, object]] = {}
    for field, kind in field_kinds().items():
        name = _env_name(field)
        raw = environ.get(name)
        if raw is None:
            continue
        section, key = field
        layer.setdefault(section, {})[key] = _coerce(raw.strip(), kind, name, field)
    return layer


def _coerce(value: str, kind: FieldKind, name: str, field: FieldKey) -> object:
    target = ".".join(field)
    if kind == "int":
        try:
            return int(value)
        except ValueError as exc:
            raise ConfigLoadError(f"{name} -> {target} must be an integer") from exc
    if kind == "float":
        try:
            return float(value)
        except ValueError as exc:
            raise ConfigLoadError(f"{name} -> {target} must be a number") from exc
    if kind == "bool":
        lowered = value.lower()
        if lowered in _TRUTHY:
            return True
        if lowered in _FALSY:
            return False
        raise ConfigLoadError(
            f"{name} -> {target} must be a boolean (true/false/1/0/yes/no/on/off)"
        )
    return value


def _cli_layer(overrides: Mapping[str, object]) -> dict[str, dict[str, object]]:
    layer: dict[str, dict[str, object]] = {}
    for dotted in sorted(overrides):
        section, _, key = dotted.partition(".")
        if not section or not key or "." in key:
            raise ConfigLoadError(f"CLI override {dotted!r} must look like 'section.key'")
        layer.setdefault(section, {})[key] = overrides[dotted]
    return layer


def _anchor(raw: str, base_dir: Path) -> str:
    candidate = Path(os.path.expandvars(raw)).expanduser()
    if not candidate.is_absolute():
        candidate = base_dir / candidate
    return Path(os.path.normpath(candidate)).as_posix()


__all__ = [
    "ConfigLoadError",
    "DEFAULT_CONFIG_FILE",
    "ENV_PREFIX",
    "dump_effective_config",
    "effective_config",
    "env_variable_names",
    "load_config",
    "normalize_paths",
]
