"""
docgen-orchestrator — offline template table

File: src/docgen_orchestrator/fallback/templates.py
Last updated: 2026-02-13

Purpose
- Load the static fallback templates, variable defaults and offline suggestion lists
  from YAML and render templates without leaking placeholder syntax.

Functional requirements
- Placeholder names are derived from the template text, not declared separately.
- Rendering replaces every placeholder; unknown names become a visible stub.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path
from types import MappingProxyType
from typing import Final, cast

import yaml

from docgen_orchestrator.constants import UNRESOLVED_PLACEHOLDER
from docgen_orchestrator.domain.models import SectionKind

GENERAL_TEMPLATE_ID: Final[str] = "general_description"
GENERAL_SUGGESTIONS_KEY: Final[str] = "general"

_PLACEHOLDER_NAME_RE: Final[re.Pattern[str]] = re.compile(r"\{(\w+)\}")
_ANY_PLACEHOLDER_RE: Final[re.Pattern[str]] = re.compile(r"\{[^{}]*\}")
_SUPPORTED_SCHEMA_VERSION: Final[int] = 1


@dataclass(frozen=True, slots=True)
class FallbackTemplate:
    id: str
    section_kind: SectionKind
    template_text: str
    variable_names: frozenset[str] = field(init=False)

    def __post_init__(self) -> None:
        if not self.id.strip():
            raise ValueError("template id must not be empty")
        object.__setattr__(
            self, "variable_names", frozenset(_PLACEHOLDER_NAME_RE.findall(self.template_text))
        )

    def render(self, variables: Mapping[str, str]) -> str:
        """Substitute placeholders in one pass; substituted values are not rescanned."""

        def _substitute(match: re.Match[str]) -> str:
            value = variables.get(match.group(1))
            if value is None:
                return UNRESOLVED_PLACEHOLDER
            return _neutralize_braces(value)

        rendered = _PLACEHOLDER_NAME_RE.sub(_substitute, self.template_text)
        return _ANY_PLACEHOLDER_RE.sub(UNRESOLVED_PLACEHOLDER, rendered)


@dataclass(frozen=True, slots=True)
class TemplateLibrary:
    templates: Mapping[str, FallbackTemplate]
    defaults: Mapping[str, str]
    suggestions: Mapping[str, tuple[str, ...]]

    def template_for(self, section_kind: SectionKind | None) -> FallbackTemplate:
        """Best template for ``section_kind``; the general description otherwise."""

        if section_kind is not None:
            for template in self.templates.values():
                if template.section_kind is section_kind:
                    return template
        return self.templates[GENERAL_TEMPLATE_ID]

    def suggestions_for(self, key: str) -> tuple[str, ...]:
        found = self.suggestions.get(key)
        if found is None:
            return self.suggestions.get(GENERAL_SUGGESTIONS_KEY, ())
        return found


def _neutralize_braces(value: str) -> str:
    return value.replace("{", "(").replace("}", ")")


def load_template_library(path: Path | None = None) -> TemplateLibrary:
    """Load templates from ``path`` or from the packaged ``templates.yaml``."""

    if path is None:
        source = resources.files("docgen_orchestrator.fallback").joinpath("templates.yaml")
        text = source.read_text(encoding="utf-8")
        location = "templates.yaml"
    else:
        text = path.read_text(encoding="utf-8")
        location = str(path)

    try:
        loaded = cast("object", yaml.safe_load(text))
    except yaml.YAMLError as exc:
        raise ValueError(f"{location}: invalid YAML ({exc})") from exc
    return parse_template_library(loaded, location=location)


def parse_template_library(payload: object, *, location: str = "templates") -> TemplateLibrary:
    if not isinstance(payload, Mapping):
        raise ValueError(f"{location}: expected a top-level mapping")
    version = payload.get("schema_version")
    if version != _SUPPORTED_SCHEMA_VERSION:
        raise ValueError(f"{location}: unsupported schema_version {version!r}")

    raw_templates = payload.get("templates")
    if not isinstance(raw_templates, list) or not raw_templates:
        raise ValueError(f"{location}.templates: expected a non-empty list")

    templates: dict[str, FallbackTemplate] = {}
    for index, item in enumerate(raw_templates):
        where = f"{location}.templates[{index}]"
        if not isinstance(item, Mapping):
            raise ValueError(f"{where}: expected a mapping")
        template_id = item.get("id")
        text = item.get("text")
        kind = item.get("section_kind")
        if not isinstance(template_id, str) or not isinstance(text, str):
            raise ValueError(f"{where}: id and text must be strings")
        try:
            section_kind = SectionKind(str(kind))
        except ValueError as exc:
            raise ValueError(f"{where}.section_kind: unknown section kind {kind!r}") from exc
        if template_id in templates:
            raise ValueError(f"{where}: duplicate template id {template_id!r}")
        templates[template_id] = FallbackTemplate(
            id=template_id, section_kind=section_kind, template_text=text.rstrip("\n")
        )
    if GENERAL_TEMPLATE_ID not in templates:
        raise ValueError(f"{location}: missing required template {GENERAL_TEMPLATE_ID!r}")

    defaults = _string_mapping(payload.get("defaults", {}), f"{location}.defaults")

    raw_suggestions = payload.get("suggestions", {})
    if not isinstance(raw_suggestions, Mapping):
        raise ValueError(f"{location}.suggestions: expected a mapping")
    suggestions: dict[str, tuple[str, ...]] = {}
    for key, values in raw_suggestions.items():
        if not isinstance(values, list) or not all(isinstance(value, str) for value in values):
            raise ValueError(f"{location}.suggestions.{key}: expected a list of strings")
        suggestions[str(key)] = tuple(values)

    return TemplateLibrary(
        templates=MappingProxyType(templates),
        defaults=MappingProxyType(defaults),
        suggestions=MappingProxyType(suggestions),
    )


def _string_mapping(value: object, location: str) -> dict[str, str]:
    if not isinstance(value, Mapping):
        raise ValueError(f"{location}: expected a mapping")
    return {str(key): str(item) for key, item in value.items()}


__all__ = [
    "GENERAL_TEMPLATE_ID",
    "FallbackTemplate",
    "TemplateLibrary",
    "load_template_library",
    "parse_template_library",
]
