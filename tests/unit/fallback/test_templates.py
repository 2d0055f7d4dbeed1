"""Unit tests for the YAML-backed fallback template library."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from docgen_orchestrator.constants import UNRESOLVED_PLACEHOLDER
from docgen_orchestrator.domain.models import SectionKind
from docgen_orchestrator.fallback.templates import (
    GENERAL_TEMPLATE_ID,
    FallbackTemplate,
    load_template_library,
    parse_template_library,
)


def _payload(**overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "schema_version": 1,
        "templates": [
            {
                "id": GENERAL_TEMPLATE_ID,
                "section_kind": "general_product_description",
                "text": "# {project_name}\n",
            }
        ],
        "defaults": {"project_name": "Unity Project"},
        "suggestions": {"general": ["Write tests"]},
    }
    payload.update(overrides)
    return payload


def test_packaged_library_covers_every_section_kind() -> None:
    library = load_template_library()

    covered = {template.section_kind for template in library.templates.values()}
    assert covered == set(SectionKind)
    assert library.template_for(None).id == GENERAL_TEMPLATE_ID
    assert library.defaults["project_name"] == "Unity Project"
    assert library.suggestions_for("general")


def test_variable_names_are_derived_from_template_text() -> None:
    template = FallbackTemplate(
        id="t", section_kind=SectionKind.DATA_MODEL, template_text="{a} and {b_c} then {a}"
    )

    assert template.variable_names == frozenset({"a", "b_c"})


def test_render_replaces_unknown_placeholders_with_visible_stub() -> None:
    template = FallbackTemplate(
        id="t",
        section_kind=SectionKind.DATA_MODEL,
        template_text="Name: {name}\nOwner: {owner}\nOdd: {not valid}",
    )

    rendered = template.render({"name": "Acme"})

    assert rendered == (
        f"Name: Acme\nOwner: {UNRESOLVED_PLACEHOLDER}\nOdd: {UNRESOLVED_PLACEHOLDER}"
    )


def test_render_does_not_rescan_substituted_values() -> None:
    template = FallbackTemplate(
        id="t", section_kind=SectionKind.DATA_MODEL, template_text="{name} / {other}"
    )

    rendered = template.render({"name": "{other}", "other": "x"})

    assert rendered == "(other) / x"


def test_suggestions_for_unknown_key_falls_back_to_general() -> None:
    library = parse_template_library(_payload())

    assert library.suggestions_for("security") == ("Write tests",)


def test_template_for_unmapped_section_uses_general_template() -> None:
    library = parse_template_library(_payload())

    assert library.template_for(SectionKind.WORK_TICKETS).id == GENERAL_TEMPLATE_ID


def test_load_from_custom_path(tmp_path: Path) -> None:
    path = tmp_path / "templates.yaml"
    path.write_text(
        "schema_version: 1\n"
        "templates:\n"
        "  - id: general_description\n"
        "    section_kind: general_product_description\n"
        "    text: 'Hello {project_name}'\n",
        encoding="utf-8",
    )

    library = load_template_library(path)

    assert library.template_for(None).render({"project_name": "Acme"}) == "Hello Acme"
    assert dict(library.defaults) == {}


def test_invalid_yaml_reports_location(tmp_path: Path) -> None:
    path = tmp_path / "broken.yaml"
    path.write_text("templates: [unclosed\n", encoding="utf-8")

    with pytest.raises(ValueError, match="invalid YAML"):
        load_template_library(path)


@pytest.mark.parametrize(
    ("overrides", "message"),
    [
        ({"schema_version": 2}, "unsupported schema_version"),
        ({"templates": []}, "non-empty list"),
        (
            {
                "templates": [
                    {"id": "x", "section_kind": "data_model", "text": "a"},
                    {"id": "x", "section_kind": "data_model", "text": "b"},
                ]
            },
            "duplicate template id",
        ),
        (
            {"templates": [{"id": "x", "section_kind": "poetry", "text": "a"}]},
            "unknown section kind",
        ),
        (
            {"templates": [{"id": "x", "section_kind": "data_model", "text": "a"}]},
            "missing required template",
        ),
        ({"suggestions": {"general": "not a list"}}, "expected a list of strings"),
    ],
)
def test_parse_rejects_malformed_payloads(overrides: dict[str, Any], message: str) -> None:
    with pytest.raises(ValueError, match=message):
        parse_template_library(_payload(**overrides))
