"""Tests for the framework descriptor table."""

from __future__ import annotations

import pytest

from nodeyard.frameworks import (
    FRAMEWORKS,
    CodeLanguage,
    EnvironmentKind,
    Framework,
    needs_environment,
    parse_framework,
    render_template,
    spec_for,
)


def test_every_framework_has_a_spec() -> None:
    assert set(FRAMEWORKS) == set(Framework)


@pytest.mark.parametrize("framework", list(Framework))
def test_entry_path_is_relative_and_language_matches(framework: Framework) -> None:
    spec = spec_for(framework)
    assert not spec.entry_path.startswith("/")
    assert ".." not in spec.entry_path
    assert CodeLanguage.from_path(spec.entry_path) is spec.language


@pytest.mark.parametrize("language", list(CodeLanguage))
def test_file_extension_maps_back_to_language(language: CodeLanguage) -> None:
    assert CodeLanguage.from_path(f"file.{language.file_extension}") is language


def test_file_extension_examples() -> None:
    assert CodeLanguage.PYTHON.file_extension == "py"
    assert CodeLanguage.TERRAFORM.file_extension == "tf"
    assert CodeLanguage.TEXT.file_extension == "txt"


@pytest.mark.parametrize("framework", list(Framework))
def test_every_template_renders(framework: Framework) -> None:
    content = render_template(framework, "Shop Front")
    assert content.strip()
    for placeholder in ("$name", "$ident", "$slug", "${ident}"):
        assert placeholder not in content


@pytest.mark.parametrize(
    "framework,kind",
    [
        (Framework.DJANGO, EnvironmentKind.PYTHON),
        (Framework.FASTAPI, EnvironmentKind.PYTHON),
        (Framework.PUREPY, EnvironmentKind.PYTHON),
        (Framework.REACT, EnvironmentKind.NODE),
        (Framework.NESTJS, EnvironmentKind.NODE),
        (Framework.RUST, None),
        (Framework.SWIFT, None),
        (Framework.DOCKER, None),
    ],
)
def test_environment_kind(framework: Framework, kind: EnvironmentKind | None) -> None:
    assert spec_for(framework).environment is kind
    assert needs_environment(framework) is (kind is not None)


def test_render_template_substitutes_name() -> None:
    assert render_template(Framework.SWIFT, "Hello App") == 'import Foundation\n\nprint("Hello, Hello App!")\n'


def test_render_template_keeps_literal_dollars() -> None:
    # Node names containing "$" are inserted verbatim, never re-expanded.
    content = render_template(Framework.FASTAPI, "$HOME")
    assert 'title="$HOME"' in content


@pytest.mark.parametrize("value", ["fastapi", "FastAPI", "  FASTAPI  "])
def test_parse_framework_accepts_value_or_label(value: str) -> None:
    assert parse_framework(value) is Framework.FASTAPI


def test_parse_framework_by_label_with_punctuation() -> None:
    assert parse_framework("Next.js") is Framework.NEXTJS


def test_parse_framework_unknown_lists_choices() -> None:
    with pytest.raises(ValueError, match="Choose one of"):
        parse_framework("cobol")
