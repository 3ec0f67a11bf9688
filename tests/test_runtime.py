"""Tests for the runtime lookup helper used by rewritten code."""

import json

import pytest

from i18nsync import runtime
from i18nsync.analyzer import analyze_source, generate_key
from i18nsync.runtime import Catalog, render


@pytest.fixture(autouse=True)
def reset_catalog():
    previous = runtime._active
    yield
    runtime._active = previous


class TestRender:
    """Tests for positional placeholder substitution."""

    def test_without_arguments_text_is_verbatim(self):
        assert render("Use {name} later", ()) == "Use {name} later"

    def test_positional_substitution(self):
        assert render("Hello, {name} and {other.attr}", ("Ana", "Bo")) == "Hello, Ana and Bo"

    def test_conversion_and_format_spec(self):
        assert render("Total {price:.2f} for {user!r}", (3.5, "Ana")) == "Total 3.50 for 'Ana'"

    def test_escaped_braces(self):
        assert render("Use {{braces}} for {name}", ("x",)) == "Use {braces} for x"

    def test_translated_placeholder_order(self):
        assert render("{name}, bonjour", ("Ana",)) == "Ana, bonjour"

    def test_missing_argument_keeps_placeholder(self):
        assert render("{a} and {b}", ("x",)) == "x and {b}"


class TestCatalog:
    """Tests for catalog lookup and fallbacks."""

    def test_lookup_falls_back_to_origin_then_key(self):
        catalog = Catalog({"a": "Bonjour"}, {"a": "Hello", "b": "World"})
        assert catalog.lookup("a") == "Bonjour"
        assert catalog.lookup("b") == "World"
        assert catalog.lookup("c") == "c"

    def test_load_from_locale_files(self, tmp_path):
        (tmp_path / "fr.json").write_text(json.dumps({"a": "Bonjour"}), encoding="utf-8")
        (tmp_path / "en.json").write_text(json.dumps({"b": "World"}), encoding="utf-8")
        catalog = Catalog.load(tmp_path, "fr", "en")
        assert catalog.translate("a") == "Bonjour"
        assert catalog.translate("b") == "World"


class TestRewrittenCodeRoundTrip:
    """Runs rewritten code against a configured catalog."""

    def test_interpolated_string_renders_translation(self, tmp_path):
        source = 'def greet(name):\n    return f"Hello, {name}"\n'
        result = analyze_source(source)
        key = generate_key("Hello, {name}")
        (tmp_path / "fr.json").write_text(
            json.dumps({key: "Bonjour, {name} !"}), encoding="utf-8"
        )
        (tmp_path / "en.json").write_text(
            json.dumps({key: "Hello, {name}"}), encoding="utf-8"
        )

        namespace = {}
        exec(compile(result.rewritten_text, "greet.py", "exec"), namespace)

        runtime.configure(tmp_path, "fr", "en")
        assert namespace["greet"]("Ana") == "Bonjour, Ana !"

        runtime.configure(tmp_path, "de", "en")
        assert namespace["greet"]("Ana") == "Hello, Ana"


class TestReorderedPlaceholders:
    """Tests for translations that move placeholders around."""

    def test_values_follow_placeholder_names(self):
        catalog = Catalog(
            {"k": "{count} fichiers de {user}"},
            {"k": "{user} has {count} files"},
        )
        assert catalog.translate("k", "Ana", 3) == "3 fichiers de Ana"

    def test_format_spec_travels_with_its_value(self):
        text = render(
            "{price:.2f} pour {item}", ("Tea", 3.5), origin="{item} costs {price:.2f}"
        )
        assert text == "3.50 pour Tea"

    def test_repeated_origin_names_fill_by_position(self):
        assert render("{x} ou {x}", ("a", "b"), origin="{x} or {x}") == "a ou b"

    def test_unknown_names_fill_by_position(self):
        assert render("{b} then {c}", ("1", "2"), origin="{a} then {b}") == "1 then 2"


class TestCatalogFiles:
    """Tests for malformed locale files."""

    def test_invalid_json_gives_empty_catalog(self, tmp_path):
        (tmp_path / "fr.json").write_text("{not json", encoding="utf-8")
        (tmp_path / "en.json").write_text(json.dumps({"a": "Hello"}), encoding="utf-8")

        catalog = runtime.configure(tmp_path, "fr", "en")

        assert catalog.messages == {}
        assert runtime.t("a") == "Hello"

    def test_non_object_root_gives_empty_catalog(self, tmp_path):
        (tmp_path / "fr.json").write_text("[1, 2]", encoding="utf-8")
        assert Catalog.load(tmp_path, "fr").messages == {}
