"""Tests for glossary loading and grouping."""

import pytest

from i18nsync.errors import GlossaryError
from i18nsync.glossary import group_glossary, load_glossary, overrides_for, pinned_keys


class TestLoadGlossary:
    """Tests for reading the CSV glossary."""

    def test_reads_key_and_language_columns(self, tmp_path):
        path = tmp_path / "glossaries.csv"
        path.write_text(
            "key,en,fr,de\n"
            "btn.save,Save,Enregistrer,\n"
            "app.name,Acme,,Acme GmbH\n",
            encoding="utf-8",
        )
        table = load_glossary(path)
        assert dict(table["btn.save"]) == {"en": "Save", "fr": "Enregistrer"}
        assert dict(table["app.name"]) == {"en": "Acme", "de": "Acme GmbH"}

    def test_missing_file_is_empty(self, tmp_path):
        assert dict(load_glossary(tmp_path / "glossaries.csv")) == {}

    def test_byte_order_mark_is_ignored(self, tmp_path):
        path = tmp_path / "glossaries.csv"
        path.write_text("\ufeffkey,fr\nbtn.save,Enregistrer\n", encoding="utf-8")
        assert dict(load_glossary(path)["btn.save"]) == {"fr": "Enregistrer"}

    def test_blank_rows_are_skipped(self, tmp_path):
        path = tmp_path / "glossaries.csv"
        path.write_text("key,fr\n\n,orphan\nbtn.save,Enregistrer\n", encoding="utf-8")
        assert list(load_glossary(path)) == ["btn.save"]

    def test_duplicate_key_is_an_error(self, tmp_path):
        path = tmp_path / "glossaries.csv"
        path.write_text("key,fr\nbtn.save,A\nbtn.save,B\n", encoding="utf-8")
        with pytest.raises(GlossaryError):
            load_glossary(path)

    def test_table_is_read_only(self, tmp_path):
        path = tmp_path / "glossaries.csv"
        path.write_text("key,fr\nbtn.save,Enregistrer\n", encoding="utf-8")
        table = load_glossary(path)
        with pytest.raises(TypeError):
            table["other"] = {}


class TestGroupGlossary:
    """Tests for the language-major regrouping."""

    def test_inverts_table(self):
        table = {
            "btn.save": {"fr": "Enregistrer", "de": "Speichern"},
            "btn.open": {"fr": "Ouvrir"},
        }
        assert group_glossary(table) == {
            "fr": {"btn.save": "Enregistrer", "btn.open": "Ouvrir"},
            "de": {"btn.save": "Speichern"},
        }

    def test_empty_table(self):
        assert group_glossary({}) == {}
        assert overrides_for({}, "fr") == {}
        assert pinned_keys({}, "fr") == set()

    def test_empty_cells_are_not_pinned(self):
        grouped = group_glossary({"btn.save": {"fr": "", "de": "Speichern"}})
        assert pinned_keys(grouped, "fr") == set()
        assert pinned_keys(grouped, "de") == {"btn.save"}

    def test_grouping_does_not_mutate_input(self):
        table = {"btn.save": {"fr": "Enregistrer"}}
        grouped = group_glossary(table)
        grouped["fr"]["btn.save"] = "Changed"
        assert table == {"btn.save": {"fr": "Enregistrer"}}

    def test_overrides_for_returns_copy(self):
        grouped = {"fr": {"btn.save": "Enregistrer"}}
        overrides = overrides_for(grouped, "fr")
        overrides["x"] = "y"
        assert grouped == {"fr": {"btn.save": "Enregistrer"}}
