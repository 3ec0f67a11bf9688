"""End-to-end tests for a scan run."""

import json

import pytest

from i18nsync import analyzer
from i18nsync.analyzer import generate_key
from i18nsync.errors import (
    DuplicateKeyConflict,
    FormattingError,
    TranslationProviderConfigurationError,
)
from i18nsync.formatting import BlackFormatter, PassthroughFormatter
from i18nsync.runner import ScanRunner

from conftest import FakeProvider

SAVE_KEY = generate_key("Save")
HELLO_KEY = generate_key("Hello, {name}")


@pytest.fixture
def project(tmp_path):
    (tmp_path / "app").mkdir()
    (tmp_path / "app" / "views.py").write_text(
        'def greet(name):\n    return f"Hello, {name}"\n\nSAVE = "Save"\n',
        encoding="utf-8",
    )
    (tmp_path / "app" / "menu.py").write_text('items = ["Save"]\n', encoding="utf-8")
    (tmp_path / "app" / "constants.py").write_text('MODE = "r"\n', encoding="utf-8")
    return tmp_path


def _runner(config, provider=None):
    return ScanRunner(
        config,
        provider=provider or FakeProvider(),
        formatter=PassthroughFormatter(),
        orchestrator_options={"sleep": lambda seconds: None},
    )


def _read(path):
    return json.loads(path.read_text(encoding="utf-8"))


class TestScanRunner:
    """Tests for the full extract, rewrite and synchronise pipeline."""

    def test_rewrites_sources_and_writes_locales(self, project, make_config):
        provider = FakeProvider()
        summary = _runner(make_config(), provider).run()

        assert summary.ok
        assert summary.files_scanned == 3
        assert summary.files_changed == 2
        assert summary.entries_extracted == 3
        assert summary.keys_extracted == 2

        views = (project / "app" / "views.py").read_text(encoding="utf-8")
        menu = (project / "app" / "menu.py").read_text(encoding="utf-8")
        assert f"t({HELLO_KEY!r}, name)" in views
        assert f"t({SAVE_KEY!r})" in views
        assert f"t({SAVE_KEY!r})" in menu
        assert (project / "app" / "constants.py").read_text(encoding="utf-8") == 'MODE = "r"\n'

        assert _read(project / "locales" / "en.json") == {
            SAVE_KEY: "Save",
            HELLO_KEY: "Hello, {name}",
        }
        assert _read(project / "locales" / "fr.json") == {
            SAVE_KEY: "[fr] Save",
            HELLO_KEY: "[fr] Hello, {name}",
        }

    def test_second_run_is_a_no_op(self, project, make_config):
        _runner(make_config()).run()
        before = (project / "app" / "views.py").read_text(encoding="utf-8")

        provider = FakeProvider()
        summary = _runner(make_config(), provider).run()

        assert summary.files_changed == 0
        assert summary.entries_extracted == 0
        assert provider.batches == []
        assert (project / "app" / "views.py").read_text(encoding="utf-8") == before
        assert SAVE_KEY in _read(project / "locales" / "fr.json")

    def test_glossary_override_wins_and_is_not_translated(self, project, make_config):
        (project / "locales").mkdir()
        (project / "locales" / "glossaries.csv").write_text(
            f"key,en,fr\n{SAVE_KEY},,Enregistrer\n", encoding="utf-8"
        )
        provider = FakeProvider()
        summary = _runner(make_config(), provider).run()

        assert SAVE_KEY not in provider.requested_keys("fr")
        french = _read(project / "locales" / "fr.json")
        assert french[SAVE_KEY] == "Enregistrer"
        assert french[HELLO_KEY] == "[fr] Hello, {name}"
        fr_outcome = [item for item in summary.languages if item.language == "fr"][0]
        assert fr_outcome.keys_pinned == 1
        assert fr_outcome.keys_translated == 1

    def test_origin_glossary_overrides_apply(self, project, make_config):
        (project / "locales").mkdir()
        (project / "locales" / "glossaries.csv").write_text(
            f"key,en\n{SAVE_KEY},Save changes\n", encoding="utf-8"
        )
        _runner(make_config()).run()
        assert _read(project / "locales" / "en.json")[SAVE_KEY] == "Save changes"

    def test_existing_locale_keys_are_retained(self, project, make_config):
        (project / "locales").mkdir()
        (project / "locales" / "fr.json").write_text(
            json.dumps({"old.key": "Ancien"}), encoding="utf-8"
        )
        _runner(make_config()).run()
        french = _read(project / "locales" / "fr.json")
        assert french["old.key"] == "Ancien"
        assert SAVE_KEY in french

    def test_skip_existing_keeps_hand_edited_translations(self, project, make_config):
        (project / "locales").mkdir()
        (project / "locales" / "fr.json").write_text(
            json.dumps({SAVE_KEY: "Sauver"}), encoding="utf-8"
        )
        provider = FakeProvider()
        _runner(make_config(skip_existing=True), provider).run()

        assert provider.requested_keys("fr") == {HELLO_KEY}
        assert _read(project / "locales" / "fr.json")[SAVE_KEY] == "Sauver"

    def test_failed_language_is_isolated(self, project, make_config):
        provider = FakeProvider(fail_languages={"de"})
        config = make_config(target_languages=("fr", "de"))
        summary = _runner(config, provider).run()

        assert not summary.ok
        assert summary.failed_languages == ["de"]
        assert not (project / "locales" / "de.json").exists()
        assert (project / "locales" / "fr.json").exists()
        assert (project / "locales" / "en.json").exists()
        assert any("de" in message for message in summary.error_messages)

    def test_unparsable_file_is_skipped(self, project, make_config):
        (project / "app" / "broken.py").write_text('x = "Oops\n', encoding="utf-8")
        summary = _runner(make_config()).run()

        assert summary.failed_files == [str(project / "app" / "broken.py")]
        assert summary.files_changed == 2
        assert (project / "app" / "broken.py").read_text(encoding="utf-8") == 'x = "Oops\n'
        assert SAVE_KEY in _read(project / "locales" / "en.json")

    def test_duplicate_key_conflict_stops_before_any_write(
        self, project, make_config, monkeypatch
    ):
        monkeypatch.setattr(analyzer, "generate_key", lambda text, prefix="": "same.key")
        original = (project / "app" / "views.py").read_text(encoding="utf-8")

        with pytest.raises(DuplicateKeyConflict):
            _runner(make_config()).run()

        assert not (project / "locales").exists()
        assert (project / "app" / "views.py").read_text(encoding="utf-8") == original

    def test_dry_run_writes_nothing(self, project, make_config):
        original = (project / "app" / "views.py").read_text(encoding="utf-8")
        summary = _runner(make_config(dry_run=True)).run()

        assert summary.files_changed == 2
        assert summary.dry_run
        assert (project / "app" / "views.py").read_text(encoding="utf-8") == original
        assert not (project / "locales" / "en.json").exists()

    def test_source_only_mode_leaves_locales_alone(self, project, make_config):
        provider = FakeProvider()
        summary = _runner(make_config(update_locales=False), provider).run(
            [project / "app" / "menu.py"]
        )
        assert summary.files_scanned == 1
        assert summary.files_changed == 1
        assert summary.languages == []
        assert provider.batches == []
        assert not (project / "locales").exists()

    def test_parallel_workers_give_same_result(self, project, make_config):
        summary = _runner(make_config(workers=4, target_languages=("fr", "de"))).run()
        assert summary.ok
        assert _read(project / "locales" / "de.json")[SAVE_KEY] == "[de] Save"

    def test_excluded_files_are_not_scanned(self, project, make_config):
        summary = _runner(make_config(exclude=("app/menu.py",))).run()
        assert summary.files_scanned == 2
        assert "t(" not in (project / "app" / "menu.py").read_text(encoding="utf-8")

    def test_missing_credentials_stop_the_run_before_any_write(self, project, make_config):
        original = (project / "app" / "views.py").read_text(encoding="utf-8")
        runner = ScanRunner(make_config(), formatter=PassthroughFormatter())

        with pytest.raises(TranslationProviderConfigurationError) as excinfo:
            runner.run()

        assert "OPENAI_API_KEY" in str(excinfo.value)
        assert (project / "app" / "views.py").read_text(encoding="utf-8") == original
        assert not (project / "locales").exists()

    def test_source_only_mode_needs_no_credentials(self, project, make_config):
        runner = ScanRunner(
            make_config(update_locales=False), formatter=PassthroughFormatter()
        )
        summary = runner.run()
        assert summary.ok
        assert summary.files_changed == 2
        assert summary.provider_name is None

    def test_formatter_failure_skips_only_that_file(self, project, make_config):
        menu = project / "app" / "menu.py"

        class PickyFormatter:
            def format(self, text):
                if "items" in text:
                    raise FormattingError("unsupported syntax")
                return text

        runner = ScanRunner(
            make_config(),
            provider=FakeProvider(),
            formatter=PickyFormatter(),
            orchestrator_options={"sleep": lambda seconds: None},
        )
        summary = runner.run()

        assert summary.failed_files == [str(menu)]
        assert summary.files_changed == 1
        assert menu.read_text(encoding="utf-8") == 'items = ["Save"]\n'
        assert f"t({HELLO_KEY!r}, name)" in (project / "app" / "views.py").read_text(
            encoding="utf-8"
        )
        assert any("unsupported syntax" in message for message in summary.error_messages)

    def test_black_formatted_output_is_stable_on_rerun(self, project, make_config):
        runner = ScanRunner(
            make_config(),
            provider=FakeProvider(),
            formatter=BlackFormatter(),
            orchestrator_options={"sleep": lambda seconds: None},
        )
        runner.run()
        views = (project / "app" / "views.py").read_text(encoding="utf-8")
        assert f't("{HELLO_KEY}", name)' in views

        summary = runner.run()
        assert summary.files_changed == 0
        assert summary.entries_extracted == 0
        assert (project / "app" / "views.py").read_text(encoding="utf-8") == views
