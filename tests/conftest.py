"""Shared fixtures for the i18nsync test suite."""

from __future__ import annotations

import pathlib
from types import SimpleNamespace
from typing import Callable, Dict, List, Optional, Set

import pytest

from i18nsync.configuration import RunConfig
from i18nsync.errors import TranslationProviderError
from i18nsync.providers import TranslationProvider
from i18nsync.structures import TranslationBatch


class FakeProvider(TranslationProvider):
    """Records every batch and answers with ``[<lang>] <text>``."""

    name = "fake"

    def __init__(
        self,
        *,
        fail_languages: Optional[Set[str]] = None,
        failures_before_success: int = 0,
        drop_keys: Optional[Set[str]] = None,
    ) -> None:
        self.batches: List[TranslationBatch] = []
        self.fail_languages = fail_languages or set()
        self.failures_left = failures_before_success
        self.drop_keys = drop_keys or set()

    def translate(self, batch: TranslationBatch) -> Dict[str, str]:
        self.batches.append(batch)
        if batch.target_language in self.fail_languages:
            raise TranslationProviderError(f"{batch.target_language} is unavailable")
        if self.failures_left > 0:
            self.failures_left -= 1
            raise TranslationProviderError("temporary outage")
        return {
            key: f"[{batch.target_language}] {text}"
            for key, text in batch.entries.items()
            if key not in self.drop_keys
        }

    def requested_keys(self, language: str) -> Set[str]:
        keys: Set[str] = set()
        for batch in self.batches:
            if batch.target_language == language:
                keys.update(batch.entries)
        return keys


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def make_config(tmp_path: pathlib.Path) -> Callable[..., RunConfig]:
    def factory(**overrides) -> RunConfig:
        values = {
            "locales_dir": tmp_path / "locales",
            "origin_language": "en",
            "target_languages": ("fr",),
            "base_dir": tmp_path,
        }
        values.update(overrides)
        config = RunConfig(**values)
        config.validate()
        return config

    return factory


@pytest.fixture
def make_settings() -> Callable[..., SimpleNamespace]:
    def factory(**overrides) -> SimpleNamespace:
        values = {
            "LLM_PROVIDER": "openai",
            "AZURE_OPENAI_API_KEY": None,
            "AZURE_OPENAI_ENDPOINT": None,
            "AZURE_OPENAI_API_VERSION": None,
            "AZURE_OPENAI_DEPLOYMENT_NAME": None,
            "OPENAI_API_KEY": None,
            "I18NSYNC_PROVIDER": "openai",
            "I18NSYNC_MODEL": None,
            "I18NSYNC_PROVIDER_DEBUG": False,
            "I18NSYNC_LOCALES_DIR": "locales",
            "I18NSYNC_ORIGIN_LANG": "en",
            "I18NSYNC_TARGET_LANGS": "fr,de",
            "I18NSYNC_ENTRY": "**/*.py",
            "I18NSYNC_EXCLUDE": "**/.venv/**",
            "I18NSYNC_HELPER_MODULE": "i18nsync.runtime",
            "I18NSYNC_HELPER_NAME": "t",
            "I18NSYNC_KEY_PREFIX": "",
            "I18NSYNC_TEXT_PATTERN": None,
            "I18NSYNC_IGNORED_CALLS": "",
            "I18NSYNC_TARGET_VERSION": None,
        }
        values.update(overrides)
        return SimpleNamespace(**values)

    return factory
