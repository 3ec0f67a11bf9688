"""Persistence and merging of per-language locale files."""

from __future__ import annotations

import json
import logging
import pathlib
import threading
from typing import Dict, Mapping, Optional

from .errors import PersistenceError
from .fileio import atomic_write

logger = logging.getLogger(__name__)


def build_locale_filename(locales_dir: pathlib.Path, language: str) -> pathlib.Path:
    return locales_dir / f"{language}.json"


def merge_locale(
    existing: Mapping[str, str],
    computed: Mapping[str, str],
    overrides: Optional[Mapping[str, str]] = None,
) -> Dict[str, str]:
    """Merge three layers, later wins: existing < computed < glossary overrides.

    Keys only present in ``existing`` are kept; nothing is ever removed.
    """

    merged = dict(existing)
    merged.update(computed)
    if overrides:
        merged.update(overrides)
    return merged


def dump_locale(mapping: Mapping[str, str]) -> str:
    return json.dumps(dict(mapping), ensure_ascii=False, indent=2, sort_keys=True) + "\n"


class LocaleStore:
    """Reads, merges and atomically writes the locale file of each language.

    One lock per locale path guards the read-merge-write sequence, so two
    merges into the same file never interleave.
    """

    _locks: Dict[pathlib.Path, threading.Lock] = {}
    _locks_guard = threading.Lock()

    def __init__(self, locales_dir: pathlib.Path) -> None:
        self.locales_dir = pathlib.Path(locales_dir)

    def locale_path(self, language: str) -> pathlib.Path:
        return build_locale_filename(self.locales_dir, language)

    @classmethod
    def _lock_for(cls, path: pathlib.Path) -> threading.Lock:
        key = path.resolve()
        with cls._locks_guard:
            lock = cls._locks.get(key)
            if lock is None:
                lock = cls._locks[key] = threading.Lock()
            return lock

    def read(self, language: str) -> Dict[str, str]:
        path = self.locale_path(language)
        if not path.exists():
            return {}
        try:
            with path.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
        except OSError as exc:
            raise PersistenceError(str(path), f"could not be read ({exc})") from exc
        except json.JSONDecodeError as exc:
            raise PersistenceError(str(path), f"is not valid JSON ({exc})") from exc
        if not isinstance(data, dict):
            raise PersistenceError(str(path), "expected a JSON object at the root")
        return {str(key): value for key, value in data.items()}

    def write(self, language: str, mapping: Mapping[str, str]) -> pathlib.Path:
        path = self.locale_path(language)
        try:
            atomic_write(path, dump_locale(mapping))
        except OSError as exc:
            raise PersistenceError(str(path), f"could not be written ({exc})") from exc
        return path

    def synchronize(
        self,
        language: str,
        computed: Mapping[str, str],
        overrides: Optional[Mapping[str, str]] = None,
        *,
        dry_run: bool = False,
    ) -> Dict[str, str]:
        """Merge ``computed`` and ``overrides`` into the language's locale file."""

        path = self.locale_path(language)
        with self._lock_for(path):
            existing = self.read(language)
            merged = merge_locale(existing, computed, overrides)
            if dry_run:
                logger.debug("dry run: not writing %s", path)
            elif merged != existing or not path.exists():
                self.write(language, merged)
                logger.debug(
                    "wrote %s (%d keys, %d new)",
                    path,
                    len(merged),
                    len(merged.keys() - existing.keys()),
                )
        return merged
