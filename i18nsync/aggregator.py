"""Merges per-file extraction results into one map for the run."""

from __future__ import annotations

from typing import Dict, Iterable, List

from .errors import DuplicateKeyConflict
from .structures import ExtractedEntry, ExtractionMap


class ExtractionAggregator:
    """Folds extracted entries into a key to origin-text map.

    A key seen again with the same text collapses into one entry. A key seen
    with a different text raises :class:`DuplicateKeyConflict`, because
    keeping either value would corrupt the locale files for the other string.
    """

    def __init__(self) -> None:
        self._texts: Dict[str, str] = {}
        self._locations: Dict[str, List[str]] = {}

    def __len__(self) -> int:
        return len(self._texts)

    def __contains__(self, key: object) -> bool:
        return key in self._texts

    def add_entry(self, entry: ExtractedEntry) -> None:
        self._fold(entry.key, entry.text, [entry.location])

    def add(self, entries: Iterable[ExtractedEntry]) -> None:
        for entry in entries:
            self.add_entry(entry)

    def _fold(self, key: str, text: str, locations: List[str]) -> None:
        existing = self._texts.get(key)
        if existing is None:
            self._texts[key] = text
            self._locations[key] = list(locations)
            return
        if existing != text:
            raise DuplicateKeyConflict(
                key,
                existing,
                text,
                locations=[*self._locations.get(key, []), *locations],
            )
        self._locations[key].extend(locations)

    def locations(self, key: str) -> List[str]:
        return list(self._locations.get(key, []))

    def extraction_map(self) -> ExtractionMap:
        return dict(self._texts)
