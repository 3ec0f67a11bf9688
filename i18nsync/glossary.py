"""Glossary loading and per-language precedence resolution.

The glossary is a CSV table kept next to the locale files. Its first column
holds the key and every other column is a language code, for example::

    key,en,fr
    btn.save,Save,Enregistrer

A non-empty cell pins the translation of that key for that language: the
text is written to the locale file as is and the key is never sent to the
translation provider for that language.
"""

from __future__ import annotations

import csv
import logging
import pathlib
from types import MappingProxyType
from typing import Dict, Mapping, Set

from .errors import GlossaryError
from .structures import GlossaryTable, GroupedGlossary

logger = logging.getLogger(__name__)

GLOSSARY_FILENAME = "glossaries.csv"


def load_glossary(path: pathlib.Path) -> GlossaryTable:
    """Read the glossary table; a missing file yields an empty table."""

    if not path.exists():
        logger.debug("no glossary at %s", path)
        return MappingProxyType({})

    table: Dict[str, Mapping[str, str]] = {}
    try:
        with path.open("r", encoding="utf-8-sig", newline="") as handle:
            reader = csv.reader(handle)
            header = next(reader, None)
            if not header:
                return MappingProxyType({})
            languages = [column.strip() for column in header[1:]]
            for line_number, row in enumerate(reader, start=2):
                if not row or not row[0].strip():
                    continue
                key = row[0].strip()
                if key in table:
                    raise GlossaryError(
                        f"Glossary {path} defines key '{key}' twice (line {line_number})."
                    )
                overrides = {
                    language: cell
                    for language, cell in zip(languages, row[1:])
                    if language and cell.strip()
                }
                table[key] = MappingProxyType(overrides)
    except OSError as exc:
        raise GlossaryError(f"Glossary {path} could not be read: {exc}") from exc
    except csv.Error as exc:
        raise GlossaryError(f"Glossary {path} is not valid CSV: {exc}") from exc

    logger.debug("loaded %d glossary keys from %s", len(table), path)
    return MappingProxyType(table)


def group_glossary(table: GlossaryTable) -> GroupedGlossary:
    """Invert the key-major glossary into a language-major one."""

    grouped: GroupedGlossary = {}
    for key, overrides in table.items():
        for language, text in overrides.items():
            if not text:
                continue
            grouped.setdefault(language, {})[key] = text
    return grouped


def overrides_for(grouped: GroupedGlossary, language: str) -> Dict[str, str]:
    """Return the overrides pinned for ``language`` (possibly empty)."""

    return dict(grouped.get(language, {}))


def pinned_keys(grouped: GroupedGlossary, language: str) -> Set[str]:
    return set(grouped.get(language, {}))
