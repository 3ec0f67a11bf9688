"""Script detection and batching utilities."""

from __future__ import annotations

import re
from typing import Dict, List, Mapping

CJK_LANGUAGES = {"zh", "ja", "ko"}

LETTER_PATTERN = re.compile(r"[^\W\d_]")
# Lowercase text without whitespace that reads like an identifier, module
# path, file name, URL, encoding or format code.
MACHINE_TOKEN_PATTERN = re.compile(r"^[a-z0-9_.\-/:%*?#@=+~\[\]{}<>|\\]+$")


def contains_cjk(text: str) -> bool:
    """Detect whether the text contains CJK characters."""

    for char in text:
        code = ord(char)
        if (
            0x4E00 <= code <= 0x9FFF  # CJK Unified Ideographs
            or 0x3400 <= code <= 0x4DBF  # Extension A
            or 0x3040 <= code <= 0x30FF  # Hiragana/Katakana
            or 0xAC00 <= code <= 0xD7AF  # Hangul syllables
        ):
            return True
    return False


def looks_like_machine_token(text: str) -> bool:
    """Return True for strings like ``utf-8``, ``__main__`` or ``app.views``."""

    return bool(MACHINE_TOKEN_PATTERN.match(text))


def has_origin_script(text: str, language: str) -> bool:
    """Decide whether ``text`` contains writing in the origin language's script."""

    primary = language.replace("_", "-").split("-", 1)[0].lower()
    if primary in CJK_LANGUAGES:
        return contains_cjk(text)
    return bool(LETTER_PATTERN.search(text))


class BatchBuilder:
    """Splits key/text entries into chunks within a character budget.

    Entries are never split: one entry larger than the budget forms a chunk
    of its own.
    """

    def __init__(self, budget: int) -> None:
        self.budget = max(1, budget)

    def build(self, entries: Mapping[str, str]) -> List[Dict[str, str]]:
        chunks: List[Dict[str, str]] = []
        current: Dict[str, str] = {}
        running_total = 0

        for key, text in entries.items():
            size = len(text)
            if size > self.budget:
                if current:
                    chunks.append(current)
                    current = {}
                    running_total = 0
                chunks.append({key: text})
                continue

            if running_total + size > self.budget and current:
                chunks.append(current)
                current = {}
                running_total = 0

            current[key] = text
            running_total += size

        if current:
            chunks.append(current)

        return chunks
