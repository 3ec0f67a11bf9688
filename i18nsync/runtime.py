"""Runtime lookup helper imported by rewritten source files.

Rewritten code calls ``t("<key>")`` for plain strings and
``t("<key>", value, ...)`` for f-strings, passing the interpolated values in
the order their placeholders appear in the origin text.
"""

from __future__ import annotations

import json
import logging
import pathlib
import string
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .locales import build_locale_filename

logger = logging.getLogger(__name__)

_formatter = string.Formatter()


def _field_names(template: str) -> Optional[List[str]]:
    try:
        return [name for _, name, _, _ in _formatter.parse(template) if name is not None]
    except ValueError:
        return None


def _slot_indexes(template: str, origin: Optional[str]) -> Optional[Dict[str, int]]:
    """Map each placeholder name of ``template`` to its argument index.

    Arguments follow the placeholder order of the origin text. ``None`` means
    the names cannot be matched up and values are filled by position.
    """

    if origin is None or origin == template:
        return None
    origin_names = _field_names(origin)
    names = _field_names(template)
    if not origin_names or names is None:
        return None
    if len(set(origin_names)) != len(origin_names):
        return None
    indexes = {name: index for index, name in enumerate(origin_names)}
    if not all(name in indexes for name in names):
        return None
    return indexes


def render(template: str, args: Sequence[Any], origin: Optional[str] = None) -> str:
    """Fill the placeholders of ``template`` with ``args``.

    ``args`` are in the placeholder order of ``origin``, the origin-language
    text. A translation may reorder its placeholders, so each one is filled
    with the argument of the origin placeholder of the same name. Without an
    origin, or when the names do not line up, placeholders are filled by
    position. Conversions (``!r``) and format specs (``:.2f``) written in a
    placeholder are applied to the value that replaces it.
    """

    if not args:
        return template
    try:
        parsed = list(_formatter.parse(template))
    except ValueError:
        return template
    slots = _slot_indexes(template, origin)

    parts = []
    position = 0
    for literal, field_name, format_spec, conversion in parsed:
        parts.append(literal)
        if field_name is None:
            continue
        if slots is not None:
            index = slots[field_name]
        else:
            index = position
            position += 1
        if index >= len(args):
            parts.append("{" + field_name + "}")
            continue
        value = args[index]
        if conversion:
            value = _formatter.convert_field(value, conversion)
        parts.append(format(value, format_spec or ""))
    return "".join(parts)


class Catalog:
    """Key to text lookup for one language with an optional fallback."""

    def __init__(
        self,
        messages: Optional[Mapping[str, str]] = None,
        fallback: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.messages: Dict[str, str] = dict(messages or {})
        self.fallback: Dict[str, str] = dict(fallback or {})

    @classmethod
    def load(
        cls,
        locales_dir: pathlib.Path,
        language: str,
        fallback_language: Optional[str] = None,
    ) -> "Catalog":
        fallback = (
            _read_catalog(locales_dir, fallback_language)
            if fallback_language and fallback_language != language
            else {}
        )
        return cls(_read_catalog(locales_dir, language), fallback)

    def lookup(self, key: str) -> str:
        if key in self.messages:
            return self.messages[key]
        return self.fallback.get(key, key)

    def translate(self, key: str, *args: Any) -> str:
        return render(self.lookup(key), args, origin=self.fallback.get(key))


def _read_catalog(locales_dir: pathlib.Path, language: str) -> Dict[str, str]:
    """Read one locale file; an unreadable or malformed file gives an empty catalog."""

    path = build_locale_filename(pathlib.Path(locales_dir), language)
    if not path.exists():
        return {}
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        logger.warning("Ignoring locale file %s: %s", path, exc)
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring locale file %s: expected a JSON object", path)
        return {}
    return data


_active = Catalog()


def configure(
    locales_dir: pathlib.Path | str,
    language: str,
    fallback_language: Optional[str] = None,
) -> Catalog:
    """Load the catalog used by :func:`t`."""

    global _active
    _active = Catalog.load(pathlib.Path(locales_dir), language, fallback_language)
    return _active


def t(key: str, *args: Any) -> str:
    return _active.translate(key, *args)
