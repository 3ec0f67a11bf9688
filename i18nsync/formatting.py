"""Code formatting applied to rewritten source files."""

from __future__ import annotations

from typing import Optional, Protocol

import black

from .errors import ConfigurationError, FormattingError


class Formatter(Protocol):
    def format(self, text: str) -> str:
        """Return ``text`` restyled without changing its meaning.

        Raises :class:`FormattingError` when the text cannot be formatted.
        """


class PassthroughFormatter:
    """Returns the text unchanged."""

    def format(self, text: str) -> str:
        return text


class BlackFormatter:
    """Formats rewritten source with black for the configured target version."""

    def __init__(self, target_version: Optional[str] = None, line_length: int = 88) -> None:
        target_versions = set()
        if target_version:
            try:
                target_versions.add(black.TargetVersion[target_version.upper()])
            except KeyError as exc:
                raise ConfigurationError(
                    f"Target version '{target_version}' is not supported by black."
                ) from exc
        self.mode = black.Mode(target_versions=target_versions, line_length=line_length)

    def format(self, text: str) -> str:
        try:
            return black.format_str(text, mode=self.mode)
        except black.InvalidInput as exc:
            raise FormattingError(f"black rejected the rewritten source: {exc}") from exc
