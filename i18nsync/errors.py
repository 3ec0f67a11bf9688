"""Error definitions for the i18nsync extractor and locale synchroniser."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional, Sequence


class ErrorCategory(Enum):
    """Categorises non-fatal errors collected during a run."""

    PARSE = auto()
    FILE_IO = auto()
    TRANSLATION = auto()
    PERSISTENCE = auto()
    OTHER = auto()


class I18nSyncError(Exception):
    """Base exception for all custom errors."""


class ConfigurationError(I18nSyncError):
    """Raised when the run configuration is invalid."""


class TranslationProviderConfigurationError(ConfigurationError):
    """Raised when the translation provider is misconfigured."""


class TranslationProviderError(I18nSyncError):
    """Raised when the translation provider fails or answers incompletely."""


class GlossaryError(I18nSyncError):
    """Raised when the glossary table cannot be loaded."""


class ParseError(I18nSyncError):
    """Raised when a source file cannot be parsed."""

    def __init__(self, path: str, detail: str) -> None:
        super().__init__(f"Could not parse {path}: {detail}")
        self.path = path
        self.detail = detail


class FormattingError(I18nSyncError):
    """Raised when rewritten source is rejected by the code formatter."""


class DuplicateKeyConflict(I18nSyncError):
    """Raised when one key is extracted with two different texts."""

    def __init__(
        self,
        key: str,
        existing_text: str,
        new_text: str,
        locations: Sequence[str] = (),
    ) -> None:
        where = f" (seen at {', '.join(locations)})" if locations else ""
        super().__init__(
            f"Key '{key}' maps to different texts: {existing_text!r} "
            f"and {new_text!r}{where}."
        )
        self.key = key
        self.existing_text = existing_text
        self.new_text = new_text
        self.locations = list(locations)


class PersistenceError(I18nSyncError):
    """Raised when a locale file cannot be read or written."""

    def __init__(self, path: str, detail: str) -> None:
        super().__init__(f"Locale file {path}: {detail}")
        self.path = path
        self.detail = detail


@dataclass
class ErrorRecord:
    """Stores context for a handled error."""

    category: ErrorCategory
    message: str
    subject: Optional[str] = None
    details: Optional[str] = None
