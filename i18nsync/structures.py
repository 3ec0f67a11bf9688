"""Core data structures for the i18nsync pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional


ExtractionMap = Dict[str, str]
GlossaryTable = Mapping[str, Mapping[str, str]]
GroupedGlossary = Dict[str, Dict[str, str]]


@dataclass(frozen=True)
class ExtractedEntry:
    """One translatable literal found in a source file."""

    key: str
    text: str
    source_path: str
    line: int
    column: int

    @property
    def location(self) -> str:
        return f"{self.source_path}:{self.line}:{self.column}"


@dataclass
class AnalysisResult:
    """Outcome of analysing and rewriting one source file."""

    rewritten_text: str
    entries: List[ExtractedEntry] = field(default_factory=list)
    translatable_node_count: int = 0

    @property
    def changed(self) -> bool:
        return self.translatable_node_count > 0


@dataclass(frozen=True)
class ProviderConfig:
    """Opaque provider selection handed through to the provider adapter."""

    provider_id: str = "openai"
    credential: Optional[str] = field(default=None, repr=False)
    model_variant: Optional[str] = None
    backend: str = "openai"
    azure_endpoint: Optional[str] = None
    azure_api_version: Optional[str] = None


@dataclass
class TranslationBatch:
    """A set of origin-language entries submitted for one target language."""

    entries: Dict[str, str]
    source_language: str
    target_language: str

    @property
    def total_chars(self) -> int:
        return sum(len(text) for text in self.entries.values())


@dataclass
class LanguageOutcome:
    """Result of synchronising one language during a run."""

    language: str
    synchronized: bool
    keys_written: int = 0
    keys_translated: int = 0
    keys_pinned: int = 0
    error: Optional[str] = None
