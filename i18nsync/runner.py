"""High-level orchestration of a scan run."""

from __future__ import annotations

import concurrent.futures as cf
import logging
import pathlib
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from .aggregator import ExtractionAggregator
from .analyzer import AnalyzerOptions, SourceAnalyzer
from .configuration import RunConfig
from .errors import ErrorCategory, FormattingError, ParseError, PersistenceError
from .fileio import atomic_write
from .formatting import BlackFormatter, Formatter
from .glossary import group_glossary, load_glossary, overrides_for
from .locales import LocaleStore
from .orchestrator import TranslationOrchestrator
from .policy import ErrorPolicy
from .providers import TranslationProvider, build_provider
from .sources import collect_source_files
from .structures import (
    AnalysisResult,
    ExtractionMap,
    GlossaryTable,
    GroupedGlossary,
    LanguageOutcome,
)

logger = logging.getLogger(__name__)


@dataclass
class ScanSummary:
    """Report returned after a scan run."""

    files_scanned: int
    files_changed: int
    failed_files: List[str]
    entries_extracted: int
    keys_extracted: int
    languages: List[LanguageOutcome]
    provider_name: Optional[str]
    dry_run: bool
    elapsed_seconds: float
    error_messages: List[str] = field(default_factory=list)

    @property
    def failed_languages(self) -> List[str]:
        return [outcome.language for outcome in self.languages if not outcome.synchronized]

    @property
    def ok(self) -> bool:
        return not self.error_messages


@dataclass
class RunContext:
    """Run-scoped state, created at run start and discarded with the runner."""

    config: RunConfig
    errors: ErrorPolicy
    aggregator: ExtractionAggregator = field(default_factory=ExtractionAggregator)
    glossary: GlossaryTable = field(default_factory=dict)
    grouped_glossary: GroupedGlossary = field(default_factory=dict)


@dataclass
class _FileResult:
    path: pathlib.Path
    result: Optional[AnalysisResult] = None
    formatted: Optional[str] = None


class ScanRunner:
    """Coordinates extraction, aggregation, translation and locale synchronisation."""

    def __init__(
        self,
        config: RunConfig,
        *,
        provider: Optional[TranslationProvider] = None,
        formatter: Optional[Formatter] = None,
        orchestrator_options: Optional[dict] = None,
    ) -> None:
        self.config = config
        self.analyzer = SourceAnalyzer(AnalyzerOptions.from_config(config))
        self.formatter = formatter or BlackFormatter(config.target_version)
        self.provider = provider
        self.orchestrator_options = orchestrator_options or {}
        self.store = LocaleStore(config.locales_dir)

    def run(self, files: Optional[Sequence[pathlib.Path]] = None) -> ScanSummary:
        start_time = time.time()
        config = self.config
        context = RunContext(config=config, errors=ErrorPolicy(verbose=config.verbose))

        # Provider credentials are checked before any file is touched.
        if config.update_locales and config.target_languages:
            self._ensure_provider()

        if files is None:
            files = collect_source_files(config.base_dir, config.entry, config.exclude)
        if config.verbose:
            print(f"Scanning {len(files)} source files.")

        analysed = self._analyse_files(files, context)

        # A conflicting key aborts here, before any file is written.
        entries_extracted = 0
        for item in analysed:
            if item.result is not None:
                context.aggregator.add(item.result.entries)
                entries_extracted += len(item.result.entries)
        extraction_map = context.aggregator.extraction_map()

        files_changed = self._write_sources(analysed, context)

        languages: List[LanguageOutcome] = []
        if config.update_locales:
            context.glossary = load_glossary(config.glossary_path)
            context.grouped_glossary = group_glossary(context.glossary)
            languages = self._synchronize_locales(extraction_map, context)

        elapsed = time.time() - start_time
        return ScanSummary(
            files_scanned=len(files),
            files_changed=files_changed,
            failed_files=context.errors.failed_subjects(ErrorCategory.PARSE)
            + context.errors.failed_subjects(ErrorCategory.FILE_IO),
            entries_extracted=entries_extracted,
            keys_extracted=len(extraction_map),
            languages=languages,
            provider_name=self.provider.name if self.provider else None,
            dry_run=config.dry_run,
            elapsed_seconds=elapsed,
            error_messages=context.errors.messages,
        )

    # -- source files ----------------------------------------------------

    def _analyse_one(self, path: pathlib.Path, context: RunContext) -> _FileResult:
        logger.debug("processing %s", path)
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            context.errors.handle_error(
                ErrorCategory.FILE_IO,
                f"Could not read {path}: {exc}",
                subject=str(path),
            )
            return _FileResult(path=path)
        try:
            result = self.analyzer.analyze(text, path=str(path))
        except ParseError as exc:
            context.errors.handle_error(
                ErrorCategory.PARSE,
                str(exc),
                subject=str(path),
                details=exc.detail,
            )
            return _FileResult(path=path)
        if not result.changed:
            return _FileResult(path=path, result=result)
        try:
            formatted = self.formatter.format(result.rewritten_text)
        except FormattingError as exc:
            context.errors.handle_error(
                ErrorCategory.PARSE,
                f"Could not format {path}: {exc}",
                subject=str(path),
            )
            return _FileResult(path=path)
        return _FileResult(path=path, result=result, formatted=formatted)

    def _analyse_files(
        self, files: Sequence[pathlib.Path], context: RunContext
    ) -> List[_FileResult]:
        if self.config.workers <= 1:
            return [self._analyse_one(path, context) for path in files]
        with cf.ThreadPoolExecutor(max_workers=self.config.workers) as executor:
            return list(executor.map(lambda path: self._analyse_one(path, context), files))

    def _write_sources(self, analysed: Sequence[_FileResult], context: RunContext) -> int:
        changed = 0
        for item in analysed:
            if item.formatted is None:
                continue
            changed += 1
            if self.config.verbose:
                print(
                    f"Rewrote {item.result.translatable_node_count} literals in {item.path}."
                )
            if self.config.dry_run:
                continue
            try:
                atomic_write(item.path, item.formatted)
            except OSError as exc:
                changed -= 1
                context.errors.handle_error(
                    ErrorCategory.FILE_IO,
                    f"Could not write {item.path}: {exc}",
                    subject=str(item.path),
                )
        return changed

    # -- locale files ----------------------------------------------------

    def _ensure_provider(self) -> TranslationProvider:
        if self.provider is None:
            self.provider = build_provider(
                self.config.provider,
                batch_budget=self.config.batch_budget,
                debug=self.config.provider_debug,
            )
        return self.provider

    def _sync_language(
        self,
        language: str,
        computed: ExtractionMap,
        context: RunContext,
        *,
        translated: int = 0,
    ) -> LanguageOutcome:
        overrides = overrides_for(context.grouped_glossary, language)
        try:
            merged = self.store.synchronize(
                language, computed, overrides, dry_run=self.config.dry_run
            )
        except PersistenceError as exc:
            context.errors.handle_error(
                ErrorCategory.PERSISTENCE, str(exc), subject=language
            )
            return LanguageOutcome(language=language, synchronized=False, error=str(exc))
        return LanguageOutcome(
            language=language,
            synchronized=True,
            keys_written=len(merged),
            keys_translated=translated,
            keys_pinned=len(overrides),
        )

    def _synchronize_locales(
        self, extraction_map: ExtractionMap, context: RunContext
    ) -> List[LanguageOutcome]:
        config = self.config
        # The origin language never depends on the provider.
        outcomes = [self._sync_language(config.origin_language, extraction_map, context)]
        if not config.target_languages:
            return outcomes

        existing: Dict[str, frozenset] = {}
        readable: List[str] = []
        for language in config.target_languages:
            if not config.skip_existing:
                readable.append(language)
                continue
            try:
                existing[language] = frozenset(self.store.read(language))
            except PersistenceError as exc:
                context.errors.handle_error(
                    ErrorCategory.PERSISTENCE, str(exc), subject=language
                )
                outcomes.append(
                    LanguageOutcome(language=language, synchronized=False, error=str(exc))
                )
                continue
            readable.append(language)

        if not extraction_map:
            for language in readable:
                outcomes.append(self._sync_language(language, {}, context))
            return outcomes

        orchestrator = TranslationOrchestrator(
            self._ensure_provider(),
            origin_language=config.origin_language,
            verbose=config.verbose,
            **self.orchestrator_options,
        )
        results = orchestrator.translate_all(
            extraction_map,
            context.grouped_glossary,
            readable,
            existing_keys=existing,
            workers=config.workers,
        )
        for language in readable:
            result = results[language]
            if not result.ok:
                context.errors.handle_error(
                    ErrorCategory.TRANSLATION, str(result.error), subject=language
                )
                outcomes.append(
                    LanguageOutcome(
                        language=language, synchronized=False, error=str(result.error)
                    )
                )
                continue
            outcomes.append(
                self._sync_language(
                    language,
                    result.translations,
                    context,
                    translated=len(result.translations),
                )
            )
        return outcomes
