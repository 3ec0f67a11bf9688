"""Per-language machine translation of the extraction map."""

from __future__ import annotations

import concurrent.futures as cf
import logging
import time
from dataclasses import dataclass, field
from typing import AbstractSet, Callable, Dict, Mapping, Optional, Sequence

from .errors import TranslationProviderError
from .glossary import pinned_keys
from .providers import TranslationProvider, check_response_keys
from .structures import ExtractionMap, GroupedGlossary, TranslationBatch

logger = logging.getLogger(__name__)


@dataclass
class LanguageTranslation:
    """Machine translation outcome for one target language."""

    language: str
    translations: Dict[str, str] = field(default_factory=dict)
    pinned: int = 0
    error: Optional[TranslationProviderError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class TranslationOrchestrator:
    """Sends the keys without a glossary override to the provider."""

    def __init__(
        self,
        provider: TranslationProvider,
        *,
        origin_language: str,
        max_retries: int = 3,
        retry_backoff: Sequence[float] = (1, 4, 9),
        sleep: Callable[[float], None] = time.sleep,
        verbose: bool = False,
    ) -> None:
        self.provider = provider
        self.origin_language = origin_language
        self.max_retries = max_retries
        self.retry_backoff = list(retry_backoff) or [0]
        self.sleep = sleep
        self.verbose = verbose

    def build_batch(
        self,
        extraction_map: Mapping[str, str],
        grouped: GroupedGlossary,
        target_language: str,
        existing_keys: AbstractSet[str] = frozenset(),
    ) -> TranslationBatch:
        excluded = pinned_keys(grouped, target_language) | set(existing_keys)
        entries = {
            key: text for key, text in extraction_map.items() if key not in excluded
        }
        return TranslationBatch(
            entries=entries,
            source_language=self.origin_language,
            target_language=target_language,
        )

    def translate_language(
        self,
        extraction_map: ExtractionMap,
        grouped: GroupedGlossary,
        target_language: str,
        existing_keys: AbstractSet[str] = frozenset(),
    ) -> Dict[str, str]:
        """Translate the non-pinned keys for one language.

        Raises :class:`TranslationProviderError` once retries are exhausted
        or when the response does not cover exactly the requested keys.
        """

        batch = self.build_batch(extraction_map, grouped, target_language, existing_keys)
        if not batch.entries:
            logger.debug("nothing to translate for %s", target_language)
            return {}

        attempt = 0
        while True:
            try:
                mapping = self.provider.translate(batch)
                check_response_keys(batch.entries, mapping)
            except TranslationProviderError as exc:
                attempt += 1
                if attempt > self.max_retries:
                    raise TranslationProviderError(
                        f"Translation to {target_language} failed after "
                        f"{self.max_retries} retries. {exc}"
                    ) from exc
                wait_time = self.retry_backoff[min(attempt - 1, len(self.retry_backoff) - 1)]
                if self.verbose:
                    print(
                        f"Could not translate {len(batch.entries)} keys to {target_language} "
                        f"(attempt {attempt} of {self.max_retries}: {exc}). "
                        "Retrying automatically..."
                    )
                self.sleep(wait_time)
                continue

            if self.verbose:
                print(
                    f"Translated {len(mapping)} keys to {target_language} "
                    f"({batch.total_chars} chars)."
                )
            return dict(mapping)

    def _translate_isolated(
        self,
        extraction_map: ExtractionMap,
        grouped: GroupedGlossary,
        language: str,
        existing_keys: AbstractSet[str],
    ) -> LanguageTranslation:
        pinned = len(pinned_keys(grouped, language) & set(extraction_map))
        try:
            translations = self.translate_language(
                extraction_map, grouped, language, existing_keys
            )
        except TranslationProviderError as exc:
            logger.debug("translation to %s failed: %s", language, exc)
            return LanguageTranslation(language=language, pinned=pinned, error=exc)
        return LanguageTranslation(
            language=language, translations=translations, pinned=pinned
        )

    def translate_all(
        self,
        extraction_map: ExtractionMap,
        grouped: GroupedGlossary,
        target_languages: Sequence[str],
        *,
        existing_keys: Optional[Mapping[str, AbstractSet[str]]] = None,
        workers: int = 1,
    ) -> Dict[str, LanguageTranslation]:
        """Translate every target language; one language's failure never blocks another."""

        existing_keys = existing_keys or {}
        results: Dict[str, LanguageTranslation] = {}
        if workers <= 1:
            for language in target_languages:
                results[language] = self._translate_isolated(
                    extraction_map, grouped, language, existing_keys.get(language, frozenset())
                )
            return results

        with cf.ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {
                language: executor.submit(
                    self._translate_isolated,
                    extraction_map,
                    grouped,
                    language,
                    existing_keys.get(language, frozenset()),
                )
                for language in target_languages
            }
            for language in target_languages:
                results[language] = futures[language].result()
        return results
