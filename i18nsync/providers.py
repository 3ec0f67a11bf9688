"""Translation provider abstractions."""

from __future__ import annotations

import json
import sys
from abc import ABC, abstractmethod
from typing import Any, Dict, Mapping

from .configuration import validate_provider_config
from .errors import (
    TranslationProviderConfigurationError,
    TranslationProviderError,
)
from .segmenter import BatchBuilder
from .structures import ProviderConfig, TranslationBatch


def check_response_keys(requested: Mapping[str, str], mapping: Mapping[str, str]) -> None:
    """Reject responses that do not cover exactly the requested keys."""

    missing = [key for key in requested if key not in mapping]
    unexpected = [key for key in mapping if key not in requested]
    if missing:
        raise TranslationProviderError(
            "Translation provider response incomplete; missing keys: "
            + ", ".join(missing)
        )
    if unexpected:
        raise TranslationProviderError(
            "Translation provider response contained unknown keys: "
            + ", ".join(unexpected)
        )


class TranslationProvider(ABC):
    """Abstract adapter for translation providers."""

    name = "provider"

    @abstractmethod
    def translate(self, batch: TranslationBatch) -> Dict[str, str]:
        """Translate the batch and return a mapping by key."""


class EchoTranslationProvider(TranslationProvider):
    """A provider that returns the original text (useful for testing)."""

    name = "echo"

    def translate(self, batch: TranslationBatch) -> Dict[str, str]:
        return dict(batch.entries)


class OpenAITranslationProvider(TranslationProvider):
    """Translation provider that uses OpenAI chat models."""

    name = "openai"
    DEFAULT_MODEL = "gpt-5-mini"

    def __init__(
        self,
        config: ProviderConfig,
        *,
        batch_budget: int = 4000,
        debug: bool = False,
    ) -> None:
        validate_provider_config(config)
        self.config = config
        self.debug = debug
        self.batch_builder = BatchBuilder(batch_budget)
        self._client, self._default_model = self._build_client()

    def _build_client(self) -> tuple[Any, str]:
        if self.config.backend == "azure_openai":
            return self._build_azure_client()

        return self._build_openai_client()

    def _build_openai_client(self) -> tuple[Any, str]:
        from openai import OpenAI

        return (
            OpenAI(api_key=self.config.credential),
            self.config.model_variant or self.DEFAULT_MODEL,
        )

    def _build_azure_client(self) -> tuple[Any, str]:
        from openai import AzureOpenAI

        client = AzureOpenAI(
            api_key=self.config.credential,
            api_version=self.config.azure_api_version,
            azure_endpoint=self.config.azure_endpoint,
        )
        return client, self.config.model_variant  # type: ignore[return-value]

    def translate(self, batch: TranslationBatch) -> Dict[str, str]:
        if not batch.entries:
            return {}

        mapping: Dict[str, str] = {}
        for chunk in self.batch_builder.build(batch.entries):
            translated = self._translate_chunk(
                chunk,
                source_language=batch.source_language,
                target_language=batch.target_language,
            )
            check_response_keys(chunk, translated)
            mapping.update(translated)

        self._log_debug("provider.response.mapping", mapping)
        return mapping

    def _translate_chunk(
        self,
        entries: Mapping[str, str],
        *,
        source_language: str,
        target_language: str,
    ) -> Dict[str, str]:
        payload = [{"id": key, "text": text} for key, text in entries.items()]
        system_prompt = (
            "You are a professional software localiser. Return only JSON. "
            "Translate the provided user interface strings into the requested language. "
            "Preserve punctuation, numbers and placeholders written in curly braces "
            "such as {name} or {count:d} exactly as given, including doubled braces. "
            "Respond strictly with an object shaped as "
            '{"translations": [{"id": "...", "translated": "..."}]} '
            "containing every id exactly once. "
            "Do not add commentary. Do not wrap the JSON in markdown code fences."
        )
        user_prompt = {
            "target_language": target_language,
            "source_language": source_language,
            "segments": payload,
        }
        self._log_debug("provider.request.system_prompt", system_prompt)
        self._log_debug("provider.request.payload", user_prompt)

        response_items = self._invoke_model(
            system_prompt=system_prompt,
            user_payload=user_prompt,
            model=self._default_model,
        )
        self._log_debug("provider.response.items", response_items)

        mapping: Dict[str, str] = {}
        for item in response_items:
            if not isinstance(item, dict):
                raise TranslationProviderError(
                    "Translation provider response malformed: expected objects."
                )
            key = item.get("id")
            translated = item.get("translated")
            if not isinstance(key, str) or not isinstance(translated, str):
                raise TranslationProviderError(
                    "Translation provider response malformed: missing fields."
                )
            mapping[key] = translated
        return mapping

    def _invoke_model(
        self,
        *,
        system_prompt: str,
        user_payload: dict,
        model: str,
    ) -> list[dict[str, Any]]:
        """Call the OpenAI Responses API and return structured JSON data."""

        try:
            response = self._client.responses.create(
                model=model,
                input=[
                    {
                        "role": "system",
                        "content": [
                            {"type": "input_text", "text": system_prompt},
                        ],
                    },
                    {
                        "role": "user",
                        "content": [
                            {
                                "type": "input_text",
                                "text": json.dumps(user_payload, ensure_ascii=False),
                            }
                        ],
                    },
                ],
            )
        except Exception as exc:  # pragma: no cover - network call
            raise TranslationProviderError(
                f"Translation service temporarily unavailable: {exc}"
            ) from exc
        self._log_debug("provider.response.raw", self._safe_dump_response(response))
        return self._extract_translations(response)

    def _log_debug(self, label: str, payload: Any) -> None:
        """Emit structured debug information when enabled."""

        if not getattr(self, "debug", False):
            return
        try:
            if isinstance(payload, (dict, list)):
                message = json.dumps(payload, ensure_ascii=False, indent=2)
            else:
                message = str(payload)
        except (TypeError, ValueError):
            message = repr(payload)
        print(f"[i18nsync][provider-debug] {label}:\n{message}", file=sys.stderr)

    def _safe_dump_response(self, response: Any) -> Any:
        """Best-effort conversion of Responses API objects into JSON-friendly data."""

        for attr in ("model_dump_json", "model_dump"):
            candidate = getattr(response, attr, None)
            if candidate:
                try:
                    data = candidate()
                    if isinstance(data, str):
                        return json.loads(data)
                    return data
                except (TypeError, ValueError):
                    continue
        return str(response)

    def _strip_code_fence(self, text: str) -> str:
        """Remove leading/trailing markdown code fences if present."""

        stripped = text.strip()
        if not stripped.startswith("```"):
            return stripped

        # Drop opening fence and optional language hint.
        first_newline = stripped.find("\n")
        if first_newline == -1:
            return stripped
        body = stripped[first_newline + 1 :]
        closing_index = body.rfind("```")
        if closing_index != -1:
            body = body[:closing_index]
        return body.strip()

    def _extract_translations(self, response: Any) -> list[dict[str, Any]]:
        """Extract the structured translation list from a Responses API result."""

        content = getattr(response, "output", None)
        if content:
            for item in content:
                parts = getattr(item, "content", None) or []
                for part in parts:
                    text_value = getattr(part, "text", None)
                    if hasattr(text_value, "value"):
                        text_value = text_value.value
                    if not text_value:
                        continue
                    try:
                        parsed = json.loads(self._strip_code_fence(str(text_value)))
                    except json.JSONDecodeError:
                        continue
                    return self._normalise_translations(parsed)

        output_text = getattr(response, "output_text", None)
        if output_text:
            return self._normalise_translations(str(output_text))

        raise TranslationProviderError(
            "Translation provider response empty or unrecognised."
        )

    def _normalise_translations(self, payload: Any) -> list[dict[str, Any]]:
        """Normalise raw payloads into a list of translation dictionaries."""

        if isinstance(payload, str):
            payload = self._strip_code_fence(payload)
            try:
                payload = json.loads(payload)
            except json.JSONDecodeError as exc:
                raise TranslationProviderError(
                    f"Translation provider returned invalid JSON: {exc}"
                ) from exc

        if isinstance(payload, dict):
            translations = payload.get("translations")
            if isinstance(translations, list):
                return translations

        if isinstance(payload, list):
            return payload

        raise TranslationProviderError(
            "Translation provider response malformed: could not find translations list."
        )


class LegacyOpenAITranslationProvider(OpenAITranslationProvider):
    """Translation provider that uses the Chat Completions API for compatibility."""

    name = "legacy-openai"

    def _invoke_model(
        self,
        *,
        system_prompt: str,
        user_payload: dict,
        model: str,
    ) -> list[dict[str, Any]]:
        """Call the Chat Completions API and return structured JSON data."""

        try:
            response = self._client.chat.completions.create(
                model=model,
                temperature=0,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {
                        "role": "user",
                        "content": json.dumps(user_payload, ensure_ascii=False),
                    },
                ],
            )
        except Exception as exc:  # pragma: no cover - network call
            raise TranslationProviderError(
                f"Translation service temporarily unavailable: {exc}"
            ) from exc
        self._log_debug("provider.response.raw", self._safe_dump_response(response))

        content: str | None = None
        for choice in getattr(response, "choices", None) or []:
            message = getattr(choice, "message", None)
            message_content = getattr(message, "content", None)
            if message_content:
                content = str(message_content)
                break

        if content is None:
            raise TranslationProviderError(
                "Translation provider response empty or unrecognised."
            )

        return self._normalise_translations(content)


def build_provider(
    config: ProviderConfig,
    *,
    batch_budget: int = 4000,
    debug: bool = False,
) -> TranslationProvider:
    """Factory to create providers by name."""

    normalized = (config.provider_id or "openai").strip().lower()
    if normalized in {"openai", "gpt", "default"}:
        return OpenAITranslationProvider(config, batch_budget=batch_budget, debug=debug)
    if normalized in {"legacy-openai", "legacy_openai", "legacy", "openai-legacy"}:
        return LegacyOpenAITranslationProvider(
            config, batch_budget=batch_budget, debug=debug
        )
    if normalized in {"echo", "noop", "mock"}:
        return EchoTranslationProvider()
    raise TranslationProviderConfigurationError(
        f"Unknown translation provider '{config.provider_id}'."
    )
