"""Prepper-backed configuration loader for i18nsync."""

from __future__ import annotations

import os
import pathlib
import re
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal, Mapping, Optional, Sequence, Tuple

from dotenv import dotenv_values
from prepper import (
    Field,
    IoError,
    SchemaError,
    SchemaModel,
    ValidationError,
    model_validator,
)
from prepper.config import ConfigInstance
from prepper.loaders import _parse_file, _path_to_source, discover_file_paths
from prepper.merge import merge_layer
from prepper.provenance import ProvenanceRecorder

from .errors import ConfigurationError, TranslationProviderConfigurationError
from .structures import ProviderConfig

APP_NAME = "i18nsync"

DEFAULT_ENTRY = ("**/*.py",)
DEFAULT_EXCLUDE = (
    "**/.git/**",
    "**/.venv/**",
    "**/venv/**",
    "**/node_modules/**",
    "**/build/**",
    "**/dist/**",
    "**/__pycache__/**",
)
DEFAULT_HELPER_MODULE = "i18nsync.runtime"
DEFAULT_HELPER_NAME = "t"
LANGUAGE_CODE_PATTERN = re.compile(r"^[A-Za-z]{2,3}(?:[-_][A-Za-z0-9]{2,8})*$")
TARGET_VERSION_PATTERN = re.compile(r"^py3\d{1,2}$")


class I18nSyncConfig(SchemaModel):
    """Schema describing all supported configuration options."""

    LLM_PROVIDER: Literal["azure_openai", "openai"] = Field(
        default="openai",
        description="Large language model provider selection.",
    )
    AZURE_OPENAI_API_KEY: str | None = Field(default=None, secret=True)
    AZURE_OPENAI_ENDPOINT: str | None = Field(default=None)
    AZURE_OPENAI_API_VERSION: str | None = Field(default=None)
    AZURE_OPENAI_DEPLOYMENT_NAME: str | None = Field(default=None)
    OPENAI_API_KEY: str | None = Field(default=None, secret=True)
    I18NSYNC_PROVIDER: str = Field(
        default="openai",
        description="Translation provider adapter (openai, legacy-openai, echo).",
    )
    I18NSYNC_MODEL: str | None = Field(default=None)
    I18NSYNC_PROVIDER_DEBUG: bool = Field(default=False)
    I18NSYNC_LOCALES_DIR: str = Field(default="locales")
    I18NSYNC_ORIGIN_LANG: str = Field(default="en")
    I18NSYNC_TARGET_LANGS: str = Field(
        default="",
        description="Comma separated list of target language codes.",
    )
    I18NSYNC_ENTRY: str = Field(default=",".join(DEFAULT_ENTRY))
    I18NSYNC_EXCLUDE: str = Field(default=",".join(DEFAULT_EXCLUDE))
    I18NSYNC_HELPER_MODULE: str = Field(default=DEFAULT_HELPER_MODULE)
    I18NSYNC_HELPER_NAME: str = Field(default=DEFAULT_HELPER_NAME)
    I18NSYNC_KEY_PREFIX: str = Field(default="")
    I18NSYNC_TEXT_PATTERN: str | None = Field(
        default=None,
        description="Regular expression a literal must match to be extracted.",
    )
    I18NSYNC_IGNORED_CALLS: str = Field(
        default="",
        description="Comma separated call names whose string arguments are never extracted.",
    )
    I18NSYNC_TARGET_VERSION: str | None = Field(default=None)

    @model_validator(mode="before")
    def _normalise_provider(data: Any) -> Any:
        if isinstance(data, dict):
            raw_value = data.get("LLM_PROVIDER")
            if isinstance(raw_value, str):
                normalized = raw_value.strip().lower().replace("-", "_")
                synonyms = {
                    "azure_open_ai": "azure_openai",
                    "azureopenai": "azure_openai",
                }
                normalized = synonyms.get(normalized, normalized)
                if normalized not in {"openai", "azure_openai"}:
                    normalized = "openai"
                data["LLM_PROVIDER"] = normalized
        return data


@lru_cache(maxsize=1)
def _load_config_instance(app_dir: Path | None = None) -> ConfigInstance:
    """Load configuration layers once and cache the immutable instance."""

    base_dir = app_dir or Path.cwd()
    try:
        provenance = ProvenanceRecorder()
        combined = _load_discovered_yaml(app_dir=base_dir, provenance=provenance)
        _merge_env_sources(
            combined,
            provenance=provenance,
            app_dir=base_dir,
            schema=I18nSyncConfig,
        )

        # Extraction needs no credentials, so an empty mapping falls back to
        # the schema defaults.
        model = I18nSyncConfig.validate(combined, provenance=provenance)

        instance = ConfigInstance(
            model=model,
            provenance=provenance,
            env_prefix=None,
            schema_cls=I18nSyncConfig,
        )
        return instance
    except IoError as exc:
        raise ConfigurationError(
            f"Configuration files could not be read: {exc}"
        ) from exc
    except SchemaError as exc:
        raise ConfigurationError(f"Configuration schema error: {exc}") from exc
    except ValidationError as exc:
        issues = _format_validation_errors(exc.to_dict())
        raise ConfigurationError(issues) from exc


def _load_discovered_yaml(
    *,
    app_dir: Path,
    provenance: ProvenanceRecorder,
) -> dict[str, Any]:
    """Load YAML configuration files using Prepper's discovery rules."""

    result: dict[str, Any] = {}
    discovered = discover_file_paths(
        APP_NAME,
        "yaml",
        app_dir=app_dir,
        extra_paths=None,
    )
    for path, label in discovered:
        parsed = _parse_file(path, "yaml")
        if not isinstance(parsed, Mapping):
            raise IoError(
                f"Invalid configuration file {path}: expected a mapping at the root."
            )
        source = _path_to_source(label, "yaml", path)
        merge_layer(result, parsed, provenance=provenance, source=source, layer="file")
    return result


def _merge_env_sources(
    target: dict[str, Any],
    *,
    provenance: ProvenanceRecorder,
    app_dir: Path,
    schema: type[SchemaModel],
) -> None:
    """Merge .env and process environment variables into the target mapping."""

    allowed = set(schema.__field_infos__.keys())

    def merge_values(values: Mapping[str, str], *, source_prefix: str) -> None:
        for key, value in sorted(values.items()):
            if value is None:
                continue
            if key not in allowed:
                continue
            merge_layer(
                target,
                {key: value},
                provenance=provenance,
                source=f"env:{source_prefix}:{key}",
                layer="env",
            )

    dotenv_path = app_dir / ".env"
    if dotenv_path.exists():
        dotenv_content = dotenv_values(dotenv_path)
        merge_values(
            {k: v for k, v in dotenv_content.items() if v is not None},
            source_prefix=".env",
        )

    merge_values(
        {k: v for k, v in os.environ.items() if isinstance(v, str)},
        source_prefix="process",
    )


def _format_validation_errors(entries: Sequence[dict[str, Any]]) -> str:
    details: list[str] = []
    for entry in entries:
        path = entry.get("path") or []
        if isinstance(path, (list, tuple)):
            location = ".".join(str(part) for part in path if part not in {None, ""})
        else:
            location = str(path)
        message = str(entry.get("message") or entry.get("msg") or "Invalid value")
        source = entry.get("source")
        origin = f" (source: {source})" if source else ""
        prefix = f"{location}: " if location else ""
        details.append(f"- {prefix}{message}{origin}")
    return "Configuration validation errors detected:\n" + "\n".join(details)


def _bullet_error(cls: type[ConfigurationError], errors: Sequence[str]) -> ConfigurationError:
    bullet_list = "\n".join(f"- {message}" for message in errors)
    return cls("Configuration validation errors detected:\n" + bullet_list)


def split_list(value: str | Sequence[str] | None) -> Tuple[str, ...]:
    """Split a comma separated option into a tuple of trimmed items."""

    if value is None:
        return ()
    if isinstance(value, str):
        items = value.split(",")
    else:
        items = list(value)
    return tuple(item.strip() for item in items if item and item.strip())


def validate_provider_config(config: ProviderConfig) -> None:
    """Check that a provider has the credentials it needs."""

    errors: list[str] = []
    if config.backend == "openai":
        if not config.credential:
            errors.append(
                "OPENAI_API_KEY is required when LLM_PROVIDER is 'openai'."
            )
    elif config.backend == "azure_openai":
        missing = [
            name
            for name, value in {
                "AZURE_OPENAI_API_KEY": config.credential,
                "AZURE_OPENAI_ENDPOINT": config.azure_endpoint,
                "AZURE_OPENAI_API_VERSION": config.azure_api_version,
                "AZURE_OPENAI_DEPLOYMENT_NAME": config.model_variant,
            }.items()
            if not value
        ]
        if missing:
            errors.append(
                "The following Azure OpenAI settings must be provided when "
                f"LLM_PROVIDER is 'azure_openai': {', '.join(missing)}."
            )
    else:
        errors.append(f"Unknown LLM_PROVIDER '{config.backend}'.")

    if errors:
        raise _bullet_error(TranslationProviderConfigurationError, errors)


def provider_config_from_settings(
    settings: I18nSyncConfig,
    *,
    provider: str | None = None,
    model: str | None = None,
) -> ProviderConfig:
    backend = settings.LLM_PROVIDER
    if backend == "azure_openai":
        return ProviderConfig(
            provider_id=provider or settings.I18NSYNC_PROVIDER,
            credential=settings.AZURE_OPENAI_API_KEY,
            model_variant=model or settings.AZURE_OPENAI_DEPLOYMENT_NAME,
            backend=backend,
            azure_endpoint=settings.AZURE_OPENAI_ENDPOINT,
            azure_api_version=settings.AZURE_OPENAI_API_VERSION,
        )
    return ProviderConfig(
        provider_id=provider or settings.I18NSYNC_PROVIDER,
        credential=settings.OPENAI_API_KEY,
        model_variant=model or settings.I18NSYNC_MODEL,
        backend=backend,
    )


@dataclass(frozen=True)
class RunConfig:
    """Every option a scan run understands, validated once at run start."""

    locales_dir: pathlib.Path
    origin_language: str
    target_languages: Tuple[str, ...] = ()
    base_dir: pathlib.Path = field(default_factory=pathlib.Path.cwd)
    entry: Tuple[str, ...] = DEFAULT_ENTRY
    exclude: Tuple[str, ...] = DEFAULT_EXCLUDE
    helper_module: str = DEFAULT_HELPER_MODULE
    helper_name: str = DEFAULT_HELPER_NAME
    key_prefix: str = ""
    text_pattern: Optional[str] = None
    ignored_calls: Tuple[str, ...] = ()
    target_version: Optional[str] = None
    provider: ProviderConfig = field(default_factory=ProviderConfig)
    update_locales: bool = True
    dry_run: bool = False
    skip_existing: bool = False
    workers: int = 1
    batch_budget: int = 4000
    verbose: bool = False
    provider_debug: bool = False

    @property
    def glossary_path(self) -> pathlib.Path:
        return self.locales_dir / "glossaries.csv"

    @classmethod
    def from_settings(cls, settings: I18nSyncConfig, **overrides: Any) -> "RunConfig":
        """Build a run configuration from loaded settings plus CLI overrides.

        Overrides whose value is ``None`` are ignored so that unset command
        line flags keep the configured value.
        """

        provider_name = overrides.pop("provider_name", None)
        model = overrides.pop("model", None)
        base_dir = pathlib.Path(overrides.pop("base_dir", None) or pathlib.Path.cwd())
        locales_dir = pathlib.Path(
            overrides.pop("locales_dir", None) or settings.I18NSYNC_LOCALES_DIR
        )
        if not locales_dir.is_absolute():
            locales_dir = base_dir / locales_dir

        values: dict[str, Any] = {
            "locales_dir": locales_dir,
            "base_dir": base_dir,
            "origin_language": settings.I18NSYNC_ORIGIN_LANG,
            "target_languages": split_list(settings.I18NSYNC_TARGET_LANGS),
            "entry": split_list(settings.I18NSYNC_ENTRY) or DEFAULT_ENTRY,
            "exclude": split_list(settings.I18NSYNC_EXCLUDE),
            "helper_module": settings.I18NSYNC_HELPER_MODULE,
            "helper_name": settings.I18NSYNC_HELPER_NAME,
            "key_prefix": settings.I18NSYNC_KEY_PREFIX,
            "text_pattern": settings.I18NSYNC_TEXT_PATTERN or None,
            "ignored_calls": split_list(settings.I18NSYNC_IGNORED_CALLS),
            "target_version": settings.I18NSYNC_TARGET_VERSION,
            "provider_debug": bool(settings.I18NSYNC_PROVIDER_DEBUG),
            "provider": provider_config_from_settings(
                settings, provider=provider_name, model=model
            ),
        }
        for name, value in overrides.items():
            if value is None:
                continue
            if name in {"target_languages", "entry", "exclude", "ignored_calls"}:
                value = split_list(value)
                if not value:
                    continue
            values[name] = value

        config = cls(**values)
        config.validate()
        return config

    def validate(self) -> None:
        errors: list[str] = []
        for language in (self.origin_language, *self.target_languages):
            if not LANGUAGE_CODE_PATTERN.match(language or ""):
                errors.append(f"'{language}' is not a valid language code.")
        if self.origin_language in self.target_languages:
            errors.append(
                f"Origin language '{self.origin_language}' must not also be a target language."
            )
        if len(set(self.target_languages)) != len(self.target_languages):
            errors.append("Target languages contain duplicates.")
        if not self.helper_name.isidentifier():
            errors.append(f"Helper name '{self.helper_name}' is not a valid identifier.")
        if not all(part.isidentifier() for part in self.helper_module.split(".")):
            errors.append(f"Helper module '{self.helper_module}' is not a valid module path.")
        if self.text_pattern is not None:
            try:
                re.compile(self.text_pattern)
            except re.error as exc:
                errors.append(f"Text pattern is not a valid regular expression: {exc}.")
        if self.target_version and not TARGET_VERSION_PATTERN.match(self.target_version):
            errors.append(
                f"Target version '{self.target_version}' must look like 'py311'."
            )
        if self.workers < 1:
            errors.append("Workers must be at least 1.")
        if self.batch_budget < 1:
            errors.append("Batch budget must be at least 1 character.")

        if errors:
            raise _bullet_error(ConfigurationError, errors)


def get_config(app_dir: Path | None = None) -> ConfigInstance:
    """Return the immutable configuration instance."""

    return _load_config_instance(app_dir=app_dir)


def get_settings(app_dir: Path | None = None) -> I18nSyncConfig:
    """Return the validated schema model for typed access."""

    return get_config(app_dir=app_dir).model()
