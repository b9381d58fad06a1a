"""Configuration helpers for the fan-out toolkit."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional

import yaml

try:
    from dotenv import load_dotenv
except ImportError as exc:  # pragma: no cover - import guard
    raise RuntimeError(
        "python-dotenv is required. Install dependencies via 'pip install -e .'."
    ) from exc

from askall.errors import ConfigurationError
from askall.interfaces import Provider

DEFAULT_TIMEOUT_SECONDS = 120
DEFAULT_LOG_FILENAME = "askall_logs.jsonl"
DEFAULT_PROVIDERS_FILE = Path("config") / "providers.yml"

API_KEY_ENV: Dict[Provider, str] = {
    Provider.PERPLEXITY: "PERPLEXITY_API_KEY",
    Provider.GEMINI: "GEMINI_API_KEY",
    Provider.CHATGPT: "OPENAI_API_KEY",
    Provider.CEREBRAS: "CEREBRAS_API_KEY",
}

ENV_PREFIX: Dict[Provider, str] = {
    Provider.PERPLEXITY: "PERPLEXITY",
    Provider.GEMINI: "GEMINI",
    Provider.CHATGPT: "OPENAI",
    Provider.CEREBRAS: "CEREBRAS",
}

# Cerebras free tier supports an 8,192 token context with this model.
DEFAULT_MODELS: Dict[Provider, str] = {
    Provider.CHATGPT: "gpt-4o",
    Provider.GEMINI: "models/gemini-2.0-pro-exp-02-05",
    Provider.PERPLEXITY: "sonar-pro",
    Provider.CEREBRAS: "llama-4-scout-17b-16e-instruct",
}

DEFAULT_BASE_URLS: Dict[Provider, Optional[str]] = {
    Provider.CHATGPT: None,
    Provider.GEMINI: "https://generativelanguage.googleapis.com/v1beta",
    Provider.PERPLEXITY: "https://api.perplexity.ai",
    Provider.CEREBRAS: "https://api.cerebras.ai/v1",
}


load_dotenv()


@dataclass(frozen=True)
class ProviderSettings:
    """Settings container for one provider adapter."""

    provider: Provider
    api_key: Optional[str]
    model: str
    base_url: Optional[str] = None
    timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS

    @classmethod
    def from_env(
        cls,
        provider: Provider,
        env: Optional[Mapping[str, str]] = None,
        overrides: Optional[Mapping[str, Mapping[str, str]]] = None,
    ) -> "ProviderSettings":
        source = os.environ if env is None else env
        file_values = (overrides or {}).get(provider.value.lower(), {})
        prefix = ENV_PREFIX[provider]
        model = (
            source.get(f"{prefix}_MODEL")
            or file_values.get("model")
            or DEFAULT_MODELS[provider]
        )
        base_url = (
            source.get(f"{prefix}_BASE_URL")
            or file_values.get("base_url")
            or DEFAULT_BASE_URLS[provider]
        )
        return cls(
            provider=provider,
            api_key=source.get(API_KEY_ENV[provider]) or None,
            model=model,
            base_url=base_url,
            timeout_seconds=_get_int(
                source, "ASKALL_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS
            ),
        )


def _get_int(source: Mapping[str, str], name: str, default: int) -> int:
    raw = source.get(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be an integer, got: {raw}") from exc


def default_log_path(env: Optional[Mapping[str, str]] = None) -> Path:
    """Return the interaction log location in the user's home directory."""
    source = os.environ if env is None else env
    raw = source.get("ASKALL_LOG_PATH")
    if raw:
        return Path(raw).expanduser()
    try:
        home = Path.home()
    except RuntimeError as exc:
        raise ConfigurationError(f"Failed to get user home directory: {exc}") from exc
    return home / DEFAULT_LOG_FILENAME


@dataclass(frozen=True)
class RunSettings:
    """Run-scoped switches threaded through dispatch and logging."""

    quiet: bool = False
    log_requested: bool = False
    mock: bool = False
    log_path: Optional[Path] = None
    show_progress: bool = True

    @property
    def logging_enabled(self) -> bool:
        # Quiet mode always wins over an explicit logging request.
        return self.log_requested and not self.quiet


@dataclass(frozen=True)
class AppSettings:
    """Aggregates the per-provider settings and the run switches."""

    providers: Dict[Provider, ProviderSettings]
    run: RunSettings

    @classmethod
    def load(
        cls,
        selected: Iterable[Provider],
        run: RunSettings,
        env: Optional[Mapping[str, str]] = None,
    ) -> "AppSettings":
        """Build settings for ``selected`` providers.

        Outside mock mode every selected provider needs its API key; all
        missing variables are reported together in a single
        ``ConfigurationError``.
        """
        overrides = load_provider_overrides(env)
        providers = {
            provider: ProviderSettings.from_env(provider, env, overrides)
            for provider in selected
        }
        if not run.mock:
            missing = [
                API_KEY_ENV[provider]
                for provider, settings in providers.items()
                if not settings.api_key
            ]
            if missing:
                raise ConfigurationError(
                    "Please set environment variable(s): " + ", ".join(missing)
                )
        return cls(providers=providers, run=run)


def load_provider_overrides(
    env: Optional[Mapping[str, str]] = None,
) -> Dict[str, Dict[str, str]]:
    """Load per-provider model/base URL overrides from the providers YAML file."""
    source = os.environ if env is None else env
    raw_path = source.get("ASKALL_PROVIDERS_FILE")
    providers_file = Path(raw_path) if raw_path else DEFAULT_PROVIDERS_FILE
    if not providers_file.exists():
        return {}

    try:
        data = yaml.safe_load(providers_file.read_text(encoding="utf-8")) or {}
        if not isinstance(data, dict) or not isinstance(data.get("providers"), dict):
            raise ValueError("providers.yml must contain a 'providers' mapping")
        overrides: Dict[str, Dict[str, str]] = {}
        for name, values in data["providers"].items():
            if not isinstance(values, dict):
                raise ValueError(f"Entry for provider '{name}' must be a mapping")
            overrides[str(name).lower()] = {
                str(k): str(v) for k, v in values.items() if v is not None
            }
        return overrides
    except Exception as e:
        raise RuntimeError(f"Failed to load provider configuration: {e}") from e


def key_status(env: Optional[Mapping[str, str]] = None) -> List[str]:
    """Describe which credential variables are set, masking their values."""
    source = os.environ if env is None else env
    lines: List[str] = []
    for provider, name in API_KEY_ENV.items():
        value = source.get(name)
        if value:
            tail = value[-4:] if len(value) > 8 else "****"
            lines.append(f"{provider.value} API key ({name}) is set: ...{tail}")
        else:
            lines.append(f"{provider.value} API key ({name}) is not set")
    return lines


__all__ = [
    "API_KEY_ENV",
    "AppSettings",
    "ProviderSettings",
    "RunSettings",
    "default_log_path",
    "key_status",
    "load_provider_overrides",
]
