"""Adapter factory keyed by provider."""

from __future__ import annotations

from typing import Callable, Dict

from askall.config import ProviderSettings
from askall.interfaces import Provider, ProviderAdapter
from askall.provider_gemini import GeminiAdapter
from askall.provider_openai import CerebrasAdapter, ChatGPTAdapter
from askall.provider_perplexity import PerplexityAdapter

ADAPTERS: Dict[Provider, Callable[[ProviderSettings], ProviderAdapter]] = {
    Provider.CHATGPT: ChatGPTAdapter,
    Provider.GEMINI: GeminiAdapter,
    Provider.PERPLEXITY: PerplexityAdapter,
    Provider.CEREBRAS: CerebrasAdapter,
}


def create_adapter(settings: ProviderSettings) -> ProviderAdapter:
    return ADAPTERS[settings.provider](settings)


__all__ = ["ADAPTERS", "create_adapter"]
