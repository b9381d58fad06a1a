"""Perplexity chat completions REST adapter."""

from __future__ import annotations

import copy
from typing import Any, Dict

from askall.config import ProviderSettings
from askall.errors import ConfigurationError
from askall.interfaces import Provider, RawResult
from askall.transport import post_json

SYSTEM_PROMPT = "Be precise and concise."

# Canned answer to "Please tell me about Perplexity".
PERPLEXITY_MOCK_RESPONSE: Dict[str, Any] = {
    "id": "a83283d7-4307-4c36-850f-56b648ae90a1",
    "model": "sonar-pro",
    "created": 1745486154,
    "usage": {
        "prompt_tokens": 12,
        "completion_tokens": 123,
        "total_tokens": 135,
        "search_context_size": "high",
    },
    "citations": [
        "https://www.youtube.com/watch?v=CxMVYwGO7Ec",
        "https://www.perplexity.ai/discover",
        "https://www.youtube.com/watch?v=O1UTAiigrx4",
        "https://www.perplexity.ai/hub/blog/choice-is-the-remedy",
        "https://www.fahimai.com/perplexity-ai",
        "https://www.appypieautomate.ai/blog/perplexity-ai-vs-chatgpt",
        "https://www.adexchanger.com/commerce/perplexity-takes-its-ai-search-engine-out-on-a-shopping-trip/",
    ],
    "object": "chat.completion",
    "choices": [
        {
            "index": 0,
            "finish_reason": "length",
            "message": {
                "role": "assistant",
                "content": (
                    "## What is Perplexity?\n\n"
                    "Perplexity is an AI-powered answer engine designed to provide users "
                    "with accurate, trusted, and real-time answers to any question. Unlike "
                    "traditional search engines that return a list of links, Perplexity "
                    "synthesizes information from the web and delivers direct answers with "
                    "clear citations, making it easier for users to verify sources and get "
                    "reliable information quickly[2][5][6].\n\n"
                    "## Key Features\n\n"
                    "Direct Answers with Citations\n"
                    "- Perplexity uses advanced natural language processing to understand "
                    "queries in plain language and responds with concise answers directly "
                    "sourced from reputable web content. Each answer includes citations"
                ),
            },
            "delta": {"role": "assistant", "content": ""},
        }
    ],
}


class PerplexityAdapter:
    """Calls the Perplexity search-grounded chat completions endpoint."""

    def __init__(self, settings: ProviderSettings) -> None:
        self._settings = settings

    @property
    def provider(self) -> Provider:
        return Provider.PERPLEXITY

    @property
    def model(self) -> str:
        return self._settings.model

    def invoke(self, prompt: str, mock: bool = False) -> RawResult:
        if mock:
            return RawResult(self.provider, copy.deepcopy(PERPLEXITY_MOCK_RESPONSE))

        if not self._settings.api_key:
            raise ConfigurationError("No API key configured for Perplexity")
        url = f"{(self._settings.base_url or '').rstrip('/')}/chat/completions"
        data = post_json(
            self.provider.value,
            url,
            self._make_payload(prompt),
            headers={
                "Authorization": f"Bearer {self._settings.api_key}",
                "Content-Type": "application/json",
            },
            timeout=self._settings.timeout_seconds,
        )
        return RawResult(self.provider, data)

    def _make_payload(self, prompt: str) -> Dict[str, Any]:
        return {
            "model": self._settings.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "max_tokens": 4000,
            "temperature": 0.2,
            "top_p": 0.9,
            "search_domain_filter": [],
            "return_images": False,
            "return_related_questions": False,
            "search_recency_filter": "month",
            "top_k": 0,
            "stream": False,
            "presence_penalty": 0,
            "frequency_penalty": 1,
            "web_search_options": {"search_context_size": "high"},
        }


__all__ = ["PERPLEXITY_MOCK_RESPONSE", "PerplexityAdapter"]
