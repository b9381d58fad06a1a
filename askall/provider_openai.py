"""OpenAI-compatible chat completions adapters (ChatGPT and Cerebras)."""

from __future__ import annotations

import copy
from datetime import datetime, timezone
from typing import Any, Dict, List

import openai
from openai import (
    APIConnectionError,
    APIError,
    APITimeoutError,
    AuthenticationError,
    BadRequestError,
    PermissionDeniedError,
    RateLimitError,
)

from askall.config import ProviderSettings
from askall.errors import ConfigurationError, TransportError
from askall.interfaces import Provider, RawResult

CHATGPT_MOCK_COMPLETION: Dict[str, Any] = {
    "id": "chatcmpl-mock-123",
    "object": "chat.completion",
    "created": 1677652288,
    "model": "gpt-4o",
    "choices": [
        {
            "index": 0,
            "message": {"role": "assistant", "content": "This is a mocked ChatGPT response."},
            "finish_reason": "stop",
        },
        {
            "index": 1,
            "message": {
                "role": "assistant",
                "content": "This is another mocked ChatGPT response.",
            },
            "finish_reason": "stop",
        },
    ],
    "usage": {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15},
}

CEREBRAS_MOCK_COMPLETION: Dict[str, Any] = {
    "id": "cerebras-mock-123",
    "object": "chat.completion",
    "created": 1677652288,
    "model": "llama-4-scout-17b-16e-instruct",
    "choices": [
        {
            "index": 0,
            "message": {"role": "assistant", "content": "This is a mocked Cerebras response."},
            "finish_reason": "stop",
        }
    ],
    "usage": {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15},
}


class OpenAICompatibleAdapter:
    """Thin wrapper around an OpenAI-style chat completions endpoint."""

    mock_payload: Dict[str, Any] = CHATGPT_MOCK_COMPLETION

    def __init__(self, settings: ProviderSettings) -> None:
        self._settings = settings

    @property
    def provider(self) -> Provider:
        return self._settings.provider

    @property
    def model(self) -> str:
        return self._settings.model

    def invoke(self, prompt: str, mock: bool = False) -> RawResult:
        if mock:
            return RawResult(self.provider, copy.deepcopy(self.mock_payload))

        client = self._make_client()
        try:
            completion = client.chat.completions.create(
                model=self._settings.model,
                messages=[{"role": "user", "content": prompt}],
            )
        except RateLimitError as exc:
            raise TransportError(
                self.provider.value,
                "rate limit or quota exceeded. Check billing settings or slow down requests.",
            ) from exc
        except AuthenticationError as exc:
            raise TransportError(
                self.provider.value, "authentication failed. Verify the API key."
            ) from exc
        except PermissionDeniedError as exc:
            raise TransportError(
                self.provider.value,
                "permission denied. Ensure the key has access to the model.",
            ) from exc
        except BadRequestError as exc:
            raise TransportError(self.provider.value, f"rejected the request: {exc}") from exc
        except (APIConnectionError, APITimeoutError) as exc:
            raise TransportError(self.provider.value, f"failed to connect: {exc}") from exc
        except APIError as exc:
            raise TransportError(self.provider.value, f"API error: {exc}") from exc
        return RawResult(self.provider, completion.model_dump())

    def list_models(self) -> str:
        """Describe the models visible to this key, newest first."""
        client = self._make_client()
        try:
            models = list(client.models.list())
        except APIError as exc:
            raise TransportError(self.provider.value, f"error listing models: {exc}") from exc
        models.sort(key=lambda model: model.created, reverse=True)

        lines: List[str] = [f"Available {self.provider.value} Models:"]
        for model in models:
            created = datetime.fromtimestamp(model.created, tz=timezone.utc).strftime(
                "%a, %d %b %Y %H:%M:%S %Z"
            )
            if model.owned_by != "system":
                lines.append(f"- {model.id}: Owned by: {model.owned_by}, Created: {created}")
            else:
                lines.append(f"- {model.id}: Created: {created}")
        return "\n".join(lines) + "\n"

    def _make_client(self) -> openai.OpenAI:
        if not self._settings.api_key:
            raise ConfigurationError(f"No API key configured for {self.provider.value}")
        return openai.OpenAI(
            api_key=self._settings.api_key,
            base_url=self._settings.base_url,
            timeout=self._settings.timeout_seconds,
        )


class ChatGPTAdapter(OpenAICompatibleAdapter):
    mock_payload = CHATGPT_MOCK_COMPLETION


class CerebrasAdapter(OpenAICompatibleAdapter):
    """Cerebras inference through its OpenAI-compatible API.

    Cerebras answers 400 when frequency/presence penalties, logit bias,
    parallel tool calls or service tier are sent, so requests carry only the
    model and the user message.
    """

    mock_payload = CEREBRAS_MOCK_COMPLETION


__all__ = [
    "CEREBRAS_MOCK_COMPLETION",
    "CHATGPT_MOCK_COMPLETION",
    "CerebrasAdapter",
    "ChatGPTAdapter",
    "OpenAICompatibleAdapter",
]
