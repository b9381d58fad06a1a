"""Gemini ``generateContent`` REST adapter."""

from __future__ import annotations

import copy
from typing import Any, Dict, List, Optional

from askall.config import ProviderSettings
from askall.errors import ConfigurationError
from askall.interfaces import Provider, RawResult
from askall.transport import get_json, post_json

GEMINI_MOCK_RESPONSE: Dict[str, Any] = {
    "candidates": [
        {
            "content": {
                "parts": [{"text": "This is a mocked Gemini response."}],
                "role": "model",
            },
            "finishReason": "STOP",
            "safetyRatings": [
                {"category": "HARM_CATEGORY_HARASSMENT", "probability": "NEGLIGIBLE"}
            ],
        }
    ],
    "usageMetadata": {
        "promptTokenCount": 10,
        "candidatesTokenCount": 20,
        "totalTokenCount": 30,
    },
}


class GeminiAdapter:
    """Calls Gemini through the Generative Language REST API."""

    def __init__(self, settings: ProviderSettings) -> None:
        self._settings = settings

    @property
    def provider(self) -> Provider:
        return Provider.GEMINI

    @property
    def model(self) -> str:
        return self._settings.model

    def invoke(self, prompt: str, mock: bool = False) -> RawResult:
        if mock:
            return RawResult(self.provider, self._tag_model(copy.deepcopy(GEMINI_MOCK_RESPONSE)))

        url = f"{self._base_url()}/{self._model_path()}:generateContent"
        payload = {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}
        data = post_json(
            self.provider.value,
            url,
            payload,
            headers=self._headers(),
            timeout=self._settings.timeout_seconds,
        )
        return RawResult(self.provider, self._tag_model(data))

    def list_models(self) -> str:
        """Describe models that support ``generateContent``."""
        lines: List[str] = ["--- Available Models ---"]
        page_token: Optional[str] = None
        while True:
            params = {"pageToken": page_token} if page_token else {}
            data = get_json(
                self.provider.value,
                f"{self._base_url()}/models",
                params=params,
                headers=self._headers(),
                timeout=self._settings.timeout_seconds,
            )
            for info in data.get("models", []):
                methods = info.get("supportedGenerationMethods", [])
                if "generateContent" not in methods:
                    continue
                lines.append(
                    f"{info.get('name')} Display name: {info.get('displayName')} "
                    f"Supports: {methods}"
                )
                lines.append(f"Description: {info.get('description') or '(none)'}")
                lines.append("----------------------")
            page_token = data.get("nextPageToken")
            if not page_token:
                break
        lines.append("--- End of List ---")
        return "\n".join(lines) + "\n"

    def _tag_model(self, data: Dict[str, Any]) -> Dict[str, Any]:
        # generateContent does not always echo the model; keep the requested one.
        data.setdefault("modelVersion", self._settings.model)
        return data

    def _model_path(self) -> str:
        model = self._settings.model
        return model if model.startswith("models/") else f"models/{model}"

    def _base_url(self) -> str:
        return (self._settings.base_url or "").rstrip("/")

    def _headers(self) -> Dict[str, str]:
        if not self._settings.api_key:
            raise ConfigurationError("No API key configured for Gemini")
        return {"x-goog-api-key": self._settings.api_key, "Content-Type": "application/json"}


__all__ = ["GEMINI_MOCK_RESPONSE", "GeminiAdapter"]
