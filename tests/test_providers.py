"""Tests for provider adapters in mock mode and against patched transports."""

import httpx
import pytest
import requests

from askall import provider_openai, transport
from askall.config import DEFAULT_BASE_URLS, DEFAULT_MODELS, ProviderSettings
from askall.errors import ConfigurationError, TransportError
from askall.formatting import format_response
from askall.interfaces import Provider
from askall.normalize import normalize
from askall.provider_gemini import GeminiAdapter
from askall.provider_openai import CerebrasAdapter, ChatGPTAdapter
from askall.provider_perplexity import PerplexityAdapter
from askall.providers import create_adapter

# Expected values for test assertions
PERPLEXITY_MOCK_TOKENS = 135
CHATGPT_MOCK_TOKENS = 15
GEMINI_MOCK_TOKENS = 30


def make_settings(provider, api_key=None):
    return ProviderSettings(
        provider=provider,
        api_key=api_key,
        model=DEFAULT_MODELS[provider],
        base_url=DEFAULT_BASE_URLS[provider],
        timeout_seconds=5,
    )


class FakeResponse:
    """Minimal stand-in for ``requests.Response``."""

    def __init__(self, status_code=200, data=None, text=""):
        self.status_code = status_code
        self._data = data
        self.text = text

    def json(self):
        if self._data is None:
            raise ValueError("No JSON object could be decoded")
        return self._data


class TestMockMode:
    """Mock mode is deterministic and needs no credentials."""

    @pytest.mark.parametrize("provider", list(Provider))
    def test_mock_output_is_deterministic(self, provider):
        """Test repeated mock calls normalize to identical output."""
        adapter = create_adapter(make_settings(provider))
        first = format_response(normalize(adapter.invoke("prompt", mock=True), 0.25))
        second = format_response(normalize(adapter.invoke("prompt", mock=True), 0.25))
        assert first == second
        assert first.startswith(f"# {provider.value}")

    def test_mock_payload_is_a_copy(self):
        """Test mutating one mock payload does not leak into the next call."""
        adapter = ChatGPTAdapter(make_settings(Provider.CHATGPT))
        raw = adapter.invoke("prompt", mock=True)
        raw.payload["choices"].clear()
        assert adapter.invoke("prompt", mock=True).payload["choices"]

    def test_chatgpt_mock_has_two_choices(self):
        """Test the ChatGPT fixture exercises multi-choice aggregation."""
        response = normalize(ChatGPTAdapter(make_settings(Provider.CHATGPT)).invoke("x", True))
        assert response.content == (
            "This is a mocked ChatGPT response.\n---\nThis is another mocked ChatGPT response."
        )
        assert response.finish_reason == "stop"
        assert response.total_tokens == CHATGPT_MOCK_TOKENS

    def test_cerebras_mock(self):
        """Test the Cerebras fixture normalizes to its single answer."""
        response = normalize(CerebrasAdapter(make_settings(Provider.CEREBRAS)).invoke("x", True))
        assert response.provider == Provider.CEREBRAS
        assert response.content == "This is a mocked Cerebras response."
        assert response.model_name == "llama-4-scout-17b-16e-instruct"

    def test_gemini_mock(self):
        """Test the Gemini fixture carries a safety rating and the model name."""
        response = normalize(GeminiAdapter(make_settings(Provider.GEMINI)).invoke("x", True))
        assert response.content == "This is a mocked Gemini response."
        assert response.finish_reason == "STOP"
        assert response.total_tokens == GEMINI_MOCK_TOKENS
        assert response.safety_rating == "HARM_CATEGORY_HARASSMENT: NEGLIGIBLE"
        assert response.model_name == DEFAULT_MODELS[Provider.GEMINI]

    def test_perplexity_mock(self):
        """Test the Perplexity fixture carries citations and a length stop."""
        adapter = PerplexityAdapter(make_settings(Provider.PERPLEXITY))
        response = normalize(adapter.invoke("Please tell me about Perplexity", True))
        assert response.content.startswith("## What is Perplexity?")
        assert response.finish_reason == "length"
        assert response.total_tokens == PERPLEXITY_MOCK_TOKENS
        assert len(response.citations) == 7
        rendered = format_response(response)
        assert "quickly[^2][^5][^6]" in rendered
        assert "[^7]: https://www.adexchanger.com" in rendered


class TestPerplexityTransport:
    """Perplexity adapter against a patched HTTP layer."""

    def test_request_shape_and_success(self, monkeypatch):
        """Test URL, auth header and payload are sent and the body returned."""
        captured = {}

        def fake_post(url, json, headers, timeout):
            captured.update(url=url, json=json, headers=headers, timeout=timeout)
            return FakeResponse(
                data={
                    "model": "sonar-pro-test",
                    "choices": [
                        {"message": {"content": "hi [1]"}, "finish_reason": "stop"}
                    ],
                    "citations": ["http://example.com"],
                    "usage": {"total_tokens": 30},
                }
            )

        monkeypatch.setattr(transport.requests, "post", fake_post)
        adapter = PerplexityAdapter(make_settings(Provider.PERPLEXITY, api_key="test-api-key"))
        raw = adapter.invoke("Test prompt")

        assert captured["url"] == "https://api.perplexity.ai/chat/completions"
        assert captured["headers"]["Authorization"] == "Bearer test-api-key"
        assert captured["json"]["messages"][-1] == {"role": "user", "content": "Test prompt"}
        assert captured["timeout"] == 5
        assert normalize(raw).model_name == "sonar-pro-test"

    def test_prompt_with_quotes_is_sent_verbatim(self, monkeypatch):
        """Test prompts are JSON-encoded rather than spliced into a template."""
        captured = {}

        def fake_post(url, json, headers, timeout):
            captured["json"] = json
            return FakeResponse(data={"choices": []})

        monkeypatch.setattr(transport.requests, "post", fake_post)
        adapter = PerplexityAdapter(make_settings(Provider.PERPLEXITY, api_key="k"))
        adapter.invoke('Say "hi"\nplease')
        assert captured["json"]["messages"][-1]["content"] == 'Say "hi"\nplease'

    def test_http_error_status_raises(self, monkeypatch):
        """Test a non-2xx status becomes a TransportError."""
        monkeypatch.setattr(
            transport.requests,
            "post",
            lambda *a, **k: FakeResponse(status_code=401, text="unauthorized"),
        )
        adapter = PerplexityAdapter(make_settings(Provider.PERPLEXITY, api_key="k"))
        with pytest.raises(TransportError, match="HTTP 401"):
            adapter.invoke("prompt")

    def test_invalid_json_raises(self, monkeypatch):
        """Test an undecodable body becomes a TransportError."""
        monkeypatch.setattr(transport.requests, "post", lambda *a, **k: FakeResponse())
        adapter = PerplexityAdapter(make_settings(Provider.PERPLEXITY, api_key="k"))
        with pytest.raises(TransportError, match="not valid JSON"):
            adapter.invoke("prompt")

    def test_connection_error_raises(self, monkeypatch):
        """Test network failures become a TransportError."""

        def fake_post(*args, **kwargs):
            raise requests.ConnectionError("network down")

        monkeypatch.setattr(transport.requests, "post", fake_post)
        adapter = PerplexityAdapter(make_settings(Provider.PERPLEXITY, api_key="k"))
        with pytest.raises(TransportError) as excinfo:
            adapter.invoke("prompt")
        assert excinfo.value.provider == "Perplexity"

    def test_missing_key_outside_mock(self):
        """Test a real call without a key is a configuration error."""
        adapter = PerplexityAdapter(make_settings(Provider.PERPLEXITY))
        with pytest.raises(ConfigurationError):
            adapter.invoke("prompt")


class TestGeminiTransport:
    """Gemini adapter against a patched HTTP layer."""

    def test_generate_content_request(self, monkeypatch):
        """Test the model path, key header and contents payload."""
        captured = {}

        def fake_post(url, json, headers, timeout):
            captured.update(url=url, json=json, headers=headers)
            return FakeResponse(data={"candidates": []})

        monkeypatch.setattr(transport.requests, "post", fake_post)
        adapter = GeminiAdapter(make_settings(Provider.GEMINI, api_key="g-key"))
        raw = adapter.invoke("hello")

        assert captured["url"].endswith("/models/gemini-2.0-pro-exp-02-05:generateContent")
        assert captured["headers"]["x-goog-api-key"] == "g-key"
        assert captured["json"]["contents"][0]["parts"] == [{"text": "hello"}]
        assert raw.payload["modelVersion"] == DEFAULT_MODELS[Provider.GEMINI]

    def test_list_models_filters_and_pages(self, monkeypatch):
        """Test only generateContent models are listed, across pages."""
        pages = [
            {
                "models": [
                    {
                        "name": "models/a",
                        "displayName": "A",
                        "supportedGenerationMethods": ["generateContent"],
                    },
                    {"name": "models/embed", "supportedGenerationMethods": ["embedContent"]},
                ],
                "nextPageToken": "next",
            },
            {
                "models": [
                    {
                        "name": "models/b",
                        "displayName": "B",
                        "description": "Bee",
                        "supportedGenerationMethods": ["generateContent"],
                    }
                ]
            },
        ]

        def fake_get(url, params, headers, timeout):
            return FakeResponse(data=pages.pop(0))

        monkeypatch.setattr(transport.requests, "get", fake_get)
        listing = GeminiAdapter(make_settings(Provider.GEMINI, api_key="g")).list_models()
        assert "models/a Display name: A" in listing
        assert "Description: (none)" in listing
        assert "Description: Bee" in listing
        assert "models/embed" not in listing


class FakeCompletion:
    def __init__(self, data):
        self._data = data

    def model_dump(self):
        return self._data


class FakeOpenAI:
    """Records constructor arguments and serves one canned completion."""

    instances = []

    def __init__(self, api_key, base_url, timeout, error=None):
        self.kwargs = {"api_key": api_key, "base_url": base_url, "timeout": timeout}
        FakeOpenAI.instances.append(self)
        self.chat = self
        self.completions = self
        self.error = error
        self.requests = []

    def create(self, **kwargs):
        self.requests.append(kwargs)
        if self.error is not None:
            raise self.error
        return FakeCompletion(
            {
                "model": kwargs["model"],
                "choices": [{"message": {"content": "real"}, "finish_reason": "stop"}],
                "usage": {"total_tokens": 7},
            }
        )


class TestOpenAICompatibleTransport:
    """ChatGPT/Cerebras adapters against a patched SDK client."""

    def test_cerebras_uses_its_base_url(self, monkeypatch):
        """Test Cerebras requests go to the Cerebras endpoint with only model and message."""
        FakeOpenAI.instances = []
        monkeypatch.setattr(provider_openai.openai, "OpenAI", FakeOpenAI)
        raw = CerebrasAdapter(make_settings(Provider.CEREBRAS, api_key="c")).invoke("q")

        client = FakeOpenAI.instances[-1]
        assert client.kwargs["base_url"] == "https://api.cerebras.ai/v1"
        assert set(client.requests[0]) == {"model", "messages"}
        assert normalize(raw).content == "real"

    def test_new_client_per_invocation(self, monkeypatch):
        """Test adapters keep no client between calls."""
        FakeOpenAI.instances = []
        monkeypatch.setattr(provider_openai.openai, "OpenAI", FakeOpenAI)
        adapter = ChatGPTAdapter(make_settings(Provider.CHATGPT, api_key="o"))
        adapter.invoke("one")
        adapter.invoke("two")
        assert len(FakeOpenAI.instances) == 2

    def test_connection_error_becomes_transport_error(self, monkeypatch):
        """Test SDK connection failures are reported as TransportError."""
        error = provider_openai.APIConnectionError(
            request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        )
        monkeypatch.setattr(
            provider_openai.openai,
            "OpenAI",
            lambda **kwargs: FakeOpenAI(error=error, **kwargs),
        )
        adapter = ChatGPTAdapter(make_settings(Provider.CHATGPT, api_key="o"))
        with pytest.raises(TransportError, match="failed to connect") as excinfo:
            adapter.invoke("prompt")
        assert excinfo.value.__cause__ is error
