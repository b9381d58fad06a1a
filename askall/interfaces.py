"""Core types shared by adapters, the normalizer and the dispatcher."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Protocol, Tuple


class Provider(str, Enum):
    """Text-generation vendors the toolkit can fan a prompt out to."""

    CHATGPT = "ChatGPT"
    GEMINI = "Gemini"
    PERPLEXITY = "Perplexity"
    CEREBRAS = "Cerebras"


@dataclass(frozen=True)
class RawResult:
    """Vendor payload tagged with the provider that produced it.

    ``payload`` keeps the vendor's own JSON shape (chat completion,
    ``generateContent`` response, ...); only the normalizer looks inside it.
    """

    provider: Provider
    payload: Dict[str, Any]


@dataclass(frozen=True)
class ModelResponse:
    """Provider-agnostic record of one completed call."""

    provider: Provider
    model_name: str
    total_tokens: int
    content: str
    finish_reason: str
    citations: Tuple[str, ...] = ()
    duration_seconds: float = 0.0
    safety_rating: Optional[str] = None


class ProviderAdapter(Protocol):
    """Protocol every vendor adapter implements.

    Adapters are stateless between invocations: each call builds whatever
    client it needs from the settings it was constructed with.
    """

    @property
    def provider(self) -> Provider:
        """Return the vendor this adapter talks to."""
        ...

    def invoke(self, prompt: str, mock: bool = False) -> RawResult:
        """Send ``prompt`` to the vendor and return its raw payload.

        Args:
            prompt: Full prompt text, read before dispatch begins
            mock: Return the adapter's canned payload without network access

        Raises:
            TransportError: If the vendor call fails
        """
        ...


__all__ = ["ModelResponse", "Provider", "ProviderAdapter", "RawResult"]
