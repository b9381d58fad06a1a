"""Map vendor payloads onto the canonical ``ModelResponse``."""

from __future__ import annotations

import logging
import re
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from askall.errors import NormalizationError
from askall.interfaces import ModelResponse, Provider, RawResult

logger = logging.getLogger(__name__)

CANDIDATE_SEPARATOR = "\n---\n"
EMPTY_RESPONSE_MARKER = "Received an empty response."
MISSING_CONTENT_MARKER = "Candidate content is empty."
MALFORMED_RESPONSE_MARKER = "Received a malformed response."
CHAT_NO_FINISH_REASON = "N/A"
GEMINI_NO_FINISH_REASON = "None"
GEMINI_UNSPECIFIED_REASON = "FINISH_REASON_UNSPECIFIED"

CITATION_MARKER = re.compile(r"\[(\d+)\]")


def aggregate_candidates(texts: Iterable[str]) -> str:
    """Join candidate texts in vendor order with the candidate separator."""
    return CANDIDATE_SEPARATOR.join(texts)


def reconcile_finish_reasons(reasons: Iterable[Optional[str]], default: str) -> str:
    """Summarize candidate finish reasons as one comma-separated string.

    The first candidate's reason leads; later reasons are appended only when
    they are not already present as a whole token, so ``"stop"`` after
    ``"nonstop"`` is still reported.
    """
    distinct: List[str] = []
    for reason in reasons:
        if not reason:
            continue
        token = str(reason)
        if token not in distinct:
            distinct.append(token)
    if not distinct:
        return default
    return ", ".join(distinct)


def format_citations(content: str, citations: Sequence[str]) -> str:
    """Rewrite ``[n]`` markers as footnote links and append the citation lists.

    Citations are numbered from 1 in the order the vendor returned them; the
    footnote definitions are followed by a plain numbered list for contexts
    that do not render footnotes.
    """
    if not citations:
        return content
    body = CITATION_MARKER.sub(r"[^\1]", content)
    footnotes = "".join(f"[^{i}]: {url}\n" for i, url in enumerate(citations, start=1))
    plain = "".join(f"{i}. {url}\n" for i, url in enumerate(citations, start=1))
    return f"{body}\n\n{footnotes}\n\nCitations:\n\n{plain}"


def _total_tokens(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return max(int(value), 0)


def _as_list(payload: Dict[str, Any], key: str) -> List[Any]:
    value = payload.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise NormalizationError(f"'{key}' must be a list, got {type(value).__name__}")
    return value


def normalize_chat_completion(
    provider: Provider, payload: Dict[str, Any], duration_seconds: float = 0.0
) -> ModelResponse:
    """Normalize an OpenAI-style chat completion (ChatGPT, Cerebras, Perplexity)."""
    choices = _as_list(payload, "choices")
    model_name = str(payload.get("model") or "")
    usage = payload.get("usage") or {}
    total_tokens = _total_tokens(usage.get("total_tokens") if isinstance(usage, dict) else None)
    citations = tuple(str(url) for url in _as_list(payload, "citations") if isinstance(url, str))

    texts: List[str] = []
    reasons: List[Optional[str]] = []
    for choice in choices:
        if not isinstance(choice, dict):
            raise NormalizationError(f"choice must be an object, got {type(choice).__name__}")
        message = choice.get("message") or {}
        text = message.get("content") if isinstance(message, dict) else None
        reasons.append(choice.get("finish_reason"))
        if not isinstance(text, str):
            logger.debug(f"{provider.value} choice {choice.get('index')} has no text content")
            continue
        texts.append(text)

    if not choices:
        content = EMPTY_RESPONSE_MARKER
    elif not texts:
        content = MISSING_CONTENT_MARKER
    else:
        content = aggregate_candidates(texts)

    return ModelResponse(
        provider=provider,
        model_name=model_name,
        total_tokens=total_tokens,
        content=content,
        finish_reason=reconcile_finish_reasons(reasons, CHAT_NO_FINISH_REASON),
        citations=citations,
        duration_seconds=duration_seconds,
    )


def _format_safety_ratings(candidates: Iterable[Dict[str, Any]]) -> Optional[str]:
    ratings: List[str] = []
    for candidate in candidates:
        for rating in candidate.get("safetyRatings") or []:
            if not isinstance(rating, dict):
                continue
            label = f"{rating.get('category')}: {rating.get('probability')}"
            if rating.get("blocked"):
                label += " (blocked)"
            ratings.append(label)
    return ", ".join(ratings) if ratings else None


def normalize_gemini(payload: Dict[str, Any], duration_seconds: float = 0.0) -> ModelResponse:
    """Normalize a Gemini ``generateContent`` response."""
    candidates = _as_list(payload, "candidates")
    usage = payload.get("usageMetadata") or {}
    total_tokens = _total_tokens(
        usage.get("totalTokenCount") if isinstance(usage, dict) else None
    )
    model_name = str(payload.get("modelVersion") or "")

    texts: List[str] = []
    reasons: List[Optional[str]] = []
    for candidate in candidates:
        if not isinstance(candidate, dict):
            raise NormalizationError(
                f"candidate must be an object, got {type(candidate).__name__}"
            )
        reason = candidate.get("finishReason")
        if reason != GEMINI_UNSPECIFIED_REASON:
            reasons.append(reason)
        content = candidate.get("content") or {}
        parts = content.get("parts") if isinstance(content, dict) else None
        text_parts = [
            part["text"]
            for part in parts or []
            if isinstance(part, dict) and isinstance(part.get("text"), str)
        ]
        if not text_parts:
            logger.debug("Gemini candidate carries no text parts")
            continue
        texts.append("".join(text_parts))

    if not candidates:
        content_text = EMPTY_RESPONSE_MARKER
        feedback = payload.get("promptFeedback") or {}
        if isinstance(feedback, dict) and feedback.get("blockReason"):
            reasons.append(f"blocked: {feedback['blockReason']}")
    elif not texts:
        content_text = MISSING_CONTENT_MARKER
    else:
        content_text = aggregate_candidates(texts)

    return ModelResponse(
        provider=Provider.GEMINI,
        model_name=model_name,
        total_tokens=total_tokens,
        content=content_text,
        finish_reason=reconcile_finish_reasons(reasons, GEMINI_NO_FINISH_REASON),
        duration_seconds=duration_seconds,
        safety_rating=_format_safety_ratings(c for c in candidates if isinstance(c, dict)),
    )


NORMALIZERS: Dict[Provider, Callable[[Dict[str, Any], float], ModelResponse]] = {
    Provider.CHATGPT: lambda p, d: normalize_chat_completion(Provider.CHATGPT, p, d),
    Provider.CEREBRAS: lambda p, d: normalize_chat_completion(Provider.CEREBRAS, p, d),
    Provider.PERPLEXITY: lambda p, d: normalize_chat_completion(Provider.PERPLEXITY, p, d),
    Provider.GEMINI: normalize_gemini,
}


def normalize(raw: RawResult, duration_seconds: float = 0.0) -> ModelResponse:
    """Normalize any adapter's raw result.

    A malformed payload never raises: it yields a placeholder record whose
    content is ``MALFORMED_RESPONSE_MARKER``.
    """
    try:
        if not isinstance(raw.payload, dict):
            raise NormalizationError(
                f"payload must be an object, got {type(raw.payload).__name__}"
            )
        return NORMALIZERS[raw.provider](raw.payload, duration_seconds)
    except (NormalizationError, AttributeError, TypeError) as exc:
        logger.warning(f"Could not normalize {raw.provider.value} response: {exc}")
        model = raw.payload.get("model") if isinstance(raw.payload, dict) else None
        return ModelResponse(
            provider=raw.provider,
            model_name=str(model or "unknown"),
            total_tokens=0,
            content=MALFORMED_RESPONSE_MARKER,
            finish_reason=CHAT_NO_FINISH_REASON,
            duration_seconds=duration_seconds,
        )


__all__ = [
    "CANDIDATE_SEPARATOR",
    "EMPTY_RESPONSE_MARKER",
    "MALFORMED_RESPONSE_MARKER",
    "MISSING_CONTENT_MARKER",
    "aggregate_candidates",
    "format_citations",
    "normalize",
    "normalize_chat_completion",
    "normalize_gemini",
    "reconcile_finish_reasons",
]
