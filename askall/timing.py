"""Wall-clock timing around a single adapter call."""

from __future__ import annotations

import time
from typing import Tuple

from askall.errors import AskAllError
from askall.interfaces import ModelResponse, ProviderAdapter, RawResult
from askall.normalize import normalize


def timed_invoke(adapter: ProviderAdapter, prompt: str, mock: bool = False) -> Tuple[RawResult, float]:
    """Invoke ``adapter`` and return its raw result with the elapsed seconds.

    Only the adapter call is timed. On failure the elapsed time is attached
    to the raised ``AskAllError`` before it propagates.
    """
    started = time.perf_counter()
    try:
        raw = adapter.invoke(prompt, mock=mock)
    except AskAllError as exc:
        exc.duration_seconds = time.perf_counter() - started
        raise
    return raw, time.perf_counter() - started


def invoke_and_normalize(adapter: ProviderAdapter, prompt: str, mock: bool = False) -> ModelResponse:
    raw, duration = timed_invoke(adapter, prompt, mock=mock)
    return normalize(raw, duration)


__all__ = ["invoke_and_normalize", "timed_invoke"]
