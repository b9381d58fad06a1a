"""Text produced for the terminal: status lines, provider blocks, log summaries."""

from __future__ import annotations

from askall.interaction_log import LogEntry
from askall.interfaces import ModelResponse
from askall.normalize import format_citations

PROMPT_PREVIEW_CHARS = 120


def format_status(response: ModelResponse) -> str:
    status = (
        f"Model: {response.model_name}, {response.total_tokens} tokens used, "
        f"finished due to: {response.finish_reason}"
    )
    if response.safety_rating:
        status += f", safety rating: {response.safety_rating}"
    return status + f", duration: {response.duration_seconds:.3f} seconds"


def format_body(response: ModelResponse) -> str:
    return format_citations(response.content, response.citations)


def format_response(response: ModelResponse, quiet: bool = False) -> str:
    """Build the markdown block for one provider, or the bare body when quiet."""
    if quiet:
        return format_body(response)
    return f"# {response.provider.value}\n\n{format_status(response)}\n\n{format_body(response)}\n"


def format_log_summary(index: int, entry: LogEntry) -> str:
    timestamp = entry.timestamp.strftime("%Y-%m-%d %H:%M:%S")
    prompt = entry.prompt_text
    if len(prompt) > PROMPT_PREVIEW_CHARS:
        prompt = prompt[:PROMPT_PREVIEW_CHARS] + " ..."
    prompt = prompt.replace("\n", "\n\t")
    return f"{index} :: {timestamp} :: {entry.model_name}\n\t> {prompt}\n"


__all__ = ["format_body", "format_log_summary", "format_response", "format_status"]
