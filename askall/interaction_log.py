"""Append-only JSON Lines log of completed provider calls."""

from __future__ import annotations

import json
import logging
import os
import re
import threading
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from askall.errors import PersistenceError, ReplayParseError
from askall.interfaces import ModelResponse

logger = logging.getLogger(__name__)

LOG_FIELDS = (
    "model_name",
    "total_tokens",
    "duration_seconds",
    "stop_reason",
    "prompt_text",
    "model_response",
    "timestamp",
)

_FRACTION = re.compile(r"\.(\d+)")

# One lock per log file for the whole process; writers on the same path
# serialize their single append through it.
_LOCKS: Dict[str, threading.Lock] = {}
_LOCKS_GUARD = threading.Lock()


def _lock_for(path: Path) -> threading.Lock:
    key = str(path.resolve())
    with _LOCKS_GUARD:
        return _LOCKS.setdefault(key, threading.Lock())


def parse_timestamp(raw: str) -> datetime:
    """Parse an RFC 3339 timestamp; naive values are taken as UTC."""
    text = raw.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    # fromisoformat wants exactly six fraction digits before 3.11.
    text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    value = datetime.fromisoformat(text)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


@dataclass(frozen=True)
class LogEntry:
    model_name: str
    total_tokens: int
    duration_seconds: float
    stop_reason: str
    prompt_text: str
    model_response: str
    timestamp: datetime

    @classmethod
    def from_response(
        cls,
        response: ModelResponse,
        prompt: str,
        timestamp: Optional[datetime] = None,
    ) -> "LogEntry":
        return cls(
            model_name=response.model_name,
            total_tokens=response.total_tokens,
            duration_seconds=response.duration_seconds,
            stop_reason=response.finish_reason,
            prompt_text=prompt,
            model_response=response.content,
            timestamp=timestamp or datetime.now(timezone.utc),
        )

    def to_json(self) -> str:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        return json.dumps(data, ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LogEntry":
        missing = [name for name in LOG_FIELDS if name not in data]
        if missing:
            raise ValueError(f"missing field(s): {', '.join(missing)}")
        return cls(
            model_name=str(data["model_name"]),
            total_tokens=int(data["total_tokens"]),
            duration_seconds=float(data["duration_seconds"]),
            stop_reason=str(data["stop_reason"]),
            prompt_text=str(data["prompt_text"]),
            model_response=str(data["model_response"]),
            timestamp=parse_timestamp(str(data["timestamp"])),
        )


@dataclass(frozen=True)
class ReplayResult:
    entries: List[LogEntry]
    errors: List[ReplayParseError]


class InteractionLog:
    """Durable, append-only store of ``LogEntry`` records.

    Each append opens the file in append mode and issues the whole record,
    newline included, as one write while holding the per-path lock, so
    concurrent dispatch units never interleave bytes. Records are never
    rewritten.
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def append(self, entry: LogEntry) -> None:
        try:
            record = (entry.to_json() + "\n").encode("utf-8")
        except (TypeError, ValueError) as exc:
            raise PersistenceError(f"Failed to serialize log entry: {exc}") from exc

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with _lock_for(self._path):
                fd = os.open(self._path, os.O_WRONLY | os.O_APPEND | os.O_CREAT, 0o644)
                try:
                    view = memoryview(record)
                    while view:
                        written = os.write(fd, view)
                        view = view[written:]
                finally:
                    os.close(fd)
        except OSError as exc:
            raise PersistenceError(f"Failed to write to log file {self._path}: {exc}") from exc

    def load(self) -> ReplayResult:
        """Read every record, collecting unparseable lines instead of failing."""
        entries: List[LogEntry] = []
        errors: List[ReplayParseError] = []
        if not self._path.exists():
            logger.info(f"No interaction log at {self._path} yet")
            return ReplayResult(entries, errors)

        try:
            with self._path.open("r", encoding="utf-8") as handle:
                for line_number, line in enumerate(handle, start=1):
                    if not line.strip():
                        continue
                    try:
                        data = json.loads(line)
                        if not isinstance(data, dict):
                            raise ValueError("record is not a JSON object")
                        entries.append(LogEntry.from_dict(data))
                    except (ValueError, TypeError) as exc:
                        error = ReplayParseError(line_number, str(exc))
                        logger.warning(f"Skipping log record: {error}")
                        errors.append(error)
        except (OSError, UnicodeDecodeError) as exc:
            raise PersistenceError(f"Failed to read log file {self._path}: {exc}") from exc

        entries.sort(key=lambda entry: entry.timestamp, reverse=True)
        return ReplayResult(entries, errors)

    def replay(self, index: Optional[int] = None) -> List[LogEntry]:
        """Return entries newest first, or only the one at ``index``.

        Raises:
            IndexError: If ``index`` is outside the sorted entries
        """
        entries = self.load().entries
        if index is None:
            return entries
        if index < 0 or index >= len(entries):
            raise IndexError(
                f"Index {index} doesn't make sense when we have {len(entries)} log entries"
            )
        return [entries[index]]


__all__ = ["InteractionLog", "LogEntry", "ReplayResult", "parse_timestamp"]
