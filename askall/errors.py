"""Error kinds raised across the fan-out toolkit."""

from __future__ import annotations

from typing import Optional


class AskAllError(RuntimeError):
    """Base class for every error this package raises on purpose."""

    duration_seconds: Optional[float] = None


class ConfigurationError(AskAllError):
    """A required credential or setting is missing; raised before dispatch."""


class TransportError(AskAllError):
    """The vendor call failed (network, authentication, vendor-side error)."""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(message)
        self.provider = provider


class NormalizationError(AskAllError):
    """A vendor payload could not be mapped onto the canonical record."""


class PersistenceError(AskAllError):
    """Appending to or reading from the interaction log failed."""


class ReplayParseError(AskAllError):
    """One stored log record could not be decoded."""

    def __init__(self, line_number: int, message: str) -> None:
        super().__init__(f"line {line_number}: {message}")
        self.line_number = line_number


__all__ = [
    "AskAllError",
    "ConfigurationError",
    "NormalizationError",
    "PersistenceError",
    "ReplayParseError",
    "TransportError",
]
