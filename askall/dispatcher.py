"""Concurrent fan-out of one prompt to the selected providers."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence

from tqdm import tqdm

from askall.config import AppSettings, RunSettings, default_log_path
from askall.errors import AskAllError, PersistenceError
from askall.interaction_log import InteractionLog, LogEntry
from askall.interfaces import ModelResponse, Provider, ProviderAdapter
from askall.providers import create_adapter
from askall.timing import invoke_and_normalize

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format="[%(levelname)s] %(message)s",
)
logger = logging.getLogger(__name__)


class DispatchState(str, Enum):
    IDLE = "idle"
    DISPATCHING = "dispatching"
    AWAITING = "awaiting"
    DONE = "done"


@dataclass(frozen=True)
class DispatchOutcome:
    """Terminal result of one dispatch unit: a response or the error that ended it."""

    provider: Provider
    response: Optional[ModelResponse] = None
    error: Optional[Exception] = None
    logged: bool = False

    @property
    def ok(self) -> bool:
        return self.response is not None


class Dispatcher:
    """Runs every selected adapter in its own thread and joins on all of them.

    One provider failing never cancels or hides the others: each unit ends in
    its own ``DispatchOutcome`` and ``run`` returns only after all units have
    reached one.
    """

    def __init__(
        self,
        adapters: Sequence[ProviderAdapter],
        run: RunSettings,
        interaction_log: Optional[InteractionLog] = None,
    ) -> None:
        self._adapters = list(adapters)
        self._run = run
        self._log = interaction_log
        self._state = DispatchState.IDLE
        self._in_flight = 0
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "Dispatcher":
        adapters = [create_adapter(provider_settings) for provider_settings in settings.providers.values()]
        interaction_log = None
        if settings.run.logging_enabled:
            interaction_log = InteractionLog(settings.run.log_path or default_log_path())
        return cls(adapters, settings.run, interaction_log)

    @property
    def state(self) -> DispatchState:
        with self._lock:
            return self._state

    def _set_state(self, state: DispatchState) -> None:
        with self._lock:
            self._state = state

    @property
    def in_flight(self) -> int:
        with self._lock:
            return self._in_flight

    def run(self, prompt: str) -> List[DispatchOutcome]:
        """Dispatch ``prompt`` to every adapter and wait for all of them.

        Outcomes are returned in adapter order, whatever order they finished in.
        """
        with self._lock:
            if self._state in {DispatchState.DISPATCHING, DispatchState.AWAITING}:
                raise RuntimeError("Dispatcher is already running")
            self._state = DispatchState.DISPATCHING
        if not self._adapters:
            self._set_state(DispatchState.DONE)
            return []

        outcomes: Dict[int, DispatchOutcome] = {}
        with ThreadPoolExecutor(
            max_workers=len(self._adapters), thread_name_prefix="askall"
        ) as executor:
            futures: Dict[Future, int] = {}
            for position, adapter in enumerate(self._adapters):
                with self._lock:
                    self._in_flight += 1
                futures[executor.submit(self._run_unit, adapter, prompt)] = position
            self._set_state(DispatchState.AWAITING)
            logger.debug(f"Awaiting {len(futures)} in-flight provider calls")

            show_progress = self._run.show_progress and not self._run.quiet
            completed = as_completed(futures)
            if show_progress:
                completed = tqdm(
                    completed, total=len(futures), desc="Awaiting providers", unit="provider"
                )
            for future in completed:
                outcomes[futures[future]] = future.result()
                with self._lock:
                    self._in_flight -= 1

        self._set_state(DispatchState.DONE)
        return [outcomes[position] for position in range(len(self._adapters))]

    def _run_unit(self, adapter: ProviderAdapter, prompt: str) -> DispatchOutcome:
        provider = adapter.provider
        logger.info(f"Hitting {provider.value} API ...")
        try:
            response = invoke_and_normalize(adapter, prompt, mock=self._run.mock)
        except AskAllError as exc:
            logger.error(f"{provider.value} call failed: {exc}")
            return DispatchOutcome(provider=provider, error=exc)
        except Exception as exc:  # noqa: BLE001
            logger.error(f"Unexpected error from {provider.value}: {exc!r}")
            return DispatchOutcome(provider=provider, error=exc)

        logged = self._record(response, prompt)
        return DispatchOutcome(provider=provider, response=response, logged=logged)

    def _record(self, response: ModelResponse, prompt: str) -> bool:
        if not self._run.logging_enabled or self._log is None:
            return False
        try:
            self._log.append(LogEntry.from_response(response, prompt))
        except PersistenceError as exc:
            # The call itself succeeded; only its log record is lost.
            logger.error(f"Failed to write log entry: {exc}")
            return False
        return True


__all__ = ["DispatchOutcome", "DispatchState", "Dispatcher"]
