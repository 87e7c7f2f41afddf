"""Fetch workflow histories from a provider, bounded by a timeout.

The workflow service client is external; anything with a
``get_history(ref)`` method can stand in for it. ``FileHistoryProvider`` reads
exported history files from a directory.
"""
from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol, Sequence

from wflens.config import DEFAULT_FETCH_TIMEOUT_SECONDS
from wflens.history.event_model import CorrelatedEvent
from wflens.history.parse import load_history_file

logger = logging.getLogger(__name__)

HISTORY_SUFFIXES = (".jsonl", ".json", ".yaml", ".yml")

# How often a waiting fetch checks its cancel event
POLL_INTERVAL_SECONDS = 0.05


@dataclass(frozen=True)
class WorkflowRef:
    """Identity of one workflow run."""

    workflow_id: str
    run_id: str = ""
    namespace: str = "default"

    def __str__(self) -> str:
        if self.run_id:
            return f"{self.namespace}/{self.workflow_id}/{self.run_id}"
        return f"{self.namespace}/{self.workflow_id}"


class FetchError(Exception):
    """Raised when a workflow history cannot be retrieved."""

    def __init__(self, message: str, ref: Optional[WorkflowRef] = None):
        super().__init__(message)
        self.ref = ref


class FetchTimeoutError(FetchError):
    """Raised when a fetch does not finish within its timeout."""

    def __init__(self, ref: WorkflowRef, timeout_seconds: float):
        super().__init__(f"Fetching history for {ref} timed out after {timeout_seconds:g}s", ref)
        self.timeout_seconds = timeout_seconds


class FetchCancelledError(FetchError):
    """Raised when a fetch is cancelled before it completes."""

    def __init__(self, ref: WorkflowRef):
        super().__init__(f"Fetching history for {ref} was cancelled", ref)


class HistoryNotFoundError(FetchError):
    """Raised when no history exists for the requested workflow."""


class HistoryUnreadableError(FetchError):
    """Raised when a history file exists but cannot be read."""


class HistoryProvider(Protocol):
    def get_history(self, ref: WorkflowRef) -> Sequence[CorrelatedEvent]:
        ...


class FileHistoryProvider:
    """Serves histories exported to ``<dir>/<workflow_id>[_<run_id>].<ext>``.

    A provider built with ``path`` always serves that one file.
    """

    def __init__(self, base_dir: Optional[Path] = None, path: Optional[Path] = None):
        if base_dir is None and path is None:
            raise ValueError("FileHistoryProvider needs a base_dir or a path")
        self.base_dir = Path(base_dir) if base_dir is not None else None
        self.path = Path(path) if path is not None else None

    def resolve(self, ref: WorkflowRef) -> Path:
        if self.path is not None:
            if not self.path.exists():
                raise HistoryNotFoundError(f"History file not found: {self.path}", ref)
            return self.path

        assert self.base_dir is not None
        stems = [ref.workflow_id]
        if ref.run_id:
            stems.insert(0, f"{ref.workflow_id}_{ref.run_id}")
        for stem in stems:
            for suffix in HISTORY_SUFFIXES:
                candidate = self.base_dir / f"{stem}{suffix}"
                if candidate.exists():
                    return candidate
        raise HistoryNotFoundError(f"No history file for {ref} in {self.base_dir}", ref)

    def get_history(self, ref: WorkflowRef) -> list[CorrelatedEvent]:
        path = self.resolve(ref)
        try:
            return load_history_file(path)
        except ValueError as e:
            raise FetchError(str(e), ref) from e
        except OSError as e:
            raise HistoryUnreadableError(f"{path}: {e}", ref) from e


def fetch_history(
    provider: HistoryProvider,
    ref: WorkflowRef,
    timeout: float = DEFAULT_FETCH_TIMEOUT_SECONDS,
    cancel_event: Optional[threading.Event] = None,
) -> list[CorrelatedEvent]:
    """Run ``provider.get_history`` on a worker thread.

    Args:
        provider: Source of history events
        ref: Workflow run to fetch
        timeout: Seconds to wait before giving up
        cancel_event: Setting this event abandons the fetch

    Returns:
        The fetched events

    Raises:
        FetchTimeoutError: If the provider does not answer in time
        FetchCancelledError: If cancel_event is set first
        FetchError: If the provider fails
    """
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="wflens-fetch")
    future = executor.submit(provider.get_history, ref)
    deadline = time.monotonic() + timeout
    try:
        while True:
            if cancel_event is not None and cancel_event.is_set():
                future.cancel()
                raise FetchCancelledError(ref)

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                future.cancel()
                raise FetchTimeoutError(ref, timeout)

            done, _ = wait([future], timeout=min(POLL_INTERVAL_SECONDS, remaining))
            if not done:
                continue
            if cancel_event is not None and cancel_event.is_set():
                raise FetchCancelledError(ref)

            try:
                events = future.result()
            except FetchError:
                raise
            except Exception as e:
                raise FetchError(f"Fetching history for {ref} failed: {e}", ref) from e
            logger.debug("Fetched %d event(s) for %s", len(events), ref)
            return list(events)
    finally:
        # A provider stuck past the timeout keeps its thread; don't block on it
        executor.shutdown(wait=False)
