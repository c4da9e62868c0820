"""Exceptions and the cancellation signal shared by the generation stages."""
from __future__ import annotations

import threading


class CancellationError(Exception):
    """Raised when a playlist run is cancelled."""
    pass


class HistoryStoreUnavailable(Exception):
    """The listening-history store could not be opened. Fatal for the run."""
    pass


class CancellationToken:
    """
    Caller-owned cancellation flag.

    Thread-safe; the caller may cancel from another thread while a batch is
    running. Stages call check() at their boundaries.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def check(self, stage: str = "") -> None:
        """Raise CancellationError if cancellation has been requested."""
        if self._event.is_set():
            where = f" before {stage}" if stage else ""
            raise CancellationError(f"Playlist generation cancelled{where}")
