"""Cooperative cancellation shared between the pipeline and its workers.

Setting the token never interrupts an in-flight request; workers check it
before starting their next unit of work (a chunk, an attempt, a poll).
"""

import threading

from resignal.core.exceptions import UploadCancelledError


class CancellationToken:
    """Thread-safe cancellation flag with an optional reason."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._event = threading.Event()
        self._reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        with self._lock:
            return self._reason

    def cancel(self, reason: str | None = None) -> None:
        """Request cancellation. The first reason given wins."""
        with self._lock:
            if not self._event.is_set():
                self._reason = reason
                self._event.set()

    def raise_if_cancelled(self) -> None:
        """Raise ``UploadCancelledError`` if cancellation was requested."""
        if self._event.is_set():
            raise UploadCancelledError(self.reason)
