"""Cooperative cancellation handle shared between a caller and a long-running operation."""

from __future__ import annotations

import threading
from typing import Callable, List

from kubescape_api.errors import CancelledError


class CancellationToken:
    """Thread-safe cancellation flag.

    The caller keeps a reference and calls ``cancel()``; the operation checks
    ``cancelled`` or waits on it. Callbacks registered with ``on_cancel`` run
    once, on the thread that triggers cancellation (or immediately if the
    token was already cancelled).
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: List[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks = list(self._callbacks)
            self._callbacks.clear()
        for callback in callbacks:
            callback()

    def on_cancel(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return
        callback()

    def wait(self, timeout: float) -> bool:
        """Block up to ``timeout`` seconds; return True if cancelled."""
        return self._event.wait(timeout)

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise CancelledError()
