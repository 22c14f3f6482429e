"""Cooperative cancellation shared between workers, queues and the host.

A token is cancelled once and stays cancelled. Anything that blocks on
behalf of a worker (queue waits, the relay loop) checks it, and can
register a callback to be woken up when cancellation happens.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable

logger = logging.getLogger(__name__)


class CancellationToken:
    """Thread-safe, one-shot cancellation signal.

    Example::

        token = CancellationToken()
        threading.Timer(5, token.cancel).start()
        token.wait()  # returns after ~5 seconds
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: list[Callable[[], None]] = []

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        """Cancel the token and run registered callbacks (only the first call does anything)."""
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []

        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.exception("Cancellation callback failed")

    def wait(self, timeout: float | None = None) -> bool:
        """Block until cancelled. Returns True if the token is cancelled."""
        return self._event.wait(timeout)

    def register(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Run `callback` on cancellation (immediately if already cancelled).

        Returns a function that unregisters the callback.
        """
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return lambda: self._unregister(callback)

        callback()
        return lambda: None

    def _unregister(self, callback: Callable[[], None]) -> None:
        with self._lock:
            try:
                self._callbacks.remove(callback)
            except ValueError:
                pass
