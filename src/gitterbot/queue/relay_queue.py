"""Relay queue — hands message events from protocol threads to a single consumer.

A deque guarded by a Condition. Producers never block; the consumer blocks
until an item arrives or the cancellation token fires.
"""

from __future__ import annotations

import threading
from collections import deque
from typing import Generic, TypeVar

from gitterbot.cancellation import CancellationToken

T = TypeVar("T")


class RelayQueue(Generic[T]):
    """Unbounded, thread-safe FIFO with a cancellable blocking dequeue.

    Example::

        queue = RelayQueue()
        queue.enqueue(event)            # from the protocol callback thread
        event = queue.dequeue(token)    # from the relay thread; None if cancelled
    """

    def __init__(self) -> None:
        self._items: deque[T] = deque()
        self._condition = threading.Condition()

    def enqueue(self, item: T) -> None:
        """Append an item to the tail and wake the consumer."""
        with self._condition:
            self._items.append(item)
            self._condition.notify()

    def dequeue(self, token: CancellationToken) -> T | None:
        """Remove and return the head item, blocking until one is available.

        Returns None as soon as `token` is cancelled and the queue is empty.
        Items already queued are still handed out first.
        """
        with self._condition:
            if self._items:
                return self._items.popleft()
            if token.is_cancelled:
                return None

        unregister = token.register(self._wake)
        try:
            with self._condition:
                while not self._items:
                    if token.is_cancelled:
                        return None
                    self._condition.wait()
                return self._items.popleft()
        finally:
            unregister()

    def _wake(self) -> None:
        with self._condition:
            self._condition.notify_all()

    def __len__(self) -> int:
        with self._condition:
            return len(self._items)
