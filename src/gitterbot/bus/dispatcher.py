"""Event dispatcher — the bot's event bus.

Adapters enqueue MessageEvents from their relay threads; the dispatcher's
own worker loop hands each event to every handler in list order.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from gitterbot.cancellation import CancellationToken
from gitterbot.models import MessageEvent
from gitterbot.queue.relay_queue import RelayQueue
from gitterbot.worker.base import Worker

logger = logging.getLogger(__name__)

EventHandler = Callable[[MessageEvent], Awaitable[None]]


class EventDispatcher(Worker):
    """Queues events and runs handlers on them, one event at a time.

    A failing handler is logged and skipped; the remaining handlers still
    see the event.
    """

    def __init__(self, handlers: list[EventHandler] | None = None) -> None:
        self._queue: RelayQueue[MessageEvent] = RelayQueue()
        self._handlers: list[EventHandler] = list(handlers or [])

    @property
    def friendly_name(self) -> str:
        return "Dispatcher"

    def enqueue(self, event: MessageEvent) -> None:
        self._queue.enqueue(event)

    async def run(self, token: CancellationToken) -> bool:
        while not token.is_cancelled:
            event = await asyncio.to_thread(self._queue.dequeue, token)
            if event is not None:
                await self.dispatch(event)
        return True

    async def dispatch(self, event: MessageEvent) -> None:
        for handler in self._handlers:
            try:
                await handler(event)
            except Exception:
                logger.exception(
                    "Handler %s failed for message in %s",
                    getattr(handler, "__name__", handler),
                    event.room.name,
                )
