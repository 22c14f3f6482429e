"""Gitter adapter — connects the bot to Gitter and relays room messages.

Lifecycle of one run::

    DISCONNECTED -> CONNECTING -> IDENTIFYING -> SUBSCRIBING -> RELAYING
                 -> DISCONNECTING -> DISCONNECTED

Faye delivers messages on its own thread. They are normalized there and put
on an inbox queue; the relay loop drains the inbox so that every event is
forwarded to the outbox from the adapter's own thread. Blocking Faye calls
run on worker threads so other workers sharing the event loop keep going.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Protocol

from gitterbot.cancellation import CancellationToken
from gitterbot.gitter.broker import GitterBroker
from gitterbot.gitter.subscriptions import PushClient, subscribe_rooms
from gitterbot.models import MessageEvent
from gitterbot.queue.relay_queue import RelayQueue
from gitterbot.worker.base import Adapter

logger = logging.getLogger(__name__)


class AdapterState(enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    IDENTIFYING = "identifying"
    SUBSCRIBING = "subscribing"
    RELAYING = "relaying"
    DISCONNECTING = "disconnecting"


class EventSink(Protocol):
    def enqueue(self, event: MessageEvent) -> None: ...


class GitterAdapter(Adapter):
    """Relays chat messages from every room the bot is in to `outbox`.

    Usage::

        adapter = GitterAdapter(broker, FayeClient(...), outbox=dispatcher)
        keep_running = await adapter.run(token)
    """

    def __init__(
        self,
        broker: GitterBroker,
        client: PushClient,
        outbox: EventSink,
    ) -> None:
        self._broker = broker
        self._client = client
        self._outbox = outbox
        self._inbox: RelayQueue[MessageEvent] = RelayQueue()
        self._state = AdapterState.DISCONNECTED

    @property
    def friendly_name(self) -> str:
        return "Gitter"

    @property
    def broker(self) -> GitterBroker:
        return self._broker

    @property
    def state(self) -> AdapterState:
        return self._state

    def _set_state(self, state: AdapterState) -> None:
        logger.debug("%s: %s -> %s", self.friendly_name, self._state.value, state.value)
        self._state = state

    @asynccontextmanager
    async def _connection(self) -> AsyncGenerator[None, None]:
        """Connect, and always disconnect on the way out."""
        self._set_state(AdapterState.CONNECTING)
        try:
            await asyncio.to_thread(self._client.connect)
            yield
        finally:
            self._set_state(AdapterState.DISCONNECTING)
            try:
                await asyncio.to_thread(self._client.disconnect)
            finally:
                self._set_state(AdapterState.DISCONNECTED)

    async def run(self, token: CancellationToken) -> bool:
        """Connect, subscribe and relay until `token` is cancelled.

        Identity lookup and subscription failures propagate to the caller
        (after disconnecting). Returns True on cancellation.
        """
        async with self._connection():
            self._set_state(AdapterState.IDENTIFYING)
            bot = await self._broker.get_current_user()
            logger.info("Current user is %s.", bot.username)

            self._set_state(AdapterState.SUBSCRIBING)
            rooms = await self._broker.get_rooms()
            await asyncio.to_thread(
                subscribe_rooms, self._client, bot, rooms, self._broker, self._inbox.enqueue
            )

            self._set_state(AdapterState.RELAYING)
            await self._relay(token)

            # The loop only exits on cancellation; wait for it anyway.
            await asyncio.to_thread(token.wait)

        return True

    async def _relay(self, token: CancellationToken) -> None:
        while not token.is_cancelled:
            event = await asyncio.to_thread(self._inbox.dequeue, token)
            if event is not None:
                self._outbox.enqueue(event)


def create_adapter(token: str, outbox: EventSink, api_url: str, faye_url: str) -> GitterAdapter:
    """Build an adapter with a real broker and Faye client."""
    from gitterbot.gitter.faye import FayeClient, GitterTokenExtension

    broker = GitterBroker(token, api_url=api_url)
    client = FayeClient(faye_url, extensions=[GitterTokenExtension(token)])
    return GitterAdapter(broker, client, outbox)
