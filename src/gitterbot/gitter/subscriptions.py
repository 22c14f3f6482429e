"""Room subscriptions — one Faye channel per room the bot is in.

Only rooms known at startup are subscribed. Rooms the bot joins while
running are not picked up until the adapter is restarted.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Protocol

from gitterbot.gitter.normalizer import MessageHandler
from gitterbot.models import MessageEvent, Room, User

logger = logging.getLogger(__name__)


class PushClient(Protocol):
    def connect(self) -> None: ...

    def disconnect(self) -> None: ...

    def subscribe(self, channel: str, callback: Callable[[Any], None]) -> None: ...


def room_channel(room: Room) -> str:
    """Faye channel carrying chat messages for `room`."""
    return f"/api/v1/rooms/{room.id}/chatMessages"


def subscribe_rooms(
    client: PushClient,
    bot: User,
    rooms: Iterable[Room],
    broker: Any,
    sink: Callable[[MessageEvent], None],
) -> list[str]:
    """Subscribe to every room's message channel, in the given order.

    Each callback is bound to its own room. Errors raised by the client
    propagate to the caller.

    Returns:
        The subscribed channel paths.
    """
    channels: list[str] = []
    for room in rooms:
        channel = room_channel(room)
        client.subscribe(channel, MessageHandler(bot, room, broker, sink))
        logger.info("Subscribed to %s (%s).", room.name, room.id)
        channels.append(channel)
    return channels
