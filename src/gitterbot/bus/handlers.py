"""Built-in event handlers, selected by name in config.json."""

from __future__ import annotations

import logging

from gitterbot.bus.dispatcher import EventHandler
from gitterbot.models import MessageEvent

logger = logging.getLogger(__name__)


async def log_message(event: MessageEvent) -> None:
    """Log every message the bot sees."""
    message = event.message
    sender = message.sender.username if message.sender else "(system)"
    if message.addressee:
        logger.info("[%s] %s -> @%s: %s", event.room.name, sender, message.addressee.username, message.text)
    else:
        logger.info("[%s] %s: %s", event.room.name, sender, message.text)


async def ping(event: MessageEvent) -> None:
    """Answer "@bot ping" with "pong"."""
    message = event.message
    if message.addressee is None or message.addressee.username != event.bot.username:
        return
    if message.text.strip().lower() != "ping":
        return

    reply = f"@{message.sender.username} pong" if message.sender else "pong"
    await event.broker.send_message(event.room, reply)


HANDLERS: dict[str, EventHandler] = {
    "log": log_message,
    "ping": ping,
}


def build_handlers(names: list[str]) -> list[EventHandler]:
    """Resolve handler names. Raises ValueError for unknown names."""
    handlers = []
    for name in names:
        handler = HANDLERS.get(name)
        if handler is None:
            raise ValueError(f"Unknown handler: {name}")
        handlers.append(handler)
    return handlers
