"""Normalization of pushed Gitter payloads into MessageEvents.

Runs on the Faye client's thread. Edits, deletes and the bot's own messages
are dropped here so that only new messages from other users reach the bus.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from gitterbot.gitter.envelope import Envelope, EnvelopeError
from gitterbot.gitter.parser import parse
from gitterbot.models import Message, MessageEvent, Room, User

logger = logging.getLogger(__name__)


def normalize(raw: Any, room: Room, bot: User, broker: Any) -> MessageEvent | None:
    """Turn one raw Faye message into a MessageEvent, or None if it is filtered out.

    Raises EnvelopeError for payloads that cannot be decoded.
    """
    envelope = Envelope.from_message(raw)
    if not envelope.is_create:
        logger.debug("Ignoring '%s' operation in %s", envelope.operation, room.name)
        return None

    model = envelope.message()
    sender = model.from_user
    if sender is not None and sender.id == bot.id:
        return None

    addressee, text = parse(model.text)
    recipient = User.from_token(addressee) if addressee is not None else None

    message = Message(sender=sender, addressee=recipient, text=text)
    return MessageEvent(bot=bot, room=room, message=message, broker=broker)


class MessageHandler:
    """Subscription callback for one room: normalizes and hands events to a sink.

    Decode failures are logged and the message dropped; they never reach the
    Faye client or the adapter.
    """

    def __init__(
        self,
        bot: User,
        room: Room,
        broker: Any,
        sink: Callable[[MessageEvent], None],
    ) -> None:
        self._bot = bot
        self._room = room
        self._broker = broker
        self._sink = sink

    def __call__(self, raw: Any) -> None:
        try:
            event = normalize(raw, self._room, self._bot, self._broker)
        except EnvelopeError:
            logger.exception("Dropping malformed message in %s (%s)", self._room.name, self._room.id)
            return

        if event is not None:
            self._sink(event)
