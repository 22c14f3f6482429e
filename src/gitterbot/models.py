"""Chat domain model shared by adapters and event handlers.

All values are frozen. Users and rooms compare by identifier only, so a
synthetic addressee built from message text equals the real user with the
same id.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class User:
    """A chat participant (the bot itself or a remote user).

    Attributes:
        id: Opaque service identifier.
        username: Login name (what people @-mention).
        display_name: Human-readable name.
    """

    id: str | None
    username: str | None = field(default=None, compare=False)
    display_name: str | None = field(default=None, compare=False)

    @classmethod
    def from_token(cls, token: str) -> User:
        """Build a placeholder user from a parsed @-mention."""
        return cls(id=token, username=token, display_name=token)


@dataclass(frozen=True)
class Room:
    id: str
    name: str = field(default="", compare=False)


@dataclass(frozen=True)
class Message:
    """A chat message after parsing.

    Attributes:
        sender: Author, or None for system/unknown senders.
        addressee: Set only when the text started with an @-mention.
        text: Body with any leading mention removed.
    """

    sender: User | None
    addressee: User | None
    text: str


@dataclass(frozen=True)
class MessageEvent:
    """An inbound chat message, as published on the bot's event bus.

    `broker` is the adapter's broker, kept so handlers can reply.
    """

    bot: User
    room: Room
    message: Message
    broker: Any = field(compare=False, repr=False)
