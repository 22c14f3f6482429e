"""Decoding of Gitter's Faye payloads.

Every message pushed on a room's chatMessages channel looks like::

    {
        "channel": "/api/v1/rooms/<roomId>/chatMessages",
        "data": {
            "operation": "create",
            "model": {
                "id": "...",
                "text": "@bot hello",
                "fromUser": {"id": "...", "username": "...", "displayName": "..."}
            }
        }
    }
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from gitterbot.models import User


class EnvelopeError(ValueError):
    """Raised when a pushed payload cannot be decoded."""


@dataclass(frozen=True)
class GitterMessage:
    id: str | None
    text: str
    from_user: User | None

    @classmethod
    def from_dict(cls, data: Any) -> GitterMessage:
        if not isinstance(data, dict):
            raise EnvelopeError(f"Message model must be an object, got {type(data).__name__}")

        text = data.get("text")
        if text is not None and not isinstance(text, str):
            raise EnvelopeError("Message text must be a string")

        return cls(
            id=data.get("id"),
            text=text or "",
            from_user=_user_from_dict(data.get("fromUser")),
        )


@dataclass(frozen=True)
class Envelope:
    """Operation tag plus the raw nested model (decoded on demand)."""

    operation: str | None
    model: Any

    @property
    def is_create(self) -> bool:
        return self.operation is not None and self.operation.lower() == "create"

    @classmethod
    def from_message(cls, raw: Any) -> Envelope:
        """Unwrap a Bayeux message (or its bare `data` object)."""
        if not isinstance(raw, dict):
            raise EnvelopeError(f"Payload must be an object, got {type(raw).__name__}")

        data = raw["data"] if "data" in raw else raw
        if not isinstance(data, dict):
            raise EnvelopeError(f"Envelope must be an object, got {type(data).__name__}")

        operation = data.get("operation")
        if operation is not None and not isinstance(operation, str):
            raise EnvelopeError("Envelope operation must be a string")

        return cls(operation=operation, model=data.get("model"))

    def message(self) -> GitterMessage:
        if self.model is None:
            raise EnvelopeError("Envelope has no model")
        return GitterMessage.from_dict(self.model)


def _user_from_dict(data: Any) -> User | None:
    if data is None:
        return None
    if not isinstance(data, dict):
        raise EnvelopeError("fromUser must be an object")
    return User(
        id=data.get("id"),
        username=data.get("username"),
        display_name=data.get("displayName"),
    )
