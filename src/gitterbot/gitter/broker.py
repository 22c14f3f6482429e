"""Async client for the Gitter REST API.

Covers what the adapter and reply handlers need: who the bot is, which rooms
it is in, and posting a message to a room.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from gitterbot.models import Room, User

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.gitter.im/v1"


class GitterBroker:
    """Minimal Gitter REST client authenticated with a personal token."""

    def __init__(
        self,
        token: str,
        api_url: str = DEFAULT_API_URL,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=api_url.rstrip("/"),
            timeout=httpx.Timeout(15.0, connect=5.0),
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/json",
            },
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def get_current_user(self) -> User:
        """Return the user the token belongs to (the bot)."""
        response = await self._client.get("/user")
        response.raise_for_status()
        data = response.json()
        # Gitter returns a one-element list here.
        if isinstance(data, list):
            if not data:
                raise ValueError("Gitter returned no current user")
            data = data[0]
        return _user(data)

    async def get_rooms(self) -> list[Room]:
        """List the rooms the bot has joined, in the order Gitter returns them."""
        response = await self._client.get("/rooms")
        response.raise_for_status()
        return [Room(id=item["id"], name=item.get("name") or item["id"]) for item in response.json()]

    async def send_message(self, room: Room, text: str) -> dict[str, Any]:
        """Post `text` to `room`. Returns the created message as JSON."""
        response = await self._client.post(
            f"/rooms/{room.id}/chatMessages",
            json={"text": text},
        )
        response.raise_for_status()
        logger.debug("Sent message to %s (%s)", room.name, room.id)
        return response.json()


def _user(data: dict[str, Any]) -> User:
    return User(
        id=data["id"],
        username=data.get("username"),
        display_name=data.get("displayName"),
    )
