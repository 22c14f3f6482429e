"""Abstract base classes for workers run by the host.

A worker runs until its cancellation token fires. Adapters are workers that
connect the bot to a chat service and publish what they receive.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from gitterbot.cancellation import CancellationToken


class Worker(ABC):
    """Base interface for anything the WorkerHost runs (adapters, dispatchers)."""

    @property
    @abstractmethod
    def friendly_name(self) -> str:
        """Name used in logs (e.g. 'Gitter')."""
        ...

    @abstractmethod
    async def run(self, token: CancellationToken) -> bool:
        """Run until `token` is cancelled.

        Returns:
            True to let the other workers keep running, False to ask the
            host to shut everything down.
        """
        ...


class Adapter(Worker):
    """A worker bound to one chat service."""

    @property
    @abstractmethod
    def broker(self) -> Any:
        """The service's broker (user/room lookups, replies)."""
        ...
