"""Worker host — runs adapters and the dispatcher side by side.

All workers share one cancellation token. A worker that returns False or
raises cancels it, so everything else winds down too.
"""

from __future__ import annotations

import asyncio
import logging

from gitterbot.cancellation import CancellationToken
from gitterbot.worker.base import Worker

logger = logging.getLogger(__name__)


class WorkerHost:
    """Runs a set of workers concurrently on one event loop.

    Usage::

        host = WorkerHost([dispatcher, adapter])
        signal.signal(signal.SIGINT, lambda *_: host.stop())
        asyncio.run(host.run())
    """

    def __init__(self, workers: list[Worker], token: CancellationToken | None = None) -> None:
        self._workers = list(workers)
        self._token = token or CancellationToken()

    @property
    def token(self) -> CancellationToken:
        return self._token

    @property
    def workers(self) -> list[str]:
        return [w.friendly_name for w in self._workers]

    def stop(self) -> None:
        """Ask every worker to stop."""
        if not self._token.is_cancelled:
            logger.info("Stopping workers...")
        self._token.cancel()

    async def run(self) -> None:
        """Run until every worker has returned.

        Re-raises the first worker exception after all workers finished.
        """
        results = await asyncio.gather(
            *(self._run_worker(worker) for worker in self._workers),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result

    async def _run_worker(self, worker: Worker) -> bool:
        logger.info("Starting worker '%s'", worker.friendly_name)
        try:
            keep_running = await worker.run(self._token)
        except Exception:
            logger.exception("Worker '%s' failed", worker.friendly_name)
            self.stop()
            raise

        if not keep_running:
            logger.info("Worker '%s' requested shutdown", worker.friendly_name)
            self.stop()
        else:
            logger.info("Worker '%s' stopped", worker.friendly_name)
        return keep_running
