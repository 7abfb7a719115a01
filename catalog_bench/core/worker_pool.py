"""Fan-out / join worker pool for benchmark workers."""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from typing import Any, Coroutine

logger = logging.getLogger(__name__)


class WorkerPool:
    """Owns a fixed set of async worker tasks and joins them.

    Workers are expected to exit on their own once the run context is cancelled.
    `join` waits for every worker without cancelling any of them; tasks are only
    cancelled if the joining task itself is cancelled.

    Attributes:
        name: Label used for task names and log lines
    """

    def __init__(self, *, name: str = "worker") -> None:
        self.name = name
        self._worker_tasks: dict[int, asyncio.Task[None]] = {}

    @property
    def spawned(self) -> int:
        """Total number of workers spawned."""
        return len(self._worker_tasks)

    def spawn(self, worker_id: int, worker: Coroutine[Any, Any, None]) -> int:
        """
        Schedule one worker coroutine as a task.

        Args:
            worker_id: Unique worker identifier
            worker: The worker's coroutine

        Returns:
            The worker ID
        """
        wid = int(worker_id)
        if wid in self._worker_tasks:
            worker.close()
            raise ValueError(f"worker {wid} already spawned")
        self._worker_tasks[wid] = asyncio.create_task(worker, name=f"{self.name}-{wid}")
        return wid

    async def join(self) -> None:
        """Wait until every spawned worker has exited.

        Worker exceptions are logged, not raised: one failed worker never aborts
        the others.
        """
        tasks = list(self._worker_tasks.values())
        if not tasks:
            return

        try:
            results = await asyncio.gather(*tasks, return_exceptions=True)
        except asyncio.CancelledError:
            await self._cancel_all()
            raise

        for wid, result in zip(self._worker_tasks, results):
            if isinstance(result, asyncio.CancelledError):
                logger.warning("[%s] worker %d was cancelled", self.name, wid)
            elif isinstance(result, BaseException):
                logger.error(
                    "[%s] worker %d failed: %s",
                    self.name,
                    wid,
                    result,
                    exc_info=(type(result), result, result.__traceback__),
                )

    async def _cancel_all(self) -> None:
        live = [t for t in self._worker_tasks.values() if not t.done()]
        for task in live:
            task.cancel()
        if live:
            with suppress(asyncio.CancelledError):
                await asyncio.gather(*live, return_exceptions=True)
