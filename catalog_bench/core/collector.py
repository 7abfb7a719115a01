"""
Operation collector.

Bounded multi-producer / single-consumer channel of Operation records. Workers
`await send(op)`; when the buffer is full they block until the consumer catches
up, so a slow consumer throttles producers and nothing is dropped.
"""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Callable, Optional

from catalog_bench.config import settings
from catalog_bench.models.operation import Operation

logger = logging.getLogger(__name__)

OperationObserver = Callable[[Operation], None]

_CLOSED = object()


class CollectorClosedError(RuntimeError):
    """Raised when sending into a collector that has been closed."""


class OperationCollector:
    """
    Channel between benchmark workers and an external aggregator.

    Usage:
        collector = OperationCollector(buffer_size=1000)
        # producers
        await collector.send(op)
        # consumer
        async for op in collector:
            ...
        # after all producers exit
        await collector.close()
    """

    def __init__(self, *, buffer_size: Optional[int] = None) -> None:
        size = settings.COLLECTOR_BUFFER_SIZE if buffer_size is None else buffer_size
        self.buffer_size = max(1, int(size))
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=self.buffer_size)
        self._observers: list[OperationObserver] = []
        self._closed = False
        self._consumed_close = False
        self._sent = 0

    @property
    def sent(self) -> int:
        """Number of operations accepted by `send`."""
        return self._sent

    @property
    def closed(self) -> bool:
        return self._closed

    def add_observer(self, observer: OperationObserver) -> None:
        """
        Register a synchronous callback invoked for every sent operation.

        Observers run on the producer's task right after the operation is queued
        and must not block.
        """
        self._observers.append(observer)

    def remove_observer(self, observer: OperationObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    async def send(self, op: Operation) -> None:
        """Queue one operation, waiting for room if the buffer is full."""
        if self._closed:
            raise CollectorClosedError("collector is closed")
        await self._queue.put(op)
        self._sent += 1
        for observer in list(self._observers):
            try:
                observer(op)
            except Exception as e:
                logger.warning("Operation observer failed: %s", e)

    async def close(self) -> None:
        """
        Mark the end of the stream.

        Call only after every producer has exited; the consumer sees all queued
        operations before iteration stops.
        """
        if self._closed:
            return
        self._closed = True
        await self._queue.put(_CLOSED)

    async def receive(self) -> Optional[Operation]:
        """Next operation, or None once the stream is closed and drained."""
        if self._consumed_close:
            return None
        item = await self._queue.get()
        if item is _CLOSED:
            self._consumed_close = True
            return None
        return item  # type: ignore[return-value]

    async def __aiter__(self) -> AsyncIterator[Operation]:
        while True:
            op = await self.receive()
            if op is None:
                return
            yield op

    def qsize(self) -> int:
        return self._queue.qsize()
