"""
Cooperative cancellation for benchmark runs.

A RunContext is threaded through every suspension point of a run: the start
barrier, the rate limiter wait, and the client call. Cancelling a context
cancels all contexts derived from it. Nothing here interrupts a worker task; a
worker observes cancellation at the top of its loop, and a client call observes
it via `guard`.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from contextlib import suppress
from typing import Any, Awaitable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ContextCancelled(Exception):
    """Raised by `RunContext.guard` when the context fires before the call returns."""

    def __init__(self, reason: Optional[str] = None):
        super().__init__(reason or "context cancelled")
        self.reason = reason


class RunContext:
    """Cancellation token with parent/child propagation and optional deadline."""

    def __init__(self, parent: Optional[RunContext] = None) -> None:
        self._done = asyncio.Event()
        self._reason: Optional[str] = None
        self._parent = parent
        self._children: list[RunContext] = []
        self._timer: Optional[asyncio.TimerHandle] = None

        if parent is not None:
            if parent.cancelled:
                self.cancel(parent.reason)
            else:
                parent._children.append(self)

    @property
    def cancelled(self) -> bool:
        return self._done.is_set()

    @property
    def reason(self) -> Optional[str]:
        """Why the context was cancelled (None while still active)."""
        return self._reason

    def cancel(self, reason: str = "cancelled") -> None:
        """Cancel this context and every context derived from it. Idempotent."""
        if self._done.is_set():
            return
        self._reason = reason
        self._done.set()

        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

        children, self._children = self._children, []
        for child in children:
            child.cancel(reason)

        if self._parent is not None:
            with suppress(ValueError):
                self._parent._children.remove(self)

    def child(self) -> RunContext:
        return RunContext(self)

    def with_timeout(
        self, seconds: float, *, reason: str = "deadline exceeded"
    ) -> RunContext:
        """Derive a context that cancels itself after `seconds`."""
        ctx = RunContext(self)
        if not ctx.cancelled:
            loop = asyncio.get_running_loop()
            ctx._timer = loop.call_later(max(0.0, float(seconds)), ctx.cancel, reason)
        return ctx

    async def wait(self) -> None:
        """Block until the context is cancelled."""
        await self._done.wait()

    async def guard(self, aw: Awaitable[T]) -> T:
        """
        Await `aw` unless the context fires first.

        If the context is cancelled before `aw` completes, `aw` is cancelled and
        ContextCancelled is raised.
        """
        if self.cancelled:
            if inspect.iscoroutine(aw):
                aw.close()
            raise ContextCancelled(self._reason)

        call: asyncio.Future[Any] = asyncio.ensure_future(aw)
        waiter = asyncio.ensure_future(self._done.wait())
        try:
            done, _ = await asyncio.wait(
                {call, waiter}, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            call.cancel()
            waiter.cancel()
            raise

        if call in done:
            waiter.cancel()
            return call.result()

        call.cancel()
        with suppress(asyncio.CancelledError):
            await call
        raise ContextCancelled(self._reason)

    async def wait_for_event(self, event: asyncio.Event) -> bool:
        """
        Block until `event` is set or the context is cancelled.

        Returns:
            True if the event fired, False if the context was cancelled first.
        """
        if event.is_set():
            return True
        try:
            await self.guard(event.wait())
        except ContextCancelled:
            return event.is_set()
        return True
