"""
Request rate limiting for benchmark workers.

A rate limiter is consulted once per worker iteration before a request is
issued. It either lets the worker proceed (possibly after waiting) or reports
that the run is over, which is distinct from cancellation: a limiter may end
the run because its quota is exhausted while the context is still active.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Optional, Protocol, runtime_checkable

from catalog_bench.core.context import ContextCancelled, RunContext

logger = logging.getLogger(__name__)


@runtime_checkable
class RateLimiter(Protocol):
    async def acquire(self, ctx: RunContext) -> bool:
        """Wait for permission. Returns False when the worker should stop."""
        ...


class TokenBucketRateLimiter:
    """
    Shared requests-per-second limiter with an optional total-operations quota.

    Slots are reserved synchronously on the event loop (no lock needed): each
    caller takes the next free slot and sleeps until it. Idle time is not
    banked, so requests are never issued faster than `rps`.

    Attributes:
        rps: Permitted requests per second across all callers (0 = unlimited)
        max_operations: Total permits before the run is over (None = unlimited)
    """

    def __init__(
        self,
        *,
        rps: float = 0.0,
        max_operations: Optional[int] = None,
    ) -> None:
        self.rps = max(0.0, float(rps))
        self.max_operations = (
            int(max_operations) if max_operations and max_operations > 0 else None
        )
        self._interval = 1.0 / self.rps if self.rps > 0 else 0.0
        self._next_slot: float | None = None
        self._granted = 0
        self._quota_logged = False

    @property
    def granted(self) -> int:
        """Permits handed out so far."""
        return self._granted

    def _reserve(self) -> float | None:
        """Reserve the next slot. Returns its monotonic time, or None if exhausted."""
        if self.max_operations is not None and self._granted >= self.max_operations:
            return None
        self._granted += 1

        now = time.monotonic()
        if self._interval <= 0:
            return now

        slot = now if self._next_slot is None else max(self._next_slot, now)
        self._next_slot = slot + self._interval
        return slot

    async def acquire(self, ctx: RunContext) -> bool:
        if ctx.cancelled:
            return False
        slot = self._reserve()
        if slot is None:
            if not self._quota_logged:
                self._quota_logged = True
                logger.info("Rate limiter quota of %d operations reached", self.max_operations)
            return False

        delay = slot - time.monotonic()
        if delay > 0:
            try:
                await ctx.guard(asyncio.sleep(delay))
            except ContextCancelled:
                return False
        return not ctx.cancelled
