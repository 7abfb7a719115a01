"""
Auto-termination for benchmark runs.

Watches a trailing window of completed operations of one type and cancels the
run context once throughput has stabilized, or once the maximum duration
elapses, whichever comes first.

Stability rule: the window (the last `splits * samples_per_split` operations)
is split into `splits` equal time buckets. The run is considered stable when
every bucket's throughput is within `threshold_pct` of the window's mean
throughput.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from contextlib import suppress
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from catalog_bench.core.context import ContextCancelled, RunContext
from catalog_bench.models.benchmark import AutoTermConfig
from catalog_bench.models.distribution import OpType
from catalog_bench.models.operation import Operation

logger = logging.getLogger(__name__)

REASON_STABLE = "autoterm: throughput stable"
REASON_MAX_DURATION = "autoterm: max duration reached"


@dataclass
class AutoTermDecision:
    """Result of one stopping-rule evaluation."""

    should_stop: bool = False
    reason: str = ""
    debug_info: dict[str, Any] = field(default_factory=dict)


class AutoTerminator:
    """
    Statistical stopping rule wrapped around a run context.

    Usage:
        term = AutoTerminator(op_type=OpType.TABLE_GET, config=cfg.autoterm)
        collector.add_observer(term.observe)
        ctx = term.start(parent_ctx)
        ... run workers with ctx ...
        await term.stop()
    """

    def __init__(self, *, op_type: OpType, config: AutoTermConfig) -> None:
        self.op_type = OpType(op_type)
        self.max_duration_seconds = float(config.duration_seconds)
        self.threshold = float(config.threshold_pct) / 100.0
        self.splits = int(config.splits)
        self.check_interval_seconds = float(config.check_interval_seconds)
        self._window: deque[datetime] = deque(maxlen=config.window_size)

        self._ctx: Optional[RunContext] = None
        self._monitor_task: Optional[asyncio.Task[None]] = None
        self.last_decision: Optional[AutoTermDecision] = None

    @property
    def window_size(self) -> int:
        return int(self._window.maxlen or 0)

    @property
    def stop_reason(self) -> Optional[str]:
        """REASON_STABLE, REASON_MAX_DURATION, or the parent's reason."""
        if self._ctx is None:
            return None
        return self._ctx.reason

    def observe(self, op: Operation) -> None:
        """Collector observer: record completion times of the monitored op type."""
        if op.op_type == self.op_type:
            self._window.append(op.end_time)

    def evaluate(self) -> AutoTermDecision:
        """
        Apply the stability rule to the current window.

        Returns:
            AutoTermDecision with should_stop=True when throughput is stable
        """
        decision = AutoTermDecision()
        decision.debug_info = {
            "window": len(self._window),
            "window_size": self.window_size,
            "splits": self.splits,
            "threshold": self.threshold,
        }

        if len(self._window) < self.window_size:
            decision.reason = "window_not_full"
            return decision

        stamps = sorted(self._window)
        first = stamps[0]
        span = (stamps[-1] - first).total_seconds()
        if span <= 0:
            decision.reason = "zero_span"
            return decision

        bucket_seconds = span / self.splits
        counts = [0] * self.splits
        for ts in stamps:
            idx = int((ts - first).total_seconds() / bucket_seconds)
            counts[min(idx, self.splits - 1)] += 1

        mean_rate = len(stamps) / span
        rates = [c / bucket_seconds for c in counts]
        max_dev = max(abs(r - mean_rate) / mean_rate for r in rates)

        decision.debug_info["mean_ops_per_second"] = mean_rate
        decision.debug_info["bucket_ops_per_second"] = rates
        decision.debug_info["max_deviation"] = max_dev

        if max_dev > self.threshold:
            decision.reason = "unstable"
            return decision

        decision.should_stop = True
        decision.reason = "stable"
        return decision

    def start(self, parent: RunContext) -> RunContext:
        """Derive the auto-terminating context and start monitoring."""
        if self._ctx is not None:
            raise RuntimeError("AutoTerminator already started")
        self._ctx = parent.with_timeout(
            self.max_duration_seconds, reason=REASON_MAX_DURATION
        )
        self._monitor_task = asyncio.create_task(
            self._monitor(self._ctx), name="autoterm-monitor"
        )
        logger.info(
            "Auto-termination enabled: op=%s, threshold=%.1f%%, window=%d ops, max=%.1fs",
            self.op_type.value,
            self.threshold * 100.0,
            self.window_size,
            self.max_duration_seconds,
        )
        return self._ctx

    async def _monitor(self, ctx: RunContext) -> None:
        while not ctx.cancelled:
            try:
                await ctx.guard(asyncio.sleep(self.check_interval_seconds))
            except ContextCancelled:
                break

            decision = self.evaluate()
            self.last_decision = decision
            if decision.should_stop:
                logger.info(
                    "Throughput %.1f ops/s within %.1f%% across %d ops. "
                    "Assuming stability, terminating benchmark.",
                    decision.debug_info.get("mean_ops_per_second", 0.0),
                    self.threshold * 100.0,
                    len(self._window),
                )
                ctx.cancel(REASON_STABLE)
                break

        if ctx.reason == REASON_MAX_DURATION:
            logger.info(
                "Auto-termination: max duration %.1fs reached before stability",
                self.max_duration_seconds,
            )

    async def stop(self) -> None:
        """Stop monitoring. Does not cancel the run context."""
        task, self._monitor_task = self._monitor_task, None
        if task is None:
            return
        if not task.done():
            task.cancel()
        with suppress(asyncio.CancelledError):
            await task
