"""
Benchmark run driver.

Ties the lifecycle together: prepare, start with a synchronized release of all
workers, drain the collector into the aggregator, cleanup, and summarize.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from typing import Optional

from catalog_bench.core.aggregator import OperationAggregator
from catalog_bench.core.context import RunContext
from catalog_bench.core.weighted_benchmark import WeightedBenchmark
from catalog_bench.models.result import BenchmarkSummary

logger = logging.getLogger(__name__)


async def _close_collector(bench: WeightedBenchmark, aggregate_task: asyncio.Task) -> None:
    """Close the stream unless the aggregator has stopped consuming it."""
    if aggregate_task.done():
        return
    close_task = asyncio.create_task(bench.collector.close())
    await asyncio.wait({close_task, aggregate_task}, return_when=asyncio.FIRST_COMPLETED)
    if not close_task.done():
        # The aggregator died while the queue was full.
        close_task.cancel()
        with suppress(asyncio.CancelledError):
            await close_task


async def run_benchmark(
    bench: WeightedBenchmark,
    *,
    duration_seconds: Optional[float] = None,
    ctx: Optional[RunContext] = None,
    keep_operations: bool = False,
) -> BenchmarkSummary:
    """
    Run a benchmark to completion.

    Args:
        bench: Benchmark in CREATED state
        duration_seconds: Wall-clock limit for the measured phase
            (defaults to bench.config.duration_seconds; 0 = until cancelled)
        ctx: Parent context; cancel it to stop the run early
        keep_operations: Keep every Operation on the aggregator (for inspection)

    Returns:
        BenchmarkSummary for the run
    """
    ctx = ctx or RunContext()
    if duration_seconds is None:
        duration_seconds = bench.config.duration_seconds

    await bench.prepare(ctx)

    if duration_seconds and duration_seconds > 0:
        run_ctx = ctx.with_timeout(duration_seconds, reason="duration elapsed")
    else:
        run_ctx = ctx.child()

    aggregator = OperationAggregator(
        bench.collector, catalog_name=bench.catalog, keep_operations=keep_operations
    )
    aggregate_task = asyncio.create_task(aggregator.run(), name="aggregator")

    start_signal = asyncio.Event()
    start_task = asyncio.create_task(bench.start(run_ctx, start_signal), name="benchmark-start")
    try:
        spawned = asyncio.ensure_future(bench.wait_spawned())
        await asyncio.wait({spawned, start_task}, return_when=asyncio.FIRST_COMPLETED)
        if not spawned.done():
            spawned.cancel()
        logger.info("Releasing %d workers", bench.worker_count)
        start_signal.set()
        await asyncio.wait({start_task, aggregate_task}, return_when=asyncio.FIRST_COMPLETED)
        if not start_task.done():
            # Workers would block on a full queue with no consumer.
            raise RuntimeError("aggregator stopped before the workers finished")
        await start_task
    except BaseException:
        run_ctx.cancel("run aborted")
        if not start_task.done():
            start_task.cancel()
        with suppress(asyncio.CancelledError):
            await start_task
        raise
    finally:
        await _close_collector(bench, aggregate_task)
        await aggregate_task

    await bench.cleanup(ctx)

    summary = aggregator.summary(
        total_workers=bench.worker_count,
        table_count=len(bench.tables),
        stop_reason=bench.stop_reason,
    )
    logger.info(
        "Run complete: %d operations (%d failed) in %.1fs",
        summary.total_operations,
        summary.failed_operations,
        summary.duration_seconds,
    )
    return summary
