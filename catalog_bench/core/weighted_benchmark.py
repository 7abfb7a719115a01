"""
Weighted Catalog Benchmark

Drives skewed read/write load against an Iceberg REST catalog. Reader and
writer groups each sample tables from their own truncated-normal profile over
the ordered table list; every request attempt becomes one Operation in the
collector.

Lifecycle: CREATED -> prepare() -> PREPARED -> start() -> RUNNING -> cleanup()
-> CLEANED. No step may be skipped.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Optional

from catalog_bench.core.auto_terminator import AutoTerminator
from catalog_bench.core.collector import OperationCollector
from catalog_bench.core.context import ContextCancelled, RunContext
from catalog_bench.core.namespace_tree import NamespaceTree, TargetProvider
from catalog_bench.core.rate_limiter import RateLimiter, TokenBucketRateLimiter
from catalog_bench.core.sampler import WeightedSampler, derive_seed
from catalog_bench.core.status import LoggingStatusSink, StatusSink
from catalog_bench.core.worker_pool import WorkerPool
from catalog_bench.models import (
    BenchmarkState,
    OpType,
    Operation,
    OperationTimer,
    TableInfo,
    WeightedBenchmarkConfig,
    WeightedDistribution,
    WorkerRole,
)

if TYPE_CHECKING:
    from catalog_bench.connectors.rest_catalog import CatalogClient

logger = logging.getLogger(__name__)


class BenchmarkConfigurationError(Exception):
    """Raised by prepare() when the run cannot start (no tables, unreachable catalog)."""


class BenchmarkStateError(RuntimeError):
    """Raised when a lifecycle step is called out of order."""


class WeightedBenchmark:
    """
    Weighted (skewed access) benchmark job.

    Owns the immutable table list after prepare(), spawns one worker task per
    configured reader/writer slot in start(), and joins them all before start()
    returns.
    """

    def __init__(
        self,
        config: WeightedBenchmarkConfig,
        client: CatalogClient,
        collector: Optional[OperationCollector] = None,
        *,
        tree: Optional[TargetProvider] = None,
        rate_limiter: Optional[RateLimiter] = None,
        status: Optional[StatusSink] = None,
    ) -> None:
        """
        Initialize the benchmark.

        Args:
            config: Validated run configuration
            client: Catalog client used for fetch (readers) and mutate (writers)
            collector: Operation sink (created from config if omitted)
            tree: Target universe provider (NamespaceTree from config if omitted)
            rate_limiter: Optional limiter (built from rps_limit/max_operations if omitted)
            status: Progress status sink (logs if omitted)
        """
        self.config = config
        self.client = client
        self.collector = collector or OperationCollector(
            buffer_size=config.collector_buffer_size
        )
        self.tree = tree
        if rate_limiter is None and (config.rps_limit > 0 or config.max_operations > 0):
            rate_limiter = TokenBucketRateLimiter(
                rps=config.rps_limit,
                max_operations=config.max_operations or None,
            )
        self.rate_limiter = rate_limiter
        self.status = status or LoggingStatusSink()

        self.state = BenchmarkState.CREATED
        self.auto_terminator: Optional[AutoTerminator] = None
        self.stop_reason: Optional[str] = None

        self._tables: tuple[TableInfo, ...] = ()
        self._pool: Optional[WorkerPool] = None
        self._spawned = asyncio.Event()
        self._joined = False

    @property
    def catalog(self) -> str:
        return self.config.catalog_name

    @property
    def tables(self) -> tuple[TableInfo, ...]:
        return self._tables

    @property
    def worker_count(self) -> int:
        """Workers spawned by start() (0 before start)."""
        return self._pool.spawned if self._pool is not None else 0

    def _require_state(self, expected: BenchmarkState, action: str) -> None:
        if self.state != expected:
            raise BenchmarkStateError(
                f"cannot {action} in state {self.state.value} (expected {expected.value})"
            )

    def _monitored_op_type(self) -> OpType:
        if any(d.count > 0 for d in self.config.readers):
            return OpType.TABLE_GET
        return OpType.TABLE_UPDATE

    async def prepare(self, ctx: RunContext) -> None:
        """
        Resolve the table list and check the first table is reachable.

        Raises:
            BenchmarkConfigurationError: No tables, or the first table is unreachable
        """
        self._require_state(BenchmarkState.CREATED, "prepare")
        if self.tree is None:
            self.tree = NamespaceTree(self.config.tree)

        self.status.report(f"Loading dataset info: {self.tree.total_tables()} tables")
        tables = tuple(self.tree.all_tables())
        if not tables:
            raise BenchmarkConfigurationError("no tables found: check tree configuration")

        self.status.report("Verifying catalog connectivity...")
        first = tables[0]
        try:
            await self.client.fetch(ctx, self.catalog, first.namespace, first.name)
        except ContextCancelled:
            raise
        except Exception as e:
            raise BenchmarkConfigurationError(
                f"cannot access table {first.label(self.catalog)}: {e}"
            ) from e

        self._tables = tables
        self.state = BenchmarkState.PREPARED
        self.status.report(
            f"Preparation complete - {len(tables)} tables available for weighted workload"
        )

    async def wait_spawned(self) -> None:
        """Block until start() has spawned every worker."""
        await self._spawned.wait()

    async def start(self, ctx: RunContext, start_signal: asyncio.Event) -> None:
        """
        Spawn all workers and wait for them to exit.

        Workers block on `start_signal` before their first request. start()
        returns once every worker has observed cancellation (context, auto-terminator)
        or been stopped by the rate limiter. Request failures never abort it.
        """
        self._require_state(BenchmarkState.PREPARED, "start")
        self.state = BenchmarkState.RUNNING

        run_ctx = ctx
        if self.config.autoterm.enabled:
            self.auto_terminator = AutoTerminator(
                op_type=self._monitored_op_type(), config=self.config.autoterm
            )
            self.collector.add_observer(self.auto_terminator.observe)
            run_ctx = self.auto_terminator.start(ctx)

        pool = WorkerPool(name="weighted")
        self._pool = pool
        worker_id = 0
        groups = (
            (WorkerRole.READER, self.config.readers),
            (WorkerRole.WRITER, self.config.writers),
        )
        for role, distributions in groups:
            for group_idx, dist in enumerate(distributions):
                for _ in range(dist.count):
                    seed = derive_seed(self.config.seed, role, group_idx, worker_id)
                    pool.spawn(
                        worker_id,
                        self._run_worker(run_ctx, start_signal, worker_id, role, dist, seed),
                    )
                    worker_id += 1

        logger.info(
            "Spawned %d workers (%d readers, %d writers) over %d tables",
            pool.spawned,
            sum(d.count for d in self.config.readers),
            sum(d.count for d in self.config.writers),
            len(self._tables),
        )
        self._spawned.set()

        try:
            await pool.join()
        finally:
            if self.auto_terminator is not None:
                await self.auto_terminator.stop()
                self.collector.remove_observer(self.auto_terminator.observe)
            self.stop_reason = run_ctx.reason
            self._joined = True
            logger.info("All workers exited (reason=%s)", self.stop_reason or "workers done")

    async def _run_worker(
        self,
        ctx: RunContext,
        start_signal: asyncio.Event,
        worker_id: int,
        role: WorkerRole,
        dist: WeightedDistribution,
        seed: int,
    ) -> None:
        sampler = WeightedSampler(dist, len(self._tables), seed=seed)

        if not await ctx.wait_for_event(start_signal):
            return

        while not ctx.cancelled:
            if self.rate_limiter is not None and not await self.rate_limiter.acquire(ctx):
                return

            table = self._tables[sampler.next_index()]
            op = await self._issue(ctx, worker_id, role, table)
            if op is None:
                return
            await self.collector.send(op)

            # Yield so cancellation and sibling workers are serviced even when
            # the client completes without suspending.
            await asyncio.sleep(0)

    async def _issue(
        self, ctx: RunContext, worker_id: int, role: WorkerRole, table: TableInfo
    ) -> Optional[Operation]:
        """
        Issue one request and record it. Failures are data, not exceptions.

        Returns None when the run was cancelled while the request was in flight;
        an abandoned request is not a completed operation.
        """
        catalog = self.catalog
        patch = None
        if role is WorkerRole.WRITER:
            patch = {"last_updated": str(int(time.time() * 1000))}

        error: Optional[str] = None
        timer = OperationTimer()
        try:
            if patch is None:
                await self.client.fetch(ctx, catalog, table.namespace, table.name)
            else:
                await self.client.mutate(ctx, catalog, table.namespace, table.name, patch)
        except ContextCancelled:
            return None
        except Exception as e:
            error = str(e) or type(e).__name__
        end_time = timer.stop()

        return Operation(
            op_type=role.op_type,
            worker_id=worker_id,
            target_label=table.label(catalog),
            objects_per_op=1,
            endpoint_label=catalog,
            start_time=timer.start_time,
            end_time=end_time,
            error=error,
        )

    async def cleanup(self, ctx: RunContext) -> None:
        """Property updates leave nothing to tear down; report and finish."""
        self._require_state(BenchmarkState.RUNNING, "cleanup")
        if not self._joined:
            raise BenchmarkStateError("cannot cleanup before start() has returned")
        self.status.report("Cleanup: skipping (weighted benchmark does not delete data)")
        self.state = BenchmarkState.CLEANED
