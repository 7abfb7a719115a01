"""
Tests for the WeightedBenchmark lifecycle and worker behaviour.

Uses an in-memory catalog client; no network.
"""

import asyncio

import pytest

import catalog_bench.core.weighted_benchmark as weighted_module
from catalog_bench.core import (
    BenchmarkConfigurationError,
    BenchmarkStateError,
    OperationAggregator,
    RecordingStatusSink,
    RunContext,
    WeightedBenchmark,
    derive_seed,
)
from catalog_bench.models import (
    AutoTermConfig,
    BenchmarkState,
    OpType,
    WeightedBenchmarkConfig,
    WeightedDistribution,
    WorkerRole,
)

pytestmark = pytest.mark.asyncio


def _config(readers=8, writers=2, **overrides):
    data = {
        "readers": [WeightedDistribution(count=readers, mean=0.3, variance=0.0278)],
        "writers": [WeightedDistribution(count=writers, mean=0.7, variance=0.0278)],
    }
    data.update(overrides)
    return WeightedBenchmarkConfig(**data)


class EmptyTree:
    def total_tables(self):
        return 0

    def all_tables(self):
        return ()


async def _run_until(bench, ctx, *, after=None, cancel_reason="stop"):
    """Drive start() with a live aggregator; cancel `after` seconds past the signal."""
    aggregator = OperationAggregator(
        bench.collector, catalog_name=bench.catalog, keep_operations=True
    )
    consumer = asyncio.create_task(aggregator.run())
    signal = asyncio.Event()
    task = asyncio.create_task(bench.start(ctx, signal))
    await bench.wait_spawned()
    signal.set()
    if after is not None:
        await asyncio.sleep(after)
        ctx.cancel(cancel_reason)
    await asyncio.wait_for(task, timeout=3.0)
    await bench.collector.close()
    await consumer
    return aggregator


async def test_prepare_resolves_tables_and_checks_connectivity(fake_client):
    status = RecordingStatusSink()
    bench = WeightedBenchmark(_config(), fake_client, status=status)

    await bench.prepare(RunContext())

    assert bench.state is BenchmarkState.PREPARED
    assert len(bench.tables) == 40
    assert fake_client.fetches == [
        ("benchmark_catalog", ("ns_0", "ns_0_0", "ns_0_0_0"), "tbl_0")
    ]
    assert status.messages == [
        "Loading dataset info: 40 tables",
        "Verifying catalog connectivity...",
        "Preparation complete - 40 tables available for weighted workload",
    ]


async def test_prepare_rejects_empty_universe(fake_client):
    bench = WeightedBenchmark(_config(), fake_client, tree=EmptyTree())
    with pytest.raises(BenchmarkConfigurationError, match="no tables found"):
        await bench.prepare(RunContext())
    assert bench.state is BenchmarkState.CREATED
    assert fake_client.calls == 0


async def test_prepare_reports_unreachable_table(make_client):
    client = make_client(fail_fetch=RuntimeError("HTTP 403: forbidden"))
    bench = WeightedBenchmark(_config(), client)
    with pytest.raises(BenchmarkConfigurationError) as excinfo:
        await bench.prepare(RunContext())

    message = str(excinfo.value)
    assert "cannot access table benchmark_catalog/ns_0.ns_0_0.ns_0_0_0/tbl_0" in message
    assert "forbidden" in message
    assert bench.state is BenchmarkState.CREATED


async def test_lifecycle_order_is_enforced(fake_client):
    bench = WeightedBenchmark(_config(), fake_client)
    ctx = RunContext()

    with pytest.raises(BenchmarkStateError):
        await bench.start(ctx, asyncio.Event())
    with pytest.raises(BenchmarkStateError):
        await bench.cleanup(ctx)

    await bench.prepare(ctx)
    with pytest.raises(BenchmarkStateError):
        await bench.prepare(ctx)
    with pytest.raises(BenchmarkStateError):
        await bench.cleanup(ctx)


async def test_workers_wait_for_start_signal(fake_client):
    bench = WeightedBenchmark(_config(), fake_client)
    ctx = RunContext()
    await bench.prepare(ctx)

    signal = asyncio.Event()
    task = asyncio.create_task(bench.start(ctx, signal))
    await bench.wait_spawned()
    await asyncio.sleep(0.02)

    assert bench.worker_count == 10
    assert bench.state is BenchmarkState.RUNNING
    assert bench.collector.sent == 0
    assert fake_client.calls == 1  # the prepare connectivity check

    ctx.cancel()
    await asyncio.wait_for(task, timeout=1.0)
    assert bench.collector.sent == 0


async def test_operations_are_tagged_by_role(fake_client):
    bench = WeightedBenchmark(_config(), fake_client)
    ctx = RunContext()
    await bench.prepare(ctx)

    aggregator = await _run_until(bench, ctx, after=0.05)
    ops = aggregator.operations

    assert ops
    assert {op.worker_id for op in ops if op.op_type is OpType.TABLE_GET} <= set(range(8))
    assert {op.worker_id for op in ops if op.op_type is OpType.TABLE_UPDATE} <= {8, 9}
    assert all(op.end_time >= op.start_time for op in ops)
    assert all(op.objects_per_op == 1 for op in ops)
    assert all(op.endpoint_label == "benchmark_catalog" for op in ops)
    assert all(op.target_label.startswith("benchmark_catalog/ns_") for op in ops)
    assert bench.stop_reason == "stop"

    patches = [m[3] for m in fake_client.mutations]
    assert patches
    assert all(p["last_updated"].isdigit() for p in patches)


async def test_request_failures_are_recorded_not_raised(make_client):
    client = make_client(fail_every=3)
    bench = WeightedBenchmark(_config(readers=4, writers=0), client)
    ctx = RunContext()
    await bench.prepare(ctx)

    aggregator = await _run_until(bench, ctx, after=0.05)
    summary = aggregator.summary()

    assert summary.failed_operations > 0
    assert summary.total_operations > summary.failed_operations
    assert all(op.error == "injected failure" for op in aggregator.operations if not op.ok)


async def test_cancel_abandons_in_flight_requests(fake_client):
    bench = WeightedBenchmark(_config(), fake_client)
    ctx = RunContext()
    await bench.prepare(ctx)
    fake_client.delay = 10.0

    aggregator = await _run_until(bench, ctx, after=0.02, cancel_reason="interrupted")
    ops = aggregator.operations

    # Every worker was stalled in a request; none of them is a completed operation.
    assert ops == []
    assert len(fake_client.fetches) + len(fake_client.mutations) == 11
    assert bench.stop_reason == "interrupted"


async def test_deadline_does_not_count_in_flight_requests_as_failures(fake_client):
    bench = WeightedBenchmark(_config(), fake_client)
    ctx = RunContext()
    await bench.prepare(ctx)
    fake_client.delay = 0.01

    aggregator = await _run_until(
        bench, ctx.with_timeout(0.05, reason="duration elapsed")
    )
    summary = aggregator.summary()

    assert summary.total_operations > 0
    assert summary.failed_operations == 0
    assert all(op.ok for op in aggregator.operations)
    assert bench.stop_reason == "duration elapsed"


async def test_operation_quota_ends_run_without_cancel(fake_client):
    bench = WeightedBenchmark(_config(max_operations=25), fake_client)
    ctx = RunContext()
    await bench.prepare(ctx)

    aggregator = await _run_until(bench, ctx)

    assert aggregator.received == 25
    assert not ctx.cancelled
    assert bench.stop_reason is None


async def test_autoterm_bounds_run(fake_client):
    cfg = _config(
        readers=0,
        writers=2,
        autoterm=AutoTermConfig(duration_seconds=0.1, check_interval_seconds=0.02),
    )
    bench = WeightedBenchmark(cfg, fake_client)
    ctx = RunContext()
    await bench.prepare(ctx)

    await _run_until(bench, ctx)

    assert bench.auto_terminator is not None
    assert bench.auto_terminator.op_type is OpType.TABLE_UPDATE
    assert bench.stop_reason.startswith("autoterm:")
    assert not ctx.cancelled


async def test_cleanup_issues_no_requests(fake_client):
    status = RecordingStatusSink()
    bench = WeightedBenchmark(_config(), fake_client, status=status)
    ctx = RunContext()
    await bench.prepare(ctx)
    await _run_until(bench, ctx, after=0.01)

    calls_before = fake_client.calls
    mutations_before = len(fake_client.mutations)
    await bench.cleanup(ctx)

    assert fake_client.calls == calls_before
    assert len(fake_client.mutations) == mutations_before
    assert bench.state is BenchmarkState.CLEANED
    assert status.messages[-1] == "Cleanup: skipping (weighted benchmark does not delete data)"


async def test_multiple_groups_spawn_their_counts_with_group_seeds(monkeypatch, fake_client):
    samplers = []
    real_sampler = weighted_module.WeightedSampler

    def recording_sampler(dist, num_tables, *, seed=None, **kwargs):
        samplers.append((dist, seed))
        return real_sampler(dist, num_tables, seed=seed, **kwargs)

    monkeypatch.setattr(weighted_module, "WeightedSampler", recording_sampler)

    readers = [
        WeightedDistribution(count=3, mean=0.2, variance=0.01),
        WeightedDistribution(count=0, mean=0.5, variance=0.01),
        WeightedDistribution(count=2, mean=0.4, variance=0.01),
    ]
    writers = [
        WeightedDistribution(count=1, mean=0.6, variance=0.01),
        WeightedDistribution(count=4, mean=0.9, variance=0.01),
    ]
    cfg = WeightedBenchmarkConfig(readers=readers, writers=writers, seed=7, max_operations=40)
    bench = WeightedBenchmark(cfg, fake_client)
    ctx = RunContext()
    await bench.prepare(ctx)

    aggregator = await _run_until(bench, ctx)

    assert bench.worker_count == 10
    assert len(samplers) == 10

    expected = {}
    worker_id = 0
    for role, groups in ((WorkerRole.READER, readers), (WorkerRole.WRITER, writers)):
        for group_idx, dist in enumerate(groups):
            for _ in range(dist.count):
                expected[worker_id] = (role, dist, derive_seed(7, role, group_idx, worker_id))
                worker_id += 1

    assert sorted(seed for _, seed in samplers) == sorted(s for _, _, s in expected.values())
    assert sorted((d.mean, s) for d, s in samplers) == sorted(
        (d.mean, s) for _, d, s in expected.values()
    )

    for op in aggregator.operations:
        role = expected[op.worker_id][0]
        assert op.op_type is role.op_type
    readers_seen = {op.worker_id for op in aggregator.operations if op.op_type is OpType.TABLE_GET}
    writers_seen = {
        op.worker_id for op in aggregator.operations if op.op_type is OpType.TABLE_UPDATE
    }
    assert readers_seen <= set(range(5))
    assert writers_seen <= set(range(5, 10))
