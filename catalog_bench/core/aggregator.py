"""
Operation aggregator.

Consumes the collector stream and folds every Operation into per-op-type
counters and latency samples, then builds a BenchmarkSummary.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from catalog_bench.core.collector import OperationCollector
from catalog_bench.models.operation import Operation
from catalog_bench.models.result import BenchmarkSummary, OpTypeSummary

logger = logging.getLogger(__name__)


def _pct(values: list[float], p: float) -> float:
    if not values:
        return 0.0
    ordered = sorted(values)
    idx = int(round((p / 100.0) * (len(ordered) - 1)))
    idx = max(0, min(idx, len(ordered) - 1))
    return float(ordered[idx])


@dataclass
class _OpTypeStats:
    total: int = 0
    failed: int = 0
    latencies_ms: list[float] = field(default_factory=list)
    first_start: Optional[datetime] = None
    last_end: Optional[datetime] = None

    def add(self, op: Operation) -> None:
        self.total += 1
        if not op.ok:
            self.failed += 1
        self.latencies_ms.append(op.duration_ms)
        if self.first_start is None or op.start_time < self.first_start:
            self.first_start = op.start_time
        if self.last_end is None or op.end_time > self.last_end:
            self.last_end = op.end_time


class OperationAggregator:
    """
    Single consumer of an OperationCollector.

    Usage:
        aggregator = OperationAggregator(collector, catalog_name="cat")
        task = asyncio.create_task(aggregator.run())
        ... workers send operations, then collector.close() ...
        await task
        summary = aggregator.summary()
    """

    def __init__(
        self,
        collector: OperationCollector,
        *,
        catalog_name: str,
        keep_operations: bool = False,
    ) -> None:
        self._collector = collector
        self.catalog_name = catalog_name
        self._by_type: dict[str, _OpTypeStats] = {}
        self._target_hits: Counter[str] = Counter()
        self._keep = keep_operations
        self.operations: list[Operation] = []
        self.received = 0

    def add(self, op: Operation) -> None:
        key = getattr(op.op_type, "value", str(op.op_type))
        self._by_type.setdefault(key, _OpTypeStats()).add(op)
        self._target_hits[op.target_label] += 1
        self.received += 1
        if self._keep:
            self.operations.append(op)

    async def run(self) -> None:
        """Consume until the collector is closed and drained."""
        async for op in self._collector:
            self.add(op)
        logger.debug("Aggregator drained %d operations", self.received)

    def summary(
        self,
        *,
        total_workers: int = 0,
        table_count: int = 0,
        stop_reason: Optional[str] = None,
    ) -> BenchmarkSummary:
        by_op_type: dict[str, OpTypeSummary] = {}
        first: Optional[datetime] = None
        last: Optional[datetime] = None

        for key, stats in sorted(self._by_type.items()):
            span = 0.0
            if stats.first_start is not None and stats.last_end is not None:
                span = (stats.last_end - stats.first_start).total_seconds()
                first = stats.first_start if first is None else min(first, stats.first_start)
                last = stats.last_end if last is None else max(last, stats.last_end)
            lat = stats.latencies_ms
            by_op_type[key] = OpTypeSummary(
                op_type=key,
                total_operations=stats.total,
                failed_operations=stats.failed,
                ops_per_second=(stats.total / span) if span > 0 else 0.0,
                avg_latency_ms=(sum(lat) / len(lat)) if lat else 0.0,
                p50_latency_ms=_pct(lat, 50),
                p90_latency_ms=_pct(lat, 90),
                p99_latency_ms=_pct(lat, 99),
                min_latency_ms=min(lat) if lat else 0.0,
                max_latency_ms=max(lat) if lat else 0.0,
            )

        duration = 0.0
        if first is not None and last is not None:
            duration = (last - first).total_seconds()

        return BenchmarkSummary(
            catalog_name=self.catalog_name,
            total_workers=total_workers,
            table_count=table_count,
            start_time=first,
            end_time=last,
            duration_seconds=duration,
            total_operations=sum(s.total for s in self._by_type.values()),
            failed_operations=sum(s.failed for s in self._by_type.values()),
            by_op_type=by_op_type,
            target_hits=dict(self._target_hits),
            stop_reason=stop_reason,
        )
