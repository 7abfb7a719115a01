"""Per-request measurement record."""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Optional

from catalog_bench.models.distribution import OpType


@dataclass(frozen=True, slots=True)
class Operation:
    """One completed (or failed) request attempt.

    Created by exactly one worker, sent once into the collector and never
    mutated afterwards. `error` is set iff the request failed.
    """

    op_type: OpType
    worker_id: int
    target_label: str
    objects_per_op: int
    endpoint_label: str
    start_time: datetime
    end_time: datetime
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def duration_ms(self) -> float:
        return (self.end_time - self.start_time).total_seconds() * 1000.0


class OperationTimer:
    """
    Wall-clock start plus monotonic elapsed time.

    The end timestamp is derived from the start timestamp and a perf_counter
    delta, so end_time >= start_time holds even if the system clock steps.
    """

    __slots__ = ("start_time", "_start_perf")

    def __init__(self) -> None:
        self.start_time = datetime.now(UTC)
        self._start_perf = time.perf_counter()

    def stop(self) -> datetime:
        elapsed = max(0.0, time.perf_counter() - self._start_perf)
        return self.start_time + timedelta(seconds=elapsed)
