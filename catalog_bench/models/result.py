"""
Benchmark Result Models

Defines Pydantic models for the aggregated outcome of a run.
"""

from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel, Field


class OpTypeSummary(BaseModel):
    """Aggregated metrics for one operation type."""

    op_type: str = Field(..., description="Operation type")
    total_operations: int = Field(0, description="Request attempts recorded")
    failed_operations: int = Field(0, description="Attempts with an error")
    ops_per_second: float = Field(0.0, description="Attempts per second over the span")

    # Latency metrics (milliseconds)
    avg_latency_ms: float = Field(0.0, description="Average latency")
    p50_latency_ms: float = Field(0.0, description="50th percentile")
    p90_latency_ms: float = Field(0.0, description="90th percentile")
    p99_latency_ms: float = Field(0.0, description="99th percentile")
    min_latency_ms: float = Field(0.0, description="Min latency")
    max_latency_ms: float = Field(0.0, description="Max latency")

    @property
    def error_rate(self) -> float:
        if self.total_operations <= 0:
            return 0.0
        return self.failed_operations / self.total_operations


class BenchmarkSummary(BaseModel):
    """
    Results from a single benchmark run.

    Contains per-operation-type metrics plus per-table hit counts, which show the
    access skew actually produced by the sampler.
    """

    catalog_name: str = Field(..., description="Catalog benchmarked")
    total_workers: int = Field(0, description="Workers spawned")
    table_count: int = Field(0, description="Tables in the target universe")

    start_time: Optional[datetime] = Field(None, description="First request start")
    end_time: Optional[datetime] = Field(None, description="Last request end")
    duration_seconds: float = Field(0.0, description="Span between first start and last end")

    total_operations: int = Field(0, description="Total request attempts")
    failed_operations: int = Field(0, description="Total failed attempts")

    by_op_type: Dict[str, OpTypeSummary] = Field(default_factory=dict)
    target_hits: Dict[str, int] = Field(
        default_factory=dict, description="Attempts per target label"
    )
    stop_reason: Optional[str] = Field(None, description="Why the run ended")
