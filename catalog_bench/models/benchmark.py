"""
Benchmark Configuration Models

Defines Pydantic models for a weighted catalog benchmark run:
- Namespace tree shape (the target universe)
- Auto-termination settings
- Reader/writer distributions, seed, and run limits
"""

from enum import Enum
from typing import List

from pydantic import BaseModel, Field, model_validator

from catalog_bench.config import settings
from catalog_bench.models.distribution import WeightedDistribution


class BenchmarkState(str, Enum):
    """Benchmark job lifecycle state."""

    CREATED = "created"
    PREPARED = "prepared"
    RUNNING = "running"
    CLEANED = "cleaned"


class TreeConfig(BaseModel):
    """
    Shape of the N-ary namespace tree enumerated as the target universe.
    """

    namespace_width: int = Field(
        settings.NAMESPACE_WIDTH, ge=1, description="Children per namespace"
    )
    namespace_depth: int = Field(
        settings.NAMESPACE_DEPTH, ge=1, description="Depth of the namespace tree"
    )
    tables_per_ns: int = Field(
        settings.TABLES_PER_NS, ge=1, description="Tables per leaf namespace"
    )


class AutoTermConfig(BaseModel):
    """
    Auto-termination settings.

    `duration_seconds` is the hard upper bound on the run once auto-termination
    is enabled; 0 disables it (run until externally cancelled).
    """

    duration_seconds: float = Field(
        0.0, ge=0.0, description="Max run length with auto-termination (0=disabled)"
    )
    threshold_pct: float = Field(
        settings.AUTOTERM_THRESHOLD_PCT,
        gt=0.0,
        le=100.0,
        description="Throughput must stay within this % across the window",
    )
    splits: int = Field(
        settings.AUTOTERM_SPLITS, ge=2, description="Time buckets per window"
    )
    samples_per_split: int = Field(
        settings.AUTOTERM_SAMPLES_PER_SPLIT,
        ge=1,
        description="Window size is splits * samples_per_split operations",
    )
    check_interval_seconds: float = Field(
        settings.AUTOTERM_CHECK_INTERVAL_SECONDS,
        gt=0.0,
        description="How often the stopping rule is evaluated",
    )

    @property
    def enabled(self) -> bool:
        return self.duration_seconds > 0

    @property
    def window_size(self) -> int:
        return int(self.splits) * int(self.samples_per_split)


class WeightedBenchmarkConfig(BaseModel):
    """
    Configuration for a weighted (skewed access) catalog benchmark.
    """

    catalog_name: str = Field(settings.CATALOG_NAME, description="Catalog name")
    readers: List[WeightedDistribution] = Field(
        default_factory=list, description="Reader worker groups"
    )
    writers: List[WeightedDistribution] = Field(
        default_factory=list, description="Writer worker groups"
    )
    seed: int = Field(settings.DEFAULT_SEED, description="Random seed for reproducibility")
    tree: TreeConfig = Field(default_factory=TreeConfig)

    duration_seconds: float = Field(
        0.0, ge=0.0, description="Run duration in seconds (0=until cancelled)"
    )
    autoterm: AutoTermConfig = Field(default_factory=AutoTermConfig)
    rps_limit: float = Field(
        0.0, ge=0.0, description="Requests per second across all workers (0=unlimited)"
    )
    max_operations: int = Field(
        0, ge=0, description="Stop after this many requests (0=unlimited)"
    )
    collector_buffer_size: int = Field(
        settings.COLLECTOR_BUFFER_SIZE, ge=1, description="Operation channel capacity"
    )

    @property
    def total_workers(self) -> int:
        return sum(d.count for d in self.readers) + sum(d.count for d in self.writers)

    @model_validator(mode="after")
    def validate_distributions(self):
        """At least one worker, and every mean must be a position in [0, 1]."""
        if self.total_workers <= 0:
            raise ValueError("at least one reader or writer is required")
        for label, groups in (("reader", self.readers), ("writer", self.writers)):
            for dist in groups:
                if not 0.0 <= dist.mean <= 1.0:
                    raise ValueError(f"{label} mean must be between 0.0 and 1.0")
        return self
