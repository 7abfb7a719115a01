"""
Benchmark Core Package

Concurrency, sampling, and measurement primitives for the weighted catalog
benchmark.

Usage:
    from catalog_bench.core import WeightedBenchmark, run_benchmark
"""

from .context import ContextCancelled, RunContext
from .sampler import (
    MAX_SAMPLE_ATTEMPTS,
    SamplingExhausted,
    WeightedSampler,
    derive_seed,
    sample_table_index,
)
from .collector import CollectorClosedError, OperationCollector
from .rate_limiter import RateLimiter, TokenBucketRateLimiter
from .auto_terminator import AutoTermDecision, AutoTerminator
from .namespace_tree import NamespaceTree, TargetProvider
from .status import LoggingStatusSink, RecordingStatusSink, StatusSink
from .worker_pool import WorkerPool
from .aggregator import OperationAggregator
from .weighted_benchmark import (
    BenchmarkConfigurationError,
    BenchmarkStateError,
    WeightedBenchmark,
)
from .runner import run_benchmark

__all__ = [
    "ContextCancelled",
    "RunContext",
    "MAX_SAMPLE_ATTEMPTS",
    "SamplingExhausted",
    "WeightedSampler",
    "derive_seed",
    "sample_table_index",
    "CollectorClosedError",
    "OperationCollector",
    "RateLimiter",
    "TokenBucketRateLimiter",
    "AutoTermDecision",
    "AutoTerminator",
    "NamespaceTree",
    "TargetProvider",
    "LoggingStatusSink",
    "RecordingStatusSink",
    "StatusSink",
    "WorkerPool",
    "OperationAggregator",
    "BenchmarkConfigurationError",
    "BenchmarkStateError",
    "WeightedBenchmark",
    "run_benchmark",
]
