"""
Data Models Package

Exports the configuration, measurement, and result models used by the benchmark.
"""

from .distribution import OpType, WeightedDistribution, WorkerRole
from .operation import Operation, OperationTimer
from .benchmark import (
    AutoTermConfig,
    BenchmarkState,
    TreeConfig,
    WeightedBenchmarkConfig,
)
from .result import BenchmarkSummary, OpTypeSummary
from .target import TableInfo

__all__ = [
    "OpType",
    "WeightedDistribution",
    "WorkerRole",
    "Operation",
    "OperationTimer",
    "AutoTermConfig",
    "BenchmarkState",
    "TreeConfig",
    "WeightedBenchmarkConfig",
    "BenchmarkSummary",
    "OpTypeSummary",
    "TableInfo",
]
