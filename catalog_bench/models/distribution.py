"""
Workload Distribution Models

Defines how worker groups are sized and how skewed their access pattern is.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class OpType(str, Enum):
    """Operation types recorded by the weighted workload."""

    TABLE_GET = "TABLE_GET"
    TABLE_UPDATE = "TABLE_UPDATE"


class WorkerRole(str, Enum):
    """Which remote operation a worker issues against its sampled table."""

    READER = "reader"
    WRITER = "writer"

    @property
    def op_type(self) -> OpType:
        if self is WorkerRole.READER:
            return OpType.TABLE_GET
        return OpType.TABLE_UPDATE


class WeightedDistribution(BaseModel):
    """
    One homogeneous group of workers.

    Each of the `count` workers samples tables from a normal profile centered at
    `mean` (a fractional position over the ordered table list) with spread
    `sqrt(variance)`, truncated to [0, 1].

    `mean` is deliberately unconstrained here; the run configuration checks it
    and the sampler clamps at runtime.
    """

    model_config = ConfigDict(frozen=True)

    count: int = Field(..., ge=0, description="Number of workers in this group")
    mean: float = Field(..., description="Mean position (0.0-1.0) over the table list")
    variance: float = Field(..., ge=0.0, description="Variance of the position")
