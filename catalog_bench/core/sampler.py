"""
Weighted table sampler.

Maps a seeded random stream and a WeightedDistribution to an index over the
ordered table list. Positions are drawn from a normal distribution truncated to
[0, 1] by rejection sampling, then scaled to an index, so the same distribution
expresses the same skew regardless of how many tables exist.

Every worker owns its own `random.Random`; seeds are derived from the run seed
plus group and worker offsets, so runs are reproducible and no generator is
shared between workers.
"""

from __future__ import annotations

import logging
import math
import random

from catalog_bench.models.distribution import WeightedDistribution, WorkerRole

logger = logging.getLogger(__name__)

MAX_SAMPLE_ATTEMPTS = 100_000

# Position used when no draw lands in [0, 1] within MAX_SAMPLE_ATTEMPTS.
# Maps to index 0.
FALLBACK_POSITION = 0.0

_SEED_GROUP_STRIDE: dict[WorkerRole, int] = {
    WorkerRole.READER: 1000,
    WorkerRole.WRITER: 2000,
}


class SamplingExhausted(Exception):
    """Raised in strict mode when no draw landed in [0, 1] within the attempt cap."""

    def __init__(self, dist: WeightedDistribution, attempts: int):
        super().__init__(
            f"no sample within [0, 1] after {attempts} attempts "
            f"(mean={dist.mean}, variance={dist.variance})"
        )
        self.dist = dist
        self.attempts = attempts


def derive_seed(base_seed: int, role: WorkerRole, group_index: int, worker_id: int) -> int:
    """Per-worker seed: base + (group + 1) * stride(role) + worker_id."""
    stride = _SEED_GROUP_STRIDE[WorkerRole(role)]
    return int(base_seed) + (int(group_index) + 1) * stride + int(worker_id)


def _draw_position(
    rng: random.Random, dist: WeightedDistribution, *, max_attempts: int
) -> float | None:
    """First draw within [0, 1], or None when the attempt cap is exhausted."""
    stddev = math.sqrt(dist.variance)
    if stddev == 0.0:
        # Every draw would equal the mean.
        return dist.mean if 0.0 <= dist.mean <= 1.0 else None

    for _ in range(max_attempts):
        sample = rng.gauss(dist.mean, stddev)
        if 0.0 <= sample <= 1.0:
            return sample
    return None


def position_to_index(position: float, num_tables: int) -> int:
    """Scale a [0, 1] position to an index, clamped to [0, num_tables - 1]."""
    idx = int(position * num_tables)
    if idx >= num_tables:
        idx = num_tables - 1
    if idx < 0:
        idx = 0
    return idx


def sample_table_index(
    rng: random.Random,
    dist: WeightedDistribution,
    num_tables: int,
    *,
    strict: bool = False,
    max_attempts: int = MAX_SAMPLE_ATTEMPTS,
) -> int:
    """
    Sample one table index in [0, num_tables - 1].

    Args:
        rng: The calling worker's random stream
        dist: Distribution to sample from
        num_tables: Size of the target universe (>= 1)
        strict: Raise SamplingExhausted instead of using the fallback position
        max_attempts: Rejection sampling cap

    Returns:
        Table index
    """
    if num_tables < 1:
        raise ValueError("num_tables must be >= 1")

    position = _draw_position(rng, dist, max_attempts=max_attempts)
    if position is None:
        if strict:
            raise SamplingExhausted(dist, max_attempts)
        position = FALLBACK_POSITION
    return position_to_index(position, num_tables)


class WeightedSampler:
    """Sampler bound to one worker's random stream, distribution, and table count."""

    def __init__(
        self,
        dist: WeightedDistribution,
        num_tables: int,
        *,
        seed: int | None = None,
        rng: random.Random | None = None,
        strict: bool = False,
    ) -> None:
        if num_tables < 1:
            raise ValueError("num_tables must be >= 1")
        self.dist = dist
        self.num_tables = int(num_tables)
        self.strict = strict
        self._rng = rng if rng is not None else random.Random(seed)
        self.fallback_count = 0

    def next_index(self) -> int:
        position = _draw_position(self._rng, self.dist, max_attempts=MAX_SAMPLE_ATTEMPTS)
        if position is None:
            if self.strict:
                raise SamplingExhausted(self.dist, MAX_SAMPLE_ATTEMPTS)
            if self.fallback_count == 0:
                logger.warning(
                    "Sampling exhausted for mean=%s variance=%s; using table index 0",
                    self.dist.mean,
                    self.dist.variance,
                )
            self.fallback_count += 1
            position = FALLBACK_POSITION
        return position_to_index(position, self.num_tables)
