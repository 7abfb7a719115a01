"""
Tests for configuration and measurement models.
"""

from datetime import UTC, datetime, timedelta

import pytest
from pydantic import ValidationError

from catalog_bench.models import (
    AutoTermConfig,
    OpType,
    Operation,
    OperationTimer,
    TableInfo,
    TreeConfig,
    WeightedBenchmarkConfig,
    WeightedDistribution,
    WorkerRole,
)


def _config(**overrides):
    data = {
        "readers": [WeightedDistribution(count=8, mean=0.3, variance=0.0278)],
        "writers": [WeightedDistribution(count=2, mean=0.7, variance=0.0278)],
    }
    data.update(overrides)
    return WeightedBenchmarkConfig(**data)


def test_default_config_shape():
    cfg = _config()
    assert cfg.total_workers == 10
    assert cfg.catalog_name == "benchmark_catalog"
    assert cfg.seed == 42
    assert cfg.tree.namespace_width == 2
    assert cfg.tree.namespace_depth == 3
    assert cfg.tree.tables_per_ns == 5
    assert cfg.autoterm.enabled is False


def test_config_requires_a_worker():
    with pytest.raises(ValidationError, match="at least one reader or writer"):
        _config(
            readers=[WeightedDistribution(count=0, mean=0.3, variance=0.1)],
            writers=[],
        )


def test_readers_only_is_valid():
    cfg = _config(writers=[])
    assert cfg.total_workers == 8


@pytest.mark.parametrize("mean", [-0.1, 1.5])
def test_config_rejects_mean_out_of_range(mean):
    with pytest.raises(ValidationError, match="reader mean must be between 0.0 and 1.0"):
        _config(readers=[WeightedDistribution(count=1, mean=mean, variance=0.1)])


def test_config_rejects_writer_mean_out_of_range():
    with pytest.raises(ValidationError, match="writer mean"):
        _config(writers=[WeightedDistribution(count=1, mean=2.0, variance=0.1)])


def test_distribution_field_constraints():
    with pytest.raises(ValidationError):
        WeightedDistribution(count=-1, mean=0.5, variance=0.1)
    with pytest.raises(ValidationError):
        WeightedDistribution(count=1, mean=0.5, variance=-0.1)
    # Out-of-range means are only rejected by the run configuration.
    assert WeightedDistribution(count=1, mean=3.0, variance=0.1).mean == 3.0


def test_distribution_is_immutable():
    dist = WeightedDistribution(count=1, mean=0.5, variance=0.1)
    with pytest.raises(ValidationError):
        dist.count = 5


def test_tree_config_bounds():
    with pytest.raises(ValidationError):
        TreeConfig(namespace_width=0)
    with pytest.raises(ValidationError):
        TreeConfig(namespace_depth=0)
    with pytest.raises(ValidationError):
        TreeConfig(tables_per_ns=0)


def test_autoterm_config():
    cfg = AutoTermConfig(duration_seconds=30, splits=4, samples_per_split=10)
    assert cfg.enabled is True
    assert cfg.window_size == 40
    with pytest.raises(ValidationError):
        AutoTermConfig(threshold_pct=0)
    with pytest.raises(ValidationError):
        AutoTermConfig(splits=1)


def test_worker_role_op_types():
    assert WorkerRole.READER.op_type is OpType.TABLE_GET
    assert WorkerRole.WRITER.op_type is OpType.TABLE_UPDATE


def test_operation_properties():
    start = datetime(2024, 1, 1, tzinfo=UTC)
    op = Operation(
        op_type=OpType.TABLE_GET,
        worker_id=3,
        target_label="cat/ns_0.ns_0_0/tbl_1",
        objects_per_op=1,
        endpoint_label="cat",
        start_time=start,
        end_time=start + timedelta(milliseconds=25),
    )
    assert op.ok
    assert op.duration_ms == pytest.approx(25.0)

    failed = Operation(
        op_type=OpType.TABLE_UPDATE,
        worker_id=9,
        target_label="cat/ns_0/tbl_0",
        objects_per_op=1,
        endpoint_label="cat",
        start_time=start,
        end_time=start,
        error="HTTP 409",
    )
    assert not failed.ok


def test_operation_timer_end_not_before_start():
    timer = OperationTimer()
    end = timer.stop()
    assert end >= timer.start_time
    assert timer.start_time.tzinfo is not None


def test_table_label():
    table = TableInfo(namespace=("ns_0", "ns_0_1", "ns_0_1_0"), name="tbl_3")
    assert table.namespace_path == "ns_0.ns_0_1.ns_0_1_0"
    assert table.label("cat") == "cat/ns_0.ns_0_1.ns_0_1_0/tbl_3"
