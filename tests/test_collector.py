"""
Tests for the bounded operation collector.
"""

import asyncio
import logging
from datetime import UTC, datetime

import pytest

from catalog_bench.core.collector import CollectorClosedError, OperationCollector
from catalog_bench.models import OpType, Operation

pytestmark = pytest.mark.asyncio


def _op(worker_id=0):
    now = datetime.now(UTC)
    return Operation(
        op_type=OpType.TABLE_GET,
        worker_id=worker_id,
        target_label="cat/ns_0/tbl_0",
        objects_per_op=1,
        endpoint_label="cat",
        start_time=now,
        end_time=now,
    )


async def test_full_buffer_blocks_producer():
    collector = OperationCollector(buffer_size=2)
    await collector.send(_op(0))
    await collector.send(_op(1))

    blocked = asyncio.create_task(collector.send(_op(2)))
    await asyncio.sleep(0.02)
    assert not blocked.done()
    assert collector.sent == 2

    first = await collector.receive()
    assert first.worker_id == 0
    await asyncio.wait_for(blocked, timeout=1.0)
    assert collector.sent == 3


async def test_close_drains_queued_operations():
    collector = OperationCollector(buffer_size=10)
    for i in range(3):
        await collector.send(_op(i))
    await collector.close()

    received = [op.worker_id async for op in collector]
    assert received == [0, 1, 2]
    assert await collector.receive() is None
    assert collector.closed


async def test_send_after_close_raises():
    collector = OperationCollector(buffer_size=1)
    await collector.close()
    with pytest.raises(CollectorClosedError):
        await collector.send(_op())


async def test_observers_see_every_operation(caplog):
    collector = OperationCollector(buffer_size=10)
    seen = []

    def broken(_op):
        raise RuntimeError("observer bug")

    collector.add_observer(seen.append)
    collector.add_observer(broken)

    with caplog.at_level(logging.WARNING, logger="catalog_bench.core.collector"):
        await collector.send(_op(1))
        await collector.send(_op(2))

    assert [op.worker_id for op in seen] == [1, 2]
    assert "observer bug" in caplog.text
    assert collector.qsize() == 2

    collector.remove_observer(seen.append)
    await collector.send(_op(3))
    assert len(seen) == 2


async def test_many_producers_nothing_dropped():
    collector = OperationCollector(buffer_size=4)
    received = []

    async def consume():
        async for op in collector:
            received.append(op)

    consumer = asyncio.create_task(consume())

    async def produce(wid):
        for _ in range(25):
            await collector.send(_op(wid))

    await asyncio.gather(*(produce(w) for w in range(8)))
    await collector.close()
    await asyncio.wait_for(consumer, timeout=1.0)

    assert len(received) == 200
    assert collector.sent == 200
