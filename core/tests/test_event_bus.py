"""Tests for the event bus: filters, sync emit, async publish, history."""

import asyncio

import pytest

from mediagraph.runtime.event_bus import EventBus, EventType, GraphEvent


def test_emit_runs_plain_handlers_inline():
    bus = EventBus()
    received = []
    bus.subscribe([EventType.GRAPH_CHANGED], received.append)

    bus.emit(GraphEvent(type=EventType.GRAPH_CHANGED))

    assert len(received) == 1


def test_type_and_node_filters():
    bus = EventBus()
    received = []
    bus.subscribe([EventType.NODE_STARTED], received.append, filter_node="n1")

    bus.emit(GraphEvent(type=EventType.NODE_STARTED, node_id="n2"))
    bus.emit(GraphEvent(type=EventType.NODE_FINISHED, node_id="n1"))
    bus.emit(GraphEvent(type=EventType.NODE_STARTED, node_id="n1"))

    assert [e.node_id for e in received] == ["n1"]


def test_unsubscribe():
    bus = EventBus()
    received = []
    sub_id = bus.subscribe([EventType.NOTICE], received.append)

    assert bus.unsubscribe(sub_id) is True
    assert bus.unsubscribe(sub_id) is False
    bus.emit(GraphEvent(type=EventType.NOTICE))

    assert received == []


def test_failing_handler_does_not_block_others():
    bus = EventBus()
    received = []

    def broken(event):
        raise RuntimeError("boom")

    bus.subscribe([EventType.NOTICE], broken)
    bus.subscribe([EventType.NOTICE], received.append)

    bus.emit(GraphEvent(type=EventType.NOTICE))

    assert len(received) == 1


@pytest.mark.asyncio
async def test_emit_schedules_async_handlers():
    bus = EventBus()
    received = []

    async def handler(event):
        await asyncio.sleep(0)
        received.append(event)

    bus.subscribe([EventType.WORKFLOW_SAVED], handler)
    bus.emit(GraphEvent(type=EventType.WORKFLOW_SAVED))
    await bus.drain()

    assert len(received) == 1


@pytest.mark.asyncio
async def test_publish_awaits_handlers():
    bus = EventBus()
    received = []

    async def handler(event):
        received.append(event.run_id)

    bus.subscribe([EventType.EXECUTION_COMPLETED], handler, filter_run="r1")

    await bus.publish(GraphEvent(type=EventType.EXECUTION_COMPLETED, run_id="r1"))
    await bus.publish(GraphEvent(type=EventType.EXECUTION_COMPLETED, run_id="r2"))

    assert received == ["r1"]


@pytest.mark.asyncio
async def test_wait_for():
    bus = EventBus()

    async def later():
        await asyncio.sleep(0)
        await bus.publish(GraphEvent(type=EventType.EXECUTION_PAUSED, node_id="n3"))

    task = asyncio.create_task(later())
    event = await bus.wait_for(EventType.EXECUTION_PAUSED, timeout=1.0)
    await task

    assert event is not None
    assert event.node_id == "n3"


@pytest.mark.asyncio
async def test_wait_for_timeout():
    bus = EventBus()

    assert await bus.wait_for(EventType.NOTICE, timeout=0.01) is None


def test_history_is_bounded_and_newest_first():
    bus = EventBus(max_history=3)
    for i in range(5):
        bus.emit(GraphEvent(type=EventType.NODE_STARTED, node_id=f"n{i}"))

    history = bus.get_history()

    assert [e.node_id for e in history] == ["n4", "n3", "n2"]
    assert bus.get_stats()["total_events"] == 3


def test_to_dict():
    event = GraphEvent(type=EventType.NOTICE, node_id="n1", data={"message": "hi"})

    data = event.to_dict()

    assert data["type"] == "notice"
    assert data["node_id"] == "n1"
    assert data["data"] == {"message": "hi"}
    assert "timestamp" in data
