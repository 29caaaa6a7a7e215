"""Tests for bounded, grouped undo/redo."""

import pytest

from mediagraph.graph.history import HistoryManager
from mediagraph.graph.store import GraphStore
from mediagraph.runtime.event_bus import EventBus, EventType


@pytest.fixture
def store() -> GraphStore:
    return GraphStore()


def recorded_add(history: HistoryManager, store: GraphStore, node_type: str = "prompt") -> str:
    history.record()
    return store.add_node(node_type, (0, 0))


def ids(store: GraphStore) -> list[str]:
    return [n.id for n in store.nodes]


def test_undo_redo_round_trip(store):
    history = HistoryManager(store)
    a = recorded_add(history, store)
    b = recorded_add(history, store)

    assert history.undo() is True
    assert ids(store) == [a]
    assert history.undo() is True
    assert ids(store) == []
    assert history.undo() is False

    assert history.redo() is True
    assert history.redo() is True
    assert ids(store) == [a, b]
    assert history.redo() is False


def test_new_mutation_clears_future(store):
    history = HistoryManager(store)
    recorded_add(history, store)
    history.undo()
    assert history.can_redo

    recorded_add(history, store)

    assert not history.can_redo


def test_record_deduplicates_unchanged_state(store):
    history = HistoryManager(store)
    history.record()
    history.record()

    assert len(history.past) == 1


def test_limit_drops_oldest(store):
    history = HistoryManager(store, limit=3)
    for _ in range(5):
        recorded_add(history, store)

    assert len(history.past) == 3
    while history.undo():
        pass
    assert len(store.nodes) == 2


def test_group_collapses_to_one_entry(store):
    history = HistoryManager(store)
    recorded_add(history, store)

    with history.group():
        recorded_add(history, store)
        recorded_add(history, store)
        recorded_add(history, store)

    assert len(history.past) == 2
    history.undo()
    assert len(store.nodes) == 1


def test_nested_groups_commit_once(store):
    history = HistoryManager(store)

    history.begin_group()
    recorded_add(history, store)
    history.begin_group()
    recorded_add(history, store)
    history.end_group()
    assert history.group_depth == 1
    history.end_group()

    assert history.group_depth == 0
    assert len(history.past) == 1
    history.undo()
    assert store.nodes == ()


def test_empty_group_records_nothing(store):
    history = HistoryManager(store)

    with history.group():
        pass

    assert not history.can_undo


def test_unbalanced_end_group_is_ignored(store):
    history = HistoryManager(store)

    history.end_group()

    assert history.group_depth == 0
    assert not history.can_undo


def test_frozen_while_running(store):
    running = True
    history = HistoryManager(store, is_running=lambda: running)

    history.record()
    store.add_node("prompt", (0, 0))
    assert not history.can_undo

    running = False
    recorded_add(history, store)
    running = True
    assert history.undo() is False


def test_time_travel_callback(store):
    calls = []
    history = HistoryManager(store, on_time_travel=lambda: calls.append("reset"))
    recorded_add(history, store)

    history.undo()
    history.redo()

    assert calls == ["reset", "reset"]


def test_undo_restores_exact_snapshot(store):
    history = HistoryManager(store)
    store.add_node("prompt", (0, 0))
    before = store.snapshot()
    recorded_add(history, store)

    history.undo()

    assert store.snapshot().same_as(before)


def test_history_changed_events(store):
    bus = EventBus()
    history = HistoryManager(store, event_bus=bus)

    recorded_add(history, store)

    event = bus.get_history(EventType.HISTORY_CHANGED)[0]
    assert event.data == {"can_undo": True, "can_redo": False}
