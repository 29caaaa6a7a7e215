"""Tests for the scheduler: dependency order, determinism and cycle detection."""

import pytest

from mediagraph.errors import CycleDetectedError
from mediagraph.graph import scheduler
from mediagraph.graph.models import Edge, Node, make_edge_id


def node(node_id: str, node_type: str = "prompt") -> Node:
    return Node(id=node_id, type=node_type)


def edge(source: str, target: str, target_handle: str | None = None) -> Edge:
    return Edge(
        id=make_edge_id(source, target, None, target_handle),
        source=source,
        target=target,
        target_handle=target_handle,
    )


def ids(nodes) -> list[str]:
    return [n.id for n in nodes]


def test_upstream_nodes_come_first():
    nodes = [node("c"), node("b"), node("a")]
    edges = [edge("a", "b"), edge("b", "c")]

    assert ids(scheduler.order(nodes, edges)) == ["a", "b", "c"]


def test_independent_nodes_keep_list_order():
    nodes = [node("x"), node("y"), node("z")]

    assert ids(scheduler.order(nodes, [])) == ["x", "y", "z"]


def test_diamond_visits_each_node_once():
    nodes = [node("sink"), node("left"), node("right"), node("root")]
    edges = [
        edge("root", "left"),
        edge("root", "right"),
        edge("left", "sink", "image"),
        edge("right", "sink", "text"),
    ]

    order = ids(scheduler.order(nodes, edges))

    assert order == ["root", "left", "right", "sink"]
    assert len(order) == len(set(order))


def test_order_is_deterministic():
    nodes = [node("d"), node("a"), node("c"), node("b")]
    edges = [edge("a", "c"), edge("b", "c"), edge("c", "d")]

    first = ids(scheduler.order(nodes, edges))
    for _ in range(5):
        assert ids(scheduler.order(nodes, edges)) == first


def test_edges_to_missing_nodes_are_ignored():
    nodes = [node("a")]
    edges = [edge("ghost", "a")]

    assert ids(scheduler.order(nodes, edges)) == ["a"]


def test_cycle_raises_with_path():
    nodes = [node("a"), node("b"), node("c")]
    edges = [edge("a", "b"), edge("b", "c"), edge("c", "a")]

    with pytest.raises(CycleDetectedError) as exc_info:
        scheduler.order(nodes, edges)

    cycle = exc_info.value.cycle
    assert cycle[0] == cycle[-1]
    assert set(cycle) == {"a", "b", "c"}
    assert "Cycle detected" in str(exc_info.value)


def test_self_loop_is_a_cycle():
    with pytest.raises(CycleDetectedError):
        scheduler.order([node("a")], [edge("a", "a")])


def test_start_index():
    ordered = [node("a"), node("b"), node("c")]

    assert scheduler.start_index(ordered, "b") == 1
    assert scheduler.start_index(ordered, None) == 0
    assert scheduler.start_index(ordered, "missing") == 0
