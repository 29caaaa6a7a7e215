"""Tests for the graph store: mutations, ids, structural sharing and clipboard."""

import pytest

from mediagraph.graph.models import EdgeStyle, Node, Position, Size
from mediagraph.graph.store import GraphStore
from mediagraph.runtime.event_bus import EventBus, EventType


@pytest.fixture
def store() -> GraphStore:
    return GraphStore()


class TestNodes:
    def test_ids_use_type_and_counter(self, store):
        first = store.add_node("prompt", (0, 0))
        second = store.add_node("nanoBanana", (10, 10))

        assert first == "prompt-1"
        assert second == "nanoBanana-2"
        assert store.counter == 2

    def test_update_node_data_merges(self, store):
        node_id = store.add_node("prompt", (0, 0), data={"prompt": "a", "keep": True})

        assert store.update_node_data(node_id, {"prompt": "b"}) is True
        assert store.get_node(node_id).data == {"prompt": "b", "keep": True}

    def test_update_unknown_node_is_ignored(self, store):
        before = store.nodes

        assert store.update_node_data("nope", {"x": 1}) is False
        assert store.nodes is before

    def test_untouched_nodes_are_shared(self, store):
        a = store.add_node("prompt", (0, 0))
        b = store.add_node("prompt", (0, 0))
        node_b = store.get_node(b)

        store.update_node_data(a, {"prompt": "changed"})

        assert store.get_node(b) is node_b

    def test_remove_node_drops_touching_edges(self, store):
        a = store.add_node("prompt", (0, 0))
        b = store.add_node("nanoBanana", (0, 0))
        c = store.add_node("output", (0, 0))
        store.connect(a, b, "text", "text")
        store.connect(b, c, "image", "image")

        assert store.remove_node(b) is True
        assert [n.id for n in store.nodes] == [a, c]
        assert store.edges == ()

    def test_move_and_resize(self, store):
        node_id = store.add_node("prompt", (0, 0))

        store.move_node(node_id, (5, 6))
        store.resize_node(node_id, Size(width=100, height=50))

        node = store.get_node(node_id)
        assert node.position == Position(x=5, y=6)
        assert node.size == Size(width=100, height=50)

    def test_select_nodes_noop_when_unchanged(self, store):
        node_id = store.add_node("prompt", (0, 0))
        store.select_nodes([node_id])
        before = store.nodes

        store.select_nodes([node_id])

        assert store.nodes is before
        assert store.get_node(node_id).selected is True


class TestEdges:
    def test_connect_builds_edge_id(self, store):
        edge_id = store.connect("a", "b", None, "text")

        assert edge_id == "edge-a-b-default-text"

    def test_duplicate_connection_is_noop(self, store):
        store.connect("a", "b", "image", "image")
        before = store.edges

        assert store.connect("a", "b", "image", "image") is None
        assert store.edges is before

    def test_same_nodes_different_handles_are_distinct(self, store):
        store.connect("a", "b", "text", "text")
        store.connect("a", "b", "text", "context")

        assert len(store.edges) == 2

    def test_toggle_edge_pause(self, store):
        edge_id = store.connect("a", "b")

        store.toggle_edge_pause(edge_id)
        assert store.get_edge(edge_id).has_pause is True

        store.toggle_edge_pause(edge_id)
        assert store.get_edge(edge_id).has_pause is False

    def test_incoming_edges(self, store):
        store.connect("a", "c")
        store.connect("b", "c")
        store.connect("c", "d")

        assert [e.source for e in store.incoming_edges("c")] == ["a", "b"]

    def test_default_edge_style_is_curved(self, store):
        assert store.edge_style == EdgeStyle.CURVED
        store.set_edge_style(EdgeStyle.ANGULAR)
        assert store.edge_style == EdgeStyle.ANGULAR


class TestClipboard:
    def test_copy_keeps_only_internal_edges(self, store):
        a = store.add_node("prompt", (0, 0))
        b = store.add_node("nanoBanana", (0, 0))
        c = store.add_node("output", (0, 0))
        store.connect(a, b, "text", "text")
        store.connect(b, c, "image", "image")

        clipboard = store.copy_nodes([a, b])

        assert [n.id for n in clipboard.nodes] == [a, b]
        assert [(e.source, e.target) for e in clipboard.edges] == [(a, b)]

    def test_copy_nothing_returns_none(self, store):
        assert store.copy_nodes([]) is None
        assert store.copy_selected() is None

    def test_paste_remaps_offsets_and_selects(self, store):
        a = store.add_node("prompt", (10, 20), data={"prompt": "hi"})
        b = store.add_node("nanoBanana", (100, 20))
        store.connect(a, b, "text", "text")
        store.select_nodes([a, b])
        clipboard = store.copy_selected()

        new_ids = store.paste(clipboard)

        assert new_ids == ["prompt-3", "nanoBanana-4"]
        pasted = store.get_node("prompt-3")
        assert pasted.position == Position(x=60, y=70)
        assert pasted.data == {"prompt": "hi"}
        assert pasted.selected is True
        assert store.get_node(a).selected is False
        assert store.get_edge("edge-prompt-3-nanoBanana-4-text-text") is not None

    def test_pasted_data_is_independent(self, store):
        a = store.add_node("prompt", (0, 0), data={"prompt": "original"})
        clipboard = store.copy_nodes([a])
        store.update_node_data(a, {"prompt": "edited"})

        (new_id,) = store.paste(clipboard)

        assert store.get_node(new_id).data["prompt"] == "original"


class TestWholeGraph:
    def test_restore_keeps_identity(self, store):
        store.add_node("prompt", (0, 0))
        snapshot = store.snapshot()
        store.add_node("prompt", (0, 0))

        store.restore(snapshot)

        assert store.snapshot().same_as(snapshot)

    def test_reset_counter_from_suffixes(self, store):
        nodes = [Node(id="prompt-7", type="prompt"), Node(id="custom", type="prompt")]
        store.replace(nodes, [])
        store.reset_counter()

        assert store.add_node("prompt", (0, 0)) == "prompt-8"


def test_mutations_emit_events():
    bus = EventBus()
    store = GraphStore(event_bus=bus)

    node_id = store.add_node("prompt", (0, 0))
    store.update_node_data(node_id, {"prompt": "x"})

    assert bus.get_history(EventType.GRAPH_CHANGED)
    updated = bus.get_history(EventType.NODE_DATA_UPDATED)
    assert updated[0].node_id == node_id
    assert updated[0].data == {"fields": ["prompt"]}
