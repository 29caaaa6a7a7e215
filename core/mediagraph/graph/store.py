"""
Graph Store - the single owner of a workflow's nodes, edges and edge style.

Collections are tuples of frozen models. Each mutation builds new tuples and
swaps them in, leaving untouched nodes shared with the previous state. The
store itself never records history; the engine wraps structural mutators
with the history manager.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from mediagraph.graph.models import (
    Edge,
    EdgeData,
    EdgeStyle,
    GraphSnapshot,
    Node,
    Position,
    Size,
    make_edge_id,
    make_node_id,
    max_id_suffix,
)
from mediagraph.runtime.event_bus import EventBus, EventType, GraphEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Clipboard:
    """Deep copies of a node selection plus the edges internal to it."""

    nodes: tuple[Node, ...]
    edges: tuple[Edge, ...]


class GraphStore:
    def __init__(
        self,
        event_bus: EventBus | None = None,
        edge_style: EdgeStyle = EdgeStyle.CURVED,
    ):
        self._nodes: tuple[Node, ...] = ()
        self._edges: tuple[Edge, ...] = ()
        self._edge_style = EdgeStyle(edge_style)
        self._counter = 0
        self._event_bus = event_bus

    # === READ ===

    @property
    def nodes(self) -> tuple[Node, ...]:
        return self._nodes

    @property
    def edges(self) -> tuple[Edge, ...]:
        return self._edges

    @property
    def edge_style(self) -> EdgeStyle:
        return self._edge_style

    @property
    def counter(self) -> int:
        return self._counter

    def get_node(self, node_id: str) -> Node | None:
        for node in self._nodes:
            if node.id == node_id:
                return node
        return None

    def get_edge(self, edge_id: str) -> Edge | None:
        for edge in self._edges:
            if edge.id == edge_id:
                return edge
        return None

    def incoming_edges(self, node_id: str) -> list[Edge]:
        return [e for e in self._edges if e.target == node_id]

    def snapshot(self) -> GraphSnapshot:
        return GraphSnapshot(self._nodes, self._edges, self._edge_style)

    # === IDS ===

    def next_node_id(self, node_type: str) -> str:
        self._counter += 1
        return make_node_id(node_type, self._counter)

    def reset_counter(self, nodes: Iterable[Node] | None = None) -> None:
        """Re-derive the id counter from the largest numeric id suffix."""
        self._counter = max_id_suffix(self._nodes if nodes is None else nodes)

    # === NODE MUTATIONS ===

    def add_node(
        self,
        node_type: str,
        position: Position | tuple[float, float],
        data: dict[str, Any] | None = None,
        size: Size | None = None,
    ) -> str:
        node_id = self.next_node_id(node_type)
        node = Node(
            id=node_id,
            type=node_type,
            position=_as_position(position),
            size=size,
            data=dict(data or {}),
        )
        self._set(nodes=self._nodes + (node,))
        logger.debug(f"Added node {node_id}")
        return node_id

    def update_node_data(self, node_id: str, partial: dict[str, Any]) -> bool:
        """Shallow-merge `partial` into a node's data. Unknown ids are ignored."""
        found = False
        nodes = []
        for node in self._nodes:
            if node.id == node_id:
                node = node.with_data(partial)
                found = True
            nodes.append(node)
        if not found:
            return False

        self._nodes = tuple(nodes)
        self._emit(EventType.NODE_DATA_UPDATED, node_id=node_id, data={"fields": sorted(partial)})
        return True

    def remove_node(self, node_id: str) -> bool:
        if self.get_node(node_id) is None:
            return False
        self._set(
            nodes=tuple(n for n in self._nodes if n.id != node_id),
            edges=tuple(e for e in self._edges if e.source != node_id and e.target != node_id),
        )
        return True

    def move_node(self, node_id: str, position: Position | tuple[float, float]) -> bool:
        position = _as_position(position)
        return self._replace_node(node_id, lambda n: n.model_copy(update={"position": position}))

    def resize_node(self, node_id: str, size: Size) -> bool:
        return self._replace_node(node_id, lambda n: n.model_copy(update={"size": size}))

    def select_nodes(self, node_ids: Iterable[str]) -> None:
        wanted = set(node_ids)
        if all(n.selected == (n.id in wanted) for n in self._nodes):
            return
        self._set(
            nodes=tuple(
                n if n.selected == (n.id in wanted) else n.model_copy(update={"selected": n.id in wanted})
                for n in self._nodes
            )
        )

    # === EDGE MUTATIONS ===

    def connect(
        self,
        source: str,
        target: str,
        source_handle: str | None = None,
        target_handle: str | None = None,
    ) -> str | None:
        """Add an edge. Returns None when the same connection already exists."""
        if any(e.connects(source, target, source_handle, target_handle) for e in self._edges):
            return None
        edge = Edge(
            id=make_edge_id(source, target, source_handle, target_handle),
            source=source,
            target=target,
            source_handle=source_handle,
            target_handle=target_handle,
        )
        self._set(edges=self._edges + (edge,))
        return edge.id

    def remove_edge(self, edge_id: str) -> bool:
        if self.get_edge(edge_id) is None:
            return False
        self._set(edges=tuple(e for e in self._edges if e.id != edge_id))
        return True

    def toggle_edge_pause(self, edge_id: str) -> bool:
        edge = self.get_edge(edge_id)
        if edge is None:
            return False
        toggled = edge.model_copy(update={"data": EdgeData(has_pause=not edge.has_pause)})
        self._set(edges=tuple(toggled if e.id == edge_id else e for e in self._edges))
        return True

    def set_edge_style(self, edge_style: EdgeStyle) -> None:
        self._edge_style = EdgeStyle(edge_style)
        self._emit(EventType.GRAPH_CHANGED)

    # === CLIPBOARD ===

    def copy_nodes(self, node_ids: Iterable[str]) -> Clipboard | None:
        ids = set(node_ids)
        nodes = tuple(n.model_copy(deep=True) for n in self._nodes if n.id in ids)
        if not nodes:
            return None
        edges = tuple(
            e.model_copy(deep=True) for e in self._edges if e.source in ids and e.target in ids
        )
        return Clipboard(nodes=nodes, edges=edges)

    def copy_selected(self) -> Clipboard | None:
        return self.copy_nodes(n.id for n in self._nodes if n.selected)

    def paste(
        self,
        clipboard: Clipboard,
        offset: tuple[float, float] = (50.0, 50.0),
    ) -> list[str]:
        """
        Insert clipboard contents with fresh ids.

        Pasted nodes are offset and selected; existing nodes are deselected.
        Edge endpoints and ids are rewritten to the new node ids.
        """
        if not clipboard.nodes:
            return []

        id_map = {node.id: self.next_node_id(node.type) for node in clipboard.nodes}
        dx, dy = offset

        new_nodes = tuple(
            node.model_copy(
                update={
                    "id": id_map[node.id],
                    "position": Position(x=node.position.x + dx, y=node.position.y + dy),
                    "selected": True,
                    "data": dict(node.data),
                }
            )
            for node in clipboard.nodes
        )
        new_edges = tuple(
            edge.model_copy(
                update={
                    "id": make_edge_id(
                        id_map[edge.source], id_map[edge.target], edge.source_handle, edge.target_handle
                    ),
                    "source": id_map[edge.source],
                    "target": id_map[edge.target],
                }
            )
            for edge in clipboard.edges
        )
        deselected = tuple(
            n.model_copy(update={"selected": False}) if n.selected else n for n in self._nodes
        )
        self._set(nodes=deselected + new_nodes, edges=self._edges + new_edges)
        return [id_map[node.id] for node in clipboard.nodes]

    # === WHOLE-GRAPH ===

    def replace(
        self,
        nodes: Iterable[Node],
        edges: Iterable[Edge],
        edge_style: EdgeStyle | None = None,
    ) -> None:
        """Swap in a whole graph (load, clear, switch workflow)."""
        self._set(
            nodes=tuple(nodes),
            edges=tuple(edges),
            edge_style=EdgeStyle(edge_style) if edge_style is not None else None,
        )

    def restore(self, snapshot: GraphSnapshot) -> None:
        """Reinstate a snapshot, keeping its tuples by identity."""
        self._set(nodes=snapshot.nodes, edges=snapshot.edges, edge_style=snapshot.edge_style)

    # === INTERNAL ===

    def _replace_node(self, node_id: str, change) -> bool:
        found = False
        nodes = []
        for node in self._nodes:
            if node.id == node_id:
                node = change(node)
                found = True
            nodes.append(node)
        if found:
            self._set(nodes=tuple(nodes))
        return found

    def _set(
        self,
        nodes: tuple[Node, ...] | None = None,
        edges: tuple[Edge, ...] | None = None,
        edge_style: EdgeStyle | None = None,
    ) -> None:
        if nodes is not None:
            self._nodes = nodes
        if edges is not None:
            self._edges = edges
        if edge_style is not None:
            self._edge_style = edge_style
        self._emit(EventType.GRAPH_CHANGED)

    def _emit(self, event_type: EventType, node_id: str | None = None, data: dict | None = None) -> None:
        if self._event_bus is None:
            return
        self._event_bus.emit(GraphEvent(type=event_type, node_id=node_id, data=data or {}))


def _as_position(position: Position | tuple[float, float]) -> Position:
    if isinstance(position, Position):
        return position
    x, y = position
    return Position(x=x, y=y)
