"""
Scheduler - dependency order for a workflow run.

Depth-first post-order over each node's incoming-edge sources, with the
outer loop following node order. The result is deterministic for a given
(nodes, edges) pair: every node appears after all of its upstream nodes.
"""

from collections.abc import Sequence

from mediagraph.errors import CycleDetectedError
from mediagraph.graph.models import Edge, Node


def order(nodes: Sequence[Node], edges: Sequence[Edge]) -> list[Node]:
    """
    Return nodes in execution order.

    Raises:
        CycleDetectedError: a node is reached again while still on the DFS stack
    """
    by_id = {node.id: node for node in nodes}
    upstream: dict[str, list[str]] = {}
    for edge in edges:
        if edge.source in by_id:
            upstream.setdefault(edge.target, []).append(edge.source)

    result: list[Node] = []
    visited: set[str] = set()

    for root in nodes:
        if root.id in visited:
            continue

        path = [root.id]
        on_path = {root.id}
        stack = [iter(upstream.get(root.id, ()))]

        while stack:
            dep = next(stack[-1], None)
            if dep is None:
                stack.pop()
                done = path.pop()
                on_path.discard(done)
                visited.add(done)
                result.append(by_id[done])
                continue
            if dep in visited:
                continue
            if dep in on_path:
                raise CycleDetectedError(path[path.index(dep) :] + [dep])
            path.append(dep)
            on_path.add(dep)
            stack.append(iter(upstream.get(dep, ())))

    return result


def start_index(ordered: Sequence[Node], node_id: str | None) -> int:
    """Position of `node_id` in `ordered`; 0 when absent or None."""
    if node_id is None:
        return 0
    for i, node in enumerate(ordered):
        if node.id == node_id:
            return i
    return 0
