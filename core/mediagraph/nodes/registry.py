"""Node Executor Registry - node type → behavior."""

import logging

from mediagraph.graph.models import Size
from mediagraph.nodes.base import NodeBehavior

logger = logging.getLogger(__name__)


class NodeExecutorRegistry:
    """
    Maps node types to behaviors.

    Adding a node type means registering one behavior; the controller, the
    engine's `add_node` defaults and validation all read from here.
    """

    def __init__(self, behaviors: list[NodeBehavior] | None = None):
        self._behaviors: dict[str, NodeBehavior] = {}
        for behavior in behaviors or []:
            self.register(behavior)

    def register(self, behavior: NodeBehavior) -> None:
        if not behavior.node_type:
            raise ValueError(f"{type(behavior).__name__} has no node_type")
        if behavior.node_type in self._behaviors:
            logger.debug(f"Replacing behavior for {behavior.node_type}")
        self._behaviors[behavior.node_type] = behavior

    def get(self, node_type: str) -> NodeBehavior | None:
        return self._behaviors.get(node_type)

    def __contains__(self, node_type: str) -> bool:
        return node_type in self._behaviors

    def types(self) -> list[str]:
        return list(self._behaviors)

    def default_data(self, node_type: str) -> dict:
        behavior = self.get(node_type)
        return behavior.default_data() if behavior is not None else {}

    def default_size(self, node_type: str) -> Size | None:
        behavior = self.get(node_type)
        if behavior is None:
            return None
        width, height = behavior.default_size
        return Size(width=width, height=height)


def default_registry() -> NodeExecutorRegistry:
    """Registry with every built-in node type."""
    from mediagraph.nodes.generation import GENERATION_BEHAVIORS
    from mediagraph.nodes.sources import SOURCE_BEHAVIORS
    from mediagraph.nodes.stitch import VideoStitchBehavior
    from mediagraph.nodes.text import SyllableChunkerBehavior

    return NodeExecutorRegistry(
        [
            *SOURCE_BEHAVIORS,
            *GENERATION_BEHAVIORS,
            SyllableChunkerBehavior(),
            VideoStitchBehavior(),
        ]
    )
