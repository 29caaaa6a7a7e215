"""Node behaviors and the registry that maps node types to them."""

from mediagraph.nodes.base import NodeBehavior, NodeContext, NodeOutcome, NodeResult
from mediagraph.nodes.registry import NodeExecutorRegistry, default_registry

__all__ = [
    "NodeBehavior",
    "NodeContext",
    "NodeExecutorRegistry",
    "NodeOutcome",
    "NodeResult",
    "default_registry",
]
