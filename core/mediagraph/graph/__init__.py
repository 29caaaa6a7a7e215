"""Workflow graph: data model, store, input resolution, ordering and undo history."""

from mediagraph.graph.history import HistoryManager
from mediagraph.graph.models import (
    Edge,
    EdgeData,
    EdgeStyle,
    GraphSnapshot,
    Node,
    NodeStatus,
    NodeType,
    Position,
    Size,
)
from mediagraph.graph.resolver import InputResolver, ResolvedInputs, effective_input
from mediagraph.graph.store import Clipboard, GraphStore
from mediagraph.graph.validation import ValidationResult, validate_workflow

__all__ = [
    # Model
    "Edge",
    "EdgeData",
    "EdgeStyle",
    "GraphSnapshot",
    "Node",
    "NodeStatus",
    "NodeType",
    "Position",
    "Size",
    # Store and history
    "Clipboard",
    "GraphStore",
    "HistoryManager",
    # Resolution
    "InputResolver",
    "ResolvedInputs",
    "effective_input",
    # Validation
    "ValidationResult",
    "validate_workflow",
]
