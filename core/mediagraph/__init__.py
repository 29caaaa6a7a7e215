"""
mediagraph - a node-graph media workflow engine.

    from mediagraph import Engine

    async with Engine() as engine:
        prompt = engine.add_node("prompt", (0, 0), {"prompt": "a lighthouse at dusk"})
        image = engine.add_node("nanoBanana", (400, 0))
        engine.connect(prompt, image, "text", "text")
        result = await engine.run()
"""

from mediagraph.config import EngineConfig
from mediagraph.errors import (
    CycleDetectedError,
    ExecutionCancelled,
    ExternalServiceError,
    InvalidWorkflowError,
    MediaGraphError,
    MissingInputError,
    WorkflowNotFoundError,
)
from mediagraph.runtime.controller import ExecutionResult, ExecutionState, RunStatus
from mediagraph.runtime.engine import Engine
from mediagraph.runtime.event_bus import EventBus, EventType, GraphEvent

__all__ = [
    "Engine",
    "EngineConfig",
    "EventBus",
    "EventType",
    "GraphEvent",
    "ExecutionResult",
    "ExecutionState",
    "RunStatus",
    # Errors
    "MediaGraphError",
    "MissingInputError",
    "CycleDetectedError",
    "ExternalServiceError",
    "ExecutionCancelled",
    "WorkflowNotFoundError",
    "InvalidWorkflowError",
]
