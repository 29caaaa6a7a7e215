"""Workflow persistence."""

from mediagraph.storage.file_store import FileWorkflowRepository, validate_key
from mediagraph.storage.repository import (
    CURRENT_WORKFLOW_KEY,
    IMAGE_HISTORY_KEY,
    InMemoryWorkflowRepository,
    WorkflowRepository,
)

__all__ = [
    "CURRENT_WORKFLOW_KEY",
    "IMAGE_HISTORY_KEY",
    "FileWorkflowRepository",
    "InMemoryWorkflowRepository",
    "WorkflowRepository",
    "validate_key",
]
