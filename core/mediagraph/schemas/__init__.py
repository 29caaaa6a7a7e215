"""Persistence schemas."""

from mediagraph.schemas.workflow import ImageHistoryItem, StoredWorkflow, WorkflowFile, WorkflowMetadata

__all__ = ["ImageHistoryItem", "StoredWorkflow", "WorkflowFile", "WorkflowMetadata"]
