"""
Workflow Repository - persistence contract for workflows and meta values.

Meta keys in use:
- `currentWorkflowId`: id of the workflow open when the engine last ran
- `globalImageHistory`: serialized image history items
"""

import copy
import logging
from typing import Any, Protocol, runtime_checkable

from mediagraph.schemas.workflow import StoredWorkflow

logger = logging.getLogger(__name__)

CURRENT_WORKFLOW_KEY = "currentWorkflowId"
IMAGE_HISTORY_KEY = "globalImageHistory"


@runtime_checkable
class WorkflowRepository(Protocol):
    async def list_workflows(self) -> list[StoredWorkflow]: ...

    async def load_workflow(self, workflow_id: str) -> StoredWorkflow | None: ...

    async def save_workflow(self, workflow: StoredWorkflow) -> None: ...

    async def delete_workflow(self, workflow_id: str) -> bool: ...

    async def get_meta(self, key: str) -> Any | None: ...

    async def set_meta(self, key: str, value: Any) -> None: ...


class InMemoryWorkflowRepository:
    """Repository kept in process memory. Records are copied on the way in and out."""

    def __init__(self) -> None:
        self._workflows: dict[str, StoredWorkflow] = {}
        self._meta: dict[str, Any] = {}

    async def list_workflows(self) -> list[StoredWorkflow]:
        return [w.model_copy(deep=True) for w in self._workflows.values()]

    async def load_workflow(self, workflow_id: str) -> StoredWorkflow | None:
        workflow = self._workflows.get(workflow_id)
        return workflow.model_copy(deep=True) if workflow is not None else None

    async def save_workflow(self, workflow: StoredWorkflow) -> None:
        self._workflows[workflow.id] = workflow.model_copy(deep=True)
        logger.debug(f"Saved workflow {workflow.id}")

    async def delete_workflow(self, workflow_id: str) -> bool:
        return self._workflows.pop(workflow_id, None) is not None

    async def get_meta(self, key: str) -> Any | None:
        return copy.deepcopy(self._meta.get(key))

    async def set_meta(self, key: str, value: Any) -> None:
        self._meta[key] = copy.deepcopy(value)
