"""
Exception hierarchy for the workflow engine.

Node-level failures (MissingInputError, ExternalServiceError) are recorded on
the failing node and never escape the execution controller. CycleDetectedError
is the only execution error raised to the caller of a run.
"""


class MediaGraphError(Exception):
    """Base class for all engine errors."""


class MissingInputError(MediaGraphError):
    """A node is missing an input it requires to run."""

    def __init__(self, node_id: str, message: str):
        self.node_id = node_id
        super().__init__(message)


class CycleDetectedError(MediaGraphError):
    """The dependency graph reachable from the workflow contains a cycle."""

    def __init__(self, cycle: list[str]):
        self.cycle = list(cycle)
        super().__init__(f"Cycle detected in workflow: {' -> '.join(self.cycle)}")


class ExternalServiceError(MediaGraphError):
    """An external collaborator reported failure."""

    def __init__(self, service: str, message: str):
        self.service = service
        self.message = message
        super().__init__(message)


class ExecutionCancelled(MediaGraphError):
    """The running workflow was stopped while a node was in flight."""


class WorkflowNotFoundError(MediaGraphError):
    """A workflow id does not exist in the repository."""

    def __init__(self, workflow_id: str):
        self.workflow_id = workflow_id
        super().__init__(f"Workflow not found: {workflow_id}")


class InvalidWorkflowError(MediaGraphError):
    """A workflow file could not be parsed or has an unsupported shape."""
