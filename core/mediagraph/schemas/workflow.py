"""
Workflow Schema - on-disk and repository shapes of a workflow.

WorkflowFile is the portable export format (`version: 1`). StoredWorkflow is
the repository record, which adds identity and timestamps (epoch
milliseconds). All models serialize with camelCase keys.
"""

from typing import Any

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from mediagraph.graph.models import Edge, EdgeStyle, Node

WORKFLOW_FILE_VERSION = 1


class _CamelModel(BaseModel):
    model_config = {"populate_by_name": True, "alias_generator": to_camel, "extra": "ignore"}

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class WorkflowFile(_CamelModel):
    """Portable workflow export. A file without `edgeStyle` loads as angular."""

    version: int = WORKFLOW_FILE_VERSION
    id: str | None = None
    name: str
    nodes: list[Node] = Field(default_factory=list)
    edges: list[Edge] = Field(default_factory=list)
    edge_style: EdgeStyle = EdgeStyle.ANGULAR


class WorkflowMetadata(_CamelModel):
    id: str
    name: str
    created_at: int
    updated_at: int


class StoredWorkflow(_CamelModel):
    """A workflow as kept by a repository."""

    id: str
    name: str
    created_at: int
    updated_at: int
    nodes: list[Node] = Field(default_factory=list)
    edges: list[Edge] = Field(default_factory=list)
    edge_style: EdgeStyle = EdgeStyle.CURVED

    def metadata(self) -> WorkflowMetadata:
        return WorkflowMetadata(
            id=self.id,
            name=self.name,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


class ImageHistoryItem(_CamelModel):
    id: str
    image: str
    timestamp: int
    prompt: str
    aspect_ratio: str | None = None
    model: str | None = None
