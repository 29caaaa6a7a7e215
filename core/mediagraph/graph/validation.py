"""Pre-run workflow checks surfaced to the user before executing."""

from collections.abc import Sequence
from dataclasses import dataclass

from mediagraph.graph.models import Edge, Node, NodeType
from mediagraph.graph.resolver import TEXT_HANDLE


@dataclass
class ValidationResult:
    """Result of validating a workflow."""

    valid: bool
    errors: list[str]

    @property
    def error(self) -> str:
        """Get combined error message."""
        return "; ".join(self.errors) if self.errors else ""


def validate_workflow(nodes: Sequence[Node], edges: Sequence[Edge]) -> ValidationResult:
    """
    Check the connections the common node types need.

    - an empty workflow is invalid
    - image generation needs a text connection (the image is optional)
    - annotation needs a connection or a manually loaded `sourceImage`
    - output needs at least one connection
    """
    if not nodes:
        return ValidationResult(valid=False, errors=["Workflow is empty"])

    targets = {e.target for e in edges}
    text_targets = {e.target for e in edges if e.target_handle == TEXT_HANDLE}
    errors: list[str] = []

    for node in nodes:
        if node.type == NodeType.NANO_BANANA and node.id not in text_targets:
            errors.append(f'Generate node "{node.id}" missing text input')

    for node in nodes:
        if node.type == NodeType.ANNOTATION:
            if node.id not in targets and node.data.get("sourceImage") is None:
                errors.append(f'Annotation node "{node.id}" missing image input')

    for node in nodes:
        if node.type == NodeType.OUTPUT and node.id not in targets:
            errors.append(f'Output node "{node.id}" missing image input')

    return ValidationResult(valid=not errors, errors=errors)
