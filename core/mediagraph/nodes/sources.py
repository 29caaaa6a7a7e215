"""Local node types: user-provided sources, annotation passthrough and output sinks."""

from typing import Any

from mediagraph.graph.models import NodeType
from mediagraph.nodes.base import NodeBehavior, NodeContext


class ImageInputBehavior(NodeBehavior):
    node_type = NodeType.IMAGE_INPUT
    passive = True
    default_size = (300.0, 280.0)

    def default_data(self) -> dict[str, Any]:
        return {"image": None, "filename": None, "dimensions": None}


class PromptBehavior(NodeBehavior):
    node_type = NodeType.PROMPT
    passive = True
    default_size = (320.0, 220.0)

    def default_data(self) -> dict[str, Any]:
        return {"prompt": ""}


class VideoInputBehavior(NodeBehavior):
    node_type = NodeType.VIDEO_INPUT
    passive = True
    default_size = (320.0, 300.0)

    def default_data(self) -> dict[str, Any]:
        return {"video": None, "lastFrame": None, "duration": None, "filename": None}


class AnnotationBehavior(NodeBehavior):
    """Takes the first connected image as its source; passes it through until annotated."""

    node_type = NodeType.ANNOTATION
    passive = True
    default_size = (300.0, 280.0)

    def default_data(self) -> dict[str, Any]:
        return {"sourceImage": None, "annotations": [], "outputImage": None}

    def gather(self, ctx: NodeContext) -> dict[str, Any]:
        return {"image": ctx.resolve().image}

    async def run(self, ctx: NodeContext, inputs: dict[str, Any]) -> dict[str, Any]:
        image = inputs["image"]
        if not image:
            return {}
        outputs = {"sourceImage": image}
        if not ctx.data.get("outputImage"):
            outputs["outputImage"] = image
        return outputs


class OutputBehavior(NodeBehavior):
    """Sink that shows the first connected image, plus any video and audio."""

    node_type = NodeType.OUTPUT
    passive = True
    default_size = (320.0, 320.0)

    def default_data(self) -> dict[str, Any]:
        return {"image": None, "video": None, "audio": None}

    def gather(self, ctx: NodeContext) -> dict[str, Any]:
        resolved = ctx.resolve()
        return {"image": resolved.image, "video": resolved.video, "audio": resolved.audio}

    async def run(self, ctx: NodeContext, inputs: dict[str, Any]) -> dict[str, Any]:
        return {key: value for key, value in inputs.items() if value}


SOURCE_BEHAVIORS: list[NodeBehavior] = [
    ImageInputBehavior(),
    PromptBehavior(),
    VideoInputBehavior(),
    AnnotationBehavior(),
    OutputBehavior(),
]
