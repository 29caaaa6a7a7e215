"""
Graph data model - nodes, edges and immutable graph snapshots.

Nodes and edges are frozen pydantic models. The store never mutates them in
place: every change builds a new model and a new tuple, so two snapshots can
be compared for "did anything change" with identity checks alone.

Serialized field names use camelCase (`sourceHandle`, `hasPause`,
`outputImage`) so saved workflows stay compatible with files written by the
editor.
"""

import re
from enum import StrEnum
from typing import Any, NamedTuple

from pydantic import BaseModel, Field, model_validator
from pydantic.alias_generators import to_camel

_ID_SUFFIX = re.compile(r"-(\d+)$")


class NodeType(StrEnum):
    """Built-in node types."""

    IMAGE_INPUT = "imageInput"
    ANNOTATION = "annotation"
    PROMPT = "prompt"
    NANO_BANANA = "nanoBanana"
    LLM_GENERATE = "llmGenerate"
    OUTPUT = "output"
    VIDEO_GENERATE = "videoGenerate"
    ELEVEN_LABS = "elevenLabs"
    SYLLABLE_CHUNKER = "syllableChunker"
    VIDEO_STITCH = "videoStitch"
    CAPTION = "caption"
    VOICE_SWAP = "voiceSwap"
    AUDIO_PROCESS = "audioProcess"
    MUSIC_GENERATE = "musicGenerate"
    SOUND_EFFECTS = "soundEffects"
    VIDEO_UPSCALE = "videoUpscale"
    GREEN_SCREEN = "greenScreen"
    MOTION_CAPTURE = "motionCapture"
    VIDEO_COMPOSER = "videoComposer"
    VIDEO_INPUT = "videoInput"


class NodeStatus(StrEnum):
    IDLE = "idle"
    LOADING = "loading"
    COMPLETE = "complete"
    ERROR = "error"


class EdgeStyle(StrEnum):
    ANGULAR = "angular"
    CURVED = "curved"


class _GraphModel(BaseModel):
    model_config = {
        "frozen": True,
        "populate_by_name": True,
        "alias_generator": to_camel,
        "extra": "ignore",
    }


class Position(_GraphModel):
    x: float = 0.0
    y: float = 0.0


class Size(_GraphModel):
    width: float
    height: float


class Node(_GraphModel):
    """
    A unit of work in a workflow.

    `data` holds the type-specific payload (inputs snapshot, outputs, user
    settings, `status` and `error`) keyed by the camelCase field names.
    """

    id: str
    type: str
    position: Position = Field(default_factory=Position)
    size: Size | None = None
    data: dict[str, Any] = Field(default_factory=dict)
    selected: bool = False

    @model_validator(mode="before")
    @classmethod
    def _size_from_style(cls, value: Any) -> Any:
        # Editor files carry dimensions under `style`
        if isinstance(value, dict) and value.get("size") is None:
            style = value.get("style") or {}
            if "width" in style and "height" in style:
                value = {**value, "size": {"width": style["width"], "height": style["height"]}}
        return value

    @property
    def status(self) -> str | None:
        return self.data.get("status")

    @property
    def error(self) -> str | None:
        return self.data.get("error")

    def with_data(self, partial: dict[str, Any]) -> "Node":
        """Return a copy with `partial` shallow-merged into `data`."""
        return self.model_copy(update={"data": {**self.data, **partial}})


class EdgeData(_GraphModel):
    has_pause: bool = False


class Edge(_GraphModel):
    """A directed connection from one node's output handle to another's input handle."""

    id: str
    source: str
    target: str
    source_handle: str | None = None
    target_handle: str | None = None
    data: EdgeData = Field(default_factory=EdgeData)

    @property
    def has_pause(self) -> bool:
        return self.data.has_pause

    def connects(self, source: str, target: str, source_handle: str | None, target_handle: str | None) -> bool:
        return (
            self.source == source
            and self.target == target
            and self.source_handle == source_handle
            and self.target_handle == target_handle
        )


class GraphSnapshot(NamedTuple):
    """Immutable view of the structural graph state, used by history."""

    nodes: tuple[Node, ...]
    edges: tuple[Edge, ...]
    edge_style: EdgeStyle

    def same_as(self, other: "GraphSnapshot | None") -> bool:
        """Reference equality on each component."""
        return (
            other is not None
            and self.nodes is other.nodes
            and self.edges is other.edges
            and self.edge_style is other.edge_style
        )


def make_node_id(node_type: str, counter: int) -> str:
    return f"{node_type}-{counter}"


def make_edge_id(
    source: str,
    target: str,
    source_handle: str | None = None,
    target_handle: str | None = None,
) -> str:
    return f"edge-{source}-{target}-{source_handle or 'default'}-{target_handle or 'default'}"


def max_id_suffix(nodes) -> int:
    """Largest trailing `-<n>` across node ids, 0 when none carries one."""
    highest = 0
    for node in nodes:
        match = _ID_SUFFIX.search(node.id)
        if match:
            highest = max(highest, int(match.group(1)))
    return highest
