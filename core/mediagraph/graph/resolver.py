"""
Input Resolver - computes a node's inputs from its upstream neighbours.

For every incoming edge the resolver looks at the edge's target handle and
the source node's type and applies one extraction rule. Images accumulate in
edge order; text, context, video and audio are single-valued with the last
connected edge winning.

The resolver always returns live upstream values. Deciding whether to fall
back to a node's own stored copy is left to the caller via effective_input().
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from mediagraph.graph.models import Edge, Node, NodeType
from mediagraph.graph.store import GraphStore

logger = logging.getLogger(__name__)

# Source type -> data field holding a single image
IMAGE_FIELDS: dict[str, str] = {
    NodeType.IMAGE_INPUT: "image",
    NodeType.ANNOTATION: "outputImage",
    NodeType.NANO_BANANA: "outputImage",
    NodeType.VIDEO_GENERATE: "lastFrame",
    NodeType.VIDEO_INPUT: "lastFrame",
    NodeType.GREEN_SCREEN: "extractedFrame",
}

# Source types whose image output is a list
IMAGE_LIST_FIELDS: dict[str, str] = {
    NodeType.LLM_GENERATE: "outputImages",
}

TEXT_FIELDS: dict[str, str] = {
    NodeType.PROMPT: "prompt",
    NodeType.LLM_GENERATE: "outputText",
}

VIDEO_FIELDS: dict[str, str] = {
    NodeType.VIDEO_INPUT: "video",
    NodeType.VIDEO_GENERATE: "outputVideo",
    NodeType.VIDEO_STITCH: "outputVideo",
    NodeType.CAPTION: "outputVideo",
    NodeType.VOICE_SWAP: "outputVideo",
    NodeType.AUDIO_PROCESS: "outputVideo",
    NodeType.VIDEO_UPSCALE: "outputVideo",
    NodeType.GREEN_SCREEN: "outputVideo",
    NodeType.MOTION_CAPTURE: "outputVideo",
    NodeType.VIDEO_COMPOSER: "outputVideo",
}

AUDIO_FIELDS: dict[str, str] = {
    NodeType.ELEVEN_LABS: "outputAudio",
    NodeType.MUSIC_GENERATE: "outputAudio",
    NodeType.SOUND_EFFECTS: "outputAudio",
}

IMAGE_HANDLE = "image"
TEXT_HANDLE = "text"
CONTEXT_HANDLE = "context"
VIDEO_HANDLE = "video"
AUDIO_HANDLE = "audio"
REFERENCE_HANDLE = "reference"


@dataclass
class ResolvedInputs:
    """Inputs gathered for one node."""

    images: list[str] = field(default_factory=list)
    reference_images: list[str] = field(default_factory=list)
    text: str | None = None
    context: str | None = None
    video: str | None = None
    videos: list[str] = field(default_factory=list)
    audio: str | None = None

    @property
    def image(self) -> str | None:
        return self.images[0] if self.images else None


def effective_input(connected: Any, stored: Any) -> Any:
    """
    The connected value unless it is missing (None or an empty list).

    Single fallback policy for regenerate: fresh connected inputs first,
    the node's stored copy only when nothing is connected.
    """
    if connected is None or (isinstance(connected, list) and not connected):
        return stored
    return connected


class InputResolver:
    def __init__(self, store: GraphStore):
        self._store = store

    def resolve(self, node_id: str, handle: str | None = None) -> ResolvedInputs:
        """
        Resolve inputs for `node_id`.

        Args:
            node_id: Consuming node
            handle: Restrict to edges arriving on this target handle
        """
        resolved = ResolvedInputs()
        consumer = self._store.get_node(node_id)

        for edge in self._store.incoming_edges(node_id):
            target_handle = edge.target_handle
            if handle is not None and target_handle != handle:
                continue
            source = self._store.get_node(edge.source)
            if source is None:
                continue

            if target_handle in (IMAGE_HANDLE, None):
                resolved.images.extend(self._images_from(source))

            elif target_handle == TEXT_HANDLE:
                # Sources without a rule for the handle leave earlier values alone
                if _gives_text(source):
                    resolved.text = self._text_from(source, consumer)

            elif target_handle == CONTEXT_HANDLE:
                if _gives_text(source):
                    resolved.context = self._text_from(source, consumer)

            elif target_handle == VIDEO_HANDLE:
                if source.type in VIDEO_FIELDS:
                    video = _field(source, VIDEO_FIELDS)
                    resolved.video = video
                    if video:
                        resolved.videos.append(video)

            elif target_handle == AUDIO_HANDLE:
                if source.type in AUDIO_FIELDS:
                    resolved.audio = _field(source, AUDIO_FIELDS)

            elif target_handle == REFERENCE_HANDLE:
                resolved.reference_images.extend(self._references_from(edge, source, {node_id}))

        return resolved

    def _images_from(self, source: Node) -> list[str]:
        if source.type in IMAGE_LIST_FIELDS:
            return [img for img in source.data.get(IMAGE_LIST_FIELDS[source.type]) or [] if img]
        image = _field(source, IMAGE_FIELDS)
        return [image] if image else []

    def _text_from(self, source: Node, consumer: Node | None) -> str | None:
        if source.type == NodeType.SYLLABLE_CHUNKER:
            return _select_chunk(source, consumer)
        return _field(source, TEXT_FIELDS)

    def _references_from(self, edge: Edge, source: Node, seen: set[str]) -> list[str]:
        """
        Reference images contributed through one edge.

        A video generation node connected through its `reference` output
        forwards its own incoming references instead of an image of its own.
        """
        if source.type == NodeType.VIDEO_GENERATE and edge.source_handle == REFERENCE_HANDLE:
            if source.id in seen:
                logger.warning(f"Reference chain loops back to {source.id}; stopping")
                return []
            seen = seen | {source.id}
            images: list[str] = []
            for upstream_edge in self._store.incoming_edges(source.id):
                if upstream_edge.target_handle != REFERENCE_HANDLE:
                    continue
                upstream = self._store.get_node(upstream_edge.source)
                if upstream is not None:
                    images.extend(self._references_from(upstream_edge, upstream, seen))
            return images
        return self._images_from(source)


def _gives_text(source: Node) -> bool:
    return source.type == NodeType.SYLLABLE_CHUNKER or source.type in TEXT_FIELDS


def _field(source: Node, fields: dict[str, str]) -> Any:
    key = fields.get(source.type)
    if key is None:
        return None
    return source.data.get(key)


def _select_chunk(chunker: Node, consumer: Node | None) -> str | None:
    """
    Pick the chunk a consumer asks for.

    The consumer's own `chunkIndex` is 1-based. Without one, the chunker's
    0-based `selectedChunkIndex` is used.
    """
    chunks = chunker.data.get("outputChunks") or []
    wanted = consumer.data.get("chunkIndex") if consumer is not None else None
    if wanted is not None:
        index = int(wanted) - 1
    else:
        index = int(chunker.data.get("selectedChunkIndex") or 0)
    if 0 <= index < len(chunks):
        return chunks[index]
    return None
