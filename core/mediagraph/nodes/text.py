"""Local text transforms."""

from typing import Any

from mediagraph.graph.chunking import DEFAULT_CHUNK_PREFIX, DEFAULT_TARGET_SYLLABLES, chunk_by_syllables
from mediagraph.graph.models import NodeType
from mediagraph.nodes.base import NodeBehavior, NodeContext


class SyllableChunkerBehavior(NodeBehavior):
    """
    Splits a connected script into sentence-aligned chunks of at most
    `targetSyllables` syllables. Downstream nodes pick a chunk with their own
    1-based `chunkIndex`.
    """

    node_type = NodeType.SYLLABLE_CHUNKER
    default_size = (340.0, 400.0)

    def default_data(self) -> dict[str, Any]:
        return {
            "inputScript": None,
            "targetSyllables": DEFAULT_TARGET_SYLLABLES,
            "chunkPrefix": DEFAULT_CHUNK_PREFIX,
            "outputChunks": [],
            "selectedChunkIndex": 0,
            "status": "idle",
            "error": None,
        }

    def gather(self, ctx: NodeContext) -> dict[str, Any]:
        return {"inputScript": ctx.effective(ctx.resolve().text, "inputScript")}

    def validate(self, ctx: NodeContext, inputs: dict[str, Any]) -> list[str]:
        return [] if inputs["inputScript"] else ["Missing script input"]

    def outputs(self, ctx: NodeContext, inputs: dict[str, Any], result: dict[str, Any]) -> dict[str, Any]:
        data = ctx.data
        prefix = data.get("chunkPrefix")
        chunks = chunk_by_syllables(
            inputs["inputScript"],
            int(data.get("targetSyllables") or DEFAULT_TARGET_SYLLABLES),
            DEFAULT_CHUNK_PREFIX if prefix is None else prefix,
        )
        selected = min(int(data.get("selectedChunkIndex") or 0), len(chunks) - 1)
        return {"outputChunks": chunks, "selectedChunkIndex": max(selected, 0)}
