"""
Video stitching.

A plain run stitches whatever videos are connected, ordered by each source's
`chunkIndex`. Regenerating a stitch node is an orchestration: for each of
`iterationCount` iterations every upstream video generation node is cleared
and regenerated, then the results are stitched and, when `outputFolder` is
set, saved there.

Upstream regeneration is fail-soft (one failed clip does not stop its
siblings); the stitch itself is fail-fast.
"""

import logging
from dataclasses import replace
from datetime import datetime
from typing import Any

from mediagraph.errors import ExternalServiceError
from mediagraph.graph.models import NodeType
from mediagraph.graph.resolver import VIDEO_FIELDS, VIDEO_HANDLE
from mediagraph.nodes.base import NodeBehavior, NodeContext, NodeOutcome, NodeResult
from mediagraph.runtime.event_bus import EventType

logger = logging.getLogger(__name__)

MAX_ITERATIONS = 99


class VideoStitchBehavior(NodeBehavior):
    node_type = NodeType.VIDEO_STITCH
    service = "video-stitch"
    default_size = (340.0, 380.0)
    failure_message = "Stitching failed"

    def default_data(self) -> dict[str, Any]:
        return {
            "inputVideos": [],
            "outputVideo": None,
            "iterationCount": 1,
            "currentIteration": 0,
            "outputFolder": None,
            "status": "idle",
            "error": None,
        }

    def connected_videos(self, ctx: NodeContext) -> list[dict[str, Any]]:
        """Videos on the `video` handle, sorted by the source's chunkIndex (default 1)."""
        videos = []
        for edge in ctx.store.incoming_edges(ctx.node_id):
            if edge.target_handle != VIDEO_HANDLE:
                continue
            source = ctx.store.get_node(edge.source)
            if source is None or source.type not in VIDEO_FIELDS:
                continue
            video = source.data.get(VIDEO_FIELDS[source.type])
            if video:
                videos.append(
                    {
                        "video": video,
                        "chunkIndex": source.data.get("chunkIndex") or 1,
                        "sourceNodeId": source.id,
                    }
                )
        return sorted(videos, key=lambda v: v["chunkIndex"])

    def gather(self, ctx: NodeContext) -> dict[str, Any]:
        return {"inputVideos": ctx.effective(self.connected_videos(ctx), "inputVideos") or []}

    def validate(self, ctx: NodeContext, inputs: dict[str, Any]) -> list[str]:
        return [] if inputs["inputVideos"] else ["No videos ready to stitch"]

    def payload(self, ctx: NodeContext, inputs: dict[str, Any]) -> dict[str, Any]:
        return {"videos": [{"video": v["video"], "chunkIndex": v["chunkIndex"]} for v in inputs["inputVideos"]]}

    async def run(self, ctx: NodeContext, inputs: dict[str, Any]) -> dict[str, Any]:
        result = await ctx.call(self.service, self.payload(ctx, inputs))
        video = result.get("video")
        if not video:
            raise ExternalServiceError(self.service, result.get("error") or self.failure_message)

        folder = ctx.data.get("outputFolder")
        if folder:
            await self._save(ctx, video, folder)
        return {"outputVideo": video}

    async def _save(self, ctx: NodeContext, video: str, folder: str) -> None:
        filename = f"stitched_{datetime.now().isoformat().replace(':', '-').replace('.', '-')}.mp4"
        try:
            await ctx.call("save-video", {"video": video, "folder": folder, "filename": filename})
        except ExternalServiceError as e:
            # The stitched video is still on the node
            logger.warning(f"Could not save {filename} to {folder}: {e.message}")
        else:
            logger.info(f"   saved {filename} to {folder}")

    # === REGENERATE ===

    def upstream_generators(self, ctx: NodeContext) -> list[str]:
        """Video generation nodes feeding the `video` handle, in chunk order."""
        ids = []
        for edge in ctx.store.incoming_edges(ctx.node_id):
            source = ctx.store.get_node(edge.source)
            if (
                edge.target_handle == VIDEO_HANDLE
                and source is not None
                and source.type == NodeType.VIDEO_GENERATE
                and source.id not in ids
            ):
                ids.append(source.id)
        order = {v: (ctx.store.get_node(v).data.get("chunkIndex") or 1) for v in ids}
        return sorted(ids, key=order.__getitem__)

    async def regenerate(self, ctx: NodeContext) -> NodeResult:
        ctx = replace(ctx, use_stored_inputs=True)
        sources = self.upstream_generators(ctx)
        if not sources:
            return await self.execute(ctx)

        iterations = max(1, min(MAX_ITERATIONS, int(ctx.data.get("iterationCount") or 1)))
        result = NodeResult(node_id=ctx.node_id, outcome=NodeOutcome.SKIPPED)

        try:
            for iteration in range(1, iterations + 1):
                logger.info(f"▶ {ctx.node_id} iteration {iteration}/{iterations}")
                ctx.update(currentIteration=iteration)

                # Clear first so no stale clip or frame leaks into this iteration
                for source_id in sources:
                    ctx.store.update_node_data(source_id, {"outputVideo": None, "lastFrame": None})

                for source_id in sources:
                    sub = await self._regenerate_source(ctx, source_id)
                    if sub.outcome == NodeOutcome.CANCELLED:
                        ctx.update(status="idle", error=None)
                        return NodeResult(node_id=ctx.node_id, outcome=NodeOutcome.CANCELLED)
                    if not sub.success:
                        logger.warning(f"   {source_id} failed ({sub.error}); continuing with the rest")

                # Only clips regenerated in this iteration; stored ones are stale
                result = await self.execute(replace(ctx, use_stored_inputs=False))
                if not result.success:
                    break
        finally:
            ctx.update(currentIteration=0)

        return result

    async def _regenerate_source(self, ctx: NodeContext, source_id: str) -> NodeResult:
        source = ctx.store.get_node(source_id)
        behavior = ctx.registry.get(source.type) if source is not None else None
        if behavior is None:
            return NodeResult(node_id=source_id, outcome=NodeOutcome.SKIPPED)
        sub_ctx = ctx.for_node(source_id)
        sub_ctx.emit(EventType.NODE_STARTED)
        sub = await behavior.regenerate(sub_ctx)
        sub_ctx.emit(EventType.NODE_FINISHED, outcome=sub.outcome.value, error=sub.error)
        return sub
