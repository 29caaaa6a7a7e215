"""
Node behaviors - how each node type executes.

A NodeBehavior is the registered execution strategy for one node type. The
shared `execute()` template gives every service-backed node the same life
cycle:

    gather inputs → validate → status=loading (+ input snapshot)
        → one service call raced against the run's cancellation token
        → status=complete + outputs | status=error | back to idle on stop

Concrete behaviors only describe what differs: which inputs they gather,
what counts as missing, the service payload and how outputs are read back.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field, replace
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from mediagraph.config import EngineConfig
from mediagraph.errors import ExecutionCancelled, ExternalServiceError, MissingInputError
from mediagraph.graph.models import Node, NodeStatus
from mediagraph.graph.resolver import InputResolver, ResolvedInputs, effective_input
from mediagraph.graph.store import GraphStore
from mediagraph.observability import set_trace_context
from mediagraph.runtime.cancellation import CancellationToken
from mediagraph.runtime.event_bus import EventBus, EventType, GraphEvent
from mediagraph.services.client import ServiceClient

if TYPE_CHECKING:
    from mediagraph.nodes.registry import NodeExecutorRegistry
    from mediagraph.runtime.image_history import ImageHistory

logger = logging.getLogger(__name__)


class NodeOutcome(StrEnum):
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    SKIPPED = "skipped"


@dataclass
class NodeResult:
    """Outcome of executing one node."""

    node_id: str
    outcome: NodeOutcome
    error: str | None = None
    outputs: dict[str, Any] = field(default_factory=dict)
    latency_ms: int = 0

    @property
    def success(self) -> bool:
        return self.outcome in (NodeOutcome.COMPLETED, NodeOutcome.SKIPPED)


@dataclass
class NodeContext:
    """Everything a behavior may touch while executing one node."""

    node_id: str
    store: GraphStore
    resolver: InputResolver
    services: ServiceClient
    token: CancellationToken
    config: EngineConfig
    registry: NodeExecutorRegistry
    use_stored_inputs: bool = False
    image_history: ImageHistory | None = None
    event_bus: EventBus | None = None
    run_id: str | None = None

    @property
    def node(self) -> Node | None:
        return self.store.get_node(self.node_id)

    @property
    def data(self) -> dict[str, Any]:
        node = self.node
        return node.data if node is not None else {}

    def update(self, partial: dict[str, Any] | None = None, **fields: Any) -> None:
        self.store.update_node_data(self.node_id, {**(partial or {}), **fields})

    def resolve(self, handle: str | None = None) -> ResolvedInputs:
        return self.resolver.resolve(self.node_id, handle)

    def effective(self, connected: Any, stored_key: str) -> Any:
        """Connected value; in regenerate mode falls back to the node's stored copy."""
        if not self.use_stored_inputs:
            return connected
        return effective_input(connected, self.data.get(stored_key))

    async def call(self, service: str, payload: dict[str, Any]) -> dict[str, Any]:
        """
        One collaborator call, raced against the cancellation token.

        Raises:
            ExecutionCancelled: the run was stopped first
            ExternalServiceError: the service reported `success: False`
        """
        logger.info(f"   → {service}", extra={"service": service})
        result = await self.token.run(self.services.call(service, payload, token=self.token))
        if not result.get("success"):
            raise ExternalServiceError(service, result.get("error") or f"{service} request failed")
        return result

    def for_node(self, node_id: str, **changes: Any) -> NodeContext:
        return replace(self, node_id=node_id, **changes)

    def emit(self, event_type: EventType, **data: Any) -> None:
        if self.event_bus is not None:
            self.event_bus.emit(
                GraphEvent(type=event_type, node_id=self.node_id, run_id=self.run_id, data=data)
            )


class NodeBehavior:
    """
    Base behavior for a node type.

    Subclasses set `node_type`, `service` and the defaults, and override
    `gather`, `validate`, `payload` and `outputs`. Passive behaviors
    (`passive = True`) hold user data only and complete without a call.
    """

    node_type: str = ""
    service: str | None = None
    passive: bool = False
    default_size: tuple[float, float] = (300.0, 300.0)
    failure_message: str = "Generation failed"

    def default_data(self) -> dict[str, Any]:
        return {}

    # === HOOKS ===

    def gather(self, ctx: NodeContext) -> dict[str, Any]:
        """Inputs to snapshot into the node's data before the call."""
        return {}

    def validate(self, ctx: NodeContext, inputs: dict[str, Any]) -> list[str]:
        """Messages describing missing inputs; empty when the node can run."""
        return []

    def check_inputs(self, ctx: NodeContext, inputs: dict[str, Any]) -> None:
        """
        Raises:
            MissingInputError: the first message from `validate`
        """
        errors = self.validate(ctx, inputs)
        if errors:
            raise MissingInputError(ctx.node_id, errors[0])

    def service_name(self, ctx: NodeContext, inputs: dict[str, Any]) -> str | None:
        return self.service

    def payload(self, ctx: NodeContext, inputs: dict[str, Any]) -> dict[str, Any]:
        return dict(inputs)

    def outputs(self, ctx: NodeContext, inputs: dict[str, Any], result: dict[str, Any]) -> dict[str, Any]:
        return {}

    async def run(self, ctx: NodeContext, inputs: dict[str, Any]) -> dict[str, Any]:
        service = self.service_name(ctx, inputs)
        if service is None:
            return self.outputs(ctx, inputs, {})
        result = await ctx.call(service, self.payload(ctx, inputs))
        return self.outputs(ctx, inputs, result)

    def post_delay(self, ctx: NodeContext) -> float:
        return ctx.config.rate_limit_delays.get(self.node_type, 0.0)

    # === TEMPLATE ===

    async def execute(self, ctx: NodeContext) -> NodeResult:
        node = ctx.node
        if node is None:
            return NodeResult(node_id=ctx.node_id, outcome=NodeOutcome.SKIPPED)

        set_trace_context(node_id=node.id)
        if self.passive:
            return await self._execute_passive(ctx)

        inputs = self.gather(ctx)
        try:
            self.check_inputs(ctx, inputs)
        except MissingInputError as e:
            ctx.update(status=NodeStatus.ERROR.value, error=str(e))
            logger.warning(f"✗ {node.id}: {e}")
            return NodeResult(node_id=node.id, outcome=NodeOutcome.FAILED, error=str(e))

        ctx.update({**inputs, "status": NodeStatus.LOADING.value, "error": None})
        start = time.time()

        try:
            outputs = await self.run(ctx, inputs)
        except ExecutionCancelled:
            ctx.update(status=NodeStatus.IDLE.value, error=None)
            logger.info(f"⏹ {node.id} cancelled")
            return NodeResult(node_id=node.id, outcome=NodeOutcome.CANCELLED)
        except ExternalServiceError as e:
            ctx.update(status=NodeStatus.ERROR.value, error=e.message)
            logger.error(f"✗ {node.id} failed: {e.message}", extra={"service": e.service})
            return NodeResult(node_id=node.id, outcome=NodeOutcome.FAILED, error=e.message)
        except Exception as e:
            message = str(e) or self.failure_message
            ctx.update(status=NodeStatus.ERROR.value, error=message)
            logger.exception(f"✗ {node.id} raised: {message}")
            return NodeResult(node_id=node.id, outcome=NodeOutcome.FAILED, error=message)

        latency_ms = int((time.time() - start) * 1000)
        ctx.update({**outputs, "status": NodeStatus.COMPLETE.value, "error": None})
        logger.info(f"✓ {node.id} complete", extra={"latency_ms": latency_ms})

        delay = self.post_delay(ctx)
        if delay > 0:
            logger.debug(f"Waiting {delay}s after {node.id} (rate limit)")
            await asyncio.sleep(delay)

        return NodeResult(
            node_id=node.id,
            outcome=NodeOutcome.COMPLETED,
            outputs=outputs,
            latency_ms=latency_ms,
        )

    async def _execute_passive(self, ctx: NodeContext) -> NodeResult:
        inputs = self.gather(ctx)
        outputs = await self.run(ctx, inputs)
        if outputs:
            ctx.update(outputs)
        return NodeResult(node_id=ctx.node_id, outcome=NodeOutcome.COMPLETED, outputs=outputs)

    # === REGENERATE ===

    async def regenerate(self, ctx: NodeContext) -> NodeResult:
        """Single-node re-execution using stored inputs where nothing is connected."""
        return await self.execute(replace(ctx, use_stored_inputs=True))
