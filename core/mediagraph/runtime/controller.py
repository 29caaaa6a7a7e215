"""
Execution Controller - runs a workflow graph node by node.

The controller owns the run lifecycle:
1. Single-flight: a second run (or regenerate) while one is active is skipped
2. Order the graph with the scheduler (a cycle aborts before any node runs)
3. Walk the order, honouring pause edges and the cancellation token
4. Dispatch each node to its registered behavior
5. Autosave after a successful run or regenerate

Node failures never escape as exceptions; they end the run with a `failed`
result. Only `CycleDetectedError` propagates to the caller.
"""

import logging
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from mediagraph.config import EngineConfig
from mediagraph.errors import CycleDetectedError
from mediagraph.graph import scheduler
from mediagraph.graph.models import Edge
from mediagraph.graph.resolver import InputResolver
from mediagraph.graph.store import GraphStore
from mediagraph.nodes.base import NodeContext, NodeOutcome, NodeResult
from mediagraph.nodes.registry import NodeExecutorRegistry
from mediagraph.observability import clear_trace_context, set_trace_context
from mediagraph.runtime.cancellation import CancellationToken
from mediagraph.runtime.event_bus import EventBus, EventType, GraphEvent
from mediagraph.runtime.image_history import ImageHistory
from mediagraph.services.client import ServiceClient

logger = logging.getLogger(__name__)

PAUSE_NOTICE = "Workflow paused - click Run to continue"


class RunStatus(StrEnum):
    COMPLETED = "completed"
    PAUSED = "paused"
    STOPPED = "stopped"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class ExecutionState:
    """Execution state shared with the engine and history manager."""

    is_running: bool = False
    current_node_id: str | None = None
    paused_at_node_id: str | None = None
    token: CancellationToken | None = None


@dataclass
class ExecutionResult:
    """Result of a run or regenerate."""

    status: RunStatus
    path: list[str] = field(default_factory=list)  # Node IDs executed
    error: str | None = None
    failed_node_id: str | None = None
    paused_at: str | None = None
    run_id: str | None = None
    node_results: list[NodeResult] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.status == RunStatus.COMPLETED


class ExecutionController:
    def __init__(
        self,
        store: GraphStore,
        registry: NodeExecutorRegistry,
        services: ServiceClient,
        resolver: InputResolver | None = None,
        config: EngineConfig | None = None,
        event_bus: EventBus | None = None,
        image_history: ImageHistory | None = None,
        autosave: Callable[[], Awaitable[None]] | None = None,
        workflow_id: Callable[[], str | None] | None = None,
    ):
        """
        Args:
            store: Graph store to read and update
            registry: Behaviors by node type
            services: External collaborator client
            resolver: Input resolver (one over `store` by default)
            config: Engine configuration (rate-limit delays etc.)
            event_bus: Receives run and node lifecycle events
            image_history: Global image history fed by image generation
            autosave: Awaited after a successful run or regenerate
            workflow_id: Current workflow id, for trace context
        """
        self._store = store
        self._registry = registry
        self._services = services
        self._resolver = resolver or InputResolver(store)
        self._config = config or EngineConfig()
        self._event_bus = event_bus
        self._image_history = image_history
        self._autosave = autosave
        self._workflow_id = workflow_id or (lambda: None)
        self._state = ExecutionState()

    @property
    def state(self) -> ExecutionState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state.is_running

    # === RUN ===

    async def run(self, start_node_id: str | None = None) -> ExecutionResult:
        """
        Execute the workflow in dependency order.

        Args:
            start_node_id: Begin at this node (earlier nodes are skipped). When
                it is the node the last run paused at, its own pause edge is
                not checked again.

        Raises:
            CycleDetectedError: the graph has a cycle; nothing was executed
        """
        if self._state.is_running:
            logger.debug("Run requested while running; ignored")
            return ExecutionResult(status=RunStatus.SKIPPED)

        is_resuming = start_node_id is not None and start_node_id == self._state.paused_at_node_id
        token = CancellationToken()
        run_id = uuid.uuid4().hex[:12]
        self._state = ExecutionState(is_running=True, token=token)
        set_trace_context(run_id=run_id, workflow_id=self._workflow_id())

        # Pause flags are read from the edges as they were when the run began
        nodes, edges = self._store.nodes, self._store.edges

        try:
            ordered = scheduler.order(nodes, edges)
        except CycleDetectedError as e:
            logger.error(f"✗ {e}")
            await self._publish(EventType.EXECUTION_FAILED, run_id=run_id, error=str(e))
            self._finish(token)
            raise

        start = scheduler.start_index(ordered, start_node_id)
        if is_resuming:
            logger.info(f"🔄 Resuming from paused node: {start_node_id}")
        logger.info(f"🚀 Starting execution: {len(ordered) - start} node(s)")
        await self._publish(EventType.EXECUTION_STARTED, run_id=run_id, start_node_id=start_node_id)

        result = ExecutionResult(status=RunStatus.COMPLETED, run_id=run_id)
        try:
            for step, node in enumerate(ordered[start:], start=1):
                if token.is_cancelled:
                    result.status = RunStatus.STOPPED
                    break

                if not (is_resuming and node.id == start_node_id) and self._pause_edge(edges, node.id):
                    self._state.paused_at_node_id = node.id
                    self._state.is_running = False
                    result.status = RunStatus.PAUSED
                    result.paused_at = node.id
                    logger.info(f"⏸ Paused before {node.id}")
                    await self._publish(EventType.EXECUTION_PAUSED, node_id=node.id, run_id=run_id)
                    await self._publish(
                        EventType.NOTICE, node_id=node.id, run_id=run_id, message=PAUSE_NOTICE, level="warning"
                    )
                    break

                behavior = self._registry.get(node.type)
                if behavior is None:
                    logger.warning(f"No behavior registered for {node.type}; skipping {node.id}")
                    continue

                self._state.current_node_id = node.id
                logger.info(f"▶ Step {step}: {node.id} ({node.type})")
                await self._publish(EventType.NODE_STARTED, node_id=node.id, run_id=run_id)

                node_result = await behavior.execute(self._context(node.id, token, run_id))
                result.node_results.append(node_result)
                result.path.append(node.id)
                await self._publish(
                    EventType.NODE_FINISHED,
                    node_id=node.id,
                    run_id=run_id,
                    outcome=node_result.outcome.value,
                    error=node_result.error,
                )

                if node_result.outcome == NodeOutcome.CANCELLED:
                    result.status = RunStatus.STOPPED
                    break
                if node_result.outcome == NodeOutcome.FAILED:
                    result.status = RunStatus.FAILED
                    result.error = node_result.error
                    result.failed_node_id = node.id
                    break
        finally:
            self._finish(token)

        await self._conclude(result)
        return result

    async def regenerate(self, node_id: str) -> ExecutionResult:
        """Re-execute one node, falling back to its stored inputs where nothing is connected."""
        if self._state.is_running:
            logger.debug("Regenerate requested while running; ignored")
            return ExecutionResult(status=RunStatus.SKIPPED)

        node = self._store.get_node(node_id)
        behavior = self._registry.get(node.type) if node is not None else None
        if behavior is None:
            logger.warning(f"Cannot regenerate {node_id}: unknown node or type")
            return ExecutionResult(status=RunStatus.SKIPPED)

        token = CancellationToken()
        run_id = uuid.uuid4().hex[:12]
        self._state = ExecutionState(
            is_running=True,
            current_node_id=node_id,
            paused_at_node_id=self._state.paused_at_node_id,
            token=token,
        )
        set_trace_context(run_id=run_id, workflow_id=self._workflow_id())
        logger.info(f"🔄 Regenerating {node_id}")
        await self._publish(EventType.NODE_STARTED, node_id=node_id, run_id=run_id)

        try:
            node_result = await behavior.regenerate(self._context(node_id, token, run_id))
        finally:
            self._finish(token)

        await self._publish(
            EventType.NODE_FINISHED,
            node_id=node_id,
            run_id=run_id,
            outcome=node_result.outcome.value,
            error=node_result.error,
        )

        result = ExecutionResult(
            status=RunStatus.COMPLETED,
            path=[node_id],
            run_id=run_id,
            node_results=[node_result],
        )
        if node_result.outcome == NodeOutcome.CANCELLED:
            result.status = RunStatus.STOPPED
        elif node_result.outcome == NodeOutcome.FAILED:
            result.status = RunStatus.FAILED
            result.error = node_result.error
            result.failed_node_id = node_id

        await self._conclude(result)
        return result

    # === CONTROL ===

    def stop(self) -> None:
        """Cancel the in-flight call; no further nodes run."""
        token = self._state.token
        if token is None or not self._state.is_running:
            return
        token.cancel()
        self._state.is_running = False
        self._state.current_node_id = None
        logger.info("⏹ Stop requested")
        if self._event_bus is not None:
            self._event_bus.emit(GraphEvent(type=EventType.EXECUTION_STOPPED))

    def reset_state(self) -> None:
        """Forget running/paused state (undo, redo, workflow switch)."""
        if self._state.token is not None:
            self._state.token.cancel("reset")
        self._state = ExecutionState()

    # === INTERNAL ===

    def _context(self, node_id: str, token: CancellationToken, run_id: str) -> NodeContext:
        return NodeContext(
            node_id=node_id,
            store=self._store,
            resolver=self._resolver,
            services=self._services,
            token=token,
            config=self._config,
            registry=self._registry,
            image_history=self._image_history,
            event_bus=self._event_bus,
            run_id=run_id,
        )

    @staticmethod
    def _pause_edge(edges: tuple[Edge, ...], node_id: str) -> Edge | None:
        for edge in edges:
            if edge.target == node_id and edge.has_pause:
                return edge
        return None

    def _finish(self, token: CancellationToken) -> None:
        # A newer run may already own the state after a stop
        if self._state.token is token:
            self._state.is_running = False
            self._state.current_node_id = None
            self._state.token = None
        clear_trace_context()

    async def _conclude(self, result: ExecutionResult) -> None:
        if result.status == RunStatus.COMPLETED:
            logger.info(f"✓ Execution complete ({len(result.path)} node(s))")
            await self._publish(EventType.EXECUTION_COMPLETED, run_id=result.run_id, path=result.path)
            await self._run_autosave()
        elif result.status == RunStatus.FAILED:
            logger.error(f"✗ Execution failed at {result.failed_node_id}: {result.error}")
            await self._publish(
                EventType.EXECUTION_FAILED,
                node_id=result.failed_node_id,
                run_id=result.run_id,
                error=result.error,
            )
        elif result.status == RunStatus.STOPPED:
            logger.info("⏹ Execution stopped")

    async def _run_autosave(self) -> None:
        if self._autosave is None:
            return
        try:
            await self._autosave()
        except Exception as e:
            # The run itself succeeded; persistence failures are reported, not raised
            logger.error(f"Autosave failed: {e}")
            await self._publish(EventType.NOTICE, message=f"Autosave failed: {e}", level="error")

    async def _publish(
        self,
        event_type: EventType,
        node_id: str | None = None,
        run_id: str | None = None,
        **data: Any,
    ) -> None:
        if self._event_bus is None:
            return
        await self._event_bus.publish(GraphEvent(type=event_type, node_id=node_id, run_id=run_id, data=data))
