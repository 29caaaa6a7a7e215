"""
Engine - the constructible owner of one editing session.

An Engine wires together the graph store, history manager, input resolver,
node registry, execution controller, event bus, workflow repository and
image history. There is no module-level state: several engines can live in
one process (tests do this constantly).

Structural edits go through the engine so they are recorded for undo;
execution-driven data updates are not.
"""

import logging
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Any

from pydantic import ValidationError

from mediagraph.config import EngineConfig
from mediagraph.errors import InvalidWorkflowError, WorkflowNotFoundError
from mediagraph.graph.history import HistoryManager
from mediagraph.graph.models import Edge, EdgeStyle, Node, NodeStatus, Position, Size
from mediagraph.graph.resolver import InputResolver
from mediagraph.graph.store import Clipboard, GraphStore
from mediagraph.graph.validation import ValidationResult, validate_workflow
from mediagraph.nodes.registry import NodeExecutorRegistry, default_registry
from mediagraph.runtime.controller import ExecutionController, ExecutionResult, ExecutionState
from mediagraph.runtime.event_bus import EventBus, EventType, GraphEvent
from mediagraph.runtime.image_history import ImageHistory, now_ms, random_suffix
from mediagraph.schemas.workflow import ImageHistoryItem, StoredWorkflow, WorkflowFile, WorkflowMetadata
from mediagraph.services.client import HttpServiceClient, ServiceClient
from mediagraph.storage.repository import (
    CURRENT_WORKFLOW_KEY,
    IMAGE_HISTORY_KEY,
    InMemoryWorkflowRepository,
    WorkflowRepository,
)

logger = logging.getLogger(__name__)

# Output fields reset by clear_node_status(clear_outputs=True)
_OUTPUT_FIELDS = ("outputImage", "outputImages", "outputText", "outputVideo", "outputAudio", "lastFrame", "outputChunks")


def generate_workflow_id() -> str:
    return f"workflow-{now_ms()}-{random_suffix()}"


def parse_workflow(text: str) -> WorkflowFile:
    """
    Parse a workflow export.

    Raises:
        InvalidWorkflowError: the text is not a valid workflow file
    """
    try:
        return WorkflowFile.model_validate_json(text)
    except ValidationError as e:
        raise InvalidWorkflowError(f"Invalid workflow file: {e}") from e


class Engine:
    def __init__(
        self,
        services: ServiceClient | None = None,
        repository: WorkflowRepository | None = None,
        config: EngineConfig | None = None,
        registry: NodeExecutorRegistry | None = None,
        event_bus: EventBus | None = None,
    ):
        """
        Args:
            services: External collaborator client (HTTP client from config by default)
            repository: Workflow persistence (in-memory by default)
            config: Engine configuration (loaded from ~/.mediagraph by default)
            registry: Node behaviors (all built-in node types by default)
            event_bus: Event bus to publish on (a fresh one by default)
        """
        self.config = config or EngineConfig()
        self.event_bus = event_bus or EventBus()
        self.registry = registry or default_registry()
        self.repository = repository or InMemoryWorkflowRepository()

        self._owns_services = services is None
        self.services = services or HttpServiceClient(config=self.config)

        self.store = GraphStore(event_bus=self.event_bus)
        self.resolver = InputResolver(self.store)
        self.image_history = ImageHistory(limit=self.config.image_history_limit)
        self.controller = ExecutionController(
            store=self.store,
            registry=self.registry,
            services=self.services,
            resolver=self.resolver,
            config=self.config,
            event_bus=self.event_bus,
            image_history=self.image_history,
            autosave=self.autosave,
            workflow_id=lambda: self.current_workflow_id,
        )
        self.history = HistoryManager(
            self.store,
            is_running=lambda: self.controller.is_running,
            limit=self.config.history_limit,
            on_time_travel=self.controller.reset_state,
            event_bus=self.event_bus,
        )

        self.clipboard: Clipboard | None = None
        self.current_workflow_id: str | None = None
        self._workflow_list: list[WorkflowMetadata] = []

    async def aclose(self) -> None:
        if self._owns_services and isinstance(self.services, HttpServiceClient):
            await self.services.aclose()

    async def __aenter__(self) -> "Engine":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    # === READ ===

    @property
    def nodes(self) -> tuple[Node, ...]:
        return self.store.nodes

    @property
    def edges(self) -> tuple[Edge, ...]:
        return self.store.edges

    @property
    def edge_style(self) -> EdgeStyle:
        return self.store.edge_style

    @property
    def state(self) -> ExecutionState:
        return self.controller.state

    @property
    def is_running(self) -> bool:
        return self.controller.is_running

    @property
    def workflow_list(self) -> list[WorkflowMetadata]:
        return list(self._workflow_list)

    def get_node(self, node_id: str) -> Node | None:
        return self.store.get_node(node_id)

    # === RECORDED MUTATIONS ===

    def add_node(
        self,
        node_type: str,
        position: Position | tuple[float, float] = (0.0, 0.0),
        data: dict[str, Any] | None = None,
    ) -> str:
        """Add a node of a registered type with its default data and size."""
        if node_type not in self.registry:
            raise ValueError(f"Unknown node type: {node_type}")
        self.history.record()
        return self.store.add_node(
            node_type,
            position,
            data={**self.registry.default_data(node_type), **(data or {})},
            size=self.registry.default_size(node_type),
        )

    def remove_node(self, node_id: str) -> bool:
        if self.store.get_node(node_id) is None:
            return False
        self.history.record()
        return self.store.remove_node(node_id)

    def remove_nodes(self, node_ids: Iterable[str]) -> int:
        """Remove several nodes as one undo step."""
        removed = 0
        with self.history.group():
            for node_id in list(node_ids):
                removed += self.remove_node(node_id)
        return removed

    def move_node(self, node_id: str, position: Position | tuple[float, float], dragging: bool = False) -> bool:
        """Move a node. Intermediate drag positions are not recorded, only the drop."""
        if not dragging:
            self.history.record()
        return self.store.move_node(node_id, position)

    def connect(
        self,
        source: str,
        target: str,
        source_handle: str | None = None,
        target_handle: str | None = None,
    ) -> str | None:
        if any(e.connects(source, target, source_handle, target_handle) for e in self.store.edges):
            return None
        self.history.record()
        return self.store.connect(source, target, source_handle, target_handle)

    def remove_edge(self, edge_id: str) -> bool:
        if self.store.get_edge(edge_id) is None:
            return False
        self.history.record()
        return self.store.remove_edge(edge_id)

    def toggle_edge_pause(self, edge_id: str) -> bool:
        if self.store.get_edge(edge_id) is None:
            return False
        self.history.record()
        return self.store.toggle_edge_pause(edge_id)

    def set_edge_style(self, edge_style: EdgeStyle) -> None:
        if edge_style == self.store.edge_style:
            return
        self.history.record()
        self.store.set_edge_style(edge_style)

    def paste_nodes(self, offset: tuple[float, float] | None = None) -> list[str]:
        if self.clipboard is None or not self.clipboard.nodes:
            return []
        self.history.record()
        return self.store.paste(self.clipboard, offset or self.config.paste_offset)

    def load_workflow(self, workflow: WorkflowFile | dict[str, Any]) -> None:
        """Replace the graph with an imported workflow (undoable)."""
        if not isinstance(workflow, WorkflowFile):
            try:
                workflow = WorkflowFile.model_validate(workflow)
            except ValidationError as e:
                raise InvalidWorkflowError(f"Invalid workflow file: {e}") from e

        self.history.record()
        self.store.reset_counter(workflow.nodes)
        self.store.replace(workflow.nodes, workflow.edges, workflow.edge_style)
        self.controller.reset_state()
        logger.info(f"📥 Loaded workflow '{workflow.name}' ({len(workflow.nodes)} nodes)")

    def clear_workflow(self) -> None:
        self.history.record()
        self.store.replace((), ())
        self.controller.reset_state()

    # === UNRECORDED MUTATIONS ===

    def update_node_data(self, node_id: str, partial: dict[str, Any]) -> bool:
        return self.store.update_node_data(node_id, partial)

    def clear_node_status(self, node_id: str, clear_outputs: bool = False) -> bool:
        """Reset a node to idle; optionally drop its generated outputs too."""
        node = self.store.get_node(node_id)
        if node is None:
            return False
        partial: dict[str, Any] = {"status": NodeStatus.IDLE.value, "error": None}
        if clear_outputs:
            defaults = self.registry.default_data(node.type)
            partial.update({key: defaults.get(key) for key in _OUTPUT_FIELDS if key in node.data})
        return self.store.update_node_data(node_id, partial)

    def resize_node(self, node_id: str, size: Size) -> bool:
        return self.store.resize_node(node_id, size)

    def select_nodes(self, node_ids: Iterable[str]) -> None:
        self.store.select_nodes(node_ids)

    def copy_selected_nodes(self) -> Clipboard | None:
        clipboard = self.store.copy_selected()
        if clipboard is not None:
            self.clipboard = clipboard
        return clipboard

    def copy_nodes(self, node_ids: Iterable[str]) -> Clipboard | None:
        clipboard = self.store.copy_nodes(node_ids)
        if clipboard is not None:
            self.clipboard = clipboard
        return clipboard

    # === HISTORY ===

    def begin_history_group(self) -> None:
        self.history.begin_group()

    def end_history_group(self) -> None:
        self.history.end_group()

    @contextmanager
    def history_group(self) -> Iterator[None]:
        with self.history.group():
            yield

    def undo(self) -> bool:
        return self.history.undo()

    def redo(self) -> bool:
        return self.history.redo()

    @property
    def can_undo(self) -> bool:
        return self.history.can_undo

    @property
    def can_redo(self) -> bool:
        return self.history.can_redo

    # === EXECUTION ===

    async def run(self, start_node_id: str | None = None) -> ExecutionResult:
        return await self.controller.run(start_node_id)

    async def regenerate(self, node_id: str) -> ExecutionResult:
        return await self.controller.regenerate(node_id)

    def stop(self) -> None:
        self.controller.stop()

    # === IMPORT / EXPORT ===

    def validate_workflow(self) -> ValidationResult:
        return validate_workflow(self.store.nodes, self.store.edges)

    def export_workflow(self, name: str | None = None) -> WorkflowFile:
        return WorkflowFile(
            name=name or f"workflow-{datetime.now().date().isoformat()}",
            nodes=list(self.store.nodes),
            edges=list(self.store.edges),
            edge_style=self.store.edge_style,
        )

    def to_json(self, name: str | None = None) -> str:
        return self.export_workflow(name).to_json()

    # === IMAGE HISTORY ===

    def clear_image_history(self) -> None:
        self.image_history.clear()

    # === MULTI-WORKFLOW ===

    async def load_workflow_list(self) -> None:
        """
        Startup: open the stored current workflow (or the most recently
        updated one), creating "Workflow 1" when the repository is empty.
        """
        workflows = await self.repository.list_workflows()
        current_id = await self.repository.get_meta(CURRENT_WORKFLOW_KEY)

        if not workflows:
            now = now_ms()
            workflow = StoredWorkflow(id=generate_workflow_id(), name="Workflow 1", created_at=now, updated_at=now)
            await self.repository.save_workflow(workflow)
            await self.repository.set_meta(CURRENT_WORKFLOW_KEY, workflow.id)
            await self.repository.set_meta(IMAGE_HISTORY_KEY, [])
            self._workflow_list = [workflow.metadata()]
            self.image_history.clear()
            self._open(workflow)
            logger.info("Created first workflow")
            return

        self._workflow_list = sorted((w.metadata() for w in workflows), key=lambda m: m.updated_at, reverse=True)
        by_id = {w.id: w for w in workflows}
        workflow = by_id.get(current_id) or by_id[self._workflow_list[0].id]

        stored_history = await self.repository.get_meta(IMAGE_HISTORY_KEY) or []
        self.image_history.replace(ImageHistoryItem.model_validate(item) for item in stored_history)

        self._open(workflow)
        logger.info(f"Loaded {len(self._workflow_list)} workflows, current: {workflow.name}")

    async def create_new_workflow(self, name: str | None = None) -> str:
        """Save the current workflow, then open a new empty one."""
        await self._save_current()

        now = now_ms()
        workflow = StoredWorkflow(
            id=generate_workflow_id(),
            name=name or f"Workflow {len(self._workflow_list) + 1}",
            created_at=now,
            updated_at=now,
        )
        await self.repository.save_workflow(workflow)
        await self.repository.set_meta(CURRENT_WORKFLOW_KEY, workflow.id)

        self._workflow_list.append(workflow.metadata())
        self._open(workflow)
        return workflow.id

    async def switch_workflow(self, workflow_id: str) -> bool:
        """
        Save the current workflow and open another. No-op while running.

        Raises:
            WorkflowNotFoundError: the target does not exist
        """
        if self.is_running or workflow_id == self.current_workflow_id:
            return False

        await self._save_current()
        workflow = await self.repository.load_workflow(workflow_id)
        if workflow is None:
            raise WorkflowNotFoundError(workflow_id)

        await self.repository.set_meta(CURRENT_WORKFLOW_KEY, workflow_id)
        self._open(workflow)
        return True

    async def delete_workflow(self, workflow_id: str) -> bool:
        """Delete a workflow. The last remaining workflow is never deleted."""
        if len(self._workflow_list) <= 1:
            return False

        await self.repository.delete_workflow(workflow_id)
        self._workflow_list = [m for m in self._workflow_list if m.id != workflow_id]

        if workflow_id == self.current_workflow_id:
            following = await self.repository.load_workflow(self._workflow_list[0].id)
            if following is not None:
                await self.repository.set_meta(CURRENT_WORKFLOW_KEY, following.id)
                self._open(following)
        return True

    async def rename_workflow(self, workflow_id: str, name: str) -> bool:
        meta = self._find_meta(workflow_id)
        if meta is None:
            return False

        now = now_ms()
        if workflow_id == self.current_workflow_id:
            workflow = self._current_record(meta, now)
        else:
            stored = await self.repository.load_workflow(workflow_id)
            if stored is None:
                raise WorkflowNotFoundError(workflow_id)
            workflow = stored
        workflow = workflow.model_copy(update={"name": name, "updated_at": now})

        await self.repository.save_workflow(workflow)
        self._replace_meta(workflow.metadata())
        return True

    async def autosave(self) -> None:
        """Persist the current workflow and the image history."""
        await self._save_current()
        await self.repository.set_meta(
            IMAGE_HISTORY_KEY, [item.to_dict() for item in self.image_history.items()]
        )
        self.event_bus.emit(GraphEvent(type=EventType.WORKFLOW_SAVED, data={"workflow_id": self.current_workflow_id}))

    # === INTERNAL ===

    def _open(self, workflow: StoredWorkflow) -> None:
        self.store.reset_counter(workflow.nodes)
        self.store.replace(workflow.nodes, workflow.edges, workflow.edge_style)
        self.current_workflow_id = workflow.id
        self.history.clear()
        self.controller.reset_state()
        self.event_bus.emit(GraphEvent(type=EventType.WORKFLOW_SWITCHED, data={"workflow_id": workflow.id}))

    def _find_meta(self, workflow_id: str | None) -> WorkflowMetadata | None:
        for meta in self._workflow_list:
            if meta.id == workflow_id:
                return meta
        return None

    def _replace_meta(self, meta: WorkflowMetadata) -> None:
        self._workflow_list = [meta if m.id == meta.id else m for m in self._workflow_list]

    def _current_record(self, meta: WorkflowMetadata, updated_at: int) -> StoredWorkflow:
        return StoredWorkflow(
            id=meta.id,
            name=meta.name,
            created_at=meta.created_at,
            updated_at=updated_at,
            nodes=list(self.store.nodes),
            edges=list(self.store.edges),
            edge_style=self.store.edge_style,
        )

    async def _save_current(self) -> None:
        meta = self._find_meta(self.current_workflow_id)
        if meta is None:
            return
        workflow = self._current_record(meta, now_ms())
        await self.repository.save_workflow(workflow)
        self._replace_meta(workflow.metadata())
