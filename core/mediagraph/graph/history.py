"""
History Manager - bounded undo/redo over structural graph edits.

Each entry is the GraphSnapshot taken *before* a mutation. Because the store
replaces its tuples on every change, "unchanged" is a reference comparison.
Grouping collapses a span of mutations (a drag, a multi-delete) into one
entry holding the state from before the span opened.

All operations are no-ops while a workflow is running.
"""

import logging
from collections import deque
from collections.abc import Callable, Iterator
from contextlib import contextmanager

from mediagraph.config import DEFAULT_HISTORY_LIMIT
from mediagraph.graph.models import GraphSnapshot
from mediagraph.graph.store import GraphStore
from mediagraph.runtime.event_bus import EventBus, EventType, GraphEvent

logger = logging.getLogger(__name__)


class HistoryManager:
    def __init__(
        self,
        store: GraphStore,
        is_running: Callable[[], bool] = lambda: False,
        limit: int = DEFAULT_HISTORY_LIMIT,
        on_time_travel: Callable[[], None] | None = None,
        event_bus: EventBus | None = None,
    ):
        """
        Args:
            store: Graph store whose snapshots are recorded
            is_running: Execution guard; history is frozen while it returns True
            limit: Maximum entries kept on each stack
            on_time_travel: Called after undo/redo to reset execution state
            event_bus: Receives HISTORY_CHANGED events
        """
        self._store = store
        self._is_running = is_running
        self._on_time_travel = on_time_travel
        self._event_bus = event_bus
        self._past: deque[GraphSnapshot] = deque(maxlen=limit)
        self._future: deque[GraphSnapshot] = deque(maxlen=limit)
        self._group_depth = 0
        self._group_snapshot: GraphSnapshot | None = None

    @property
    def can_undo(self) -> bool:
        return bool(self._past)

    @property
    def can_redo(self) -> bool:
        return bool(self._future)

    @property
    def past(self) -> tuple[GraphSnapshot, ...]:
        return tuple(self._past)

    @property
    def future(self) -> tuple[GraphSnapshot, ...]:
        return tuple(self._future)

    @property
    def group_depth(self) -> int:
        return self._group_depth

    def record(self) -> None:
        """Capture the current state before a mutation."""
        if self._is_running():
            return

        if self._group_depth > 0:
            if self._group_snapshot is None:
                self._group_snapshot = self._store.snapshot()
            return

        snapshot = self._store.snapshot()
        if self._past and self._past[-1].same_as(snapshot):
            return

        self._past.append(snapshot)
        self._future.clear()
        self._notify()

    def begin_group(self) -> None:
        if self._is_running():
            return
        if self._group_depth == 0:
            self._group_snapshot = self._store.snapshot()
        self._group_depth += 1

    def end_group(self) -> None:
        """Close a group; the outermost close commits at most one entry."""
        if self._is_running() or self._group_depth <= 0:
            return

        if self._group_depth > 1:
            self._group_depth -= 1
            return

        before = self._group_snapshot
        after = self._store.snapshot()
        self._group_depth = 0
        self._group_snapshot = None

        if before is None or before.same_as(after):
            return

        if not (self._past and self._past[-1].same_as(before)):
            self._past.append(before)
        self._future.clear()
        self._notify()

    @contextmanager
    def group(self) -> Iterator[None]:
        """Group every mutation inside the block into one undo step."""
        self.begin_group()
        try:
            yield
        finally:
            self.end_group()

    def undo(self) -> bool:
        if self._is_running() or not self._past:
            return False
        current = self._store.snapshot()
        previous = self._past.pop()
        self._future.append(current)
        self._travel(previous)
        logger.debug(f"Undo ({len(self._past)} left)")
        return True

    def redo(self) -> bool:
        if self._is_running() or not self._future:
            return False
        current = self._store.snapshot()
        following = self._future.pop()
        self._past.append(current)
        self._travel(following)
        logger.debug(f"Redo ({len(self._future)} left)")
        return True

    def clear(self) -> None:
        self._past.clear()
        self._future.clear()
        self._group_depth = 0
        self._group_snapshot = None
        self._notify()

    def _travel(self, snapshot: GraphSnapshot) -> None:
        self._store.restore(snapshot)
        self._group_depth = 0
        self._group_snapshot = None
        if self._on_time_travel is not None:
            self._on_time_travel()
        self._notify()

    def _notify(self) -> None:
        if self._event_bus is None:
            return
        self._event_bus.emit(
            GraphEvent(
                type=EventType.HISTORY_CHANGED,
                data={"can_undo": self.can_undo, "can_redo": self.can_redo},
            )
        )
