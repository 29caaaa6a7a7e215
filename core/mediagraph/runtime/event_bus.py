"""
Event Bus - pub/sub notifications for graph edits and workflow execution.

Observers (an editor, a CLI progress printer, tests) subscribe to the events
they care about instead of polling the store:
- graph edits and node data updates
- history changes (undo/redo availability)
- run lifecycle, per-node progress and user-facing notices
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

logger = logging.getLogger(__name__)


class EventType(StrEnum):
    """Types of events that can be published."""

    # Graph store
    GRAPH_CHANGED = "graph_changed"
    NODE_DATA_UPDATED = "node_data_updated"
    HISTORY_CHANGED = "history_changed"

    # Execution lifecycle
    EXECUTION_STARTED = "execution_started"
    EXECUTION_COMPLETED = "execution_completed"
    EXECUTION_FAILED = "execution_failed"
    EXECUTION_PAUSED = "execution_paused"
    EXECUTION_STOPPED = "execution_stopped"

    # Node lifecycle
    NODE_STARTED = "node_started"
    NODE_FINISHED = "node_finished"

    # User-facing messages (toasts)
    NOTICE = "notice"

    # Persistence
    WORKFLOW_SAVED = "workflow_saved"
    WORKFLOW_SWITCHED = "workflow_switched"


@dataclass
class GraphEvent:
    """An event emitted by the engine."""

    type: EventType
    node_id: str | None = None
    run_id: str | None = None
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "node_id": self.node_id,
            "run_id": self.run_id,
            "data": self.data,
            "timestamp": self.timestamp.isoformat(),
        }


# Handlers may be plain functions or coroutine functions
EventHandler = Callable[[GraphEvent], Awaitable[None] | None]


@dataclass
class Subscription:
    """A subscription to events."""

    id: str
    event_types: set[EventType]
    handler: EventHandler
    filter_node: str | None = None  # Only receive events from this node
    filter_run: str | None = None  # Only receive events from this run


class EventBus:
    """
    Pub/sub event bus.

    `publish()` awaits every matching handler. `emit()` is the synchronous
    entry point used by store mutations: plain handlers run inline, coroutine
    handlers are scheduled on the running loop (see `drain()`).

    Example:
        bus = EventBus()

        async def on_done(event: GraphEvent):
            print(f"Run {event.run_id} completed")

        bus.subscribe(event_types=[EventType.EXECUTION_COMPLETED], handler=on_done)
    """

    def __init__(
        self,
        max_history: int = 1000,
        max_concurrent_handlers: int = 10,
    ):
        self._subscriptions: dict[str, Subscription] = {}
        self._event_history: list[GraphEvent] = []
        self._max_history = max_history
        self._semaphore = asyncio.Semaphore(max_concurrent_handlers)
        self._subscription_counter = 0
        self._pending: set[asyncio.Task] = set()

    def subscribe(
        self,
        event_types: list[EventType],
        handler: EventHandler,
        filter_node: str | None = None,
        filter_run: str | None = None,
    ) -> str:
        """
        Subscribe to events.

        Returns:
            Subscription ID (use to unsubscribe)
        """
        self._subscription_counter += 1
        sub_id = f"sub_{self._subscription_counter}"

        self._subscriptions[sub_id] = Subscription(
            id=sub_id,
            event_types=set(event_types),
            handler=handler,
            filter_node=filter_node,
            filter_run=filter_run,
        )
        logger.debug(f"Subscription {sub_id} registered for {event_types}")
        return sub_id

    def unsubscribe(self, subscription_id: str) -> bool:
        if subscription_id in self._subscriptions:
            del self._subscriptions[subscription_id]
            logger.debug(f"Subscription {subscription_id} removed")
            return True
        return False

    def _record(self, event: GraphEvent) -> None:
        self._event_history.append(event)
        if len(self._event_history) > self._max_history:
            self._event_history = self._event_history[-self._max_history :]

    def _matching(self, event: GraphEvent) -> list[EventHandler]:
        return [s.handler for s in self._subscriptions.values() if self._matches(s, event)]

    def _matches(self, subscription: Subscription, event: GraphEvent) -> bool:
        if event.type not in subscription.event_types:
            return False
        if subscription.filter_node and subscription.filter_node != event.node_id:
            return False
        if subscription.filter_run and subscription.filter_run != event.run_id:
            return False
        return True

    def emit(self, event: GraphEvent) -> None:
        """Publish without awaiting. Coroutine handlers are scheduled as tasks."""
        self._record(event)
        for handler in self._matching(event):
            try:
                result = handler(event)
            except Exception as e:
                logger.error(f"Handler error for {event.type}: {e}")
                continue
            if inspect.isawaitable(result):
                self._schedule(event, result)

    def _schedule(self, event: GraphEvent, awaitable: Awaitable[None]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"No running event loop; async handler for {event.type} dropped")
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            return

        async def guarded() -> None:
            try:
                await awaitable
            except Exception as e:
                logger.error(f"Handler error for {event.type}: {e}")

        task = loop.create_task(guarded())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def publish(self, event: GraphEvent) -> None:
        """Publish an event and await all matching handlers."""
        self._record(event)
        handlers = self._matching(event)
        if handlers:
            await self._execute_handlers(event, handlers)

    async def _execute_handlers(self, event: GraphEvent, handlers: list[EventHandler]) -> None:
        async def run_handler(handler: EventHandler) -> None:
            async with self._semaphore:
                try:
                    result = handler(event)
                    if inspect.isawaitable(result):
                        await result
                except Exception as e:
                    logger.error(f"Handler error for {event.type}: {e}")

        await asyncio.gather(*[run_handler(h) for h in handlers], return_exceptions=True)

    async def drain(self) -> None:
        """Wait for handlers scheduled by `emit()` to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # === QUERY OPERATIONS ===

    def get_history(
        self,
        event_type: EventType | None = None,
        node_id: str | None = None,
        run_id: str | None = None,
        limit: int = 100,
    ) -> list[GraphEvent]:
        """Event history, most recent first."""
        events = self._event_history[::-1]
        if event_type:
            events = [e for e in events if e.type == event_type]
        if node_id:
            events = [e for e in events if e.node_id == node_id]
        if run_id:
            events = [e for e in events if e.run_id == run_id]
        return events[:limit]

    def get_stats(self) -> dict:
        type_counts: dict[str, int] = {}
        for event in self._event_history:
            type_counts[event.type.value] = type_counts.get(event.type.value, 0) + 1
        return {
            "total_events": len(self._event_history),
            "subscriptions": len(self._subscriptions),
            "events_by_type": type_counts,
        }

    async def wait_for(
        self,
        event_type: EventType,
        node_id: str | None = None,
        run_id: str | None = None,
        timeout: float | None = None,
    ) -> GraphEvent | None:
        """Wait for the next matching event; None on timeout."""
        result: GraphEvent | None = None
        event_received = asyncio.Event()

        def handler(event: GraphEvent) -> None:
            nonlocal result
            result = event
            event_received.set()

        sub_id = self.subscribe(
            event_types=[event_type],
            handler=handler,
            filter_node=node_id,
            filter_run=run_id,
        )
        try:
            if timeout:
                try:
                    await asyncio.wait_for(event_received.wait(), timeout=timeout)
                except TimeoutError:
                    return None
            else:
                await event_received.wait()
            return result
        finally:
            self.unsubscribe(sub_id)
