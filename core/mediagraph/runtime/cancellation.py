"""Cooperative cancellation shared by every outbound call of one run."""

import asyncio
import logging
from collections.abc import Awaitable
from typing import TypeVar

from mediagraph.errors import ExecutionCancelled

T = TypeVar("T")

logger = logging.getLogger(__name__)


class CancellationToken:
    """
    One token is minted per run and threaded into every collaborator call.

    `run()` races an awaitable against the token: when `cancel()` fires first
    the in-flight call is cancelled and ExecutionCancelled is raised.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: str | None = None

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "stopped") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    async def wait(self) -> None:
        await self._event.wait()

    async def run(self, awaitable: Awaitable[T]) -> T:
        """Await `awaitable` unless the token is cancelled first."""
        if self._event.is_set():
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise ExecutionCancelled(self.reason or "cancelled")
        work = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            work.cancel()
            raise
        finally:
            waiter.cancel()

        if work.done():
            return work.result()

        work.cancel()
        try:
            await work
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.debug(f"Call failed after cancellation: {e}")
        raise ExecutionCancelled(self.reason or "cancelled")
