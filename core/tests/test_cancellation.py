"""Tests for the cancellation token."""

import asyncio

import pytest

from mediagraph.errors import ExecutionCancelled
from mediagraph.runtime.cancellation import CancellationToken


@pytest.mark.asyncio
async def test_run_returns_result_when_not_cancelled():
    token = CancellationToken()

    async def work():
        return 42

    assert await token.run(work()) == 42


@pytest.mark.asyncio
async def test_cancel_interrupts_in_flight_call():
    token = CancellationToken()
    started = asyncio.Event()
    interrupted = asyncio.Event()

    async def slow():
        started.set()
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            interrupted.set()
            raise

    task = asyncio.create_task(token.run(slow()))
    await started.wait()
    token.cancel()

    with pytest.raises(ExecutionCancelled):
        await task
    assert interrupted.is_set()


@pytest.mark.asyncio
async def test_already_cancelled_token_refuses_work():
    token = CancellationToken()
    token.cancel("user stop")

    async def work():
        return 1

    coro = work()
    with pytest.raises(ExecutionCancelled, match="user stop"):
        await token.run(coro)
    assert coro.cr_frame is None


@pytest.mark.asyncio
async def test_errors_from_work_propagate():
    token = CancellationToken()

    async def broken():
        raise ValueError("bad payload")

    with pytest.raises(ValueError, match="bad payload"):
        await token.run(broken())


def test_cancel_is_idempotent():
    token = CancellationToken()

    token.cancel("first")
    token.cancel("second")

    assert token.is_cancelled
    assert token.reason == "first"
