import asyncio

import pytest

from canopy.application import STALE, LatestWins
from canopy.domain.shared import Err, Ok


@pytest.mark.asyncio
async def test_superseded_call_is_cancelled_and_reported_stale():
    guard = LatestWins()
    started = asyncio.Event()
    cancelled = asyncio.Event()

    async def slow():
        started.set()
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            cancelled.set()
            raise
        return "old"

    async def fast():
        return "new"

    first = asyncio.create_task(guard.run("children:a", slow))
    await started.wait()

    assert await guard.run("children:a", fast) == Ok("new")
    assert await first is STALE
    assert cancelled.is_set()


@pytest.mark.asyncio
async def test_streams_are_independent():
    guard = LatestWins()
    gate = asyncio.Event()

    async def waits():
        await gate.wait()
        return "a"

    first = asyncio.create_task(guard.run("children:a", waits))
    await asyncio.sleep(0)
    assert await guard.run("children:b", lambda: asyncio.sleep(0, result="b")) == Ok("b")
    gate.set()
    assert await first == Ok("a")


@pytest.mark.asyncio
async def test_errors_are_returned_for_the_current_call():
    guard = LatestWins()

    async def boom():
        raise RuntimeError("down")

    outcome = await guard.run("roots", boom)
    assert isinstance(outcome, Err)
    assert str(outcome.error) == "down"


@pytest.mark.asyncio
async def test_invalidate_supersedes_without_new_call():
    guard = LatestWins()
    gate = asyncio.Event()

    async def waits():
        await gate.wait()
        return "late"

    pending = asyncio.create_task(guard.run("role", waits))
    await asyncio.sleep(0)
    guard.invalidate("role")
    assert await pending is STALE


@pytest.mark.asyncio
async def test_outside_cancellation_propagates():
    guard = LatestWins()
    gate = asyncio.Event()

    pending = asyncio.create_task(guard.run("roots", gate.wait))
    await asyncio.sleep(0)
    pending.cancel()
    with pytest.raises(asyncio.CancelledError):
        await pending
