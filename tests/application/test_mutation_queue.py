"""Tests for the per-key mutation queue."""

import asyncio

import pytest
from storefront.sync.queue import KeyedMutationQueue


def recorder(log, name, delay=0.0, result=None):
    async def write():
        log.append(f"{name}:start")
        await asyncio.sleep(delay)
        log.append(f"{name}:end")
        return result

    return write


class TestPerKeyOrdering:
    @pytest.mark.asyncio
    async def test_same_key_runs_in_submission_order(self):
        queue = KeyedMutationQueue()
        log = []

        queue.submit("mug", recorder(log, "first", delay=0.02))
        queue.submit("mug", recorder(log, "second"))
        await queue.drain()

        assert log == ["first:start", "first:end", "second:start", "second:end"]

    @pytest.mark.asyncio
    async def test_different_keys_run_concurrently(self):
        queue = KeyedMutationQueue()
        log = []

        queue.submit("mug", recorder(log, "mug", delay=0.02))
        queue.submit("tee", recorder(log, "tee", delay=0.02))
        await queue.drain()

        assert log[:2] == ["mug:start", "tee:start"]

    @pytest.mark.asyncio
    async def test_failed_write_does_not_block_the_key(self):
        queue = KeyedMutationQueue()
        log = []

        async def explode():
            raise RuntimeError("boom")

        failed = queue.submit("mug", explode)
        queue.submit("mug", recorder(log, "next"))

        with pytest.raises(RuntimeError):
            await queue.drain()
        await queue.drain()

        assert failed.done()
        assert log == ["next:start", "next:end"]

    @pytest.mark.asyncio
    async def test_task_returns_write_result(self):
        queue = KeyedMutationQueue()

        task = queue.submit("mug", recorder([], "mug", result=True))

        assert await task is True

    @pytest.mark.asyncio
    async def test_key_released_after_completion(self):
        queue = KeyedMutationQueue()

        queue.submit("mug", recorder([], "mug", delay=0.01))
        assert queue.is_busy("mug")

        await queue.drain()

        assert not queue.is_busy("mug")
        assert queue.in_flight() == []


class TestBarrier:
    @pytest.mark.asyncio
    async def test_barrier_waits_for_every_key(self):
        queue = KeyedMutationQueue()
        log = []

        queue.submit("mug", recorder(log, "mug", delay=0.02))
        queue.submit("tee", recorder(log, "tee", delay=0.01))
        queue.submit_barrier(recorder(log, "clear"))
        await queue.drain()

        assert log.index("clear:start") > log.index("mug:end")
        assert log.index("clear:start") > log.index("tee:end")

    @pytest.mark.asyncio
    async def test_writes_after_barrier_wait_for_it(self):
        queue = KeyedMutationQueue()
        log = []

        queue.submit_barrier(recorder(log, "clear", delay=0.02))
        queue.submit("mug", recorder(log, "mug"))
        await queue.drain()

        assert log == ["clear:start", "clear:end", "mug:start", "mug:end"]

    @pytest.mark.asyncio
    async def test_barriers_run_in_order(self):
        queue = KeyedMutationQueue()
        log = []

        queue.submit_barrier(recorder(log, "first", delay=0.02))
        queue.submit_barrier(recorder(log, "second"))
        await queue.drain()

        assert log == ["first:start", "first:end", "second:start", "second:end"]
