"""Per-key mutation queue — the only lock-like construct of the cart engine.

Writes submitted for the same key run strictly one after another in
submission order; writes for different keys run concurrently. A newer write
never cancels an older one, it waits behind it. Whole-cart writes (clear) are
submitted as barriers: they wait for every in-flight write, and every write
submitted after them waits for the barrier.
"""

import asyncio
from collections.abc import Awaitable, Callable, Hashable
from typing import Any

Write = Callable[[], Awaitable[Any]]


class KeyedMutationQueue:
    def __init__(self) -> None:
        self._tails: dict[Hashable, asyncio.Task] = {}
        self._barrier: asyncio.Task | None = None

    def submit(self, key: Hashable, write: Write) -> asyncio.Task:
        """Schedule ``write`` after the last write submitted for ``key``."""
        predecessors = [task for task in (self._tails.get(key), self._barrier) if task is not None]
        task = asyncio.get_running_loop().create_task(self._run_after(predecessors, write))
        self._tails[key] = task
        task.add_done_callback(lambda done, key=key: self._release(key, done))
        return task

    def submit_barrier(self, write: Write) -> asyncio.Task:
        """Schedule ``write`` after every write submitted so far, for any key."""
        predecessors = list(self._tails.values())
        if self._barrier is not None:
            predecessors.append(self._barrier)
        task = asyncio.get_running_loop().create_task(self._run_after(predecessors, write))
        self._barrier = task
        task.add_done_callback(self._release_barrier)
        return task

    def is_busy(self, key: Hashable) -> bool:
        return key in self._tails

    def in_flight(self) -> list[asyncio.Task]:
        tasks = list(self._tails.values())
        if self._barrier is not None:
            tasks.append(self._barrier)
        return tasks

    async def drain(self) -> None:
        """Wait until no write is in flight, re-raising the first unexpected write error."""
        while tasks := self.in_flight():
            results = await asyncio.gather(*tasks, return_exceptions=True)
            for result in results:
                if isinstance(result, BaseException):
                    raise result

    @staticmethod
    async def _run_after(predecessors: list[asyncio.Task], write: Write) -> Any:
        if predecessors:
            await asyncio.wait(predecessors)
        return await write()

    def _release(self, key: Hashable, task: asyncio.Task) -> None:
        if self._tails.get(key) is task:
            del self._tails[key]

    def _release_barrier(self, task: asyncio.Task) -> None:
        if self._barrier is task:
            self._barrier = None
