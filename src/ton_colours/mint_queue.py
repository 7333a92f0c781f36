"""
Single-file mint queue.

The collection contract hands out item indices from one counter, so two
deploys in flight would race on it. MintQueue chains every submitted task
after the previous one: strict FIFO, one at a time, and a failed task never
blocks the ones behind it.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

QueueTask = Callable[[], Awaitable[Any]]


class MintQueue:
    def __init__(self):
        self._tail: Optional[asyncio.Future] = None
        self._pending = 0

    @property
    def pending(self) -> int:
        """Tasks submitted but not yet settled, including the running one."""
        return self._pending

    def submit(self, task: QueueTask) -> asyncio.Future:
        """Schedule `task` after everything already submitted.

        Returns a future for this task's own result or exception. Cancelling
        that future leaves the task itself running, so later tasks can never
        overtake a deploy that is still in flight.
        """
        previous = self._tail
        runner = asyncio.ensure_future(self._run_after(previous, task))
        self._tail = runner
        self._pending += 1
        runner.add_done_callback(self._settled)
        return asyncio.shield(runner)

    async def _run_after(self, previous: Optional[asyncio.Future], task: QueueTask):
        if previous is not None:
            # wait() does not raise; the previous caller owns that outcome.
            await asyncio.wait([previous])
        return await task()

    def _settled(self, runner: asyncio.Future) -> None:
        self._pending -= 1
        if runner.cancelled():
            return
        exc = runner.exception()
        if exc is not None:
            logger.debug("Queued mint task failed: %r", exc)
