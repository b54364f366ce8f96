"""
Fire-and-forget task tracking.

Synchronous hot-path code (buffer swaps, violation escalation, preload
triggers) hands asynchronous follow-up work to a BackgroundTasks set.
Tasks are kept referenced until done, failures are logged and never
re-raised, and drain() lets tests and teardown wait for quiescence.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable
from typing import Any

logger = logging.getLogger(__name__)


class BackgroundTasks:
    """A set of detached tasks owned by one component."""

    def __init__(self, owner: str) -> None:
        self._owner = owner
        self._tasks: set[asyncio.Task[Any]] = set()

    def __len__(self) -> int:
        return len(self._tasks)

    def spawn(self, work: Awaitable[Any] | Any, *, name: str) -> asyncio.Task[Any] | None:
        """
        Schedule work on the running loop without awaiting it.

        Non-awaitable results (from sync callbacks) are ignored. When no
        loop is running the coroutine is closed and the work dropped.
        """
        if not inspect.isawaitable(work):
            return None
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("%s: no running loop, dropping %s", self._owner, name)
            if inspect.iscoroutine(work):
                work.close()
            return None

        task = loop.create_task(_as_coroutine(work), name=f"{self._owner}:{name}")
        self._tasks.add(task)
        task.add_done_callback(self._finished)
        return task

    def _finished(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning(
                "%s: background task %s failed: %s", self._owner, task.get_name(), exc
            )

    async def drain(self) -> None:
        """Wait until every spawned task (including ones spawned meanwhile) is done."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def cancel_all(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)


async def _as_coroutine(work: Awaitable[Any]) -> Any:
    return await work
