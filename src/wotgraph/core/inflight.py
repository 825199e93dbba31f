"""
Per-key collapsing of concurrent identical work.

When two callers ask for the same graph at once, only one build should hit
the relays. [InFlightGuard][wotgraph.core.inflight.InFlightGuard] runs the
first caller's coroutine as a task and hands every later caller for the same
key a shielded wait on that task.

The task is shielded, so a caller that gives up (request timeout, client
disconnect) does not cancel the build: it runs to completion and populates
the caches for whoever asks next. The key is released when the task
finishes, whether it succeeded or failed.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

from .logger import Logger


T = TypeVar("T")


class InFlightGuard(Generic[T]):
    """Deduplicate concurrent coroutines by key.

    Examples:
        ```python
        guard: InFlightGuard[Graph] = InFlightGuard("graph_builds")
        graph = await guard.run(cache_key, lambda: builder.build(seeds))
        ```
    """

    def __init__(self, name: str = "inflight") -> None:
        self._tasks: dict[str, asyncio.Task[T]] = {}
        self._logger = Logger(name)

    def __len__(self) -> int:
        return len(self._tasks)

    def is_pending(self, key: str) -> bool:
        return key in self._tasks

    async def run(self, key: str, factory: Callable[[], Awaitable[T]]) -> T:
        """Await the in-flight task for ``key``, starting one if none exists.

        ``factory`` is only called by the first caller for a key.
        Exceptions raised by the task propagate to every waiting caller.
        """
        task = self._tasks.get(key)
        if task is None:
            task = asyncio.ensure_future(self._execute(key, factory))
            self._tasks[key] = task
            task.add_done_callback(self._on_done)
        else:
            self._logger.debug("inflight_joined", key=key)
        return await asyncio.shield(task)

    async def _execute(self, key: str, factory: Callable[[], Awaitable[T]]) -> T:
        try:
            return await factory()
        finally:
            if self._tasks.get(key) is asyncio.current_task():
                del self._tasks[key]

    def _on_done(self, task: asyncio.Task[T]) -> None:
        # Retrieve the outcome so abandoned failures are logged here
        # instead of as "exception was never retrieved".
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._logger.debug("inflight_failed", error=str(exc), error_type=type(exc).__name__)
