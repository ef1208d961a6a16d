"""
Fire-and-forget background tasks.

Work submitted here runs on the event loop after the submitting request has
returned. There is no ordering between tasks, no timeout and no cancellation;
a submitter must not assume a task has started, finished, or will ever finish.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)


class TaskRunner:
    """Unbounded task pool. Holds strong references so tasks aren't GC'd mid-flight."""

    def __init__(self):
        self._tasks: set[asyncio.Task] = set()

    def submit(
        self, fn: Callable[..., Awaitable[Any]], *args: Any, name: str = ""
    ) -> asyncio.Task:
        task = asyncio.create_task(fn(*args), name=name or None)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Background task %s failed: %s", task.get_name(), exc, exc_info=exc
            )

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every in-flight task, including ones submitted while waiting."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


_runner = None


def get_task_runner() -> TaskRunner:
    global _runner
    if _runner is None:
        _runner = TaskRunner()
    return _runner
