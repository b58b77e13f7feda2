"""Detached fire-and-forget tasks whose failures are logged, never raised to the caller."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Coroutine

logger = logging.getLogger("mailportal.background")

# Strong references so running tasks are not garbage collected mid-flight
_tasks: set[asyncio.Task] = set()


def _on_done(task: asyncio.Task) -> None:
    _tasks.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Background task %s failed", task.get_name(), exc_info=exc)


def spawn(coro: Coroutine[Any, Any, Any], name: str) -> asyncio.Task:
    """Schedule coro on the running loop and return immediately."""
    task = asyncio.create_task(coro, name=name)
    _tasks.add(task)
    task.add_done_callback(_on_done)
    return task


async def drain(timeout: float = 5.0) -> None:
    """Wait for in-flight tasks (shutdown and tests)."""
    if not _tasks:
        return
    await asyncio.wait(list(_tasks), timeout=timeout)
