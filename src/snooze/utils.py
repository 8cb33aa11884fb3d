"""Shared asyncio helpers."""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import Any

from snooze.logger import logger


def create_background_task(
    coro: Coroutine[Any, Any, Any],
    *,
    name: str | None = None,
) -> asyncio.Task[Any]:
    """Create an asyncio task that logs exceptions instead of swallowing them.

    Use for long-lived loops (the activity monitor) whose result nobody
    awaits until shutdown.
    """
    task = asyncio.create_task(coro, name=name)
    task.add_done_callback(_log_task_exception)
    return task


def _log_task_exception(task: asyncio.Task[Any]) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        # exc_info so structlog renders the traceback; logger.exception()
        # doesn't work outside an except block.
        logger.error(
            "Background task failed",
            task_name=task.get_name(),
            exc_info=exc,
        )
