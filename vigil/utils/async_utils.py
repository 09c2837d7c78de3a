"""
Vigil - Async Utilities
=======================

Utilities for handling async operations with proper error logging.

The decision path is synchronous. Everything that talks to the outside
world (audit sinks, alert webhooks, the enforcement executor) runs
through these helpers so a failing collaborator is logged instead of
raising into the detector code.

Usage:
    from vigil.utils.async_utils import create_safe_task

    create_safe_task(sink.record(decision), "Audit Sink")
"""

import asyncio
from typing import Any, Coroutine, Optional, Set

from vigil.core.logger import logger


async def safe_async_operation(
    name: str,
    coro: Coroutine[Any, Any, Any],
    default: Any = None,
    log_level: str = "warning",
) -> Any:
    """
    Run a single async operation with error handling.

    Args:
        name: Name of the operation for logging.
        coro: The coroutine to run.
        default: Value to return if operation fails.
        log_level: Log level for errors ("debug", "warning", "error").

    Returns:
        Result of the coroutine, or default if it fails.
    """
    try:
        return await coro
    except Exception as e:
        error_details = [
            ("Operation", name),
            ("Error Type", type(e).__name__),
            ("Error", str(e)[:100]),
        ]

        if log_level == "debug":
            logger.debug("Async Operation Failed", error_details)
        elif log_level == "error":
            logger.error("Async Operation Failed", error_details)
        else:
            logger.warning("Async Operation Failed", error_details)

        return default


# =============================================================================
# Safe Background Tasks
# =============================================================================

# Strong references to running tasks; the loop itself only keeps weak ones.
_background_tasks: Set[asyncio.Task] = set()


async def _run_logged(coro: Coroutine[Any, Any, Any], name: str) -> None:
    try:
        await coro
    except asyncio.CancelledError:
        # Shutdown
        pass
    except Exception as e:
        logger.error("Background Task Failed", [
            ("Task", name),
            ("Error Type", type(e).__name__),
            ("Error", str(e)[:200]),
        ])


def create_safe_task(
    coro: Coroutine[Any, Any, Any],
    name: str = "Background Task",
) -> asyncio.Task:
    """
    Create a background task with automatic error logging.

    Unlike raw asyncio.create_task(), this catches and logs any exceptions
    instead of letting them silently disappear. The task is held in a
    module-level set until it finishes so it can't be garbage-collected
    mid-flight.

    Args:
        coro: The coroutine to run as a background task.
        name: Name for logging purposes.

    Returns:
        The created asyncio.Task.
    """
    task = asyncio.create_task(_run_logged(coro, name))
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    return task


def pending_tasks() -> int:
    """Number of background tasks that haven't finished yet."""
    return len(_background_tasks)


def fire_and_forget(
    coro: Coroutine[Any, Any, Any],
    name: str = "Background Task",
) -> Optional[asyncio.Task]:
    """
    Schedule a coroutine if an event loop is running, else run it now.

    Synchronous callers (tests, the replay tool) have no loop. The
    coroutine then runs to completion on a fresh loop before this
    returns, so a decided action is never dropped.

    Returns:
        The task, or None when the coroutine ran inline.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        logger.warning("No Running Event Loop", [
            ("Task", name),
            ("Mode", "Run inline"),
        ])
        asyncio.run(_run_logged(coro, name))
        return None
    return create_safe_task(coro, name)


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    "safe_async_operation",
    "create_safe_task",
    "fire_and_forget",
    "pending_tasks",
]
