"""
Vigil - Utilities Package
=========================

Generic helpers shared across the engine.
"""

from .async_utils import create_safe_task, fire_and_forget, pending_tasks, safe_async_operation
from .cache import TTLCache
from .clock import Clock, ManualClock


__all__ = [
    "Clock",
    "ManualClock",
    "TTLCache",
    "create_safe_task",
    "fire_and_forget",
    "pending_tasks",
    "safe_async_operation",
]
