"""
Vigil - Utility Tests
=====================

Tests for clocks, the TTL cache and the async helpers.
"""

import asyncio
from datetime import datetime, timedelta
from unittest.mock import patch

import pytest

from vigil.utils.async_utils import (
    create_safe_task,
    fire_and_forget,
    pending_tasks,
    safe_async_operation,
)
from vigil.utils.cache import TTLCache
from vigil.utils.clock import Clock, ManualClock

from .conftest import START


# =============================================================================
# Clock Tests
# =============================================================================

class TestClocks:
    """Tests for the clock implementations."""

    def test_wall_clock_is_aware(self):
        assert Clock().now().tzinfo is not None

    def test_manual_clock_advance(self, clock):
        assert clock.advance(30) == START + timedelta(seconds=30)
        assert clock.advance(timedelta(minutes=1)) == START + timedelta(seconds=90)

    def test_manual_clock_rejects_naive(self):
        with pytest.raises(ValueError):
            ManualClock(datetime(2026, 1, 1))
        with pytest.raises(ValueError):
            ManualClock().set(datetime(2026, 1, 1))


# =============================================================================
# TTLCache Tests
# =============================================================================

class TestTTLCache:
    """Tests for TTLCache."""

    def test_get_and_set(self, clock):
        cache = TTLCache(timedelta(minutes=5), clock)
        cache.set("a", 1)
        assert cache.get("a") == 1
        assert cache.get("missing") is None

    def test_expiry(self, clock):
        cache = TTLCache(timedelta(minutes=5), clock)
        cache.set("a", 1)
        clock.advance(timedelta(minutes=5))
        assert cache.get("a") is None
        assert len(cache) == 0

    def test_cleanup_expired(self, clock):
        cache = TTLCache(timedelta(minutes=5), clock)
        cache.set("old", 1)
        clock.advance(timedelta(minutes=3))
        cache.set("new", 2)
        clock.advance(timedelta(minutes=3))
        assert cache.cleanup_expired() == 1
        assert cache.get("new") == 2

    def test_evicts_oldest_at_capacity(self, clock):
        cache = TTLCache(timedelta(minutes=5), clock, max_size=2)
        cache.set("a", 1)
        clock.advance(1)
        cache.set("b", 2)
        clock.advance(1)
        cache.set("c", 3)
        assert cache.get("a") is None
        assert len(cache) == 2

    def test_zero_ttl_disables_caching(self, clock):
        cache = TTLCache(timedelta(0), clock)
        cache.set("a", 1)
        assert len(cache) == 0

    def test_delete_and_clear(self, clock):
        cache = TTLCache(timedelta(minutes=5), clock)
        cache.set("a", 1)
        cache.set("b", 2)
        assert cache.delete("a")
        assert not cache.delete("a")
        cache.clear()
        assert len(cache) == 0


# =============================================================================
# Async Helper Tests
# =============================================================================

class TestAsyncUtils:
    """Tests for safe background work."""

    def test_fire_and_forget_without_loop_runs_inline(self):
        ran = []

        async def work():
            ran.append(True)

        with patch("vigil.utils.async_utils.logger") as mock_logger:
            assert fire_and_forget(work(), "Test") is None

        assert ran == [True]
        assert mock_logger.warning.call_args.args[0] == "No Running Event Loop"

    def test_inline_failure_is_logged(self):
        async def boom():
            raise RuntimeError("boom")

        with patch("vigil.utils.async_utils.logger") as mock_logger:
            fire_and_forget(boom(), "Failing Task")

        assert mock_logger.error.call_args.args[0] == "Background Task Failed"

    @pytest.mark.asyncio
    async def test_task_held_until_done(self):
        gate = asyncio.Event()

        async def work():
            await gate.wait()

        before = pending_tasks()
        task = create_safe_task(work(), "Held")
        assert pending_tasks() == before + 1

        gate.set()
        await task
        await asyncio.sleep(0)
        assert pending_tasks() == before

    @pytest.mark.asyncio
    async def test_fire_and_forget_with_loop(self):
        ran = []

        async def work():
            ran.append(True)

        task = fire_and_forget(work(), "Test")
        await task
        assert ran == [True]

    @pytest.mark.asyncio
    async def test_safe_task_logs_failure(self):
        async def boom():
            raise RuntimeError("boom")

        with patch("vigil.utils.async_utils.logger") as mock_logger:
            await create_safe_task(boom(), "Failing Task")

        mock_logger.error.assert_called_once()
        assert mock_logger.error.call_args.args[0] == "Background Task Failed"

    @pytest.mark.asyncio
    async def test_safe_async_operation_default(self):
        async def boom():
            raise RuntimeError("boom")

        with patch("vigil.utils.async_utils.logger") as mock_logger:
            result = await safe_async_operation("Op", boom(), default={})

        assert result == {}
        mock_logger.warning.assert_called_once()

    @pytest.mark.asyncio
    async def test_safe_async_operation_result(self):
        async def ok():
            await asyncio.sleep(0)
            return 42

        assert await safe_async_operation("Op", ok()) == 42
