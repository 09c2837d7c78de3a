"""
Vigil - Activity Window Tests
=============================

Tests for the per-key rolling buffer.
"""

from datetime import timedelta

import pytest

from vigil.core.errors import StateCorruption
from vigil.services.antispam.window import ActivityWindow


@pytest.fixture
def window(clock):
    return ActivityWindow(timedelta(minutes=5), clock, name="test")


class TestRecordAndRecent:
    """Tests for recording and reading entries."""

    def test_recorded_entry_present_exactly_once(self, window, clock):
        window.record("user", clock.now(), "hello")
        entries = window.recent("user", max_age=timedelta(minutes=1))
        assert [e.payload for e in entries] == ["hello"]

    def test_entry_absent_after_max_age(self, window, clock):
        window.record("user", clock.now(), "hello")
        clock.advance(61)
        assert window.recent("user", max_age=timedelta(seconds=60)) == []
        # Still retained, just outside the narrower look-back
        assert len(window.recent("user")) == 1

    def test_boundary_is_inclusive(self, window, clock):
        """An entry exactly max_age old is still inside the window."""
        window.record("user", clock.now(), "hello")
        clock.advance(60)
        assert len(window.recent("user", max_age=timedelta(seconds=60))) == 1

    def test_retention_prunes(self, window, clock):
        window.record("user", clock.now(), "old")
        clock.advance(timedelta(minutes=6))
        window.record("user", clock.now(), "new")
        assert [e.payload for e in window.recent("user")] == ["new"]
        assert window.total_entries() == 1

    def test_keys_are_independent(self, window, clock):
        window.record("a", clock.now(), 1)
        window.record("b", clock.now(), 2)
        assert window.count("a") == 1
        assert window.count("b") == 1
        assert window.recent("missing") == []

    def test_oldest_first(self, window, clock):
        for i in range(3):
            window.record("user", clock.now(), i)
            clock.advance(1)
        assert [e.payload for e in window.recent("user")] == [0, 1, 2]


class TestOrdering:
    """Tests for the monotonic timestamp rule."""

    def test_out_of_order_raises(self, window, clock):
        now = clock.now()
        window.record("user", now, "second")
        with pytest.raises(StateCorruption) as exc:
            window.record("user", now - timedelta(seconds=1), "first")
        assert exc.value.key == "user"
        assert exc.value.last_timestamp == now
        # Rejected entry is not stored
        assert window.count("user") == 1

    def test_equal_timestamps_allowed(self, window, clock):
        now = clock.now()
        window.record("user", now, "a")
        window.record("user", now, "b")
        assert window.count("user") == 2

    def test_other_key_unaffected(self, window, clock):
        now = clock.now()
        window.record("a", now, 1)
        window.record("b", now - timedelta(seconds=30), 2)
        assert window.count("b", now=now) == 1


class TestSweep:
    """Tests for cleanup."""

    def test_sweep_drops_empty_keys(self, window, clock):
        window.record("stale", clock.now(), 1)
        clock.advance(timedelta(minutes=3))
        window.record("fresh", clock.now(), 2)
        clock.advance(timedelta(minutes=3))

        assert window.sweep() == 1
        assert "stale" not in window
        assert "fresh" in window
        assert len(window) == 1

    def test_clear(self, window, clock):
        window.record("user", clock.now(), 1)
        window.clear("user")
        assert "user" not in window
