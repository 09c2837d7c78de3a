"""
Vigil - Clocks
==============

Injectable time sources so window pruning is testable without sleeping.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Union

from vigil.core.logger import NY_TZ


class Clock:
    """Wall clock in Eastern time."""

    def now(self) -> datetime:
        return datetime.now(NY_TZ)


class ManualClock(Clock):
    """
    Clock that only moves when told to.

    Used by tests and by the replay tool, which sets it to each event's
    timestamp before evaluating the event.
    """

    def __init__(self, start: Optional[datetime] = None) -> None:
        self._now = start or datetime(2026, 1, 1, tzinfo=timezone.utc)
        if self._now.tzinfo is None:
            raise ValueError("ManualClock requires a timezone-aware datetime")

    def now(self) -> datetime:
        return self._now

    def set(self, value: datetime) -> None:
        if value.tzinfo is None:
            raise ValueError("ManualClock requires a timezone-aware datetime")
        self._now = value

    def advance(self, delta: Union[timedelta, float, int]) -> datetime:
        """Move forward by a timedelta or a number of seconds."""
        if not isinstance(delta, timedelta):
            delta = timedelta(seconds=delta)
        self._now = self._now + delta
        return self._now


__all__ = ["Clock", "ManualClock"]
