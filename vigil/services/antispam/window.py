"""
Anti-Spam Activity Window
=========================

Per-key rolling buffer of timestamped entries.

DESIGN:
    Each detector owns its own ActivityWindow. Entries are appended in
    timestamp order and never mutated; reads prune everything older than
    the retention horizon first, so a window never grows past what its
    detector can look at.

    Timestamps must be non-decreasing per key. An older entry raises
    StateCorruption and is not stored. Different keys are independent.

    The clock is injected so tests advance time instead of sleeping.
"""

from collections import deque
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Deque, Dict, Generic, Hashable, Iterator, List, Optional, TypeVar

from vigil.core.errors import StateCorruption
from vigil.utils.clock import Clock

T = TypeVar("T")


@dataclass(frozen=True)
class WindowEntry(Generic[T]):
    timestamp: datetime
    payload: T


class ActivityWindow(Generic[T]):
    """
    Append-only, time-pruned buffers keyed by user or guild.

    Args:
        retention: Entries older than this are dropped on every read.
        clock: Time source used when a read passes no explicit now.
        name: Label for log output.
    """

    def __init__(self, retention: timedelta, clock: Clock, name: str = "window") -> None:
        self.retention = retention
        self.name = name
        self._clock = clock
        self._entries: Dict[Hashable, Deque[WindowEntry[T]]] = {}

    def __len__(self) -> int:
        """Number of tracked keys."""
        return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._entries

    def keys(self) -> Iterator[Hashable]:
        return iter(list(self._entries.keys()))

    # =========================================================================
    # Writes
    # =========================================================================

    def record(self, key: Hashable, timestamp: datetime, payload: T) -> WindowEntry[T]:
        """
        Append an entry for a key.

        Raises:
            StateCorruption: If timestamp precedes the key's last entry.
        """
        entries = self._entries.get(key)
        if entries and timestamp < entries[-1].timestamp:
            raise StateCorruption(key, timestamp, entries[-1].timestamp)

        entry = WindowEntry(timestamp=timestamp, payload=payload)
        if entries is None:
            entries = deque()
            self._entries[key] = entries
        entries.append(entry)
        return entry

    def clear(self, key: Hashable) -> None:
        self._entries.pop(key, None)

    # =========================================================================
    # Reads
    # =========================================================================

    def _prune(self, key: Hashable, now: datetime, horizon: timedelta) -> Optional[Deque[WindowEntry[T]]]:
        entries = self._entries.get(key)
        if entries is None:
            return None
        while entries and now - entries[0].timestamp > horizon:
            entries.popleft()
        return entries

    def recent(
        self,
        key: Hashable,
        max_age: Optional[timedelta] = None,
        now: Optional[datetime] = None,
    ) -> List[WindowEntry[T]]:
        """
        Entries with now - timestamp <= max_age, oldest first.

        Prunes entries past the retention horizon as a side effect.

        Args:
            key: Window key.
            max_age: Narrower look-back than retention. None returns the
                whole retained window.
            now: Reference time. Defaults to the clock.
        """
        now = now or self._clock.now()
        entries = self._prune(key, now, self.retention)
        if not entries:
            return []
        if max_age is None:
            return list(entries)
        return [e for e in entries if now - e.timestamp <= max_age]

    def count(self, key: Hashable, max_age: Optional[timedelta] = None, now: Optional[datetime] = None) -> int:
        return len(self.recent(key, max_age, now))

    # =========================================================================
    # Cleanup
    # =========================================================================

    def sweep(self, max_age: Optional[timedelta] = None, now: Optional[datetime] = None) -> int:
        """
        Prune every key and drop the ones left empty.

        Args:
            max_age: Horizon for this pass. Defaults to retention.
            now: Reference time. Defaults to the clock.

        Returns:
            Number of keys removed.
        """
        now = now or self._clock.now()
        horizon = max_age if max_age is not None else self.retention
        removed = 0
        for key in list(self._entries.keys()):
            entries = self._prune(key, now, horizon)
            if not entries:
                del self._entries[key]
                removed += 1
        return removed

    def total_entries(self) -> int:
        return sum(len(entries) for entries in self._entries.values())


__all__ = ["ActivityWindow", "WindowEntry"]
