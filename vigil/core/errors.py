"""
Vigil - Error Taxonomy
======================

Exceptions raised by the scoring engine.

DESIGN:
    Detector-local problems never escape a detector. The three public
    error types below are the only ones a host needs to handle:

    - ConfigurationMissing: a section lacks a required key. Caught by the
      guild config parser, which disables that section (fail closed).
    - InvalidInput: a malformed event. The host skips the event.
    - StateCorruption: an out-of-order window entry. Caught by the
      detector, which drops the entry and keeps scoring.
"""

from datetime import datetime
from typing import Any, Optional


class VigilError(Exception):
    """Base class for all engine errors."""

    pass


class ConfigurationMissing(VigilError):
    """
    Raised when a required threshold or flag is absent or out of range.

    Attributes:
        section: Config section name (e.g. "spam").
        key: The offending key inside the section.
    """

    def __init__(self, section: str, key: str, detail: Optional[str] = None) -> None:
        self.section = section
        self.key = key
        message = f"{section}.{key} is missing"
        if detail:
            message = f"{section}.{key}: {detail}"
        super().__init__(message)


class InvalidInput(VigilError):
    """Raised for a malformed event. Only that event is rejected."""

    def __init__(self, reason: str, value: Any = None) -> None:
        self.reason = reason
        self.value = value
        super().__init__(reason)


class StateCorruption(VigilError):
    """Raised when a window entry would break the monotonic-timestamp order."""

    def __init__(self, key: Any, timestamp: datetime, last_timestamp: datetime) -> None:
        self.key = key
        self.timestamp = timestamp
        self.last_timestamp = last_timestamp
        super().__init__(
            f"Out-of-order entry for {key!r}: {timestamp.isoformat()} "
            f"precedes {last_timestamp.isoformat()}"
        )


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    "VigilError",
    "ConfigurationMissing",
    "InvalidInput",
    "StateCorruption",
]
