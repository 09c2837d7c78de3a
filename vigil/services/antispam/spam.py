"""
Anti-Spam Message Detection
===========================

Scores messages for duplicate, flood, burst, pattern, and similarity spam.

DESIGN:
    One ActivityWindow keyed by (guild_id, user_id) with a 5 minute
    retention. The current message is recorded before the checks run,
    so every count includes it.

    Sub-checks are additive:
    - confidences sum and the total is capped at 100
    - severities sum uncapped and feed escalation

    Per-check caps (duplicate 80/60, flood 70/50, burst 40/30,
    similarity 50/35) keep one signal from dominating.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from vigil.core.errors import StateCorruption
from vigil.core.guild_config import GuildConfig, SpamConfig
from vigil.core.logger import logger
from vigil.utils.clock import Clock

from .constants import (
    BURST_CONFIDENCE_CAP,
    BURST_CONFIDENCE_PER_MESSAGE,
    BURST_LIMIT,
    BURST_SEVERITY_CAP,
    BURST_SEVERITY_PER_MESSAGE,
    BURST_WINDOW,
    CATEGORY_SPAM,
    DUPLICATE_CONFIDENCE_CAP,
    DUPLICATE_CONFIDENCE_PER_MESSAGE,
    DUPLICATE_SEVERITY_CAP,
    DUPLICATE_SEVERITY_PER_MESSAGE,
    EMOJI_LIMIT,
    FLOOD_CONFIDENCE_CAP,
    FLOOD_CONFIDENCE_PER_MESSAGE,
    FLOOD_SEVERITY_CAP,
    FLOOD_SEVERITY_PER_MESSAGE,
    FREQUENCY_WINDOW,
    INVISIBLE_LIMIT,
    PATTERN_POINTS,
    SIMILARITY_CONFIDENCE_CAP,
    SIMILARITY_CONFIDENCE_FACTOR,
    SIMILARITY_HIGH,
    SIMILARITY_HISTORY,
    SIMILARITY_MEDIUM,
    SIMILARITY_MEDIUM_COUNT,
    SIMILARITY_SEVERITY_CAP,
    SIMILARITY_SEVERITY_FACTOR,
    SPAM_WINDOW_RETENTION,
    ZALGO_LIMIT,
)
from .detectors import (
    count_emojis,
    count_invisible,
    count_zalgo,
    has_repeated_chars,
    is_caps_spam,
    similarity,
)
from .models import DetectionResult, Event, Finding
from .window import ActivityWindow, WindowEntry


# =============================================================================
# Individual Checks
# =============================================================================

def check_duplicates(entries: List[WindowEntry[str]], text: str, config: SpamConfig) -> List[Finding]:
    """Exact-content repeats beyond maxDuplicateMessages."""
    if not text:
        return []
    count = sum(1 for entry in entries if entry.payload == text)
    if count <= config.max_duplicate_messages:
        return []
    return [Finding(
        kind="duplicate",
        confidence=min(count * DUPLICATE_CONFIDENCE_PER_MESSAGE, DUPLICATE_CONFIDENCE_CAP),
        severity=min(count * DUPLICATE_SEVERITY_PER_MESSAGE, DUPLICATE_SEVERITY_CAP),
        detail=f"Duplicate message ({count} times)",
    )]


def check_frequency(entries: List[WindowEntry[str]], now: datetime, config: SpamConfig) -> List[Finding]:
    """Per-minute flood and 10 second burst."""
    findings = []

    per_minute = sum(1 for entry in entries if now - entry.timestamp <= FREQUENCY_WINDOW)
    overflow = per_minute - config.max_messages_per_minute
    if overflow > 0:
        findings.append(Finding(
            kind="message_flood",
            confidence=min(overflow * FLOOD_CONFIDENCE_PER_MESSAGE, FLOOD_CONFIDENCE_CAP),
            severity=min(overflow * FLOOD_SEVERITY_PER_MESSAGE, FLOOD_SEVERITY_CAP),
            detail=f"Message flooding ({per_minute} messages/minute)",
        ))

    burst = sum(1 for entry in entries if now - entry.timestamp <= BURST_WINDOW)
    if burst >= BURST_LIMIT:
        findings.append(Finding(
            kind="burst",
            confidence=min(burst * BURST_CONFIDENCE_PER_MESSAGE, BURST_CONFIDENCE_CAP),
            severity=min(burst * BURST_SEVERITY_PER_MESSAGE, BURST_SEVERITY_CAP),
            detail=f"Burst messaging ({burst} messages in 10s)",
        ))

    return findings


def check_patterns(text: str) -> List[Finding]:
    """Character-level spam patterns on the raw text."""
    findings = []

    def add(kind: str, detail: str) -> None:
        confidence, severity = PATTERN_POINTS[kind]
        findings.append(Finding(kind=kind, confidence=confidence, severity=severity, detail=detail))

    if has_repeated_chars(text):
        add("repeated_chars", "Excessive repeated characters")

    if is_caps_spam(text):
        add("caps", "Excessive caps lock")

    emojis = count_emojis(text)
    if emojis > EMOJI_LIMIT:
        add("emoji", f"Excessive emojis ({emojis})")

    if count_zalgo(text) > ZALGO_LIMIT:
        add("zalgo", "Zalgo/corrupted text detected")

    if count_invisible(text) > INVISIBLE_LIMIT:
        add("invisible", "Invisible character spam")

    return findings


def check_similarity(entries: List[WindowEntry[str]], text: str) -> List[Finding]:
    """Near-duplicates among the last few messages (exact repeats excluded)."""
    if not text or len(entries) < 2:
        return []

    max_similarity = 0.0
    similar_count = 0
    for entry in entries[-SIMILARITY_HISTORY:]:
        if entry.payload == text:
            continue
        ratio = similarity(entry.payload, text)
        max_similarity = max(max_similarity, ratio)
        if ratio > SIMILARITY_MEDIUM:
            similar_count += 1

    if max_similarity <= SIMILARITY_HIGH and similar_count < SIMILARITY_MEDIUM_COUNT:
        return []

    return [Finding(
        kind="similar",
        confidence=min(max_similarity * SIMILARITY_CONFIDENCE_FACTOR, SIMILARITY_CONFIDENCE_CAP),
        severity=min(max_similarity * SIMILARITY_SEVERITY_FACTOR, SIMILARITY_SEVERITY_CAP),
        detail=f"Similar messages detected ({round(max_similarity * 100)}% similarity)",
    )]


# =============================================================================
# Spam Detector
# =============================================================================

class SpamDetector:
    """
    Message spam detector.

    Args:
        clock: Time source for window pruning during cleanup.
    """

    category = CATEGORY_SPAM

    def __init__(self, clock: Clock) -> None:
        self._window: ActivityWindow[str] = ActivityWindow(SPAM_WINDOW_RETENTION, clock, name="spam")

    def evaluate(self, event: Event, config: GuildConfig) -> DetectionResult:
        """
        Score one message.

        The spam section is checked before the window is touched, so a
        disabled detector records nothing.
        """
        spam = config.spam
        if spam is None or not spam.enabled:
            return DetectionResult.disabled(self.category)

        text = event.text or ""
        key = (event.guild_id, event.author_id)
        now = event.timestamp

        try:
            self._window.record(key, now, text)
        except StateCorruption as e:
            logger.warning("Out-Of-Order Message Dropped", [
                ("Guild", str(event.guild_id)),
                ("User", str(event.author_id)),
                ("Timestamp", e.timestamp.isoformat()),
                ("Last", e.last_timestamp.isoformat()),
            ])

        entries = self._window.recent(key, now=now)

        findings: List[Finding] = []
        findings.extend(check_duplicates(entries, text, spam))
        findings.extend(check_frequency(entries, now, spam))
        findings.extend(check_patterns(text))
        findings.extend(check_similarity(entries, text))

        result = DetectionResult.from_findings(
            self.category,
            findings,
            signals={"window_size": len(entries)},
        )

        if result.triggered:
            logger.tree("SPAM DETECTED", [
                ("Guild", str(event.guild_id)),
                ("User", str(event.author_id)),
                ("Confidence", f"{result.score:.0f}"),
                ("Severity", f"{result.severity:.0f}"),
                ("Reasons", ", ".join(result.reasons)),
            ], emoji="🚫")

        return result

    # =========================================================================
    # Maintenance
    # =========================================================================

    def cleanup(self, now: Optional[datetime] = None) -> int:
        """Drop users with no messages inside the retention window."""
        return self._window.sweep(now=now)

    def get_stats(self) -> Dict[str, Any]:
        return {
            "tracked_users": len(self._window),
            "total_messages": self._window.total_entries(),
        }


__all__ = [
    "SpamDetector",
    "check_duplicates",
    "check_frequency",
    "check_patterns",
    "check_similarity",
]
