"""
Anti-Spam Escalation
====================

Progressive punishment from severity and violation history.

DESIGN:
    An EscalationPolicy is an ordered table of tiers, most severe first.
    A tier fires when EITHER the instantaneous severity reaches its
    severity cutoff OR the user's violation count reaches its count
    cutoff. Count cutoffs sit lower than severity cutoffs so repeat minor
    offenders still escalate.

    Each detector family has its own table because their severities live
    on different scales:

        GENERIC (spam, links, mentions)   ban 80/5  kick 60/3  timeout 40/2  warn 20/1
        CONTENT (severity tiers 1..4)     ban 4/5   kick 3/3   timeout 2/2   warn 1/1   else delete
        SECURITY (threat points)          ban 80/5  kick 60/3  timeout 30/2  warn 1/1
        JOIN (join risk, no history)      ban 70    kick 50    warn 30

    Violation counts reset hard once the last violation is older than the
    TTL (1 hour). The reset is applied lazily on read and by sweep().
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Tuple

from vigil.core.logger import logger
from vigil.utils.clock import Clock

from .constants import (
    CATEGORY_CONTENT,
    CATEGORY_LINKS,
    CATEGORY_MENTIONS,
    CATEGORY_SECURITY,
    CATEGORY_SPAM,
    VIOLATION_TTL,
)
from .models import Action, ViolationRecord


# =============================================================================
# Policies
# =============================================================================

@dataclass(frozen=True)
class EscalationTier:
    action: Action
    min_severity: Optional[float] = None
    min_count: Optional[int] = None


@dataclass(frozen=True)
class EscalationPolicy:
    """Ordered tiers (most severe first) plus the fallback action."""
    name: str
    tiers: Tuple[EscalationTier, ...]
    fallback: Action = Action.NONE

    def select(self, severity: float, count: int) -> Action:
        """First tier whose severity or count cutoff is reached."""
        for tier in self.tiers:
            if tier.min_severity is not None and severity >= tier.min_severity:
                return tier.action
            if tier.min_count is not None and count >= tier.min_count:
                return tier.action
        return self.fallback


GENERIC_POLICY = EscalationPolicy(
    name="generic",
    tiers=(
        EscalationTier(Action.BAN, 80, 5),
        EscalationTier(Action.KICK, 60, 3),
        EscalationTier(Action.TIMEOUT, 40, 2),
        EscalationTier(Action.WARN, 20, 1),
    ),
)

CONTENT_POLICY = EscalationPolicy(
    name="content",
    tiers=(
        EscalationTier(Action.BAN, 4, 5),
        EscalationTier(Action.KICK, 3, 3),
        EscalationTier(Action.TIMEOUT, 2, 2),
        EscalationTier(Action.WARN, 1, 1),
    ),
    fallback=Action.DELETE,
)

SECURITY_POLICY = EscalationPolicy(
    name="security",
    tiers=(
        EscalationTier(Action.BAN, 80, 5),
        EscalationTier(Action.KICK, 60, 3),
        EscalationTier(Action.TIMEOUT, 30, 2),
        EscalationTier(Action.WARN, 1, 1),
    ),
)

JOIN_POLICY = EscalationPolicy(
    name="join",
    tiers=(
        EscalationTier(Action.BAN, 70),
        EscalationTier(Action.KICK, 50),
        EscalationTier(Action.WARN, 30),
    ),
)

FAMILY_POLICIES: Dict[str, EscalationPolicy] = {
    CATEGORY_SPAM: GENERIC_POLICY,
    CATEGORY_LINKS: GENERIC_POLICY,
    CATEGORY_MENTIONS: GENERIC_POLICY,
    CATEGORY_CONTENT: CONTENT_POLICY,
    CATEGORY_SECURITY: SECURITY_POLICY,
}


# =============================================================================
# Escalation Engine
# =============================================================================

class EscalationEngine:
    """
    Per-user violation memory and action selection.

    Args:
        clock: Time source for expiry checks.
        violation_ttl: Inactivity after which a user's count resets.
    """

    def __init__(self, clock: Clock, violation_ttl: timedelta = VIOLATION_TTL) -> None:
        self._clock = clock
        self._ttl = violation_ttl
        self._records: Dict[int, ViolationRecord] = {}

    def _expired(self, record: ViolationRecord, now: datetime) -> bool:
        return record.last_violation_at is not None and now - record.last_violation_at > self._ttl

    def get_record(self, user_id: int, now: Optional[datetime] = None) -> Optional[ViolationRecord]:
        """Current record, or None if absent or expired (expired ones are removed)."""
        record = self._records.get(user_id)
        if record is None:
            return None
        now = now or self._clock.now()
        if self._expired(record, now):
            del self._records[user_id]
            return None
        return record

    def violation_count(self, user_id: int, now: Optional[datetime] = None) -> int:
        record = self.get_record(user_id, now)
        return record.count if record else 0

    def record_violation(
        self,
        user_id: int,
        reason: str,
        severity: float,
        now: Optional[datetime] = None,
    ) -> ViolationRecord:
        """
        Count one violation for a user.

        Returns:
            The updated record.
        """
        now = now or self._clock.now()
        record = self.get_record(user_id, now)
        if record is None:
            record = ViolationRecord()
            self._records[user_id] = record

        record.count += 1
        record.last_violation_at = now
        record.last_reason = reason
        record.last_severity = severity

        logger.info("Violation Recorded", [
            ("User", str(user_id)),
            ("Count", str(record.count)),
            ("Severity", f"{severity:.0f}"),
            ("Reason", reason[:100]),
        ])
        return record

    def decide_action(
        self,
        user_id: int,
        severity: float,
        policy: EscalationPolicy = GENERIC_POLICY,
        now: Optional[datetime] = None,
    ) -> Action:
        """Action for this severity given the user's current history."""
        return policy.select(severity, self.violation_count(user_id, now))

    def reset(self, user_id: int) -> bool:
        """Forget a user's history. Returns True if there was one."""
        return self._records.pop(user_id, None) is not None

    # =========================================================================
    # Maintenance
    # =========================================================================

    def sweep(self, now: Optional[datetime] = None) -> int:
        """Remove expired records. Returns how many were removed."""
        now = now or self._clock.now()
        expired = [uid for uid, record in self._records.items() if self._expired(record, now)]
        for uid in expired:
            del self._records[uid]
        return len(expired)

    def get_stats(self) -> Dict[str, Any]:
        return {
            "violated_users": len(self._records),
            "total_violations": sum(r.count for r in self._records.values()),
        }


__all__ = [
    "EscalationTier",
    "EscalationPolicy",
    "GENERIC_POLICY",
    "CONTENT_POLICY",
    "SECURITY_POLICY",
    "JOIN_POLICY",
    "FAMILY_POLICIES",
    "EscalationEngine",
]
