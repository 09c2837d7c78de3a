"""
Anti-Spam Data Models
=====================

Dataclasses for events, detection results, raid state, and decisions.

Events and detection results are immutable. ViolationRecord and
GuildRaidState are the long-lived mutable state, each owned by exactly
one detector.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum, IntEnum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from vigil.core.errors import InvalidInput

from .constants import CONFIDENCE_CAP, DISABLED_REASON


# =============================================================================
# Enums
# =============================================================================

class EventKind(str, Enum):
    MESSAGE = "message"
    JOIN = "join"


class Action(IntEnum):
    """Enforcement actions, ordered from least to most severe."""
    NONE = 0
    DELETE = 1
    WARN = 2
    TIMEOUT = 3
    KICK = 4
    BAN = 5

    @property
    def label(self) -> str:
        return self.name.lower()

    @classmethod
    def from_label(cls, label: str) -> "Action":
        try:
            return cls[label.upper()]
        except KeyError:
            raise ValueError(f"Unknown action: {label!r}") from None

    def __str__(self) -> str:
        return self.label


# =============================================================================
# Events
# =============================================================================

@dataclass(frozen=True)
class Attachment:
    """A message attachment as seen by the content filter."""
    filename: str
    size: int
    content_type: Optional[str] = None


@dataclass(frozen=True)
class Event:
    """
    One inbound event (message or member join).

    Validation runs on construction and raises InvalidInput, so an Event
    that exists is well-formed. Sequence fields are stored as tuples.

    Attributes:
        kind: MESSAGE or JOIN.
        author_id: Sender (message) or joining member (join).
        guild_id: Tenant the event belongs to.
        timestamp: Timezone-aware event time.
        text: Message content. Required for messages, may be empty.
        attachments: Message attachments.
        mentioned_user_ids: Every user mentioned, bots included.
        mentioned_bot_ids: The subset of mentioned users that are bots.
        account_created_at: Account creation time of the author.
        author_name: Username. Required for joins.
        author_tag: Display tag (e.g. "name#0"), used by whitelists.
        has_default_avatar: Whether the author has no custom avatar.
    """
    kind: EventKind
    author_id: int
    guild_id: int
    timestamp: datetime
    text: Optional[str] = None
    attachments: Tuple[Attachment, ...] = ()
    mentioned_user_ids: Tuple[int, ...] = ()
    mentioned_bot_ids: Tuple[int, ...] = ()
    channel_id: Optional[int] = None
    account_created_at: Optional[datetime] = None
    author_name: Optional[str] = None
    author_tag: Optional[str] = None
    has_default_avatar: bool = False
    message_id: Optional[int] = None

    def __post_init__(self) -> None:
        if isinstance(self.kind, str) and not isinstance(self.kind, EventKind):
            try:
                object.__setattr__(self, "kind", EventKind(self.kind))
            except ValueError:
                raise InvalidInput(f"unknown event kind {self.kind!r}", self.kind) from None
        for name in ("attachments", "mentioned_user_ids", "mentioned_bot_ids"):
            value = getattr(self, name)
            if value is None:
                object.__setattr__(self, name, ())
            elif not isinstance(value, tuple):
                object.__setattr__(self, name, tuple(value))
        self.validate()

    def validate(self) -> None:
        """Raise InvalidInput if the event is malformed."""
        if not isinstance(self.kind, EventKind):
            raise InvalidInput(f"unknown event kind {self.kind!r}", self.kind)
        if not _is_id(self.author_id):
            raise InvalidInput("author_id must be a positive integer", self.author_id)
        if not _is_id(self.guild_id):
            raise InvalidInput("guild_id must be a positive integer", self.guild_id)
        if not isinstance(self.timestamp, datetime):
            raise InvalidInput("timestamp is required", self.timestamp)
        if self.timestamp.tzinfo is None:
            raise InvalidInput("timestamp must be timezone-aware", self.timestamp)
        if self.account_created_at is not None:
            if not isinstance(self.account_created_at, datetime) or self.account_created_at.tzinfo is None:
                raise InvalidInput("account_created_at must be a timezone-aware datetime", self.account_created_at)
        for name in ("mentioned_user_ids", "mentioned_bot_ids"):
            if not all(_is_id(user_id) for user_id in getattr(self, name)):
                raise InvalidInput(f"{name} must hold positive integer IDs", getattr(self, name))

        if self.kind is EventKind.MESSAGE:
            if not isinstance(self.text, str):
                raise InvalidInput("message events require text", self.text)
            for attachment in self.attachments:
                if not isinstance(attachment, Attachment):
                    raise InvalidInput("attachments must be Attachment records", attachment)
                if attachment.size < 0:
                    raise InvalidInput("attachment size must not be negative", attachment.size)
        else:
            if not self.author_name or not isinstance(self.author_name, str):
                raise InvalidInput("join events require author_name", self.author_name)

    @property
    def is_message(self) -> bool:
        return self.kind is EventKind.MESSAGE

    @property
    def account_age(self) -> Optional[timedelta]:
        """Account age at event time, if the creation time is known."""
        if self.account_created_at is None:
            return None
        return self.timestamp - self.account_created_at


def _is_id(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


# =============================================================================
# Detection Results
# =============================================================================

@dataclass(frozen=True)
class Finding:
    """One triggered sub-check inside a detector."""
    kind: str
    confidence: float
    severity: float
    detail: str


@dataclass(frozen=True)
class DetectionResult:
    """
    Output of one detector for one event.

    Attributes:
        category: Detector family ("spam", "content", ...).
        triggered: Whether any sub-check fired.
        score: Summed confidence, capped at 100.
        severity: Detector severity (summed or tiered, per family).
        reasons: Human-readable reason per finding.
        signals: Extra detector output (threat level, counts, ...).
        findings: The individual findings.
        language: Matched language (content filter only).
    """
    category: str
    triggered: bool = False
    score: float = 0
    severity: float = 0
    reasons: Tuple[str, ...] = ()
    signals: Mapping[str, Any] = field(default_factory=dict)
    findings: Tuple[Finding, ...] = ()
    language: Optional[str] = None

    @classmethod
    def disabled(cls, category: str) -> "DetectionResult":
        """Result for a detector whose configuration is absent or off."""
        return cls(category=category, reasons=(DISABLED_REASON,))

    @classmethod
    def from_findings(
        cls,
        category: str,
        findings: Sequence[Finding],
        severity: Optional[float] = None,
        signals: Optional[Mapping[str, Any]] = None,
        language: Optional[str] = None,
    ) -> "DetectionResult":
        """
        Build a result from findings.

        Confidences are summed and capped at 100. Severity defaults to the
        uncapped sum of finding severities.
        """
        if severity is None:
            severity = sum(f.severity for f in findings)
        return cls(
            category=category,
            triggered=bool(findings),
            score=min(sum(f.confidence for f in findings), CONFIDENCE_CAP),
            severity=severity,
            reasons=tuple(f.detail for f in findings),
            signals=dict(signals or {}),
            findings=tuple(findings),
            language=language,
        )

    @property
    def is_disabled(self) -> bool:
        return self.reasons == (DISABLED_REASON,)


# =============================================================================
# Account & Join Analysis
# =============================================================================

@dataclass(frozen=True)
class AccountRisk:
    """
    Bot-likeness score for one account.

    account_age falls back to the ID-embedded creation time when the
    event carries no creation time.
    """
    score: int
    level: str
    flags: Tuple[str, ...] = ()
    account_age: Optional[timedelta] = None


@dataclass(frozen=True)
class JoinSample:
    """One windowed join in a guild's raid window."""
    user_id: int
    username: str
    joined_at: datetime
    account_age: Optional[timedelta]
    risk_score: int
    suspicious: bool = False


@dataclass(frozen=True)
class JoinAnalysis:
    """Per-join risk, suspicion flag, and recommended join action."""
    user_id: int
    risk_score: int
    suspicious: bool
    action: Action
    reasons: Tuple[str, ...] = ()
    account: Optional[AccountRisk] = None
    similar_usernames: Tuple[str, ...] = ()
    account_age_gate: bool = False


@dataclass(frozen=True)
class RaidAssessment:
    """
    Guild-level raid evaluation after one join.

    new_raid is True only on the join that declared the raid; the side
    effect fields (lockdown, kicks, notifications) are only set then.
    """
    guild_id: int
    is_raid: bool = False
    confidence: int = 0
    join_count: int = 0
    suspicious_count: int = 0
    average_risk: float = 0.0
    new_account_count: int = 0
    recommendations: Tuple[str, ...] = ()
    join: Optional[JoinAnalysis] = None
    new_raid: bool = False
    alert: bool = False
    lockdown_requested: bool = False
    kick_candidates: Tuple[int, ...] = ()
    notify_moderators: bool = False
    require_verification: bool = False
    reasons: Tuple[str, ...] = ()

    @classmethod
    def disabled(cls, guild_id: int) -> "RaidAssessment":
        return cls(guild_id=guild_id, reasons=(DISABLED_REASON,))


@dataclass(frozen=True)
class RaidEvent:
    """History record of a declared raid."""
    guild_id: int
    started_at: datetime
    join_count: int
    confidence: int
    indicators: Tuple[str, ...] = ()


@dataclass(frozen=True)
class LockdownState:
    """An active lockdown and the permissions to restore when it ends."""
    guild_id: int
    started_at: datetime
    duration: timedelta
    snapshot: Mapping[str, Any]

    @property
    def ends_at(self) -> datetime:
        return self.started_at + self.duration


@dataclass
class GuildRaidState:
    """Mutable raid state for one guild (joins live in the detector's window)."""
    raid_active: bool = False
    raid_started_at: Optional[datetime] = None
    last_alert_at: Optional[datetime] = None
    lockdown: Optional[LockdownState] = None
    events: List[RaidEvent] = field(default_factory=list)


# =============================================================================
# Escalation
# =============================================================================

@dataclass
class ViolationRecord:
    """Violation history for one user."""
    count: int = 0
    last_violation_at: Optional[datetime] = None
    last_reason: Optional[str] = None
    last_severity: float = 0


# =============================================================================
# Decision
# =============================================================================

@dataclass(frozen=True)
class Decision:
    """
    Final outcome for one event.

    Attributes:
        event: The evaluated event.
        action: Most severe action across triggered detector families.
        severity: Highest severity among triggered results.
        score: Highest confidence among triggered results.
        reasons: Reasons from every triggered result.
        results: Detector results by category.
        family_actions: Action chosen per triggered family.
        violation_count: User's violation count after this event.
        raid: Raid assessment (joins only).
    """
    event: Event
    action: Action = Action.NONE
    severity: float = 0
    score: float = 0
    reasons: Tuple[str, ...] = ()
    results: Mapping[str, DetectionResult] = field(default_factory=dict)
    family_actions: Mapping[str, Action] = field(default_factory=dict)
    violation_count: int = 0
    raid: Optional[RaidAssessment] = None

    @property
    def triggered(self) -> bool:
        return any(result.triggered for result in self.results.values())

    @property
    def summary(self) -> str:
        if not self.reasons:
            return "clean"
        return "; ".join(self.reasons)


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    "EventKind",
    "Action",
    "Attachment",
    "Event",
    "Finding",
    "DetectionResult",
    "AccountRisk",
    "JoinSample",
    "JoinAnalysis",
    "RaidAssessment",
    "RaidEvent",
    "LockdownState",
    "GuildRaidState",
    "ViolationRecord",
    "Decision",
]
