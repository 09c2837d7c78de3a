"""
Vigil - Anti-Spam Package
=========================

Multi-signal risk aggregation and escalation engine.

Structure:
    constants.py  - Thresholds, points and windows
    patterns.py   - PatternLibrary and compiled regexes
    detectors.py  - Pure text helpers and string similarity
    models.py     - Events, results, raid state and decisions
    window.py     - ActivityWindow rolling buffers
    spam.py       - Duplicate, flood, burst, pattern and similarity spam
    content.py    - Profanity, custom words and attachments
    security.py   - Scam/phishing threats and account risk
    policy.py     - Link and mention policies
    raid.py       - Join correlation and lockdown bookkeeping
    escalation.py - Violation memory and per-family action tables
    sinks.py      - Audit, alert and enforcement protocols
    events.py     - discord.py and replay adapters
    service.py    - RiskAggregator
"""

from .content import ContentDetector
from .detectors import similarity
from .escalation import FAMILY_POLICIES, EscalationEngine, EscalationPolicy, EscalationTier
from .events import event_from_dict, event_from_member, event_from_message
from .models import (
    AccountRisk,
    Action,
    Attachment,
    Decision,
    DetectionResult,
    Event,
    EventKind,
    Finding,
    RaidAssessment,
)
from .patterns import PatternLibrary
from .policy import LinkPolicy, MentionPolicy
from .raid import RaidDetector
from .security import SecurityThreatDetector
from .service import RiskAggregator
from .sinks import AlertSink, AuditSink, EnforcementExecutor, LogAuditSink, WebhookAlertSink
from .spam import SpamDetector
from .window import ActivityWindow


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    # Aggregator
    "RiskAggregator",
    # Detectors
    "SpamDetector",
    "ContentDetector",
    "SecurityThreatDetector",
    "RaidDetector",
    "LinkPolicy",
    "MentionPolicy",
    "EscalationEngine",
    "EscalationPolicy",
    "EscalationTier",
    "FAMILY_POLICIES",
    # Building blocks
    "ActivityWindow",
    "PatternLibrary",
    "similarity",
    # Models
    "Action",
    "AccountRisk",
    "Attachment",
    "Decision",
    "DetectionResult",
    "Event",
    "EventKind",
    "Finding",
    "RaidAssessment",
    # Adapters
    "event_from_dict",
    "event_from_member",
    "event_from_message",
    # Sinks
    "AuditSink",
    "AlertSink",
    "EnforcementExecutor",
    "LogAuditSink",
    "WebhookAlertSink",
]
