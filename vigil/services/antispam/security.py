"""
Anti-Spam Security Threats
==========================

Message threat scoring and account risk scoring.

DESIGN:
    Two independent analyses share this detector:

    Message threats add fixed points per signal (invites, nitro scams,
    phishing phrasing, DM requests, mass mentions, suspicious URLs) and
    map the total to none/low/medium/high/critical.

    Account risk adds points for account age, suspicious username,
    default avatar, and an ID timestamp mismatch, then maps the total to
    low/medium/high/critical. The raid detector reuses it per join.

    The ID check decodes the creation time embedded in a Discord
    snowflake. It only runs for IDs large enough to carry a timestamp
    and can be switched off per guild.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import discord

from vigil.core.guild_config import GuildConfig, SecurityConfig
from vigil.core.logger import logger

from .constants import (
    ACCOUNT_AGE_BRACKETS,
    CATEGORY_ACCOUNT,
    CATEGORY_SECURITY,
    DEFAULT_AVATAR_POINTS,
    ID_TIMESTAMP_MISMATCH_POINTS,
    ID_TIMESTAMP_TOLERANCE,
    RISK_CRITICAL,
    RISK_HIGH,
    RISK_MEDIUM,
    SNOWFLAKE_MIN_ID,
    SUSPICIOUS_USERNAME_POINTS,
    THREAT_CRITICAL,
    THREAT_DM_POINTS,
    THREAT_HIGH,
    THREAT_INVITE_POINTS,
    THREAT_MASS_MENTION_POINTS,
    THREAT_MEDIUM,
    THREAT_NITRO_POINTS,
    THREAT_PHISHING_POINTS,
    THREAT_URL_POINTS,
)
from .detectors import extract_urls, first_match, is_suspicious_url
from .models import AccountRisk, DetectionResult, Event, Finding
from .patterns import (
    DM_REQUEST_PATTERNS,
    INVITE_PATTERN,
    MASS_MENTION_PATTERN,
    NITRO_SCAM_PATTERN,
    PHISHING_PATTERN,
    PatternLibrary,
)


# =============================================================================
# Level Mapping
# =============================================================================

def threat_level(score: float) -> str:
    """Map a threat score to none/low/medium/high/critical."""
    if score >= THREAT_CRITICAL:
        return "critical"
    if score >= THREAT_HIGH:
        return "high"
    if score >= THREAT_MEDIUM:
        return "medium"
    if score > 0:
        return "low"
    return "none"


def risk_level(score: float) -> str:
    """Map an account risk score to low/medium/high/critical."""
    if score >= RISK_CRITICAL:
        return "critical"
    if score >= RISK_HIGH:
        return "high"
    if score >= RISK_MEDIUM:
        return "medium"
    return "low"


def snowflake_created_at(snowflake: int) -> Optional[datetime]:
    """Creation time embedded in a Discord ID, or None for small IDs."""
    if snowflake < SNOWFLAKE_MIN_ID:
        return None
    return discord.utils.snowflake_time(snowflake)


# =============================================================================
# Security Threat Detector
# =============================================================================

class SecurityThreatDetector:
    """
    Scam/phishing message scoring and account bot-likeness scoring.

    Args:
        library: Shared pattern library for username patterns.
    """

    category = CATEGORY_SECURITY

    def __init__(self, library: Optional[PatternLibrary] = None) -> None:
        self._library = library or PatternLibrary()
        self._messages_scored = 0
        self._accounts_scored = 0

    def evaluate(self, event: Event, config: GuildConfig) -> DetectionResult:
        """
        Score a message for threats, or a joining account for risk.

        Message results use category "security"; join results use
        category "account" and trigger from medium risk upward.
        """
        security = config.security
        if not event.is_message:
            if security is None or not security.enabled:
                return DetectionResult.disabled(CATEGORY_ACCOUNT)
            return self.account_result(event, config)

        if security is None or not security.enabled:
            return DetectionResult.disabled(self.category)
        return self.analyze_message(event, security)

    # =========================================================================
    # Message Threats
    # =========================================================================

    def analyze_message(self, event: Event, security: SecurityConfig) -> DetectionResult:
        """Additive threat points for one message."""
        text = event.text or ""
        findings: List[Finding] = []
        self._messages_scored += 1

        def add(kind: str, points: int, detail: str) -> None:
            findings.append(Finding(kind=kind, confidence=points, severity=points, detail=detail))

        invites = INVITE_PATTERN.findall(text)
        if invites:
            add("invite", THREAT_INVITE_POINTS, f"Discord invite detected ({len(invites)} links)")

        if NITRO_SCAM_PATTERN.search(text):
            add("nitro_scam", THREAT_NITRO_POINTS, "Potential nitro scam")

        if PHISHING_PATTERN.search(text):
            add("phishing", THREAT_PHISHING_POINTS, "Potential phishing attempt")

        if any(pattern.search(text) for pattern in DM_REQUEST_PATTERNS):
            add("dm_request", THREAT_DM_POINTS, "Suspicious DM request")

        if MASS_MENTION_PATTERN.search(text):
            add("mass_mention", THREAT_MASS_MENTION_POINTS, "Mass mention detected")

        for url in extract_urls(text):
            if is_suspicious_url(url, security.suspicious_domains):
                add("suspicious_url", THREAT_URL_POINTS, f"Suspicious URL detected: {url[:80]}")

        total = sum(f.severity for f in findings)
        level = threat_level(total)
        result = DetectionResult.from_findings(
            self.category,
            findings,
            signals={"threat_score": total, "threat_level": level},
        )

        if result.triggered:
            logger.tree("SECURITY THREAT", [
                ("Guild", str(event.guild_id)),
                ("User", str(event.author_id)),
                ("Threat Level", level),
                ("Score", str(int(total))),
                ("Threats", ", ".join(result.reasons)[:200]),
            ], emoji="🛑")

        return result

    # =========================================================================
    # Account Risk
    # =========================================================================

    def score_account(self, event: Event, config: GuildConfig) -> AccountRisk:
        """
        Bot-likeness score for the event's author.

        Used for joins and by the raid detector. When the guild's security
        section is absent the built-in username patterns are used.
        """
        security = config.security or SecurityConfig()
        self._accounts_scored += 1
        score = 0
        flags: List[str] = []

        created_at = event.account_created_at
        if created_at is None:
            created_at = snowflake_created_at(event.author_id)

        age: Optional[timedelta] = None
        if created_at is not None:
            age = event.timestamp - created_at
            for limit, points, flag in ACCOUNT_AGE_BRACKETS:
                if age < limit:
                    score += points
                    flags.append(flag)
                    break

        if event.author_name:
            patterns = self._library.username_patterns(security.suspicious_username_patterns)
            matched = first_match(patterns, event.author_name)
            if matched is not None:
                score += SUSPICIOUS_USERNAME_POINTS
                flags.append("Suspicious username pattern")

        if event.has_default_avatar:
            score += DEFAULT_AVATAR_POINTS
            flags.append("Default avatar")

        if security.verify_id_timestamp and event.account_created_at is not None:
            embedded = snowflake_created_at(event.author_id)
            if embedded is not None and abs(embedded - event.account_created_at) > ID_TIMESTAMP_TOLERANCE:
                score += ID_TIMESTAMP_MISMATCH_POINTS
                flags.append("ID timestamp mismatch")

        return AccountRisk(score=score, level=risk_level(score), flags=tuple(flags), account_age=age)

    def account_result(
        self,
        event: Event,
        config: GuildConfig,
        risk: Optional[AccountRisk] = None,
    ) -> DetectionResult:
        """Account risk as a DetectionResult (triggered from medium risk)."""
        if risk is None:
            risk = self.score_account(event, config)
        triggered = risk.score >= RISK_MEDIUM
        return DetectionResult(
            category=CATEGORY_ACCOUNT,
            triggered=triggered,
            score=min(risk.score, 100),
            severity=risk.score,
            reasons=risk.flags if triggered else (),
            signals={"risk_score": risk.score, "risk_level": risk.level, "flags": risk.flags},
        )

    def get_stats(self) -> Dict[str, Any]:
        return {
            "messages_scored": self._messages_scored,
            "accounts_scored": self._accounts_scored,
        }


__all__ = [
    "SecurityThreatDetector",
    "threat_level",
    "risk_level",
    "snowflake_created_at",
]
