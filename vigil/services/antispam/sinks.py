"""
Anti-Spam Sinks
===============

Outbound collaborators of the risk aggregator.

DESIGN:
    The aggregator decides; it never touches Discord itself. Three narrow
    protocols carry decisions out:

    - AuditSink: every triggered decision
    - AlertSink: raid alerts (already rate-limited by the raid detector)
    - EnforcementExecutor: applies actions and guild lockdowns

    All methods are coroutines scheduled as background tasks, so a failing
    collaborator never breaks evaluation. Synchronous callers wait for them.

    WebhookAlertSink posts a raid embed to a Discord webhook with the same
    retry/backoff loop used for interaction logging.
"""

import asyncio
from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Protocol

import aiohttp
import discord

from vigil.core.logger import NY_TZ, logger

from .constants import FINDING_DISPLAY_NAMES
from .models import Decision, RaidAssessment


# =============================================================================
# Constants
# =============================================================================

MAX_RETRIES = 3
INITIAL_BACKOFF = 1.0  # seconds
REQUEST_TIMEOUT = 10  # seconds

RAID_ALERT_COLOR = 0xFF0000
AUDIT_PREVIEW_LENGTH = 100


# =============================================================================
# Protocols
# =============================================================================

class AuditSink(Protocol):
    async def record(self, decision: Decision) -> None: ...


class AlertSink(Protocol):
    async def raid_alert(self, assessment: RaidAssessment) -> None: ...


class EnforcementExecutor(Protocol):
    """Applies decisions to the platform."""

    async def execute(self, decision: Decision) -> bool: ...

    async def lock_guild(self, guild_id: int) -> Mapping[str, Any]:
        """Lock a guild and return the permission snapshot to restore later."""
        ...

    async def unlock_guild(self, guild_id: int, snapshot: Mapping[str, Any]) -> None: ...


# =============================================================================
# Log Audit Sink
# =============================================================================

class LogAuditSink:
    """Writes every triggered decision to the tree log."""

    async def record(self, decision: Decision) -> None:
        event = decision.event
        findings = [
            FINDING_DISPLAY_NAMES.get(finding.kind, finding.kind)
            for result in decision.results.values()
            for finding in result.findings
        ]
        logger.tree("MODERATION DECISION", [
            ("Guild", str(event.guild_id)),
            ("User", f"{event.author_tag or event.author_id}"),
            ("Event", event.kind.value),
            ("Action", decision.action.label),
            ("Severity", f"{decision.severity:.0f}"),
            ("Violations", str(decision.violation_count)),
            ("Findings", ", ".join(findings) or "-"),
            ("Reasons", decision.summary[:AUDIT_PREVIEW_LENGTH]),
        ], emoji="📋")


# =============================================================================
# Webhook Alert Sink
# =============================================================================

class WebhookAlertSink:
    """
    Raid alerts to a Discord webhook.

    Args:
        url: Webhook URL.
        session: Optional shared session. One is created on first use
            (and closed by close()) otherwise.
    """

    def __init__(self, url: str, session: Optional[aiohttp.ClientSession] = None) -> None:
        self.url = url
        self._session = session
        self._owns_session = session is None
        self._session_loop: Optional[asyncio.AbstractEventLoop] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        loop = asyncio.get_running_loop()
        # An owned session from an earlier inline run is bound to a closed loop
        stale = self._owns_session and self._session_loop is not None and self._session_loop is not loop
        if self._session is None or self._session.closed or stale:
            self._session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=REQUEST_TIMEOUT))
            self._owns_session = True
            self._session_loop = loop
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    def build_embed(self, assessment: RaidAssessment) -> discord.Embed:
        embed = discord.Embed(
            title="🚨 RAID DETECTED",
            description=(
                f"`{assessment.join_count}` joins in the raid window\n"
                f"Confidence: `{assessment.confidence}`"
            ),
            color=RAID_ALERT_COLOR,
            timestamp=datetime.now(NY_TZ),
        )
        embed.add_field(name="Guild", value=f"`{assessment.guild_id}`", inline=True)
        embed.add_field(name="Risky Joins", value=f"`{assessment.suspicious_count}`", inline=True)
        embed.add_field(name="Average Risk", value=f"`{assessment.average_risk:.1f}`", inline=True)
        if assessment.reasons:
            embed.add_field(name="Indicators", value="\n".join(assessment.reasons)[:1024], inline=False)
        if assessment.recommendations:
            embed.add_field(
                name="Recommendations",
                value="\n".join(f"• {r}" for r in assessment.recommendations)[:1024],
                inline=False,
            )
        embed.set_footer(text="Vigil Raid Detection")
        return embed

    async def raid_alert(self, assessment: RaidAssessment) -> None:
        payload = {"embeds": [self.build_embed(assessment).to_dict()]}
        sent = await self._send_with_retry(payload)
        if sent:
            logger.info("Raid Alert Sent", [("Guild", str(assessment.guild_id))])

    async def _send_with_retry(self, payload: Dict[str, Any]) -> bool:
        """Post with rate limit retry and exponential backoff."""
        session = await self._get_session()
        backoff = INITIAL_BACKOFF

        for attempt in range(MAX_RETRIES):
            try:
                async with session.post(self.url, json=payload) as resp:
                    if resp.status in (200, 204):
                        return True
                    elif resp.status == 429:
                        retry_after = float(resp.headers.get("Retry-After", backoff))
                        logger.warning("Alert Webhook Rate Limited", [
                            ("Retry After", f"{retry_after}s"),
                            ("Attempt", f"{attempt + 1}/{MAX_RETRIES}"),
                        ])
                        await asyncio.sleep(retry_after)
                        backoff *= 2
                    else:
                        logger.warning("Alert Webhook Error", [
                            ("Status", str(resp.status)),
                            ("Attempt", f"{attempt + 1}/{MAX_RETRIES}"),
                        ])
                        return False
            except aiohttp.ClientError as e:
                logger.warning("Alert Webhook Failed", [
                    ("Error", str(e)[:100]),
                    ("Attempt", f"{attempt + 1}/{MAX_RETRIES}"),
                ])
                if attempt < MAX_RETRIES - 1:
                    await asyncio.sleep(backoff)
                    backoff *= 2

        return False


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    "AuditSink",
    "AlertSink",
    "EnforcementExecutor",
    "LogAuditSink",
    "WebhookAlertSink",
]
