"""
Anti-Spam Link & Mention Policy
===============================

Stateless guild policies for links and mentions.

Links:
    Any URL outside the guild whitelist (domain or subdomain) is an
    unauthorized link at severity 20. A URL shortener is severity 60 and
    ends the scan.

Mentions:
    More mentions than maxMentions is severity 20, more than twice the
    maximum is severity 60. Bot mentions are excluded unless the guild
    turns that off.
"""

from typing import List

from vigil.core.guild_config import GuildConfig

from .constants import (
    CATEGORY_LINKS,
    CATEGORY_MENTIONS,
    MENTION_SPAM_SEVERE,
    MENTION_SPAM_SEVERITY,
    SHORTENER_LINK_SEVERITY,
    UNAUTHORIZED_LINK_SEVERITY,
)
from .detectors import extract_domain, extract_urls, is_url_shortener, is_whitelisted_url
from .models import DetectionResult, Event, Finding


class LinkPolicy:
    """Unauthorized link and URL shortener policy."""

    category = CATEGORY_LINKS

    def evaluate(self, event: Event, config: GuildConfig) -> DetectionResult:
        links = config.links
        if links is None or not links.enabled:
            return DetectionResult.disabled(self.category)

        text = event.text or ""
        findings: List[Finding] = []
        for url in extract_urls(text):
            if is_whitelisted_url(url, links.whitelist):
                continue
            domain = extract_domain(url)
            if is_url_shortener(url):
                findings.append(Finding(
                    kind="shortener_link",
                    confidence=SHORTENER_LINK_SEVERITY,
                    severity=SHORTENER_LINK_SEVERITY,
                    detail=f"Unauthorized URL shortener detected ({domain})",
                ))
                break
            findings.append(Finding(
                kind="unauthorized_link",
                confidence=UNAUTHORIZED_LINK_SEVERITY,
                severity=UNAUTHORIZED_LINK_SEVERITY,
                detail=f"Unauthorized link sharing ({domain})",
            ))

        return DetectionResult.from_findings(
            self.category,
            findings,
            severity=max((f.severity for f in findings), default=0),
            signals={"links": len(findings)},
        )


class MentionPolicy:
    """Excessive mention policy."""

    category = CATEGORY_MENTIONS

    def evaluate(self, event: Event, config: GuildConfig) -> DetectionResult:
        mentions = config.mentions
        if mentions is None or not mentions.enabled:
            return DetectionResult.disabled(self.category)

        users = set(event.mentioned_user_ids)
        if mentions.exclude_bot_mentions:
            users -= set(event.mentioned_bot_ids)
        count = len(users)

        if count <= mentions.max_mentions:
            return DetectionResult(category=self.category, signals={"mentions": count})

        severity = MENTION_SPAM_SEVERE if count > mentions.max_mentions * 2 else MENTION_SPAM_SEVERITY
        finding = Finding(
            kind="mention_spam",
            confidence=severity,
            severity=severity,
            detail=f"Excessive mentions ({count} mentions)",
        )
        return DetectionResult.from_findings(self.category, [finding], signals={"mentions": count})


__all__ = ["LinkPolicy", "MentionPolicy"]
