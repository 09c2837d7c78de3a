"""
Anti-Spam Content Filter
========================

Profanity, custom word, and attachment scoring.

DESIGN:
    Text is lowercased and matched against each enabled language's word
    list. Per word the exact matcher is tried first, then the leetspeak
    evasion matcher. Guild custom words are exact-only, so "d4rn" is not
    caught by a custom "darn" while "sh1t" is caught by the built-in list.

    Severity is the highest tier matched (1 mild .. 4 extreme), not a sum.
    Confidence sums per match and is capped at 100.

    Strict mode stops text scanning at the first detection. Attachments
    are always scored.

    Results for attachment-free messages are cached per guild, user, text
    and filter settings for the cache TTL (5 minutes by default).
"""

from datetime import timedelta
from typing import Any, Dict, List, Optional, Sequence, Tuple

from vigil.core.guild_config import ContentFilterConfig, GuildConfig
from vigil.core.logger import logger
from vigil.utils.cache import TTLCache
from vigil.utils.clock import Clock

from .constants import (
    CATEGORY_CONTENT,
    CONTENT_CACHE_TTL,
    CUSTOM_MATCH_CONFIDENCE,
    EVASION_MATCH_CONFIDENCE,
    EXACT_MATCH_CONFIDENCE,
    EXECUTABLE_CONFIDENCE,
    EXECUTABLE_SEVERITY,
    FILENAME_KEYWORD_CONFIDENCE,
    FILENAME_KEYWORD_SEVERITY,
    FORBIDDEN_TYPE_CONFIDENCE,
    FORBIDDEN_TYPE_SEVERITY,
    LONG_FILENAME_CONFIDENCE,
    LONG_FILENAME_LIMIT,
    LONG_FILENAME_SEVERITY,
    OVERSIZED_CONFIDENCE,
    OVERSIZED_SEVERITY,
    SEVERITY_CUSTOM,
)
from .detectors import filename_keywords, get_file_extension, is_executable, text_digest
from .models import Attachment, DetectionResult, Event, Finding
from .patterns import PatternLibrary


class ContentDetector:
    """
    Content filter for message text and attachments.

    Args:
        clock: Time source for the result cache.
        library: Shared pattern library. A new one is built if omitted.
        cache_ttl: How long a text result is reused.
    """

    category = CATEGORY_CONTENT

    def __init__(
        self,
        clock: Clock,
        library: Optional[PatternLibrary] = None,
        cache_ttl: timedelta = CONTENT_CACHE_TTL,
    ) -> None:
        self._library = library or PatternLibrary()
        self._cache: TTLCache[Tuple[Any, ...], DetectionResult] = TTLCache(cache_ttl, clock)

    # =========================================================================
    # Entry Point
    # =========================================================================

    def evaluate(self, event: Event, config: GuildConfig) -> DetectionResult:
        """Score a message's text and attachments."""
        content_filter = config.content_filter
        if content_filter is None or not content_filter.enabled:
            return DetectionResult.disabled(self.category)

        if self.is_whitelisted(event, content_filter):
            return DetectionResult(category=self.category, reasons=("user whitelisted",))

        text = event.text or ""
        cache_key = None
        if not event.attachments:
            cache_key = (event.guild_id, event.author_id, text_digest(text), content_filter)
            cached = self._cache.get(cache_key)
            if cached is not None:
                return cached

        findings, language = self.analyze_text(text, content_filter)
        findings.extend(self.analyze_attachments(event.attachments, content_filter))

        result = DetectionResult.from_findings(
            self.category,
            findings,
            severity=max((f.severity for f in findings), default=0),
            signals={"detections": len(findings)},
            language=language,
        )

        if cache_key is not None:
            self._cache.set(cache_key, result)

        if result.triggered:
            logger.tree("CONTENT FILTERED", [
                ("Guild", str(event.guild_id)),
                ("User", f"{event.author_tag or event.author_id}"),
                ("Severity", str(int(result.severity))),
                ("Language", language or "-"),
                ("Detections", ", ".join(result.reasons)[:200]),
            ], emoji="🧹")

        return result

    def is_whitelisted(self, event: Event, config: ContentFilterConfig) -> bool:
        """Whitelist entries match the author's ID or tag."""
        if not config.whitelist:
            return False
        return str(event.author_id) in config.whitelist or (
            event.author_tag is not None and event.author_tag in config.whitelist
        )

    # =========================================================================
    # Text Analysis
    # =========================================================================

    def analyze_text(self, text: str, config: ContentFilterConfig) -> Tuple[List[Finding], Optional[str]]:
        """
        Match text against profanity lists and custom words.

        Returns:
            Tuple of (findings, language of the last match or None).
        """
        findings: List[Finding] = []
        language: Optional[str] = None

        normalized = text.lower().strip()
        if not normalized:
            return findings, language

        for lang in config.languages:
            for pattern in self._library.profanity(lang):
                match_type = "exact"
                matches = pattern.exact.findall(normalized)
                if not matches:
                    match_type = "evasion"
                    matches = pattern.evasion.findall(normalized)
                if not matches:
                    continue

                language = lang
                findings.append(Finding(
                    kind="profanity",
                    confidence=EXACT_MATCH_CONFIDENCE if match_type == "exact" else EVASION_MATCH_CONFIDENCE,
                    severity=pattern.severity,
                    detail=f"Profanity ({lang}, {match_type}): {pattern.word}",
                ))
                if config.strict_mode:
                    return findings, language

        for pattern in self._library.custom_words(config.custom_words, SEVERITY_CUSTOM):
            matches = pattern.exact.findall(normalized)
            if not matches:
                continue

            language = "custom"
            findings.append(Finding(
                kind="custom_word",
                confidence=CUSTOM_MATCH_CONFIDENCE * len(matches),
                severity=pattern.severity,
                detail=f"Filtered word: {pattern.word} ({len(matches)}x)",
            ))
            if config.strict_mode:
                break

        return findings, language

    # =========================================================================
    # Attachment Analysis
    # =========================================================================

    def analyze_attachments(
        self,
        attachments: Sequence[Attachment],
        config: ContentFilterConfig,
    ) -> List[Finding]:
        """Score each attachment's type, size, and filename."""
        findings: List[Finding] = []

        for attachment in attachments:
            extension = get_file_extension(attachment.filename)
            if extension not in config.allowed_file_types:
                findings.append(Finding(
                    kind="forbidden_file_type",
                    confidence=FORBIDDEN_TYPE_CONFIDENCE,
                    severity=FORBIDDEN_TYPE_SEVERITY,
                    detail=f"Forbidden file type: {attachment.filename} (.{extension or '?'})",
                ))

            if attachment.size > config.max_file_size:
                findings.append(Finding(
                    kind="file_too_large",
                    confidence=OVERSIZED_CONFIDENCE,
                    severity=OVERSIZED_SEVERITY,
                    detail=f"File too large: {attachment.filename} ({attachment.size} bytes)",
                ))

            suspicious = self.check_filename(attachment.filename)
            if suspicious is not None:
                findings.append(suspicious)

        return findings

    @staticmethod
    def check_filename(filename: str) -> Optional[Finding]:
        """
        Suspicious filename check.

        Executables are severity 3. Each keyword adds 25 confidence at
        severity 2, as does a name longer than 200 characters.
        """
        severity = 0
        confidence = 0
        reason = ""

        if is_executable(filename):
            severity = EXECUTABLE_SEVERITY
            confidence = EXECUTABLE_CONFIDENCE
            reason = "Executable file type"

        for keyword in filename_keywords(filename):
            severity = max(severity, FILENAME_KEYWORD_SEVERITY)
            confidence += FILENAME_KEYWORD_CONFIDENCE
            reason = f"Contains suspicious keyword: {keyword}"

        if len(filename) > LONG_FILENAME_LIMIT:
            severity = max(severity, LONG_FILENAME_SEVERITY)
            confidence += LONG_FILENAME_CONFIDENCE
            reason = "Extremely long filename"

        if not severity:
            return None
        return Finding(
            kind="suspicious_filename",
            confidence=confidence,
            severity=severity,
            detail=f"Suspicious filename: {filename[:60]} ({reason})",
        )

    # =========================================================================
    # Maintenance
    # =========================================================================

    def cleanup(self) -> int:
        """Drop expired cached results."""
        return self._cache.cleanup_expired()

    def get_stats(self) -> Dict[str, Any]:
        return {
            "languages": len(self._library.languages),
            "total_words": self._library.word_count(),
            "cache_size": len(self._cache),
        }


__all__ = ["ContentDetector"]
