"""
Vigil - Content Filter Tests
============================

Tests for profanity, custom words, attachments and the result cache.
"""

from datetime import timedelta

import pytest

from vigil.services.antispam.content import ContentDetector
from vigil.services.antispam.models import Attachment

from .conftest import START


@pytest.fixture
def detector(clock, library):
    return ContentDetector(clock, library)


def kinds(result):
    return [f.kind for f in result.findings]


# =============================================================================
# Profanity Tests
# =============================================================================

class TestProfanity:
    """Tests for built-in word lists."""

    def test_exact_match(self, detector, guild_config, make_message):
        result = detector.evaluate(make_message("well SHIT happens"), guild_config)
        assert result.triggered
        assert result.language == "english"
        assert result.severity == 2
        assert result.score == 25

    def test_leetspeak_caught_by_builtin(self, detector, guild_config, make_message):
        """Built-in words get evasion patterns: sh1t matches shit."""
        result = detector.evaluate(make_message("oh sh1t"), guild_config)
        assert result.triggered
        assert result.score == 20
        assert "evasion" in result.reasons[0]

    def test_evasion_classes_are_per_letter(self, detector, guild_config, make_message):
        """A different vowel is a different word: shot is not shit."""
        assert not detector.evaluate(make_message("nice shot"), guild_config).triggered

    def test_word_boundaries(self, detector, guild_config, make_message):
        """Words inside other words are not matched."""
        result = detector.evaluate(make_message("a classic assessment of hello"), guild_config)
        assert not result.triggered

    def test_severity_is_highest_tier(self, detector, guild_config, make_message):
        """Severity is the max tier, confidence is the sum."""
        result = detector.evaluate(make_message("damn this fucking thing"), guild_config)
        assert result.severity == 3
        assert result.score == 50

    def test_language_toggle(self, detector, config_data, make_config, make_message):
        config_data["contentFilter"]["languages"] = {"english": False}
        result = detector.evaluate(make_message("well shit"), make_config())
        assert not result.triggered

    def test_strict_mode_stops_at_first(self, detector, config_data, make_config, make_message):
        config_data["contentFilter"]["strictMode"] = True
        result = detector.evaluate(make_message("damn this fucking thing darn"), make_config())
        assert len(result.findings) == 1


# =============================================================================
# Custom Word Tests
# =============================================================================

class TestCustomWords:
    """Tests for the guild custom word list."""

    def test_case_insensitive(self, detector, guild_config, make_message):
        result = detector.evaluate(make_message("DARN it"), guild_config)
        assert kinds(result) == ["custom_word"]
        assert result.language == "custom"
        assert result.severity == 2

    def test_custom_words_are_exact_only(self, detector, guild_config, make_message):
        """A custom word does not match its leetspeak variant."""
        result = detector.evaluate(make_message("d4rn it"), guild_config)
        assert not result.triggered

    def test_confidence_per_occurrence(self, detector, guild_config, make_message):
        result = detector.evaluate(make_message("darn darn darn"), guild_config)
        assert result.score == 75

    def test_custom_phrase(self, detector, config_data, make_config, make_message):
        config_data["contentFilter"]["customWords"] = ["buy now"]
        result = detector.evaluate(make_message("please buy   now"), make_config())
        assert result.triggered

    def test_bad_word_entry_skipped(self, detector, config_data, make_config, make_message):
        """Blank entries are ignored and the rest still match."""
        config_data["contentFilter"]["customWords"] = ["", "   ", "darn"]
        result = detector.evaluate(make_message("darn"), make_config())
        assert result.triggered


# =============================================================================
# Attachment Tests
# =============================================================================

class TestAttachments:
    """Tests for attachment type, size and filename checks."""

    def test_allowed_file(self, detector, guild_config, make_message):
        result = detector.evaluate(make_message("", attachments=[("cat.png", 1000)]), guild_config)
        assert not result.triggered

    def test_forbidden_type(self, detector, guild_config, make_message):
        result = detector.evaluate(make_message("", attachments=[("doc.pdf", 1000)]), guild_config)
        assert kinds(result) == ["forbidden_file_type"]
        assert result.severity == 2

    def test_too_large(self, detector, guild_config, make_message):
        result = detector.evaluate(
            make_message("", attachments=[("big.png", 9 * 1024 * 1024)]), guild_config,
        )
        assert kinds(result) == ["file_too_large"]
        assert result.severity == 1

    def test_executable(self, detector, guild_config, make_message):
        result = detector.evaluate(make_message("", attachments=[("setup.exe", 10)]), guild_config)
        assert "suspicious_filename" in kinds(result)
        assert result.severity == 3

    def test_keywords_accumulate(self):
        finding = ContentDetector.check_filename("keygen_crack.txt")
        assert finding is not None
        assert finding.confidence == 50
        assert finding.severity == 2

    def test_long_filename(self):
        finding = ContentDetector.check_filename("a" * 201 + ".png")
        assert finding is not None
        assert finding.severity == 2

    def test_clean_filename(self):
        assert ContentDetector.check_filename("holiday.png") is None

    def test_attachments_scored_in_strict_mode(self, detector, config_data, make_config, make_message):
        config_data["contentFilter"]["strictMode"] = True
        result = detector.evaluate(
            make_message("damn", attachments=[Attachment("x.pdf", 10)]), make_config(),
        )
        assert set(kinds(result)) == {"profanity", "forbidden_file_type"}


# =============================================================================
# Whitelist, Disabled & Cache Tests
# =============================================================================

class TestState:
    """Tests for whitelist, disabled config and caching."""

    def test_whitelisted_user(self, detector, config_data, make_config, make_message):
        config_data["contentFilter"]["whitelist"] = ["1001"]
        result = detector.evaluate(make_message("shit", author_id=1001), make_config())
        assert not result.triggered
        assert result.reasons == ("user whitelisted",)

    def test_whitelisted_tag(self, detector, config_data, make_config, make_message):
        config_data["contentFilter"]["whitelist"] = ["mod#0001"]
        result = detector.evaluate(make_message("shit", author_tag="mod#0001"), make_config())
        assert not result.triggered

    def test_disabled(self, detector, config_data, make_config, make_message):
        config_data["contentFilter"]["enabled"] = False
        result = detector.evaluate(make_message("shit"), make_config())
        assert result.is_disabled

    def test_cache_hit(self, detector, guild_config, make_message):
        first = detector.evaluate(make_message("well shit"), guild_config)
        second = detector.evaluate(make_message("well shit"), guild_config)
        assert first is second
        assert detector.get_stats()["cache_size"] == 1

    def test_cache_respects_config(self, detector, config_data, make_config, make_message):
        """A changed filter configuration is never answered from the cache."""
        first = detector.evaluate(make_message("darn"), make_config())
        config_data["contentFilter"]["customWords"] = []
        second = detector.evaluate(make_message("darn"), make_config())
        assert first.triggered
        assert not second.triggered

    def test_cache_expires(self, detector, guild_config, make_message, clock):
        detector.evaluate(make_message("well shit"), guild_config)
        clock.advance(timedelta(minutes=5))
        assert detector.cleanup() == 1
        assert detector.get_stats()["cache_size"] == 0

    def test_attachments_not_cached(self, detector, guild_config, make_message):
        detector.evaluate(make_message("hi", attachments=[("a.pdf", 1)], at=START), guild_config)
        assert detector.get_stats()["cache_size"] == 0
