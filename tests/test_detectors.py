"""
Vigil - Detection Helper Tests
==============================

Tests for string similarity and the pure text, URL, username and
filename helpers.
"""

import pytest

from vigil.services.antispam.detectors import (
    caps_ratio,
    count_emojis,
    count_invisible,
    count_zalgo,
    domain_matches,
    extract_domain,
    extract_urls,
    filename_keywords,
    find_similar,
    get_file_extension,
    has_repeated_chars,
    is_caps_spam,
    is_executable,
    is_suspicious_url,
    is_url_shortener,
    is_whitelisted_url,
    similarity,
    text_digest,
    username_signals,
)


ZWSP = chr(0x200B)
COMBINING_ACUTE = chr(0x0301)
GRIN = chr(0x1F600)


# =============================================================================
# Similarity Tests
# =============================================================================

class TestSimilarity:
    """Tests for the edit-distance similarity ratio."""

    @pytest.mark.parametrize("value", ["a", "hello", "hello world", "ñandú"])
    def test_identical_strings(self, value):
        """A string is fully similar to itself."""
        assert similarity(value, value) == 1.0

    def test_two_empty_strings(self):
        assert similarity("", "") == 1.0

    @pytest.mark.parametrize("value", ["x", "hello"])
    def test_against_empty(self, value):
        """Any non-empty string is 0.0 against the empty string."""
        assert similarity(value, "") == 0.0
        assert similarity("", value) == 0.0

    @pytest.mark.parametrize("a,b", [
        ("kitten", "sitting"),
        ("hello", "help"),
        ("abc", "xyz123"),
    ])
    def test_symmetric(self, a, b):
        assert similarity(a, b) == similarity(b, a)

    def test_known_ratio(self):
        """kitten -> sitting is 3 edits over 7 characters."""
        assert similarity("kitten", "sitting") == pytest.approx(4 / 7)

    def test_find_similar_threshold(self):
        """Only candidates at or above the threshold are returned."""
        matches = find_similar("raider01", ["raider02", "alice", "raider01x"], 0.8)
        names = [name for name, _ in matches]
        assert "raider02" in names
        assert "raider01x" in names
        assert "alice" not in names


# =============================================================================
# Text Pattern Tests
# =============================================================================

class TestTextPatterns:
    """Tests for character-level spam helpers."""

    def test_repeated_chars(self):
        assert has_repeated_chars("nooooooo")
        assert not has_repeated_chars("nooo")

    def test_caps_ratio_ignores_short_messages(self):
        """Messages of 20 characters or fewer never count as caps spam."""
        assert caps_ratio("AAAAAAAAAAAAAAAAAAAA") == 0.0
        assert not is_caps_spam("AAAAAAAAAAAAAAAAAAAA")

    def test_caps_spam(self):
        assert is_caps_spam("THISISALLCAPSSHOUTING!!")
        assert not is_caps_spam("this is a perfectly calm sentence")

    def test_count_emojis(self):
        assert count_emojis(GRIN * 12) == 12
        assert count_emojis("no emoji here") == 0

    def test_count_zalgo(self):
        assert count_zalgo("a" + COMBINING_ACUTE * 25) == 25

    def test_count_invisible(self):
        assert count_invisible("hi" + ZWSP * 6) == 6

    def test_text_digest_stable(self):
        assert text_digest("hello") == text_digest("hello")
        assert text_digest("hello") != text_digest("hello!")
        assert len(text_digest("hello")) == 16


# =============================================================================
# URL Tests
# =============================================================================

class TestUrls:
    """Tests for URL extraction and domain matching."""

    def test_extract_urls(self):
        text = "see https://example.com/a and http://www.test.org?q=1 ok"
        assert extract_urls(text) == ["https://example.com/a", "http://www.test.org?q=1"]

    @pytest.mark.parametrize("url,domain", [
        ("https://www.Example.com/path", "example.com"),
        ("http://user:pw@host.io:8080/x", "host.io"),
        ("https://sub.domain.net#frag", "sub.domain.net"),
    ])
    def test_extract_domain(self, url, domain):
        assert extract_domain(url) == domain

    def test_domain_matches_subdomains(self):
        assert domain_matches("cdn.discord.com", "discord.com")
        assert domain_matches("discord.com", "www.discord.com")
        assert not domain_matches("notdiscord.com", "discord.com")

    def test_whitelist(self):
        assert is_whitelisted_url("https://media.discord.com/x", ["discord.com"])
        assert not is_whitelisted_url("https://evil.com", ["discord.com"])
        assert not is_whitelisted_url("https://evil.com", [])

    def test_shortener_is_domain_match(self):
        """t.co must not match reddit.co or similar hosts."""
        assert is_url_shortener("https://t.co/abc")
        assert is_url_shortener("https://bit.ly/xyz")
        assert not is_url_shortener("https://reddit.com/r/python")

    def test_suspicious_url(self):
        assert is_suspicious_url("https://discord-gift.com/claim")
        assert is_suspicious_url("https://example.com/free-nitro")
        assert is_suspicious_url("http://192.168.1.20/login")
        assert is_suspicious_url("https://scam.example/x", ["scam.example"])
        assert not is_suspicious_url("https://python.org/downloads")


# =============================================================================
# Username & Filename Tests
# =============================================================================

class TestUsernameSignals:
    """Tests for join username analysis."""

    def test_random_pattern(self):
        signals, suspicious = username_signals("alex12345")
        assert "random" in signals
        assert suspicious

    def test_numeric(self):
        signals, suspicious = username_signals("a1234567")
        assert "numeric" in signals
        assert suspicious

    def test_short_and_long(self):
        assert "short" in username_signals("abc")[0]
        assert "long" in username_signals("averyveryverylongusername")[0]

    def test_bot_pattern(self):
        signals, suspicious = username_signals("Guest42x")
        assert "bot_pattern" in signals
        assert suspicious

    def test_normal_name(self):
        assert username_signals("margaret") == ([], False)


class TestFilenames:
    """Tests for attachment filename helpers."""

    def test_extension(self):
        assert get_file_extension("Photo.PNG") == "png"
        assert get_file_extension("README") == ""

    def test_executable(self):
        assert is_executable("setup.exe")
        assert not is_executable("notes.txt")

    def test_keywords(self):
        assert filename_keywords("free_keygen_crack.zip") == ["crack", "keygen"]
