"""
Anti-Spam Detection Helpers
===========================

Pure functions for text, URL, username, and filename analysis.

Nothing here holds state. The stateful detectors in spam.py, content.py,
security.py, and raid.py compose these helpers over their windows.
"""

import hashlib
from typing import Iterable, List, Optional, Sequence, Tuple

from rapidfuzz.distance import Levenshtein

from .constants import (
    CAPS_MIN_MESSAGE_LENGTH,
    CAPS_RATIO_LIMIT,
    NUMERIC_USERNAME_RATIO,
    USERNAME_MAX_LENGTH,
    USERNAME_MIN_LENGTH,
)
from .patterns import (
    BOT_USERNAME_PATTERNS,
    CAPS_RUN_PATTERN,
    EMOJI_PATTERN,
    EXECUTABLE_EXTENSIONS,
    INVISIBLE_PATTERN,
    IP_ADDRESS_PATTERN,
    RANDOM_USERNAME_PATTERN,
    REPEATED_CHARS_PATTERN,
    SUSPICIOUS_DOMAINS,
    SUSPICIOUS_FILENAME_KEYWORDS,
    SUSPICIOUS_URL_KEYWORDS,
    URL_PATTERN,
    URL_SHORTENERS,
    ZALGO_PATTERN,
)


# =============================================================================
# Similarity Metric
# =============================================================================

def similarity(a: str, b: str) -> float:
    """
    Edit-distance similarity ratio between two strings.

    (maxLen - levenshtein(a, b)) / maxLen, and 1.0 for two empty strings.
    Symmetric, 1.0 for identical strings, 0.0 against an empty string.
    """
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return (longest - Levenshtein.distance(a, b)) / longest


def find_similar(
    value: str,
    candidates: Iterable[str],
    threshold: float,
) -> List[Tuple[str, float]]:
    """Candidates whose similarity to value is at least threshold."""
    matches = []
    for candidate in candidates:
        ratio = similarity(value, candidate)
        if ratio >= threshold:
            matches.append((candidate, ratio))
    return matches


# =============================================================================
# Text Pattern Counts
# =============================================================================

def has_repeated_chars(content: str) -> bool:
    """Check for a run of 5+ identical characters."""
    return bool(REPEATED_CHARS_PATTERN.search(content))


def caps_ratio(content: str) -> float:
    """
    Share of the message covered by 10+ letter uppercase runs.

    Returns 0 for messages of CAPS_MIN_MESSAGE_LENGTH characters or fewer.
    """
    if len(content) <= CAPS_MIN_MESSAGE_LENGTH:
        return 0.0
    runs = CAPS_RUN_PATTERN.findall(content)
    if not runs:
        return 0.0
    return sum(len(run) for run in runs) / len(content)


def is_caps_spam(content: str) -> bool:
    return caps_ratio(content) > CAPS_RATIO_LIMIT


def count_emojis(content: str) -> int:
    """Count emoji code points in the common pictograph blocks."""
    return len(EMOJI_PATTERN.findall(content))


def count_zalgo(content: str) -> int:
    """Count combining marks used for zalgo text."""
    return len(ZALGO_PATTERN.findall(content))


def count_invisible(content: str) -> int:
    """Count zero-width and BOM characters."""
    return len(INVISIBLE_PATTERN.findall(content))


def text_digest(content: str) -> str:
    """Short stable hash of message text for cache keys."""
    return hashlib.md5(content.encode("utf-8")).hexdigest()[:16]


# =============================================================================
# URL Analysis
# =============================================================================

def extract_urls(content: str) -> List[str]:
    """Extract http(s) URLs from message content."""
    return URL_PATTERN.findall(content)


def extract_domain(url: str) -> str:
    """Extract domain from URL."""
    url = url.lower()
    if url.startswith("https://"):
        url = url[8:]
    elif url.startswith("http://"):
        url = url[7:]
    if url.startswith("www."):
        url = url[4:]
    domain = url.split("/")[0].split("?")[0].split("#")[0]
    # Drop credentials and port
    domain = domain.rsplit("@", 1)[-1].split(":")[0]
    return domain


def domain_matches(domain: str, allowed: str) -> bool:
    """Exact domain or a subdomain of it."""
    allowed = allowed.lower().strip()
    if allowed.startswith("www."):
        allowed = allowed[4:]
    return domain == allowed or domain.endswith("." + allowed)


def is_whitelisted_url(url: str, whitelist: Sequence[str]) -> bool:
    """Check a URL against a domain whitelist (subdomains included)."""
    domain = extract_domain(url)
    return any(domain_matches(domain, allowed) for allowed in whitelist if allowed)


def is_url_shortener(url: str) -> bool:
    domain = extract_domain(url)
    return any(domain_matches(domain, shortener) for shortener in URL_SHORTENERS)


def is_suspicious_url(url: str, extra_domains: Sequence[str] = ()) -> bool:
    """
    Check if a URL is on the suspicious list.

    Suspicious means a known scam or shortener domain, a scam keyword
    anywhere in the URL, a bare IP address host, or a domain the guild
    added to its own list.
    """
    lower = url.lower()
    domain = extract_domain(lower)

    for suspicious in tuple(SUSPICIOUS_DOMAINS) + tuple(extra_domains):
        if domain_matches(domain, suspicious):
            return True

    for keyword in SUSPICIOUS_URL_KEYWORDS:
        if keyword in lower:
            return True

    return bool(IP_ADDRESS_PATTERN.search(url))


# =============================================================================
# Username Analysis
# =============================================================================

def username_signals(username: str) -> Tuple[List[str], bool]:
    """
    Classify a username for join analysis.

    Returns:
        Tuple of (signal names, suspicious). Signal names are any of
        "random", "numeric", "short", "long", "bot_pattern".
    """
    signals: List[str] = []
    suspicious = False

    if RANDOM_USERNAME_PATTERN.match(username):
        signals.append("random")
        suspicious = True

    digits = sum(1 for c in username if c.isdigit())
    if digits > len(username) * NUMERIC_USERNAME_RATIO:
        signals.append("numeric")
        suspicious = True

    if len(username) <= USERNAME_MIN_LENGTH:
        signals.append("short")
    elif len(username) >= USERNAME_MAX_LENGTH:
        signals.append("long")

    for pattern in BOT_USERNAME_PATTERNS:
        if pattern.search(username):
            signals.append("bot_pattern")
            suspicious = True
            break

    return signals, suspicious


# =============================================================================
# Attachment Analysis
# =============================================================================

def get_file_extension(filename: str) -> str:
    """Lowercased text after the last dot, or "" if there is none."""
    if "." not in filename:
        return ""
    return filename.rsplit(".", 1)[1].lower()


def is_executable(filename: str) -> bool:
    return get_file_extension(filename) in EXECUTABLE_EXTENSIONS


def filename_keywords(filename: str) -> List[str]:
    """Suspicious keywords contained in a filename."""
    lower = filename.lower()
    return [keyword for keyword in SUSPICIOUS_FILENAME_KEYWORDS if keyword in lower]


def first_match(patterns: Iterable, value: str) -> Optional[str]:
    """Source of the first compiled pattern that matches value."""
    for pattern in patterns:
        if pattern.search(value):
            return pattern.pattern
    return None


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    # Similarity
    "similarity",
    "find_similar",
    # Text
    "has_repeated_chars",
    "caps_ratio",
    "is_caps_spam",
    "count_emojis",
    "count_zalgo",
    "count_invisible",
    "text_digest",
    # URLs
    "extract_urls",
    "extract_domain",
    "domain_matches",
    "is_whitelisted_url",
    "is_url_shortener",
    "is_suspicious_url",
    # Usernames
    "username_signals",
    # Attachments
    "get_file_extension",
    "is_executable",
    "filename_keywords",
    "first_match",
]
