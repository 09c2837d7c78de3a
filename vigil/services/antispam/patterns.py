"""
Anti-Spam Pattern Library
=========================

Word lists, regexes, and keyword sets shared by the detectors.

DESIGN:
    Built-in lists are compiled once per PatternLibrary. Per-guild lists
    (custom words, suspicious username patterns) are compiled on first
    use and memoized by their tuple, so a guild that keeps the same
    configuration never recompiles.

    A pattern that fails to compile is logged and skipped. The rest of
    the list still runs.

    Profanity words get two matchers:
    - exact: the escaped word between word boundaries
    - evasion: the same word with leetspeak classes substituted, only
      for characters that actually appear in the word
    Multi-word phrases only get a flexible-whitespace matcher.
"""

import re
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Pattern, Tuple

from vigil.core.logger import logger

from .constants import (
    SEVERITY_EXTREME,
    SEVERITY_MILD,
    SEVERITY_MODERATE,
    SEVERITY_STRONG,
)


# =============================================================================
# Profanity Lists
# =============================================================================

PROFANITY_LISTS: Dict[str, Tuple[str, ...]] = {
    "english": (
        # Mild
        "damn", "hell", "crap", "stupid", "idiot", "moron", "dumb",
        # Moderate
        "shit", "piss", "ass", "bitch", "bastard", "whore", "slut",
        # Strong
        "fuck", "fucking", "fucked", "fucker", "motherfucker",
        "cunt", "cock", "dick", "pussy", "tits", "boobs",
        # Hate speech
        "nigger", "nigga", "faggot", "retard", "spic", "chink",
        "kike", "wetback", "towelhead", "raghead",
    ),
    "spanish": (
        "mierda", "joder", "coño", "puta", "hijo de puta", "cabrón",
        "pendejo", "maricón", "gilipollas", "imbécil",
    ),
    "french": (
        "merde", "putain", "connard", "salope", "enculé", "fils de pute",
        "con", "bite", "chatte", "bordel",
    ),
    "german": (
        "scheiße", "fick", "arsch", "fotze", "hurensohn", "wichser",
        "schwanz", "muschi", "verdammt",
    ),
    "portuguese": (
        "merda", "caralho", "porra", "filho da puta", "puta", "cu",
        "buceta", "cacete", "desgraça",
    ),
}

EXTREME_WORDS: FrozenSet[str] = frozenset({
    "nigger", "nigga", "faggot", "retard", "spic", "chink",
    "kike", "wetback", "towelhead", "raghead",
})

STRONG_WORDS: FrozenSet[str] = frozenset({
    "fuck", "fucking", "fucked", "fucker", "motherfucker",
    "cunt", "cock", "dick", "pussy", "tits", "boobs",
})

MODERATE_WORDS: FrozenSet[str] = frozenset({
    "shit", "piss", "ass", "bitch", "bastard", "whore", "slut",
})

# Leetspeak classes substituted into evasion patterns
LEET_CLASSES: Mapping[str, str] = {
    "a": "[a@4]",
    "e": "[e3]",
    "i": "[i1!|]",
    "o": "[o0@]",
    "u": "[uv]",
    "s": "[s$5z]",
    "l": "[l1!|]",
}


# =============================================================================
# Spam Text Patterns
# =============================================================================

REPEATED_CHARS_PATTERN: Pattern = re.compile(r"(.)\1{4,}")
CAPS_RUN_PATTERN: Pattern = re.compile(r"[A-Z]{10,}")
EMOJI_PATTERN: Pattern = re.compile(
    "[\U0001F600-\U0001F64F\U0001F300-\U0001F5FF\U0001F680-\U0001F6FF\U0001F1E0-\U0001F1FF]"
)
ZALGO_PATTERN: Pattern = re.compile("[\u0300-\u036F\u1AB0-\u1AFF\u1DC0-\u1DFF\u20D0-\u20FF]")
INVISIBLE_PATTERN: Pattern = re.compile("[\u200B-\u200D\uFEFF]")


# =============================================================================
# Security Patterns
# =============================================================================

URL_PATTERN: Pattern = re.compile(r"https?://[^\s]+", re.IGNORECASE)
INVITE_PATTERN: Pattern = re.compile(r"discord\.gg/[a-zA-Z0-9]+", re.IGNORECASE)
NITRO_SCAM_PATTERN: Pattern = re.compile(r"\bnitro\b.*\bfree\b", re.IGNORECASE | re.DOTALL)
PHISHING_PATTERN: Pattern = re.compile(r"\bclick\b.*\blinks?\b", re.IGNORECASE | re.DOTALL)
DM_REQUEST_PATTERNS: Tuple[Pattern, ...] = (
    re.compile(r"\bdm\b.*\bme\b", re.IGNORECASE | re.DOTALL),
    re.compile(r"\bcheck\b.*\bdms?\b", re.IGNORECASE | re.DOTALL),
)
MASS_MENTION_PATTERN: Pattern = re.compile(r"@everyone|@here")
IP_ADDRESS_PATTERN: Pattern = re.compile(r"\b(?:\d{1,3}\.){3}\d{1,3}\b")

SUSPICIOUS_DOMAINS: Tuple[str, ...] = (
    "bit.ly", "tinyurl.com", "short.link", "t.co",
    "discord-nitro.com", "discordnitro.com", "discord-gift.com",
    "steamcommunity.ru", "steamcommunity.tk", "steamcommunity.ml",
)

SUSPICIOUS_URL_KEYWORDS: Tuple[str, ...] = (
    "free-nitro", "discord-nitro", "nitro-gift", "steam-gift",
    "free-robux", "robux-generator", "minecraft-free",
)

URL_SHORTENERS: Tuple[str, ...] = (
    "bit.ly", "tinyurl.com", "short.link", "t.co", "goo.gl",
    "ow.ly", "is.gd", "buff.ly", "adf.ly", "bl.ink",
)

DEFAULT_USERNAME_PATTERNS: Tuple[str, ...] = (
    r"^[a-z]+\d{4,}$",     # letters followed by 4+ numbers
    r"^user\d+$",
    r"^[a-z]{1,3}\d{8,}$",  # 1-3 letters + 8+ numbers
    r"discord\.gg",
    r"nitro",
    r"free",
)


# =============================================================================
# Join Username Patterns
# =============================================================================

RANDOM_USERNAME_PATTERN: Pattern = re.compile(r"^[a-z]+\d{4,}$")
BOT_USERNAME_PATTERNS: Tuple[Pattern, ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (r"user\d+", r"member\d+", r"guest\d+", r"temp\d+", r"test\d+")
)


# =============================================================================
# Attachment Patterns
# =============================================================================

EXECUTABLE_EXTENSIONS: FrozenSet[str] = frozenset({
    "exe", "bat", "cmd", "scr", "com", "pif", "vbs", "js",
})

SUSPICIOUS_FILENAME_KEYWORDS: Tuple[str, ...] = (
    "virus", "malware", "trojan", "keylogger", "hack", "crack",
    "keygen", "patch", "loader", "cheat", "bot", "rat",
)


# =============================================================================
# Word Patterns
# =============================================================================

@dataclass(frozen=True)
class WordPattern:
    """Compiled matchers for one filtered word or phrase."""
    word: str
    exact: Pattern
    evasion: Pattern
    severity: int


def word_severity(word: str) -> int:
    """Severity tier for a word, by membership. Unlisted words are mild."""
    lower = word.lower()
    if lower in EXTREME_WORDS:
        return SEVERITY_EXTREME
    if lower in STRONG_WORDS:
        return SEVERITY_STRONG
    if lower in MODERATE_WORDS:
        return SEVERITY_MODERATE
    return SEVERITY_MILD


def _bounded(body: str) -> Pattern:
    # \b fails next to non-word leet characters like "@" and "$"
    return re.compile(rf"(?<!\w){body}(?!\w)", re.IGNORECASE)


def evasion_body(word: str) -> str:
    """Regex body with leetspeak classes for the characters the word has."""
    parts = []
    for char in word.lower():
        parts.append(LEET_CLASSES.get(char, re.escape(char)))
    return "".join(parts)


def compile_word(word: str, severity: Optional[int] = None, evasion: bool = True) -> WordPattern:
    """
    Compile exact and evasion matchers for a word or phrase.

    Args:
        word: The word or multi-word phrase (already stripped).
        severity: Tier override. Defaults to word_severity().
        evasion: Whether to build a leetspeak matcher. Phrases never get one.

    Returns:
        WordPattern with both matchers (identical when evasion is off).
    """
    if severity is None:
        severity = word_severity(word)

    if " " in word:
        phrase = r"\s*".join(re.escape(part) for part in word.split())
        pattern = _bounded(phrase)
        return WordPattern(word=word, exact=pattern, evasion=pattern, severity=severity)

    exact = _bounded(re.escape(word))
    if not evasion:
        return WordPattern(word=word, exact=exact, evasion=exact, severity=severity)
    return WordPattern(word=word, exact=exact, evasion=_bounded(evasion_body(word)), severity=severity)


# =============================================================================
# Pattern Library
# =============================================================================

class PatternLibrary:
    """
    Compiled pattern sets for all detectors.

    Args:
        profanity: Word lists by language. Defaults to PROFANITY_LISTS.
    """

    def __init__(self, profanity: Optional[Mapping[str, Iterable[str]]] = None) -> None:
        source = profanity if profanity is not None else PROFANITY_LISTS
        self._profanity: Dict[str, List[WordPattern]] = {
            language: self._compile_list(words, language)
            for language, words in source.items()
        }
        self._custom_cache: Dict[Tuple[str, ...], List[WordPattern]] = {}
        self._username_cache: Dict[Tuple[str, ...], List[Pattern]] = {}

        logger.tree("Pattern Library Loaded", [
            ("Languages", str(len(self._profanity))),
            ("Words", str(sum(len(p) for p in self._profanity.values()))),
        ], emoji="📚")

    @staticmethod
    def _compile_list(
        words: Iterable[str],
        language: str,
        evasion: bool = True,
        severity: Optional[int] = None,
    ) -> List[WordPattern]:
        compiled = []
        for word in words:
            if not isinstance(word, str) or not word.strip():
                continue
            try:
                compiled.append(compile_word(word.strip(), severity=severity, evasion=evasion))
            except re.error as e:
                logger.warning("Word Pattern Skipped", [
                    ("Language", language),
                    ("Word", word[:50]),
                    ("Error", str(e)[:100]),
                ])
        return compiled

    @property
    def languages(self) -> Tuple[str, ...]:
        return tuple(self._profanity.keys())

    def profanity(self, language: str) -> List[WordPattern]:
        """Compiled profanity patterns for a language (empty if unknown)."""
        return self._profanity.get(language, [])

    def custom_words(self, words: Tuple[str, ...], severity: int) -> List[WordPattern]:
        """Exact-only patterns for a guild's custom word list."""
        cached = self._custom_cache.get(words)
        if cached is None:
            cached = self._compile_list(words, "custom", evasion=False, severity=severity)
            self._custom_cache[words] = cached
        return cached

    def username_patterns(self, patterns: Optional[Tuple[str, ...]] = None) -> List[Pattern]:
        """
        Compiled suspicious-username regexes.

        Args:
            patterns: Guild override. None uses DEFAULT_USERNAME_PATTERNS.

        Returns:
            Patterns that compiled. Invalid ones are logged and skipped.
        """
        key = patterns if patterns is not None else DEFAULT_USERNAME_PATTERNS
        cached = self._username_cache.get(key)
        if cached is not None:
            return cached

        compiled = []
        for raw in key:
            try:
                compiled.append(re.compile(raw, re.IGNORECASE))
            except re.error as e:
                logger.warning("Username Pattern Skipped", [
                    ("Pattern", raw[:50]),
                    ("Error", str(e)[:100]),
                ])
        self._username_cache[key] = compiled
        return compiled

    def word_count(self) -> int:
        return sum(len(p) for p in self._profanity.values())


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    # Lists
    "PROFANITY_LISTS",
    "LEET_CLASSES",
    "SUSPICIOUS_DOMAINS",
    "SUSPICIOUS_URL_KEYWORDS",
    "URL_SHORTENERS",
    "DEFAULT_USERNAME_PATTERNS",
    "EXECUTABLE_EXTENSIONS",
    "SUSPICIOUS_FILENAME_KEYWORDS",
    # Regexes
    "REPEATED_CHARS_PATTERN",
    "CAPS_RUN_PATTERN",
    "EMOJI_PATTERN",
    "ZALGO_PATTERN",
    "INVISIBLE_PATTERN",
    "URL_PATTERN",
    "INVITE_PATTERN",
    "NITRO_SCAM_PATTERN",
    "PHISHING_PATTERN",
    "DM_REQUEST_PATTERNS",
    "MASS_MENTION_PATTERN",
    "IP_ADDRESS_PATTERN",
    "RANDOM_USERNAME_PATTERN",
    "BOT_USERNAME_PATTERNS",
    # Word patterns
    "WordPattern",
    "word_severity",
    "evasion_body",
    "compile_word",
    "PatternLibrary",
]
