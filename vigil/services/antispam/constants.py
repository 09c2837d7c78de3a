"""
Anti-Spam Constants
===================

All thresholds, windows, and point values used by the detectors.
"""

from datetime import timedelta
from typing import Dict, Tuple


# =============================================================================
# Detector Categories
# =============================================================================

CATEGORY_SPAM = "spam"
CATEGORY_CONTENT = "content"
CATEGORY_SECURITY = "security"
CATEGORY_ACCOUNT = "account"
CATEGORY_LINKS = "links"
CATEGORY_MENTIONS = "mentions"
CATEGORY_RAID = "raid"

DISABLED_REASON = "detector disabled"


# =============================================================================
# Spam Detection
# =============================================================================

SPAM_WINDOW_RETENTION = timedelta(minutes=5)
FREQUENCY_WINDOW = timedelta(seconds=60)
BURST_WINDOW = timedelta(seconds=10)
BURST_LIMIT = 5  # 5+ messages in 10 seconds = burst

DUPLICATE_CONFIDENCE_PER_MESSAGE = 20
DUPLICATE_CONFIDENCE_CAP = 80
DUPLICATE_SEVERITY_PER_MESSAGE = 15
DUPLICATE_SEVERITY_CAP = 60

FLOOD_CONFIDENCE_PER_MESSAGE = 10
FLOOD_CONFIDENCE_CAP = 70
FLOOD_SEVERITY_PER_MESSAGE = 8
FLOOD_SEVERITY_CAP = 50

BURST_CONFIDENCE_PER_MESSAGE = 8
BURST_CONFIDENCE_CAP = 40
BURST_SEVERITY_PER_MESSAGE = 6
BURST_SEVERITY_CAP = 30

CAPS_MIN_MESSAGE_LENGTH = 20  # only messages longer than this
CAPS_RATIO_LIMIT = 0.7
EMOJI_LIMIT = 10
ZALGO_LIMIT = 20
INVISIBLE_LIMIT = 5

# (confidence, severity) per content pattern
PATTERN_POINTS: Dict[str, Tuple[int, int]] = {
    "repeated_chars": (25, 20),
    "caps": (20, 15),
    "emoji": (30, 25),
    "zalgo": (35, 35),
    "invisible": (35, 30),
}

SIMILARITY_HISTORY = 5  # compare against the last 5 messages
SIMILARITY_HIGH = 0.85
SIMILARITY_MEDIUM = 0.8
SIMILARITY_MEDIUM_COUNT = 2
SIMILARITY_CONFIDENCE_FACTOR = 60
SIMILARITY_CONFIDENCE_CAP = 50
SIMILARITY_SEVERITY_FACTOR = 40
SIMILARITY_SEVERITY_CAP = 35

CONFIDENCE_CAP = 100


# =============================================================================
# Content Filter
# =============================================================================

SEVERITY_MILD = 1
SEVERITY_MODERATE = 2
SEVERITY_STRONG = 3
SEVERITY_EXTREME = 4
SEVERITY_CUSTOM = 2

EXACT_MATCH_CONFIDENCE = 25
EVASION_MATCH_CONFIDENCE = 20
CUSTOM_MATCH_CONFIDENCE = 25  # per occurrence

CONTENT_CACHE_TTL = timedelta(minutes=5)

FORBIDDEN_TYPE_SEVERITY = 2
FORBIDDEN_TYPE_CONFIDENCE = 30
OVERSIZED_SEVERITY = 1
OVERSIZED_CONFIDENCE = 20
EXECUTABLE_SEVERITY = 3
EXECUTABLE_CONFIDENCE = 40
FILENAME_KEYWORD_SEVERITY = 2
FILENAME_KEYWORD_CONFIDENCE = 25  # per keyword
LONG_FILENAME_LIMIT = 200
LONG_FILENAME_SEVERITY = 2
LONG_FILENAME_CONFIDENCE = 20


# =============================================================================
# Security Threats
# =============================================================================

THREAT_INVITE_POINTS = 30
THREAT_NITRO_POINTS = 50
THREAT_PHISHING_POINTS = 40
THREAT_DM_POINTS = 25
THREAT_MASS_MENTION_POINTS = 35
THREAT_URL_POINTS = 45  # per suspicious URL

THREAT_MEDIUM = 30
THREAT_HIGH = 60
THREAT_CRITICAL = 80


# =============================================================================
# Account Risk
# =============================================================================

ACCOUNT_AGE_BRACKETS: Tuple[Tuple[timedelta, int, str], ...] = (
    (timedelta(hours=1), 40, "Very new account (< 1 hour)"),
    (timedelta(hours=24), 25, "New account (< 24 hours)"),
    (timedelta(days=7), 10, "Recent account (< 1 week)"),
)
SUSPICIOUS_USERNAME_POINTS = 15
DEFAULT_AVATAR_POINTS = 10
ID_TIMESTAMP_MISMATCH_POINTS = 20
ID_TIMESTAMP_TOLERANCE = timedelta(seconds=60)
SNOWFLAKE_MIN_ID = 1 << 22  # smaller ids carry no timestamp

RISK_MEDIUM = 25
RISK_HIGH = 50
RISK_CRITICAL = 70


# =============================================================================
# Link & Mention Policy
# =============================================================================

UNAUTHORIZED_LINK_SEVERITY = 20
SHORTENER_LINK_SEVERITY = 60
MENTION_SPAM_SEVERITY = 20
MENTION_SPAM_SEVERE = 60


# =============================================================================
# Raid Detection
# =============================================================================

RAID_WINDOW_RETENTION = timedelta(minutes=10)
RAID_BASE_CONFIDENCE = 30
RAID_SUSPICIOUS_RATIO = 0.6
RAID_SUSPICIOUS_RISK = 30  # join counts as risky above this
RAID_SUSPICIOUS_CONFIDENCE = 40
RAID_AVERAGE_RISK_LIMIT = 40
RAID_AVERAGE_RISK_CONFIDENCE = 30
RAID_NEW_ACCOUNT_RATIO = 0.7
RAID_NEW_ACCOUNT_AGE = timedelta(hours=24)
RAID_NEW_ACCOUNT_CONFIDENCE = 35
RAID_DECLARE_CONFIDENCE = 60
RAID_ALERT_COOLDOWN = timedelta(minutes=5)
RAID_ACTIVE_RESET = timedelta(hours=1)
RAID_EVENT_RETENTION = timedelta(hours=24)
RAID_KICK_LOOKBACK = timedelta(seconds=60)

RAPID_JOIN_WINDOW = timedelta(seconds=30)
RAPID_JOIN_COUNT = 3
RAPID_JOIN_POINTS = 25
SIMILAR_USERNAME_THRESHOLD = 0.8
SIMILAR_USERNAME_POINTS = 15
ACCOUNT_AGE_GATE_POINTS = 30
DEFAULT_MINIMUM_ACCOUNT_AGE = timedelta(days=7)

RANDOM_USERNAME_POINTS = 20
NUMERIC_USERNAME_POINTS = 15
NUMERIC_USERNAME_RATIO = 0.5
USERNAME_LENGTH_POINTS = 10
USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 20
BOT_USERNAME_POINTS = 25

RECOMMEND_VERIFICATION = "Enable verification requirements"
RECOMMEND_RESTRICT = "Temporarily restrict new member permissions"
RECOMMEND_ACCOUNT_AGE = "Implement account age requirements"
RECOMMEND_LOCKDOWN = "Consider enabling server lockdown"


# =============================================================================
# Escalation
# =============================================================================

VIOLATION_TTL = timedelta(hours=1)


# =============================================================================
# Display Names
# =============================================================================

FINDING_DISPLAY_NAMES: Dict[str, str] = {
    "duplicate": "Duplicate Messages",
    "message_flood": "Message Flooding",
    "burst": "Burst Messaging",
    "repeated_chars": "Character Spam",
    "caps": "Caps Spam",
    "emoji": "Emoji Spam",
    "zalgo": "Zalgo/Unicode Abuse",
    "invisible": "Invisible Characters",
    "similar": "Similar Messages",
    "profanity": "Profanity",
    "custom_word": "Filtered Word",
    "forbidden_file_type": "Forbidden File Type",
    "file_too_large": "File Too Large",
    "suspicious_filename": "Suspicious Filename",
    "invite": "Discord Invite",
    "nitro_scam": "Nitro Scam",
    "phishing": "Phishing",
    "dm_request": "DM Request",
    "mass_mention": "Mass Mention",
    "suspicious_url": "Suspicious URL",
    "unauthorized_link": "Unauthorized Link",
    "shortener_link": "URL Shortener",
    "mention_spam": "Mention Spam",
}
