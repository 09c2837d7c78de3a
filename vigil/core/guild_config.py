"""
Vigil - Guild Configuration
===========================

Typed, read-only per-guild configuration for the detectors.

DESIGN:
    The configuration store hands over a nested camelCase mapping
    (durations in milliseconds). parse_guild_config() turns it into frozen
    dataclasses once, at the boundary, so detectors never dig through
    optional nested dicts.

    A section with a missing or out-of-range required key is disabled
    (set to None) rather than guessed. Only the defaults listed in
    DEFAULTS below are filled in when absent.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from vigil.core.errors import ConfigurationMissing
from vigil.core.logger import logger


# =============================================================================
# Built-in Defaults
# =============================================================================

DEFAULT_ALLOWED_FILE_TYPES: Tuple[str, ...] = (
    "jpg", "jpeg", "png", "gif", "webp", "bmp", "svg",
    "mp4", "mov", "avi", "mkv", "webm", "mp3", "wav", "ogg",
    "pdf", "txt", "doc", "docx", "xls", "xlsx", "ppt", "pptx",
    "zip", "rar", "7z", "tar", "gz",
)

DEFAULT_MAX_FILE_SIZE = 50 * 1024 * 1024  # 50MB
DEFAULT_RAID_TIME_WINDOW_MS = 60_000
DEFAULT_LOCKDOWN_DURATION_MS = 10 * 60 * 1000
CONTENT_LANGUAGES: Tuple[str, ...] = ("english", "spanish", "french", "german", "portuguese")
JOIN_ACTIONS: Tuple[str, ...] = ("warn", "kick", "ban")


# =============================================================================
# Section Dataclasses
# =============================================================================

@dataclass(frozen=True)
class SpamConfig:
    enabled: bool
    max_duplicate_messages: int
    max_messages_per_minute: int


@dataclass(frozen=True)
class LinksConfig:
    enabled: bool
    whitelist: Tuple[str, ...]


@dataclass(frozen=True)
class MentionsConfig:
    enabled: bool
    max_mentions: int
    exclude_bot_mentions: bool = True


@dataclass(frozen=True)
class AccountAgeConfig:
    enabled: bool
    minimum_age: timedelta
    action: str


@dataclass(frozen=True)
class RaidActionsConfig:
    lockdown: bool = False
    kick_new_members: bool = False
    require_verification: bool = False
    notify_moderators: bool = False


@dataclass(frozen=True)
class RaidProtectionConfig:
    enabled: bool
    join_threshold: int
    time_window: timedelta = timedelta(milliseconds=DEFAULT_RAID_TIME_WINDOW_MS)
    lockdown_duration: timedelta = timedelta(milliseconds=DEFAULT_LOCKDOWN_DURATION_MS)
    account_age: Optional[AccountAgeConfig] = None
    actions: RaidActionsConfig = field(default_factory=RaidActionsConfig)


@dataclass(frozen=True)
class ContentFilterConfig:
    enabled: bool
    strict_mode: bool
    custom_words: Tuple[str, ...] = ()
    whitelist: Tuple[str, ...] = ()
    allowed_file_types: Tuple[str, ...] = DEFAULT_ALLOWED_FILE_TYPES
    max_file_size: int = DEFAULT_MAX_FILE_SIZE
    languages: Tuple[str, ...] = CONTENT_LANGUAGES


@dataclass(frozen=True)
class SecurityConfig:
    """Account and message threat scoring. Absent section means built-in defaults."""
    enabled: bool = True
    suspicious_username_patterns: Optional[Tuple[str, ...]] = None
    suspicious_domains: Tuple[str, ...] = ()
    verify_id_timestamp: bool = True


@dataclass(frozen=True)
class GuildConfig:
    """
    Complete configuration for one guild.

    A section set to None is disabled. missing_sections names every
    section that was disabled because it was absent or invalid.
    """
    guild_id: int
    spam: Optional[SpamConfig] = None
    links: Optional[LinksConfig] = None
    mentions: Optional[MentionsConfig] = None
    raid_protection: Optional[RaidProtectionConfig] = None
    content_filter: Optional[ContentFilterConfig] = None
    security: Optional[SecurityConfig] = field(default_factory=SecurityConfig)
    missing_sections: Tuple[str, ...] = ()


# =============================================================================
# Field Readers
# =============================================================================

_MISSING = object()


def _read(section: str, data: Mapping[str, Any], key: str, default: Any = _MISSING) -> Any:
    if key in data and data[key] is not None:
        return data[key]
    if default is _MISSING:
        raise ConfigurationMissing(section, key)
    return default


def _read_bool(section: str, data: Mapping[str, Any], key: str, default: Any = _MISSING) -> bool:
    value = _read(section, data, key, default)
    if not isinstance(value, bool):
        raise ConfigurationMissing(section, key, f"expected boolean, got {value!r}")
    return value


def _read_int(
    section: str,
    data: Mapping[str, Any],
    key: str,
    min_val: int,
    max_val: int,
    default: Any = _MISSING,
) -> int:
    value = _read(section, data, key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigurationMissing(section, key, f"expected number, got {value!r}")
    if value < min_val or value > max_val:
        raise ConfigurationMissing(section, key, f"{value} outside {min_val}..{max_val}")
    return int(value)


def _read_strings(section: str, data: Mapping[str, Any], key: str, default: Any = _MISSING) -> Tuple[str, ...]:
    value = _read(section, data, key, default)
    if isinstance(value, (str, bytes)) or not isinstance(value, (list, tuple, set, frozenset)):
        raise ConfigurationMissing(section, key, "expected a list")
    return tuple(str(item) for item in value)


def _read_section(section: str, data: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = data.get(key)
    if value is None:
        raise ConfigurationMissing(section, key)
    if not isinstance(value, Mapping):
        raise ConfigurationMissing(section, key, "expected a mapping")
    return value


# =============================================================================
# Section Parsers
# =============================================================================

def _parse_spam(data: Mapping[str, Any]) -> SpamConfig:
    return SpamConfig(
        enabled=_read_bool("spam", data, "enabled"),
        max_duplicate_messages=_read_int("spam", data, "maxDuplicateMessages", 1, 10),
        max_messages_per_minute=_read_int("spam", data, "maxMessagesPerMinute", 1, 100),
    )


def _parse_links(data: Mapping[str, Any]) -> LinksConfig:
    whitelist = _read_strings("links", data, "whitelist")
    return LinksConfig(
        enabled=_read_bool("links", data, "enabled"),
        whitelist=tuple(domain.lower().strip() for domain in whitelist if domain.strip()),
    )


def _parse_mentions(data: Mapping[str, Any]) -> MentionsConfig:
    return MentionsConfig(
        enabled=_read_bool("mentions", data, "enabled"),
        max_mentions=_read_int("mentions", data, "maxMentions", 1, 50),
        exclude_bot_mentions=_read_bool("mentions", data, "excludeBotMentions", True),
    )


def _parse_account_age(data: Mapping[str, Any]) -> AccountAgeConfig:
    section = "raidProtection.accountAge"
    action = str(_read(section, data, "action"))
    if action not in JOIN_ACTIONS:
        raise ConfigurationMissing(section, "action", f"{action!r} not one of {JOIN_ACTIONS}")
    return AccountAgeConfig(
        enabled=_read_bool(section, data, "enabled"),
        minimum_age=timedelta(milliseconds=_read_int(
            section, data, "minimumAge", 600_000, 2_592_000_000,
        )),
        action=action,
    )


def _parse_raid_actions(data: Mapping[str, Any]) -> RaidActionsConfig:
    section = "raidProtection.actions"
    return RaidActionsConfig(
        lockdown=_read_bool(section, data, "lockdown", False),
        kick_new_members=_read_bool(section, data, "kickNewMembers", False),
        require_verification=_read_bool(section, data, "requireVerification", False),
        notify_moderators=_read_bool(section, data, "notifyModerators", False),
    )


def _parse_raid_protection(data: Mapping[str, Any]) -> RaidProtectionConfig:
    section = "raidProtection"
    account_age = None
    if data.get("accountAge") is not None:
        account_age = _parse_account_age(_read_section(section, data, "accountAge"))
    actions = RaidActionsConfig()
    if data.get("actions") is not None:
        actions = _parse_raid_actions(_read_section(section, data, "actions"))

    return RaidProtectionConfig(
        enabled=_read_bool(section, data, "enabled"),
        join_threshold=_read_int(section, data, "joinThreshold", 3, 100),
        time_window=timedelta(milliseconds=_read_int(
            section, data, "timeWindow", 10_000, 600_000, DEFAULT_RAID_TIME_WINDOW_MS,
        )),
        lockdown_duration=timedelta(milliseconds=_read_int(
            section, data, "lockdownDuration", 60_000, 86_400_000, DEFAULT_LOCKDOWN_DURATION_MS,
        )),
        account_age=account_age,
        actions=actions,
    )


def _parse_content_filter(data: Mapping[str, Any]) -> ContentFilterConfig:
    section = "contentFilter"
    languages = CONTENT_LANGUAGES
    toggles = data.get("languages")
    if toggles is not None:
        if not isinstance(toggles, Mapping):
            raise ConfigurationMissing(section, "languages", "expected a mapping")
        languages = tuple(lang for lang in CONTENT_LANGUAGES if toggles.get(lang, True))

    allowed = _read_strings(section, data, "allowedFileTypes", DEFAULT_ALLOWED_FILE_TYPES)
    return ContentFilterConfig(
        enabled=_read_bool(section, data, "enabled"),
        strict_mode=_read_bool(section, data, "strictMode"),
        custom_words=_read_strings(section, data, "customWords", ()),
        whitelist=_read_strings(section, data, "whitelist", ()),
        allowed_file_types=tuple(ext.lower().lstrip(".") for ext in allowed),
        max_file_size=_read_int(section, data, "maxFileSize", 1, 10 * 1024 ** 3, DEFAULT_MAX_FILE_SIZE),
        languages=languages,
    )


def _parse_security(data: Mapping[str, Any]) -> SecurityConfig:
    section = "security"
    patterns = None
    if data.get("suspiciousUsernamePatterns") is not None:
        patterns = _read_strings(section, data, "suspiciousUsernamePatterns")
    return SecurityConfig(
        enabled=_read_bool(section, data, "enabled", True),
        suspicious_username_patterns=patterns,
        suspicious_domains=tuple(
            d.lower() for d in _read_strings(section, data, "suspiciousDomains", ())
        ),
        verify_id_timestamp=_read_bool(section, data, "verifyIdTimestamp", True),
    )


_SECTIONS: List[Tuple[str, str, Callable[[Mapping[str, Any]], Any]]] = [
    ("spam", "spam", _parse_spam),
    ("links", "links", _parse_links),
    ("mentions", "mentions", _parse_mentions),
    ("raidProtection", "raid_protection", _parse_raid_protection),
    ("contentFilter", "content_filter", _parse_content_filter),
]

_KNOWN_KEYS = {key for key, _, _ in _SECTIONS} | {"security"}


# =============================================================================
# Public Parser
# =============================================================================

def parse_guild_config(guild_id: int, data: Optional[Mapping[str, Any]]) -> GuildConfig:
    """
    Build a GuildConfig from the configuration store's nested mapping.

    Args:
        guild_id: The guild the configuration belongs to.
        data: camelCase mapping as stored (durations in ms). None disables
            every section except security.

    Returns:
        GuildConfig with invalid or absent sections set to None.
    """
    data = data or {}
    values: Dict[str, Any] = {}
    missing: List[str] = []

    for key, attr, parser in _SECTIONS:
        try:
            if data.get(key) is None:
                raise ConfigurationMissing(key, "*", "section absent")
            values[attr] = parser(_read_section(key, data, key))
        except ConfigurationMissing as e:
            values[attr] = None
            missing.append(key)
            logger.warning("Config Section Disabled", [
                ("Guild", str(guild_id)),
                ("Section", key),
                ("Reason", str(e)),
            ])

    security: Optional[SecurityConfig] = SecurityConfig()
    if data.get("security") is not None:
        try:
            security = _parse_security(_read_section("security", data, "security"))
        except ConfigurationMissing as e:
            security = None
            missing.append("security")
            logger.warning("Config Section Disabled", [
                ("Guild", str(guild_id)),
                ("Section", "security"),
                ("Reason", str(e)),
            ])

    unknown = sorted(set(data.keys()) - _KNOWN_KEYS)
    if unknown:
        logger.debug("Config Keys Ignored", [
            ("Guild", str(guild_id)),
            ("Keys", ", ".join(str(k) for k in unknown)),
        ])

    return GuildConfig(
        guild_id=guild_id,
        security=security,
        missing_sections=tuple(missing),
        **values,
    )


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    "DEFAULT_ALLOWED_FILE_TYPES",
    "DEFAULT_MAX_FILE_SIZE",
    "CONTENT_LANGUAGES",
    "SpamConfig",
    "LinksConfig",
    "MentionsConfig",
    "AccountAgeConfig",
    "RaidActionsConfig",
    "RaidProtectionConfig",
    "ContentFilterConfig",
    "SecurityConfig",
    "GuildConfig",
    "parse_guild_config",
]
