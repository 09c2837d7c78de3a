"""
Vigil - Configuration Module
============================

Process-level settings loaded from environment variables.

DESIGN:
    Per-guild thresholds live in guild_config.py and arrive with every
    call. This module only covers what is fixed for the whole process:
    alert webhook, cleanup cadence and retention periods. The logger reads
    its own location and retention (VIGIL_LOG_DIR, VIGIL_LOG_RETENTION_DAYS)
    because it is created at import time, before any Settings exist.

    Key patterns:
    - get_settings() loads once and reuses the same Settings instance
    - Engines accept an explicit Settings so tests stay isolated
    - Invalid values log a warning and fall back to the default
"""

import os
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from dotenv import load_dotenv

from vigil.core.logger import NY_TZ


# =============================================================================
# Settings Dataclass
# =============================================================================

@dataclass(frozen=True)
class Settings:
    """
    Engine settings loaded from environment variables.

    Attributes:
        alert_webhook_url: Webhook for raid alerts and error trees.
        cleanup_interval: Seconds between cleanup passes.
        content_cache_ttl: Seconds a content detection result is reused.
        violation_ttl: Seconds after the last violation before the count resets.
    """

    alert_webhook_url: Optional[str] = None
    cleanup_interval: int = 300
    content_cache_ttl: int = 300
    violation_ttl: int = 3600

    @property
    def content_cache_timedelta(self) -> timedelta:
        return timedelta(seconds=self.content_cache_ttl)

    @property
    def violation_timedelta(self) -> timedelta:
        return timedelta(seconds=self.violation_ttl)


# =============================================================================
# Parsing Helpers
# =============================================================================

def _parse_int_with_default(
    value: Optional[str],
    default: int,
    name: str,
    min_val: Optional[int] = None,
    max_val: Optional[int] = None,
) -> int:
    """
    Parse optional integer with default and range validation.

    Args:
        value: String value from environment variable.
        default: Default value if not set or invalid.
        name: Variable name for warning messages.
        min_val: Minimum allowed value (inclusive).
        max_val: Maximum allowed value (inclusive).

    Returns:
        Parsed integer within valid range, or default.
    """
    from vigil.core.logger import logger

    if not value:
        return default
    try:
        parsed = int(value)
    except ValueError:
        logger.warning(f"Config {name}='{value}' invalid, using default {default}")
        return default
    if min_val is not None and parsed < min_val:
        logger.warning(f"Config {name}={parsed} below min {min_val}, using {min_val}")
        return min_val
    if max_val is not None and parsed > max_val:
        logger.warning(f"Config {name}={parsed} above max {max_val}, using {max_val}")
        return max_val
    return parsed


def _validate_url(value: Optional[str], name: str) -> Optional[str]:
    """Return the URL if it looks like http(s), else None."""
    if not value:
        return None
    if not value.startswith(("https://", "http://")):
        from vigil.core.logger import logger
        logger.warning(f"Config {name} invalid URL format, ignoring")
        return None
    return value


# =============================================================================
# Settings Loading
# =============================================================================

def load_settings(env_file: Optional[str] = None) -> Settings:
    """
    Load settings from the environment (after reading a .env file).

    Args:
        env_file: Optional path to a dotenv file. Defaults to ./.env.

    Returns:
        Validated Settings object.
    """
    load_dotenv(env_file)

    return Settings(
        alert_webhook_url=_validate_url(
            os.getenv("VIGIL_ALERT_WEBHOOK_URL"), "VIGIL_ALERT_WEBHOOK_URL",
        ),
        cleanup_interval=_parse_int_with_default(
            os.getenv("VIGIL_CLEANUP_INTERVAL"), 300, "VIGIL_CLEANUP_INTERVAL",
            min_val=10, max_val=3600,
        ),
        content_cache_ttl=_parse_int_with_default(
            os.getenv("VIGIL_CONTENT_CACHE_TTL"), 300, "VIGIL_CONTENT_CACHE_TTL", min_val=0,
        ),
        violation_ttl=_parse_int_with_default(
            os.getenv("VIGIL_VIOLATION_TTL"), 3600, "VIGIL_VIOLATION_TTL", min_val=60,
        ),
    )


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get the process-wide settings instance, loading if needed.

    Returns:
        The cached Settings instance.
    """
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next get_settings() reloads."""
    global _settings
    _settings = None


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    "NY_TZ",
    "Settings",
    "load_settings",
    "get_settings",
    "reset_settings",
]
