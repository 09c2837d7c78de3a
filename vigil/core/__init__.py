"""
Vigil - Core Package
====================

Ambient infrastructure shared by every detector: process settings,
per-guild configuration, the error taxonomy and the tree logger.

DESIGN:
    - get_settings() returns the same Settings instance
    - logger is a global TreeLogger instance
    - guild configuration is parsed per guild and passed explicitly
"""

from .config import NY_TZ, Settings, get_settings, load_settings
from .errors import ConfigurationMissing, InvalidInput, StateCorruption, VigilError
from .guild_config import GuildConfig, parse_guild_config
from .logger import TreeLogger, logger


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    # Config
    "NY_TZ",
    "Settings",
    "get_settings",
    "load_settings",
    # Guild config
    "GuildConfig",
    "parse_guild_config",
    # Errors
    "VigilError",
    "ConfigurationMissing",
    "InvalidInput",
    "StateCorruption",
    # Logger
    "logger",
    "TreeLogger",
]
