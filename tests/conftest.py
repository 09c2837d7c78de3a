"""
Vigil - Test Fixtures
=====================

Shared fixtures for all tests.
"""

import copy
import os
import tempfile
from datetime import datetime, timedelta, timezone

import pytest

# Set up test environment before importing modules
os.environ.setdefault("VIGIL_LOG_DIR", tempfile.mkdtemp(prefix="vigil-logs-"))
os.environ.pop("VIGIL_ALERT_WEBHOOK_URL", None)

from vigil.core.config import Settings
from vigil.core.guild_config import parse_guild_config
from vigil.services.antispam.models import Attachment, Event, EventKind
from vigil.services.antispam.patterns import PatternLibrary
from vigil.utils.clock import ManualClock


GUILD_ID = 111222333
START = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

BASE_CONFIG = {
    "spam": {
        "enabled": True,
        "maxDuplicateMessages": 2,
        "maxMessagesPerMinute": 10,
    },
    "links": {
        "enabled": True,
        "whitelist": ["discord.com", "youtube.com"],
    },
    "mentions": {
        "enabled": True,
        "maxMentions": 5,
    },
    "raidProtection": {
        "enabled": True,
        "joinThreshold": 5,
        "timeWindow": 60_000,
        "accountAge": {
            "enabled": True,
            "minimumAge": 7 * 24 * 60 * 60 * 1000,
            "action": "kick",
        },
        "actions": {
            "lockdown": True,
            "kickNewMembers": True,
            "requireVerification": True,
            "notifyModerators": True,
        },
    },
    "contentFilter": {
        "enabled": True,
        "strictMode": False,
        "customWords": ["darn"],
        "whitelist": [],
        "allowedFileTypes": ["png", "jpg", "gif", "txt"],
        "maxFileSize": 8 * 1024 * 1024,
    },
}


# =============================================================================
# Time & Settings
# =============================================================================

@pytest.fixture
def clock():
    """Manual clock starting at START."""
    return ManualClock(START)


@pytest.fixture
def settings():
    """Isolated settings (no webhook)."""
    return Settings()


@pytest.fixture(scope="session")
def library():
    """One compiled pattern library for the whole session."""
    return PatternLibrary()


# =============================================================================
# Guild Configuration
# =============================================================================

@pytest.fixture
def config_data():
    """Mutable copy of the base camelCase configuration."""
    return copy.deepcopy(BASE_CONFIG)


@pytest.fixture
def make_config(config_data):
    """Factory: parse config_data (optionally modified) into a GuildConfig."""
    def _make(data=None, guild_id=GUILD_ID):
        return parse_guild_config(guild_id, data if data is not None else config_data)
    return _make


@pytest.fixture
def guild_config(make_config):
    return make_config()


# =============================================================================
# Event Factories
# =============================================================================

@pytest.fixture
def make_message():
    """Factory for message events."""
    def _create(
        text: str = "hello",
        at: datetime = START,
        author_id: int = 1001,
        guild_id: int = GUILD_ID,
        attachments=(),
        mentions=(),
        bot_mentions=(),
        **kwargs,
    ) -> Event:
        return Event(
            kind=EventKind.MESSAGE,
            author_id=author_id,
            guild_id=guild_id,
            timestamp=at,
            text=text,
            attachments=tuple(
                a if isinstance(a, Attachment) else Attachment(*a) for a in attachments
            ),
            mentioned_user_ids=tuple(mentions),
            mentioned_bot_ids=tuple(bot_mentions),
            **kwargs,
        )
    return _create


@pytest.fixture
def make_join():
    """Factory for join events. account_age is relative to the join time."""
    def _create(
        name: str = "newcomer",
        at: datetime = START,
        user_id: int = 2001,
        guild_id: int = GUILD_ID,
        account_age: timedelta = timedelta(days=365),
        **kwargs,
    ) -> Event:
        created = at - account_age if account_age is not None else None
        return Event(
            kind=EventKind.JOIN,
            author_id=user_id,
            guild_id=guild_id,
            timestamp=at,
            author_name=name,
            account_created_at=created,
            **kwargs,
        )
    return _create
