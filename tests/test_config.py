"""
Vigil - Configuration Tests
===========================

Tests for guild configuration parsing and process settings.
"""

from datetime import timedelta

import pytest

from vigil.core.config import Settings, get_settings, load_settings, reset_settings
from vigil.core.guild_config import (
    CONTENT_LANGUAGES,
    DEFAULT_MAX_FILE_SIZE,
    SecurityConfig,
    parse_guild_config,
)
from vigil.core.logger import TreeLogger

from .conftest import GUILD_ID


# =============================================================================
# Guild Config Tests
# =============================================================================

class TestParseGuildConfig:
    """Tests for parse_guild_config."""

    def test_full_config(self, guild_config):
        assert guild_config.guild_id == GUILD_ID
        assert guild_config.missing_sections == ()
        assert guild_config.spam.max_duplicate_messages == 2
        assert guild_config.links.whitelist == ("discord.com", "youtube.com")
        assert guild_config.mentions.exclude_bot_mentions is True
        assert guild_config.content_filter.custom_words == ("darn",)

    def test_durations_are_milliseconds(self, guild_config):
        raid = guild_config.raid_protection
        assert raid.time_window == timedelta(seconds=60)
        assert raid.account_age.minimum_age == timedelta(days=7)
        assert raid.lockdown_duration == timedelta(minutes=10)

    def test_raid_actions(self, guild_config):
        actions = guild_config.raid_protection.actions
        assert actions.lockdown and actions.kick_new_members
        assert actions.require_verification and actions.notify_moderators

    def test_none_disables_everything_but_security(self):
        config = parse_guild_config(GUILD_ID, None)
        assert config.spam is None
        assert config.raid_protection is None
        assert config.security == SecurityConfig()
        assert set(config.missing_sections) == {
            "spam", "links", "mentions", "raidProtection", "contentFilter",
        }

    def test_missing_key_disables_section(self, config_data):
        del config_data["spam"]["maxMessagesPerMinute"]
        config = parse_guild_config(GUILD_ID, config_data)
        assert config.spam is None
        assert config.missing_sections == ("spam",)
        assert config.links is not None

    @pytest.mark.parametrize("section,key,value", [
        ("spam", "maxDuplicateMessages", 0),
        ("spam", "maxDuplicateMessages", 11),
        ("spam", "maxMessagesPerMinute", 101),
        ("mentions", "maxMentions", 51),
        ("raidProtection", "joinThreshold", 2),
        ("raidProtection", "timeWindow", 5_000),
    ])
    def test_out_of_range_disables_section(self, config_data, section, key, value):
        config_data[section][key] = value
        config = parse_guild_config(GUILD_ID, config_data)
        assert section in config.missing_sections

    def test_wrong_type_disables_section(self, config_data):
        config_data["links"]["enabled"] = "yes"
        assert parse_guild_config(GUILD_ID, config_data).links is None

    def test_invalid_account_age_action(self, config_data):
        config_data["raidProtection"]["accountAge"]["action"] = "timeout"
        config = parse_guild_config(GUILD_ID, config_data)
        assert config.raid_protection is None

    def test_account_age_range(self, config_data):
        config_data["raidProtection"]["accountAge"]["minimumAge"] = 1000
        assert parse_guild_config(GUILD_ID, config_data).raid_protection is None

    def test_optional_defaults(self, config_data):
        del config_data["contentFilter"]["allowedFileTypes"]
        del config_data["contentFilter"]["maxFileSize"]
        del config_data["raidProtection"]["actions"]
        config = parse_guild_config(GUILD_ID, config_data)

        assert "pdf" in config.content_filter.allowed_file_types
        assert config.content_filter.max_file_size == DEFAULT_MAX_FILE_SIZE
        assert not config.raid_protection.actions.lockdown

    def test_file_types_normalized(self, config_data):
        config_data["contentFilter"]["allowedFileTypes"] = [".PNG", "Jpg"]
        config = parse_guild_config(GUILD_ID, config_data)
        assert config.content_filter.allowed_file_types == ("png", "jpg")

    def test_language_toggles(self, config_data):
        config_data["contentFilter"]["languages"] = {"spanish": False, "german": False}
        config = parse_guild_config(GUILD_ID, config_data)
        assert config.content_filter.languages == ("english", "french", "portuguese")

    def test_all_languages_by_default(self, guild_config):
        assert guild_config.content_filter.languages == CONTENT_LANGUAGES

    def test_security_section(self, config_data):
        config_data["security"] = {
            "suspiciousUsernamePatterns": ["^spam"],
            "suspiciousDomains": ["Evil.Example"],
            "verifyIdTimestamp": False,
        }
        security = parse_guild_config(GUILD_ID, config_data).security
        assert security.enabled
        assert security.suspicious_username_patterns == ("^spam",)
        assert security.suspicious_domains == ("evil.example",)
        assert not security.verify_id_timestamp

    def test_invalid_security_section(self, config_data):
        config_data["security"] = {"enabled": "sometimes"}
        config = parse_guild_config(GUILD_ID, config_data)
        assert config.security is None
        assert "security" in config.missing_sections

    def test_unknown_keys_ignored(self, config_data):
        config_data["somethingElse"] = {"enabled": True}
        assert parse_guild_config(GUILD_ID, config_data).missing_sections == ()


# =============================================================================
# Settings Tests
# =============================================================================

class TestSettings:
    """Tests for environment-driven settings."""

    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch, tmp_path):
        for name in (
            "VIGIL_ALERT_WEBHOOK_URL",
            "VIGIL_CLEANUP_INTERVAL",
            "VIGIL_CONTENT_CACHE_TTL",
            "VIGIL_VIOLATION_TTL",
        ):
            monkeypatch.delenv(name, raising=False)
        monkeypatch.chdir(tmp_path)
        reset_settings()
        yield
        reset_settings()

    def test_defaults(self):
        settings = load_settings()
        assert settings.cleanup_interval == 300
        assert settings.alert_webhook_url is None
        assert settings.violation_timedelta == timedelta(hours=1)

    def test_values_from_env(self, monkeypatch):
        monkeypatch.setenv("VIGIL_CLEANUP_INTERVAL", "60")
        monkeypatch.setenv("VIGIL_ALERT_WEBHOOK_URL", "https://example.com/hook")
        settings = load_settings()
        assert settings.cleanup_interval == 60
        assert settings.alert_webhook_url == "https://example.com/hook"

    def test_invalid_values_fall_back(self, monkeypatch):
        monkeypatch.setenv("VIGIL_CLEANUP_INTERVAL", "often")
        monkeypatch.setenv("VIGIL_ALERT_WEBHOOK_URL", "ftp://example.com")
        settings = load_settings()
        assert settings.cleanup_interval == 300
        assert settings.alert_webhook_url is None

    def test_values_clamped(self, monkeypatch):
        monkeypatch.setenv("VIGIL_CLEANUP_INTERVAL", "1")
        monkeypatch.setenv("VIGIL_VIOLATION_TTL", "5")
        settings = load_settings()
        assert settings.cleanup_interval == 10
        assert settings.violation_ttl == 60

    def test_env_file(self, tmp_path):
        env_file = tmp_path / "vigil.env"
        env_file.write_text("VIGIL_CONTENT_CACHE_TTL=42\n")
        try:
            assert load_settings(str(env_file)).content_cache_timedelta == timedelta(seconds=42)
        finally:
            import os
            os.environ.pop("VIGIL_CONTENT_CACHE_TTL", None)

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()

    def test_settings_frozen(self):
        with pytest.raises(Exception):
            Settings().cleanup_interval = 5


# =============================================================================
# Log Location Tests
# =============================================================================

class TestLogEnvironment:
    """The logger owns its location and retention; Settings doesn't carry them."""

    def test_logger_reads_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("VIGIL_LOG_DIR", str(tmp_path))
        monkeypatch.setenv("VIGIL_LOG_RETENTION_DAYS", "3")

        tree_logger = TreeLogger()

        assert tree_logger.logs_dir == tmp_path
        assert tree_logger.retention_days == 3
        assert tree_logger.log_file.parent.parent == tmp_path

    def test_bad_retention_falls_back(self, monkeypatch, tmp_path):
        monkeypatch.setenv("VIGIL_LOG_DIR", str(tmp_path))
        monkeypatch.setenv("VIGIL_LOG_RETENTION_DAYS", "forever")
        assert TreeLogger().retention_days == 7

    def test_settings_have_no_log_fields(self):
        assert not hasattr(Settings(), "log_dir")
        assert not hasattr(Settings(), "log_retention_days")
