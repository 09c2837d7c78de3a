"""
Vigil - Security Threat Tests
=============================

Tests for scam/phishing message scoring and account risk scoring.
"""

from datetime import timedelta

import discord
import pytest

from vigil.services.antispam.security import (
    SecurityThreatDetector,
    risk_level,
    snowflake_created_at,
    threat_level,
)

from .conftest import START


@pytest.fixture
def detector(library):
    return SecurityThreatDetector(library)


def kinds(result):
    return [f.kind for f in result.findings]


# =============================================================================
# Level Mapping Tests
# =============================================================================

class TestLevels:
    """Tests for score to level mapping."""

    @pytest.mark.parametrize("score,level", [
        (0, "none"), (10, "low"), (30, "medium"), (59, "medium"), (60, "high"), (80, "critical"),
    ])
    def test_threat_level(self, score, level):
        assert threat_level(score) == level

    @pytest.mark.parametrize("score,level", [
        (0, "low"), (25, "medium"), (50, "high"), (70, "critical"),
    ])
    def test_risk_level(self, score, level):
        assert risk_level(score) == level


# =============================================================================
# Message Threat Tests
# =============================================================================

class TestMessageThreats:
    """Tests for additive message threat points."""

    def test_invite(self, detector, guild_config, make_message):
        result = detector.evaluate(make_message("join discord.gg/abc123 now"), guild_config)
        assert kinds(result) == ["invite"]
        assert result.severity == 30
        assert result.signals["threat_level"] == "medium"

    def test_nitro_scam(self, detector, guild_config, make_message):
        result = detector.evaluate(make_message("get discord nitro for FREE"), guild_config)
        assert kinds(result) == ["nitro_scam"]
        assert result.severity == 50

    def test_phishing_and_dm(self, detector, guild_config, make_message):
        result = detector.evaluate(make_message("click the link and dm me"), guild_config)
        assert set(kinds(result)) == {"phishing", "dm_request"}
        assert result.severity == 65
        assert result.signals["threat_level"] == "high"

    def test_word_boundaries(self, detector, guild_config, make_message):
        """'dm' and 'me' inside other words do not match."""
        result = detector.evaluate(make_message("admin meeting tomorrow"), guild_config)
        assert not result.triggered

    def test_mass_mention(self, detector, guild_config, make_message):
        result = detector.evaluate(make_message("@everyone look"), guild_config)
        assert kinds(result) == ["mass_mention"]

    def test_suspicious_url(self, detector, guild_config, make_message):
        result = detector.evaluate(make_message("https://discord-gift.com/claim"), guild_config)
        assert "suspicious_url" in kinds(result)
        assert result.severity == 45

    def test_guild_suspicious_domain(self, detector, config_data, make_config, make_message):
        config_data["security"] = {"suspiciousDomains": ["Evil.Example"]}
        result = detector.evaluate(make_message("see https://evil.example/x"), make_config())
        assert "suspicious_url" in kinds(result)

    def test_critical_combination(self, detector, guild_config, make_message):
        text = "@everyone free nitro! nitro is free, click the link https://bit.ly/x"
        result = detector.evaluate(make_message(text), guild_config)
        assert result.signals["threat_level"] == "critical"
        assert result.score == 100

    def test_clean_message(self, detector, guild_config, make_message):
        result = detector.evaluate(make_message("see you at the meeting"), guild_config)
        assert not result.triggered
        assert result.signals["threat_level"] == "none"

    def test_disabled(self, detector, config_data, make_config, make_message):
        config_data["security"] = {"enabled": False}
        result = detector.evaluate(make_message("@everyone"), make_config())
        assert result.is_disabled


# =============================================================================
# Account Risk Tests
# =============================================================================

class TestAccountRisk:
    """Tests for account bot-likeness scoring."""

    def test_established_account(self, detector, guild_config, make_join):
        risk = detector.score_account(make_join("margaret"), guild_config)
        assert risk.score == 0
        assert risk.level == "low"

    @pytest.mark.parametrize("age,points", [
        (timedelta(minutes=30), 40),
        (timedelta(hours=5), 25),
        (timedelta(days=3), 10),
        (timedelta(days=30), 0),
    ])
    def test_age_brackets(self, detector, guild_config, make_join, age, points):
        risk = detector.score_account(make_join("margaret", account_age=age), guild_config)
        assert risk.score == points

    def test_everything_suspicious(self, detector, guild_config, make_join):
        event = make_join("alex12345", account_age=timedelta(minutes=30), has_default_avatar=True)
        risk = detector.score_account(event, guild_config)
        assert risk.score == 65
        assert risk.level == "high"
        assert "Default avatar" in risk.flags
        assert "Suspicious username pattern" in risk.flags

    def test_username_pattern_counted_once(self, detector, guild_config, make_join):
        """Only the first matching username pattern adds points."""
        risk = detector.score_account(make_join("user12345"), guild_config)
        assert risk.score == 15

    def test_invalid_guild_pattern_skipped(self, detector, config_data, make_config, make_join):
        config_data["security"] = {"suspiciousUsernamePatterns": ["([", "^spam"]}
        risk = detector.score_account(make_join("spambot"), make_config())
        assert risk.score == 15

    def test_id_timestamp_mismatch(self, detector, guild_config, make_join):
        created = START - timedelta(days=400)
        user_id = discord.utils.time_snowflake(START - timedelta(days=30))
        event = make_join("margaret", user_id=user_id, account_age=START - created)
        risk = detector.score_account(event, guild_config)
        assert "ID timestamp mismatch" in risk.flags
        assert risk.score == 20

    def test_id_timestamp_consistent(self, detector, guild_config, make_join):
        created = START - timedelta(days=400)
        user_id = discord.utils.time_snowflake(created)
        event = make_join("margaret", user_id=user_id, account_age=START - created)
        assert detector.score_account(event, guild_config).score == 0

    def test_id_check_can_be_disabled(self, detector, config_data, make_config, make_join):
        config_data["security"] = {"verifyIdTimestamp": False}
        user_id = discord.utils.time_snowflake(START - timedelta(days=30))
        event = make_join("margaret", user_id=user_id, account_age=timedelta(days=400))
        assert detector.score_account(event, make_config()).score == 0

    def test_creation_time_from_snowflake(self, detector, guild_config, make_join):
        """Without an explicit creation time the ID's embedded time is used."""
        user_id = discord.utils.time_snowflake(START - timedelta(minutes=10))
        event = make_join("margaret", user_id=user_id, account_age=None)
        assert detector.score_account(event, guild_config).score == 40

    def test_small_ids_carry_no_time(self):
        assert snowflake_created_at(12345) is None

    def test_join_result_triggers_from_medium(self, detector, guild_config, make_join):
        result = detector.evaluate(make_join("margaret", account_age=timedelta(hours=5)), guild_config)
        assert result.category == "account"
        assert result.triggered
        assert result.signals["risk_level"] == "medium"

    def test_join_result_disabled(self, detector, config_data, make_config, make_join):
        config_data["security"] = {"enabled": False}
        result = detector.evaluate(make_join("margaret"), make_config())
        assert result.category == "account"
        assert result.is_disabled
