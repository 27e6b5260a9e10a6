"""Tests for event_tracker.config."""

import os
from unittest import mock

import pytest

from event_tracker.config import (
    ShadowConfig,
    TrackerSettings,
    env_bool,
    env_int,
    env_str,
    read_api_keys,
    read_shadow_config,
)

REQUIRED_ENV = {
    "DISCORD_TOKEN": "token",
    "EVENT_REPORT_CHANNEL_ID": "1234",
    "HYPIXEL_GUILD_PLAYER": "SomePlayer",
}


class TestEnvHelpers:
    def test_env_bool_values(self):
        with mock.patch.dict(os.environ, {"FLAG": " Yes "}, clear=True):
            assert env_bool("FLAG") is True
        with mock.patch.dict(os.environ, {"FLAG": "off"}, clear=True):
            assert env_bool("FLAG", default=True) is False
        with mock.patch.dict(os.environ, {"FLAG": "maybe"}, clear=True):
            assert env_bool("FLAG", default=True) is True

    def test_env_int_invalid_falls_back(self):
        with mock.patch.dict(os.environ, {"NUM": "abc"}, clear=True):
            assert env_int("NUM", default=7) == 7
        with mock.patch.dict(os.environ, {"NUM": "42"}, clear=True):
            assert env_int("NUM") == 42
        with mock.patch.dict(os.environ, {}, clear=True):
            assert env_int("NUM") is None

    def test_env_str_blank_is_default(self):
        with mock.patch.dict(os.environ, {"NAME": "   "}, clear=True):
            assert env_str("NAME", default="x") == "x"
        with mock.patch.dict(os.environ, {"NAME": " value "}, clear=True):
            assert env_str("NAME") == "value"


class TestApiKeys:
    def test_combined_and_legacy_keys_are_deduplicated(self):
        env = {
            "HYPIXEL_API_KEYS": "a, b,,a",
            "FALLBACK_HYPIXEL_API_KEY": "c",
            "2ND_FALLBACK_HYPIXEL_API_KEY": "b",
        }
        with mock.patch.dict(os.environ, env, clear=True):
            assert read_api_keys() == ["a", "b", "c"]

    def test_no_keys(self):
        with mock.patch.dict(os.environ, {}, clear=True):
            assert read_api_keys() == []


class TestShadowConfig:
    def test_reads_channel(self):
        env = {"SHADOW_MODE": "true", "SHADOW_CHANNEL_ID": "99"}
        with mock.patch.dict(os.environ, env, clear=True):
            assert read_shadow_config() == ShadowConfig(enabled=True, channel_id=99)

    def test_default_disabled(self):
        with mock.patch.dict(os.environ, {}, clear=True):
            assert read_shadow_config() == ShadowConfig(enabled=False, channel_id=None)


class TestTrackerSettings:
    def test_load_defaults(self):
        with mock.patch.dict(os.environ, REQUIRED_ENV, clear=True):
            settings = TrackerSettings.load()

        assert settings.discord_token == "token"
        assert settings.report_channel_id == 1234
        assert settings.guild_player == "SomePlayer"
        assert settings.guild_id is None
        assert settings.rotation_calls == 65
        assert settings.request_delay == 10.0
        assert settings.storage == "file"
        assert settings.data_dir == "data"
        assert settings.timezone == "UTC"
        assert settings.leaderboard_size == 10
        assert settings.report_size == 5
        assert settings.text_commands is False
        assert settings.shadow.enabled is False

    def test_load_overrides(self):
        env = {
            **REQUIRED_ENV,
            "HYPIXEL_API_KEYS": "k1,k2",
            "HYPIXEL_KEY_ROTATION_CALLS": "10",
            "EVENT_REQUEST_DELAY_SECONDS": "0",
            "EVENT_TIMEZONE": "Europe/Berlin",
            "EVENT_STORAGE": "DynamoDB",
            "EVENT_TABLE_NAME": "events",
            "EVENT_TEXT_COMMANDS": "1",
        }
        with mock.patch.dict(os.environ, env, clear=True):
            settings = TrackerSettings.load()

        assert settings.api_keys == ["k1", "k2"]
        assert settings.rotation_calls == 10
        assert settings.request_delay == 0.0
        assert settings.storage == "dynamodb"
        assert settings.table_name == "events"
        assert settings.tzinfo.key == "Europe/Berlin"
        assert settings.text_commands is True

    def test_missing_vars_are_all_listed(self):
        with mock.patch.dict(os.environ, {}, clear=True):
            with pytest.raises(RuntimeError) as excinfo:
                TrackerSettings.load()

        message = str(excinfo.value)
        assert message.startswith("Missing env vars: ")
        assert "DISCORD_TOKEN" in message
        assert "EVENT_REPORT_CHANNEL_ID" in message
        assert "HYPIXEL_GUILD_PLAYER or HYPIXEL_GUILD_ID" in message

    def test_dynamodb_requires_table(self):
        env = {**REQUIRED_ENV, "EVENT_STORAGE": "dynamodb"}
        with mock.patch.dict(os.environ, env, clear=True):
            with pytest.raises(RuntimeError, match="EVENT_TABLE_NAME"):
                TrackerSettings.load()

    def test_rejects_unknown_storage(self):
        env = {**REQUIRED_ENV, "EVENT_STORAGE": "sqlite"}
        with mock.patch.dict(os.environ, env, clear=True):
            with pytest.raises(RuntimeError, match="Unsupported EVENT_STORAGE"):
                TrackerSettings.load()

    def test_rejects_non_numeric_channel(self):
        env = {**REQUIRED_ENV, "EVENT_REPORT_CHANNEL_ID": "reports"}
        with mock.patch.dict(os.environ, env, clear=True):
            with pytest.raises(RuntimeError, match="must be numeric"):
                TrackerSettings.load()

    def test_rejects_unknown_timezone(self):
        env = {**REQUIRED_ENV, "EVENT_TIMEZONE": "Mars/Olympus"}
        with mock.patch.dict(os.environ, env, clear=True):
            with pytest.raises(RuntimeError, match="Unknown EVENT_TIMEZONE"):
                TrackerSettings.load()

    def test_guild_id_satisfies_guild_requirement(self):
        env = {
            "DISCORD_TOKEN": "token",
            "EVENT_REPORT_CHANNEL_ID": "1",
            "HYPIXEL_GUILD_ID": "abc123",
        }
        with mock.patch.dict(os.environ, env, clear=True):
            settings = TrackerSettings.load()
        assert settings.guild_id == "abc123"
        assert settings.guild_player is None
