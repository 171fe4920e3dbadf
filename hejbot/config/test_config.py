"""
Unit Tests for Configuration Module
===================================

Covers YAML loading, environment overrides and startup validation.
"""

import logging
from unittest.mock import patch

import pytest
import yaml

from hejbot.config.config_manager import (
    ConfigManager, Environment, LLMConfig, ObservabilityConfig, PlatformConfig, Settings,
    configure_logging,
)
from hejbot.config.validation import ConfigValidator, validate_config, get_validation_errors


ENV_VARS = [
    "TB_USERNAME", "TB_PASSWORD", "CF_CLEARANCE", "TB_BASE_URL",
    "OPENAI_API_KEY", "ANTHROPIC_API_KEY", "HEJBOT_DATA_DIR", "LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def write_settings(tmp_path, data):
    path = tmp_path / "settings.yaml"
    path.write_text(yaml.safe_dump(data))
    return str(path)


class TestConfigManager:
    """Test settings loading."""

    def test_load_minimal_file_uses_defaults(self, tmp_path):
        manager = ConfigManager(write_settings(tmp_path, {}), load_env_file=False)
        settings = manager.settings

        assert settings.environment == Environment.DEVELOPMENT
        assert settings.platform.base_url == "https://twoblade.com"
        assert settings.platform.socket_path == "/ws/socket.io"
        assert settings.bot.max_recent_messages == 400
        assert settings.storage.message_counts_file == "messageCounts.json"
        assert settings.llm.model_name == "gpt-4o-mini"

    def test_load_sections(self, tmp_path):
        path = write_settings(tmp_path, {
            "environment": "production",
            "bot": {"command_prefix": "!bot", "initial_admins": ["alice#twoblade.com"]},
            "storage": {"data_dir": "/var/lib/hejbot"},
            "llm": {"provider": "openai", "max_reply_chars": 300},
        })
        settings = ConfigManager(path, load_env_file=False).settings

        assert settings.is_production()
        assert settings.bot.command_prefix == "!bot"
        assert settings.bot.initial_admins == ["alice#twoblade.com"]
        assert str(settings.storage.path_for("admins.json")) == "/var/lib/hejbot/admins.json"
        assert settings.llm.max_reply_chars == 300

    def test_environment_overrides(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TB_USERNAME", "hejbot")
        monkeypatch.setenv("TB_PASSWORD", "hunter2")
        monkeypatch.setenv("CF_CLEARANCE", "cf-value")
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        monkeypatch.setenv("HEJBOT_DATA_DIR", str(tmp_path))

        settings = ConfigManager(write_settings(tmp_path, {}), load_env_file=False).settings

        assert settings.platform.username == "hejbot"
        assert settings.platform.password == "hunter2"
        assert settings.platform.cf_clearance == "cf-value"
        assert settings.llm.api_key == "sk-test"
        assert settings.storage.data_dir == str(tmp_path)

    def test_anthropic_provider_reads_anthropic_key(self, tmp_path, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-openai")
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-test")

        path = write_settings(tmp_path, {"llm": {"provider": "anthropic", "model_name": "claude-3-haiku-20240307"}})
        settings = ConfigManager(path, load_env_file=False).settings

        assert settings.llm.api_key == "sk-ant-test"

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ConfigManager(str(tmp_path / "nope.yaml"), load_env_file=False)

    def test_reload_keeps_settings_on_failure(self, tmp_path):
        path = write_settings(tmp_path, {"bot": {"command_prefix": "!a"}})
        manager = ConfigManager(path, load_env_file=False)

        (tmp_path / "settings.yaml").write_text("bot: [unclosed")
        settings = manager.reload_config()

        assert settings.bot.command_prefix == "!a"


class TestConfigureLogging:
    """Test logger levels installed at start-up."""

    def test_socketio_reconnect_attempts_are_visible(self):
        with patch("hejbot.config.config_manager.logging.basicConfig") as basic_config:
            configure_logging(ObservabilityConfig(log_level="debug", log_file=None))

        assert basic_config.call_args.kwargs["level"] == logging.DEBUG
        assert logging.getLogger("socketio.client").getEffectiveLevel() == logging.INFO
        assert logging.getLogger("engineio").level == logging.WARNING


class TestConfigValidator:
    """Test startup validation."""

    def make_settings(self, **llm):
        return Settings(
            platform=PlatformConfig(username="hejbot", password="pw", cf_clearance="cf"),
            llm=LLMConfig(api_key="sk-test", **llm),
        )

    def test_valid_settings(self):
        result = validate_config(self.make_settings())
        assert result.is_valid
        assert result.errors == []

    def test_missing_credentials(self):
        errors = get_validation_errors(Settings())
        assert any(e.startswith("platform.username") for e in errors)
        assert any(e.startswith("platform.password") for e in errors)

    def test_missing_api_key_is_only_a_warning(self):
        settings = self.make_settings()
        settings.llm.api_key = ""
        result = validate_config(settings)

        assert result.is_valid
        assert any(w.field_path == "llm.api_key" for w in result.warnings)

    def test_reply_budget_must_fit_identifier(self):
        result = validate_config(self.make_settings(max_reply_chars=10))
        assert not result.is_valid
        assert result.errors[0].field_path == "llm.max_reply_chars"

    def test_invalid_provider(self):
        result = validate_config(self.make_settings(provider="llama"))
        assert any(e.field_path == "llm.provider" for e in result.errors)

    def test_url_validation(self):
        result = ConfigValidator.validate_settings({"platform": {
            "base_url": "not a url", "username": "u", "password": "p", "socket_path": "/ws/socket.io",
        }})
        assert any(e.field_path == "platform.base_url" for e in result.errors)

    def test_prefix_with_whitespace_rejected(self):
        result = ConfigValidator.validate_settings({"bot": {"command_prefix": "hej bot"}})
        assert any(e.field_path == "bot.command_prefix" for e in result.errors)
