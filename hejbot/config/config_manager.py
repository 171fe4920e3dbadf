"""
Configuration Manager
=====================

Centralized configuration for the bot: YAML settings file, environment
variable overrides and logging setup.
"""

import os
import yaml
import logging
from pathlib import Path
from typing import Dict, Any, Optional, List
from dataclasses import dataclass, field, asdict
from enum import Enum

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class Environment(Enum):
    """Environment types for configuration."""
    DEVELOPMENT = "development"
    PRODUCTION = "production"
    TESTING = "testing"


@dataclass
class PlatformConfig:
    """Chat platform connection settings."""
    base_url: str = "https://twoblade.com"
    login_path: str = "/login"
    socket_path: str = "/ws/socket.io"
    auth_cookie_name: str = "auth_token"
    username: str = ""
    password: str = ""
    cf_clearance: str = ""
    user_agent: str = "Mozilla/5.0"
    request_timeout: float = 30.0

    def __post_init__(self):
        """Resolve credentials from the environment."""
        self.username = self.username or os.environ.get("TB_USERNAME", "")
        self.password = self.password or os.environ.get("TB_PASSWORD", "")
        self.cf_clearance = self.cf_clearance or os.environ.get("CF_CLEARANCE", "")


@dataclass
class BotConfig:
    """Command handling settings."""
    name: str = "HejBot"
    version: str = "1.0"
    command_prefix: str = "!hej"
    greeting: str = "HejBot Connected"
    greeting_delay: float = 3.0
    initial_admins: List[str] = field(default_factory=list)
    max_recent_messages: int = 400
    ignore_own_messages: bool = True


@dataclass
class StorageConfig:
    """JSON file locations."""
    data_dir: str = "."
    message_counts_file: str = "messageCounts.json"
    recent_messages_file: str = "recentMessages.json"
    admins_file: str = "admins.json"
    banned_users_file: str = "bannedUsers.json"

    def path_for(self, filename: str) -> Path:
        return Path(self.data_dir) / filename


@dataclass
class LLMConfig:
    """Generative AI provider settings."""
    provider: str = "openai"
    model_name: str = "gpt-4o-mini"
    api_key: str = ""
    api_base: Optional[str] = None
    max_tokens: int = 300
    temperature: float = 0.7
    timeout: float = 30.0
    max_retries: int = 0
    max_reply_chars: int = 500

    def __post_init__(self):
        """Pick the provider key from the environment when not set."""
        if not self.api_key:
            env_var = "ANTHROPIC_API_KEY" if self.provider == "anthropic" else "OPENAI_API_KEY"
            self.api_key = os.environ.get(env_var, "")


@dataclass
class ObservabilityConfig:
    """Logging configuration."""
    log_level: str = "INFO"
    log_file: Optional[str] = "hejbot.log"
    log_format: str = LOG_FORMAT


@dataclass
class Settings:
    """Application settings."""
    environment: Environment = Environment.DEVELOPMENT
    app_name: str = "HejBot"
    debug_mode: bool = False

    platform: PlatformConfig = field(default_factory=PlatformConfig)
    bot: BotConfig = field(default_factory=BotConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    def to_dict(self) -> Dict[str, Any]:
        """Convert settings to dictionary."""
        return asdict(self)

    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == Environment.PRODUCTION


class ConfigManager:
    """Loads settings from YAML and merges environment overrides."""

    ENV_OVERRIDES = {
        'platform.username': 'TB_USERNAME',
        'platform.password': 'TB_PASSWORD',
        'platform.cf_clearance': 'CF_CLEARANCE',
        'platform.base_url': 'TB_BASE_URL',
        'storage.data_dir': 'HEJBOT_DATA_DIR',
        'observability.log_level': 'LOG_LEVEL',
    }

    def __init__(self, config_path: Optional[str] = None, load_env_file: bool = True):
        if load_env_file:
            load_dotenv()
        self.config_path = config_path or self._find_config_path()
        self._settings: Optional[Settings] = None

        self.load_config()

    def _find_config_path(self) -> str:
        """Find configuration file path based on environment."""
        env = os.environ.get("ENVIRONMENT", "development")
        config_dir = Path(__file__).parent

        env_config = config_dir / f"settings.{env}.yaml"
        if env_config.exists():
            return str(env_config)

        default_config = config_dir / "settings.yaml"
        if default_config.exists():
            return str(default_config)

        raise FileNotFoundError("No configuration file found")

    def load_config(self) -> Settings:
        """Load configuration from file."""
        try:
            with open(self.config_path, 'r') as f:
                config_data = yaml.safe_load(f) or {}

            config_data = self._merge_environment_variables(config_data)
            self._settings = self._create_settings_from_dict(config_data)

            logger.info(f"Configuration loaded from {self.config_path}")
            return self._settings

        except Exception as e:
            logger.error(f"Failed to load configuration: {e}")
            raise

    def reload_config(self) -> Settings:
        """Reload configuration, keeping the current settings on failure."""
        try:
            return self.load_config()
        except Exception as e:
            logger.error(f"Failed to reload configuration: {e}")
            if self._settings is None:
                raise RuntimeError("No valid configuration available")
            return self._settings

    def _merge_environment_variables(self, config_data: Dict[str, Any]) -> Dict[str, Any]:
        """Merge environment variables with configuration data."""
        env_overrides = dict(self.ENV_OVERRIDES)
        provider = (config_data.get('llm') or {}).get('provider', 'openai')
        env_overrides['llm.api_key'] = (
            'ANTHROPIC_API_KEY' if provider == 'anthropic' else 'OPENAI_API_KEY'
        )

        for config_path, env_var in env_overrides.items():
            env_value = os.environ.get(env_var)
            if env_value:
                self._set_nested_value(config_data, config_path, env_value)

        return config_data

    def _set_nested_value(self, data: Dict[str, Any], path: str, value: Any):
        """Set nested dictionary value using dot notation."""
        keys = path.split('.')
        current = data

        for key in keys[:-1]:
            if not isinstance(current.get(key), dict):
                current[key] = {}
            current = current[key]

        current[keys[-1]] = value

    def _create_settings_from_dict(self, config_data: Dict[str, Any]) -> Settings:
        """Create Settings object from configuration dictionary."""
        settings_dict = {}

        settings_dict['environment'] = Environment(config_data.get('environment', 'development'))
        settings_dict['app_name'] = config_data.get('app_name', 'HejBot')
        settings_dict['debug_mode'] = config_data.get('debug_mode', False)

        if 'platform' in config_data:
            settings_dict['platform'] = PlatformConfig(**config_data['platform'])

        if 'bot' in config_data:
            settings_dict['bot'] = BotConfig(**config_data['bot'])

        if 'storage' in config_data:
            settings_dict['storage'] = StorageConfig(**config_data['storage'])

        if 'llm' in config_data:
            settings_dict['llm'] = LLMConfig(**config_data['llm'])

        if 'observability' in config_data:
            settings_dict['observability'] = ObservabilityConfig(**config_data['observability'])

        return Settings(**settings_dict)

    @property
    def settings(self) -> Settings:
        """Get current settings."""
        if not self._settings:
            self.load_config()
        if self._settings is None:
            raise RuntimeError("Failed to load configuration")
        return self._settings


def configure_logging(observability: ObservabilityConfig) -> None:
    """Install stream and optional file handlers on the root logger."""
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if observability.log_file:
        handlers.append(logging.FileHandler(observability.log_file))

    logging.basicConfig(
        level=getattr(logging, str(observability.log_level).upper(), logging.INFO),
        format=observability.log_format,
        handlers=handlers,
        force=True,
    )
    # engineio is chatty at INFO; socketio.client reports reconnect attempts there
    logging.getLogger("engineio").setLevel(logging.WARNING)
    logging.getLogger("socketio").setLevel(logging.INFO)


_config_manager: Optional[ConfigManager] = None


def get_config_manager() -> ConfigManager:
    """Get global configuration manager instance."""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager


def get_settings() -> Settings:
    """Get current application settings."""
    return get_config_manager().settings


def reload_config() -> Settings:
    """Reload the global configuration."""
    return get_config_manager().reload_config()


def load_config(config_path: Optional[str] = None) -> Settings:
    """Load settings from an explicit path and make them the global ones."""
    global _config_manager
    _config_manager = ConfigManager(config_path)
    return _config_manager.settings
