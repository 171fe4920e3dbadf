"""
Configuration Module
====================

Settings loading, environment overrides, validation and logging setup.
"""

from .config_manager import (
    Settings, ConfigManager, Environment,
    PlatformConfig, BotConfig, StorageConfig, LLMConfig, ObservabilityConfig,
    load_config, get_config_manager, get_settings, reload_config,
    configure_logging,
)

from .validation import (
    ConfigValidator, ValidationError, ValidationResult,
    validate_config, get_validation_errors,
)

__all__ = [
    "Settings", "ConfigManager", "Environment",
    "PlatformConfig", "BotConfig", "StorageConfig", "LLMConfig", "ObservabilityConfig",
    "load_config", "get_config_manager", "get_settings", "reload_config",
    "configure_logging",

    "ConfigValidator", "ValidationError", "ValidationResult",
    "validate_config", "get_validation_errors",
]
