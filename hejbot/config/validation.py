"""
Configuration Validation
========================

Startup checks for the bot settings with error/warning reporting.
"""

from typing import Any, Dict, List, Optional
from dataclasses import dataclass
import re
import logging

from .config_manager import Settings

logger = logging.getLogger(__name__)

# Must match the identifier suffix appended to AI replies, e.g. " [a1b2c3]"
IDENTIFIER_SUFFIX_LENGTH = 9


@dataclass
class ValidationError:
    """Validation error details."""
    field_path: str
    message: str
    severity: str = "error"  # error, warning
    suggested_value: Optional[Any] = None


class ValidationResult:
    """Result of configuration validation."""

    def __init__(self):
        self.errors: List[ValidationError] = []
        self.warnings: List[ValidationError] = []
        self.is_valid = True

    def add_error(self, field_path: str, message: str, suggested_value: Optional[Any] = None):
        """Add validation error."""
        self.errors.append(ValidationError(field_path, message, "error", suggested_value))
        self.is_valid = False

    def add_warning(self, field_path: str, message: str):
        """Add validation warning."""
        self.warnings.append(ValidationError(field_path, message, "warning"))

    def get_summary(self) -> str:
        """Get validation summary."""
        if self.is_valid:
            return f"Configuration valid. {len(self.warnings)} warnings."
        return f"Configuration invalid. {len(self.errors)} errors, {len(self.warnings)} warnings."


class ConfigValidator:
    """Validator for the bot settings."""

    URL_PATTERN = re.compile(
        r'^https?://'
        r'(?:(?:[A-Z0-9](?:[A-Z0-9-]{0,61}[A-Z0-9])?\.)+[A-Z]{2,6}\.?|'
        r'localhost|'
        r'\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3})'
        r'(?::\d+)?'
        r'/?$', re.IGNORECASE)

    VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    VALID_PROVIDERS = ["openai", "anthropic"]

    @classmethod
    def validate_url(cls, url: str, field_path: str, result: ValidationResult):
        """Validate URL format."""
        if not url or not cls.URL_PATTERN.match(url):
            result.add_error(field_path, f"Invalid URL format: {url}")
        elif not url.startswith('https://'):
            result.add_warning(field_path, f"Non-HTTPS URL detected: {url}")

    @staticmethod
    def validate_platform_config(config: Dict[str, Any], result: ValidationResult):
        prefix = "platform"

        ConfigValidator.validate_url(config.get("base_url", ""), f"{prefix}.base_url", result)

        if not config.get("username"):
            result.add_error(f"{prefix}.username", "Username is required (set TB_USERNAME)")
        if not config.get("password"):
            result.add_error(f"{prefix}.password", "Password is required (set TB_PASSWORD)")
        if not config.get("cf_clearance"):
            result.add_warning(f"{prefix}.cf_clearance", "No cf_clearance cookie configured (set CF_CLEARANCE)")

        socket_path = config.get("socket_path", "")
        if not socket_path.startswith("/"):
            result.add_error(f"{prefix}.socket_path", "Socket path must start with '/'", "/ws/socket.io")

    @staticmethod
    def validate_bot_config(config: Dict[str, Any], result: ValidationResult):
        prefix = "bot"

        command_prefix = config.get("command_prefix", "")
        if not command_prefix or not command_prefix.strip():
            result.add_error(f"{prefix}.command_prefix", "Command prefix cannot be empty")
        elif any(ch.isspace() for ch in command_prefix):
            result.add_error(f"{prefix}.command_prefix", "Command prefix cannot contain whitespace")

        max_recent = config.get("max_recent_messages", 400)
        if not isinstance(max_recent, int) or max_recent <= 0:
            result.add_error(f"{prefix}.max_recent_messages", "Must be positive integer")

        delay = config.get("greeting_delay", 0)
        if not isinstance(delay, (int, float)) or delay < 0:
            result.add_error(f"{prefix}.greeting_delay", "Must be non-negative")

    @staticmethod
    def validate_llm_config(config: Dict[str, Any], result: ValidationResult):
        prefix = "llm"

        provider = config.get("provider", "")
        if provider not in ConfigValidator.VALID_PROVIDERS:
            result.add_error(
                f"{prefix}.provider",
                f"Invalid provider. Must be one of: {ConfigValidator.VALID_PROVIDERS}",
            )

        if not config.get("api_key"):
            result.add_warning(f"{prefix}.api_key", "No API key configured, the ask command will be unavailable")

        if not config.get("model_name"):
            result.add_error(f"{prefix}.model_name", "Model name is required")

        budget = config.get("max_reply_chars", 500)
        if not isinstance(budget, int) or budget <= IDENTIFIER_SUFFIX_LENGTH + 3:
            result.add_error(
                f"{prefix}.max_reply_chars",
                f"Reply budget must leave room for the {IDENTIFIER_SUFFIX_LENGTH}-character identifier suffix",
            )

        retries = config.get("max_retries", 0)
        if not isinstance(retries, int) or retries < 0:
            result.add_error(f"{prefix}.max_retries", "Must be non-negative integer")

    @staticmethod
    def validate_observability_config(config: Dict[str, Any], result: ValidationResult):
        log_level = str(config.get("log_level", "INFO")).upper()
        if log_level not in ConfigValidator.VALID_LOG_LEVELS:
            result.add_error(
                "observability.log_level",
                f"Invalid log level. Must be one of: {ConfigValidator.VALID_LOG_LEVELS}",
            )

    @classmethod
    def validate_settings(cls, settings_dict: Dict[str, Any]) -> ValidationResult:
        """Validate a settings dictionary."""
        result = ValidationResult()

        if "platform" in settings_dict:
            cls.validate_platform_config(settings_dict["platform"], result)

        if "bot" in settings_dict:
            cls.validate_bot_config(settings_dict["bot"], result)

        if "llm" in settings_dict:
            cls.validate_llm_config(settings_dict["llm"], result)

        if "observability" in settings_dict:
            cls.validate_observability_config(settings_dict["observability"], result)

        logger.info(f"Configuration validation completed: {result.get_summary()}")
        return result


def validate_config(settings: Settings) -> ValidationResult:
    """Validate a Settings object."""
    return ConfigValidator.validate_settings(settings.to_dict())


def get_validation_errors(settings: Settings) -> List[str]:
    """Return the validation errors as readable strings."""
    result = validate_config(settings)
    return [f"{error.field_path}: {error.message}" for error in result.errors]
