"""
Security utilities for channel implementations.

Keeps session credentials out of log output.
"""

import logging
import re
from typing import List, Tuple


class SecureLogger:
    """Logger wrapper that masks cookies, tokens and passwords."""

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)
        self.secret_patterns: List[Tuple[str, str]] = [
            (r'(auth_token=)[^;\s]+', r'\1***'),
            (r'(cf_clearance=)[^;\s]+', r'\1***'),
            (r'(["\']?(?:token|password|api_key)["\']?\s*[:=]\s*["\']?)[^"\',;\s}]+', r'\1***'),
            (r'\bsk-[A-Za-z0-9_\-]{8,}', 'sk-***'),
        ]
        self._secrets: List[str] = []

    def register_secret(self, value: str) -> None:
        """Mask this exact value wherever it appears."""
        if value and value not in self._secrets:
            self._secrets.append(value)

    def mask(self, message: str) -> str:
        """Mask credentials in a log message."""
        message = str(message)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        for pattern, replacement in self.secret_patterns:
            message = re.sub(pattern, replacement, message)
        return message

    def info(self, message: str, **kwargs):
        self.logger.info(self.mask(message), **kwargs)

    def error(self, message: str, **kwargs):
        self.logger.error(self.mask(message), **kwargs)

    def warning(self, message: str, **kwargs):
        self.logger.warning(self.mask(message), **kwargs)

    def debug(self, message: str, **kwargs):
        self.logger.debug(self.mask(message), **kwargs)
