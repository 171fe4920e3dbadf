"""
Chatbot Core Module
==================

Core bot engine: message bookkeeping and the prefixed command dispatcher.
"""

from .base_core import ChatbotCore
from .commands import (
    PERMISSION_DENIED,
    UNKNOWN_COMMAND,
    BotCommands,
    Command,
    CommandContext,
    CommandDispatcher,
    ParsedCommand,
    format_duration,
)

__version__ = "1.0.0"

__all__ = [
    'ChatbotCore',
    'BotCommands',
    'Command',
    'CommandContext',
    'CommandDispatcher',
    'ParsedCommand',
    'PERMISSION_DENIED',
    'UNKNOWN_COMMAND',
    'format_duration',
]
