"""
Channels module

Chat platform connections: the abstract channel with its listener table and
the Twoblade implementation.
"""

from .base_channel import (
    AuthenticationError,
    BaseChannel,
    ChannelError,
    ChannelEvent,
    ChannelMessage,
    ChannelUser,
)
from .security import SecureLogger
from .twoblade import TwobladeChannel

__all__ = [
    "AuthenticationError",
    "BaseChannel",
    "ChannelError",
    "ChannelEvent",
    "ChannelMessage",
    "ChannelUser",
    "SecureLogger",
    "TwobladeChannel",
]
