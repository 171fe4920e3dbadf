"""
Base Channel Module
==================

Base classes and interfaces for chat platform connections.
A channel owns the transport and re-emits its lifecycle and message events
to registered listeners.
"""

import inspect
import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


class ChannelEvent:
    """Event names emitted by channels."""
    LOGIN = "login"
    READY = "ready"
    MESSAGE = "message"
    DISCONNECT = "disconnect"
    ERROR = "error"
    USERS_COUNT = "users_count"
    RECENT_MESSAGES = "recent_messages"
    RECONNECTING = "reconnecting"
    RECONNECT = "reconnect"


@dataclass
class ChannelUser:
    """User information for channels."""
    user_id: str
    name: Optional[str] = None

    @property
    def domain(self) -> Optional[str]:
        if "#" in self.user_id:
            return self.user_id.split("#", 1)[1]
        return None


@dataclass
class ChannelMessage:
    """Message received from a channel."""
    message_id: Optional[str]
    user: Optional[ChannelUser]
    text: Any
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    raw: Dict[str, Any] = field(default_factory=dict)

    @property
    def has_text(self) -> bool:
        return isinstance(self.text, str) and bool(self.text.strip())

    @property
    def sender_id(self) -> str:
        return self.user.user_id if self.user else "Unknown"


class ChannelError(Exception):
    """Base exception for channel-related errors."""

    def __init__(self, message: str, channel: str = "", error_code: str = ""):
        super().__init__(message)
        self.channel = channel
        self.error_code = error_code


class AuthenticationError(ChannelError):
    """Login was rejected or did not yield a session token."""

    def __init__(self, message: str, channel: str = "", status: Optional[int] = None):
        super().__init__(message, channel=channel, error_code="AUTH_FAILED")
        self.status = status


class BaseChannel(ABC):
    """
    Abstract base class for chat platform channels.

    Subclasses implement the transport; listeners subscribe with ``on``.
    """

    def __init__(self, config: Any):
        """
        Initialize the channel.

        Args:
            config: Channel configuration object
        """
        self.config = config
        self.is_connected = False
        self.is_running = False
        self._listeners: Dict[str, List[Callable]] = defaultdict(list)

    @property
    @abstractmethod
    def name(self) -> str:
        """Channel name identifier."""
        pass

    @abstractmethod
    async def start(self) -> None:
        """Authenticate and open the connection."""
        pass

    @abstractmethod
    async def stop(self) -> None:
        """Close the connection."""
        pass

    @abstractmethod
    async def send_message(self, text: str) -> None:
        """
        Send a text message through this channel.

        Raises:
            ChannelError: if the channel is not connected
        """
        pass

    def on(self, event: str, handler: Optional[Callable] = None):
        """
        Register a listener for an event; usable as a decorator.

        Args:
            event: Event name, see ChannelEvent
            handler: Sync or async callable
        """
        def register(fn: Callable) -> Callable:
            self._listeners[event].append(fn)
            return fn

        if handler is None:
            return register
        return register(handler)

    def off(self, event: str, handler: Callable) -> None:
        if handler in self._listeners.get(event, []):
            self._listeners[event].remove(handler)

    async def emit(self, event: str, *args: Any) -> None:
        """Call every listener for ``event`` in registration order."""
        for handler in list(self._listeners.get(event, [])):
            try:
                result = handler(*args)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Listener for '{event}' on {self.name} failed: {e}", exc_info=True)

    def get_status(self) -> Dict[str, Any]:
        """
        Get channel status information.

        Returns:
            Dict containing status data
        """
        return {
            'name': self.name,
            'connected': self.is_connected,
            'running': self.is_running,
            'listeners': {event: len(handlers) for event, handlers in self._listeners.items()},
        }
