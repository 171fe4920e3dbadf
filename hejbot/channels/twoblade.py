"""
Twoblade Channel Implementation
===============================

Form login over HTTP followed by one Socket.IO connection authenticated with
the session cookie. Reconnection after a dropped connection is left to the
Socket.IO client; every successful (re)connect emits ``ready`` again, and
reconnects additionally emit ``reconnect``.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import aiohttp
import socketio
from socketio.exceptions import ConnectionError as SocketConnectionError
from socketio.exceptions import SocketIOError

from ..config.config_manager import PlatformConfig
from .base_channel import (
    AuthenticationError, BaseChannel, ChannelError, ChannelEvent,
    ChannelMessage, ChannelUser,
)
from .security import SecureLogger

secure_logger = SecureLogger(__name__)
logger = logging.getLogger(__name__)


class TwobladeChannel(BaseChannel):
    """Connection to a Twoblade chat server."""

    def __init__(
        self,
        config: PlatformConfig,
        username: Optional[str] = None,
        password: Optional[str] = None,
        sio: Optional[socketio.AsyncClient] = None,
    ):
        super().__init__(config)
        self.base_url = config.base_url.rstrip("/")
        self.username = username or config.username
        self.password = password or config.password

        self.cookies: Dict[str, str] = {}
        self.auth_token: Optional[str] = None
        self.started_at: Optional[datetime] = None

        # Reconnection is the client's job; its attempts are logged on socketio.client
        self.sio = sio or socketio.AsyncClient(
            reconnection=True,
            logger=logging.getLogger("socketio.client"),
            engineio_logger=False,
        )
        self._socket_handlers_registered = False

        secure_logger.register_secret(self.password)
        secure_logger.register_secret(config.cf_clearance)

    @property
    def name(self) -> str:
        return "twoblade"

    @property
    def connected(self) -> bool:
        return self.is_connected

    def get_domain(self) -> str:
        """Hostname of the platform, used in user identifiers."""
        hostname = urlparse(self.base_url).hostname
        if not hostname:
            logger.error(f"Could not parse a hostname from {self.base_url}")
            return "default.domain"
        return hostname

    @property
    def identity(self) -> str:
        """How the platform labels this bot's own messages."""
        return f"{self.username}#{self.get_domain()}"

    def _clearance_cookie(self) -> Optional[str]:
        if self.config.cf_clearance:
            return f"cf_clearance={self.config.cf_clearance}"
        return None

    def _login_headers(self) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/x-www-form-urlencoded",
            "User-Agent": self.config.user_agent,
            "Referer": f"{self.base_url}{self.config.login_path}",
            "Origin": self.base_url,
        }
        clearance = self._clearance_cookie()
        if clearance:
            headers["Cookie"] = clearance
        return headers

    def _socket_cookie_header(self) -> str:
        parts = [
            part for part in (
                self._clearance_cookie(),
                f"{self.config.auth_cookie_name}={self.auth_token}",
            ) if part
        ]
        return "; ".join(parts)

    async def login(self) -> str:
        """
        Log in with the form endpoint and keep the session token.

        Returns:
            str: the session token

        Raises:
            AuthenticationError: on HTTP failure or when the auth cookie is missing
        """
        if not self.username or not self.password:
            raise AuthenticationError("Username and password are required", channel=self.name)

        url = f"{self.base_url}{self.config.login_path}"
        form = {"username": self.username, "password": self.password}
        timeout = aiohttp.ClientTimeout(total=self.config.request_timeout)

        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(
                    url,
                    data=form,
                    headers=self._login_headers(),
                    allow_redirects=False,
                ) as response:
                    status = response.status
                    received = {name: morsel.value for name, morsel in response.cookies.items()}
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise AuthenticationError(f"Login request to {url} failed: {e}", channel=self.name)

        if status >= 400:
            raise AuthenticationError(f"Login rejected with HTTP {status}", channel=self.name, status=status)

        self.cookies.update(received)
        token = self.cookies.get(self.config.auth_cookie_name)
        if not token:
            raise AuthenticationError(
                f"{self.config.auth_cookie_name} cookie not found in login response",
                channel=self.name,
                status=status,
            )

        self.auth_token = token
        secure_logger.register_secret(token)
        secure_logger.info(f"Logged in as {self.username}")
        await self.emit(ChannelEvent.LOGIN, self.username)
        return token

    def _register_socket_handlers(self) -> None:
        if self._socket_handlers_registered:
            return
        self.sio.on("connect", handler=self._on_connect)
        self.sio.on("disconnect", handler=self._on_disconnect)
        self.sio.on("connect_error", handler=self._on_connect_error)
        self.sio.on("users_count", handler=self._on_users_count)
        self.sio.on("recent_messages", handler=self._on_recent_messages)
        self.sio.on("message", handler=self._on_message)
        self._socket_handlers_registered = True

    async def connect(self) -> None:
        """Open the real-time connection."""
        if not self.auth_token:
            raise ChannelError("Must login before connecting", channel=self.name)

        self._register_socket_handlers()
        try:
            await self.sio.connect(
                self.base_url,
                headers={"Cookie": self._socket_cookie_header(), "Origin": self.base_url},
                auth={"token": self.auth_token},
                transports=["websocket"],
                socketio_path=self.config.socket_path,
            )
        except SocketConnectionError as e:
            raise ChannelError(
                f"Socket connection failed: {secure_logger.mask(str(e))}",
                channel=self.name,
                error_code="CONNECT_FAILED",
            ) from e
        self.is_running = True

    async def start(self) -> None:
        await self.login()
        await self.connect()

    async def stop(self) -> None:
        """Disconnect; the client does not reconnect after this."""
        self.is_running = False
        if self.sio.connected:
            await self.sio.disconnect()
        self.is_connected = False

    async def wait(self) -> None:
        """
        Block until the connection is closed for good.

        Raises:
            ChannelError: if the client gave up reconnecting while the channel
                was still supposed to be running
        """
        await self.sio.wait()
        if self.is_running:
            self.is_running = False
            error = ChannelError(
                "Socket reconnection ultimately failed",
                channel=self.name,
                error_code="RECONNECT_FAILED",
            )
            logger.error(str(error))
            await self.emit(ChannelEvent.ERROR, error)
            raise error

    async def send_message(self, text: str) -> None:
        if not self.is_connected:
            raise ChannelError("Not connected to socket", channel=self.name)
        try:
            await self.sio.emit("message", text)
        except SocketIOError as e:
            raise ChannelError(f"Send failed: {e}", channel=self.name, error_code="SEND_FAILED") from e

    async def _on_connect(self) -> None:
        self.is_connected = True
        if self.started_at is None:
            self.started_at = datetime.now(timezone.utc)
            logger.info(f"Connected to {self.base_url}")
        else:
            logger.info(f"Reconnected to {self.base_url}")
            await self.emit(ChannelEvent.RECONNECT)
        await self.emit(ChannelEvent.READY)

    async def _on_disconnect(self, reason: Any = None) -> None:
        self.is_connected = False
        logger.warning(f"Disconnected from {self.base_url}. Reason: {reason}")
        await self.emit(ChannelEvent.DISCONNECT, reason)
        if self.is_running:
            logger.info("Waiting for the client to reconnect")
            await self.emit(ChannelEvent.RECONNECTING, reason)

    async def _on_connect_error(self, data: Any = None) -> None:
        error = ChannelError(
            f"Socket connection error: {secure_logger.mask(str(data))}",
            channel=self.name,
            error_code="CONNECT_ERROR",
        )
        secure_logger.error(str(error))
        await self.emit(ChannelEvent.ERROR, error)

    async def _on_users_count(self, count: Any) -> None:
        await self.emit(ChannelEvent.USERS_COUNT, count)

    async def _on_recent_messages(self, messages: Any) -> None:
        await self.emit(ChannelEvent.RECENT_MESSAGES, messages)

    async def _on_message(self, data: Any) -> None:
        if not isinstance(data, dict):
            logger.debug(f"Ignoring non-object message payload: {data!r}")
            return

        from_user = data.get("fromUser")
        message = ChannelMessage(
            message_id=data.get("id"),
            user=ChannelUser(user_id=from_user) if from_user else None,
            text=data.get("text"),
            raw=data,
        )
        await self.emit(ChannelEvent.MESSAGE, message)
