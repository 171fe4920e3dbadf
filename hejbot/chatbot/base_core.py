"""
Chatbot Core Module
==================

Core bot engine: records every inbound chat message and answers commands.
"""

import asyncio
import logging
from typing import Any, Dict, Iterable, Optional, Set

from ..channels.base_channel import ChannelError, ChannelEvent, ChannelMessage
from ..channels.twoblade import TwobladeChannel
from ..database.factory import BotDatabase
from .commands import CommandDispatcher

# Configure logging
logger = logging.getLogger(__name__)


class ChatbotCore:
    """
    Core chatbot engine.

    Per inbound message, in order: count the sender, add the message to the
    recent history, then run a command unless the sender is banned or is
    the bot itself. Messages are handled one at a time.
    """

    def __init__(
        self,
        channel: TwobladeChannel,
        database: BotDatabase,
        dispatcher: CommandDispatcher,
        initial_admins: Iterable[str] = (),
        greeting: Optional[str] = None,
        greeting_delay: float = 3.0,
        ignore_own_messages: bool = True,
    ):
        """
        Initialize the chatbot core.

        Args:
            channel: Connected chat channel
            database: Persistent stores
            dispatcher: Command dispatcher
            initial_admins: Users added to the admin list on start
            greeting: Message sent after the first connect, None to stay quiet
            greeting_delay: Seconds between connect and greeting
            ignore_own_messages: Skip command handling for the bot's messages
        """
        self.channel = channel
        self.database = database
        self.dispatcher = dispatcher
        self.initial_admins = list(initial_admins)
        self.greeting = greeting
        self.greeting_delay = greeting_delay
        self.ignore_own_messages = ignore_own_messages

        self.is_running = False
        self.messages_handled = 0
        self._lock = asyncio.Lock()
        self._greeted = False
        self._tasks: Set[asyncio.Task] = set()

        channel.on(ChannelEvent.MESSAGE, self.handle_message)
        channel.on(ChannelEvent.READY, self._on_ready)

    def seed_admins(self) -> None:
        for user in self.initial_admins:
            if self.database.add_admin(user):
                logger.info(f"Added initial admin {user}")

    async def start(self) -> None:
        """
        Seed admins, then log in and connect.

        Raises:
            AuthenticationError: if the login is rejected
            ChannelError: if the connection cannot be opened
        """
        logger.info("Starting Chatbot Core...")
        self.seed_admins()
        await self.channel.start()
        self.is_running = True
        logger.info("Chatbot Core started successfully")

    async def stop(self) -> None:
        logger.info("Stopping Chatbot Core...")
        self.is_running = False
        for task in list(self._tasks):
            task.cancel()
        await self.channel.stop()
        logger.info("Chatbot Core stopped successfully")

    def is_own_message(self, sender: str) -> bool:
        return sender.lower() == self.channel.identity.lower()

    async def handle_message(self, message: ChannelMessage) -> Optional[str]:
        """
        Process one inbound message.

        Returns:
            The reply that was sent, if any
        """
        async with self._lock:
            self.messages_handled += 1
            sender = message.sender_id
            self.database.message_counts.increment(sender)

            if message.user and isinstance(message.text, str) and message.text:
                self.database.recent_messages.append(sender, message.text, timestamp=message.timestamp)

            if not message.has_text:
                return None
            if self.database.is_banned(sender):
                logger.debug(f"Ignoring message from banned user {sender}")
                return None
            if self.ignore_own_messages and self.is_own_message(sender):
                return None

            try:
                reply = await self.dispatcher.dispatch(sender, message.text)
            except Exception as e:
                logger.error(f"Command from {sender} failed: {e}", exc_info=True)
                return None

            if reply:
                await self.send(reply)
            return reply

    async def send(self, text: str) -> bool:
        """Send a chat message; failures are logged, not raised."""
        try:
            await self.channel.send_message(text)
            return True
        except ChannelError as e:
            logger.error(f"Failed to send message: {e}")
            return False

    async def _on_ready(self) -> None:
        if self.greeting and not self._greeted:
            self._greeted = True
            task = asyncio.create_task(self._send_greeting())
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _send_greeting(self) -> None:
        await asyncio.sleep(self.greeting_delay)
        if await self.send(self.greeting):
            logger.info(f"Sent greeting: {self.greeting}")

    def get_status(self) -> Dict[str, Any]:
        """
        Get chatbot core status.

        Returns:
            Dict containing status information
        """
        return {
            'running': self.is_running,
            'messages_handled': self.messages_handled,
            'tracked_users': len(self.database.message_counts.as_dict()),
            'admins': len(self.database.admins),
            'banned': len(self.database.banned_users),
            'channel': self.channel.get_status(),
        }
