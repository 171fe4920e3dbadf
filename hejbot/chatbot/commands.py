"""
Command Dispatcher
==================

Prefixed chat commands (``!hej <command> [args]``) and the built-in
command set: statistics, admin management and the AI ``ask`` command.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, Iterable, List, Optional

from ..database.factory import BotDatabase
from ..llm.ai_delegate import AIDelegate

logger = logging.getLogger(__name__)

UNKNOWN_COMMAND = "Unknown command. Use '{prefix} help' to see the available commands."
PERMISSION_DENIED = "Only admins can use that command."
NOT_CONNECTED = "Not connected yet."

DEFAULT_TOP = 5
MAX_TOP = 10


@dataclass
class ParsedCommand:
    """A message that starts with the command prefix."""
    name: str
    args: List[str] = field(default_factory=list)
    raw_args: str = ""


@dataclass
class CommandContext:
    """Everything a command handler gets to see."""
    sender: str
    command: ParsedCommand
    dispatcher: "CommandDispatcher"


CommandHandler = Callable[[CommandContext], Awaitable[Optional[str]]]


@dataclass
class Command:
    """A named command with its handler and help line."""
    name: str
    handler: CommandHandler
    usage: str = ""
    description: str = ""
    admin_only: bool = False


class CommandDispatcher:
    """
    Parses prefixed messages and routes them to command handlers.

    The prefix is matched case-insensitively and must be followed by
    whitespace or the end of the message; command names are lower-cased.
    """

    def __init__(
        self,
        prefix: str,
        handlers: Optional[Iterable[Command]] = None,
        is_admin: Optional[Callable[[str], bool]] = None,
    ):
        if not prefix or prefix != prefix.strip():
            raise ValueError(f"Invalid command prefix: {prefix!r}")

        self.prefix = prefix
        self.is_admin = is_admin or (lambda user: False)
        self.commands: Dict[str, Command] = {}
        for command in handlers or []:
            self.register(command)

    def register(self, command: Command) -> None:
        self.commands[command.name.lower()] = command

    @property
    def unknown_command_message(self) -> str:
        return UNKNOWN_COMMAND.format(prefix=self.prefix)

    def parse(self, text: str) -> Optional[ParsedCommand]:
        """
        Split a message into command name and arguments.

        Returns:
            ParsedCommand, or None if the message is not a command.
            A bare prefix parses as ``help``.
        """
        if not isinstance(text, str):
            return None

        stripped = text.strip()
        if stripped[:len(self.prefix)].lower() != self.prefix.lower():
            return None

        rest = stripped[len(self.prefix):]
        if rest and not rest[0].isspace():
            return None

        tokens = rest.split()
        if not tokens:
            return ParsedCommand(name="help")

        rest = rest.strip()
        return ParsedCommand(
            name=tokens[0].lower(),
            args=tokens[1:],
            raw_args=rest[len(tokens[0]):].strip(),
        )

    async def dispatch(self, sender: str, text: str) -> Optional[str]:
        """
        Run the command in ``text`` on behalf of ``sender``.

        Returns:
            The reply to send, or None when nothing should be sent.
        """
        parsed = self.parse(text)
        if parsed is None:
            return None

        command = self.commands.get(parsed.name)
        if command is None:
            logger.info(f"Unknown command '{parsed.name}' from {sender}")
            return self.unknown_command_message

        if command.admin_only and not self.is_admin(sender):
            logger.warning(f"{sender} tried admin command '{parsed.name}'")
            return PERMISSION_DENIED

        logger.info(f"Running command '{parsed.name}' for {sender}")
        return await command.handler(CommandContext(sender=sender, command=parsed, dispatcher=self))

    def help_text(self) -> str:
        entries = []
        for command in self.commands.values():
            usage = f"{self.prefix} {command.name}"
            if command.usage:
                usage = f"{usage} {command.usage}"
            if command.admin_only:
                usage = f"{usage} (admin)"
            entries.append(f"{usage} - {command.description}" if command.description else usage)
        return "Commands: " + " | ".join(entries)


def format_duration(seconds: float) -> str:
    """``93784`` -> ``1d 2h 3m 4s``; leading zero units are omitted."""
    remaining = max(0, int(seconds))
    days, remaining = divmod(remaining, 86400)
    hours, remaining = divmod(remaining, 3600)
    minutes, secs = divmod(remaining, 60)

    parts = []
    for value, unit in ((days, "d"), (hours, "h"), (minutes, "m")):
        if value or parts:
            parts.append(f"{value}{unit}")
    parts.append(f"{secs}s")
    return " ".join(parts)


class BotCommands:
    """The built-in command set."""

    def __init__(
        self,
        database: BotDatabase,
        ai_delegate: Optional[AIDelegate] = None,
        started_at: Optional[Callable[[], Optional[datetime]]] = None,
    ):
        self.database = database
        self.ai_delegate = ai_delegate
        self.started_at = started_at or (lambda: None)

    def commands(self) -> List[Command]:
        return [
            Command("help", self.help, description="show this message"),
            Command("count", self.count, "[user]", "messages sent by you or a user"),
            Command("top", self.top, "[n]", f"most active users (max {MAX_TOP})"),
            Command("uptime", self.uptime, description="time since the bot connected"),
            Command("admins", self.admins, description="list admins"),
            Command("admin", self.add_admin, "<user>", "make a user admin", admin_only=True),
            Command("ban", self.ban, "<user>", "ban a user from commands", admin_only=True),
            Command("ask", self.ask, "<question>", "ask the AI"),
        ]

    def create_dispatcher(self, prefix: str) -> CommandDispatcher:
        """Build a dispatcher wired to this command set and the admin list."""
        return CommandDispatcher(prefix, self.commands(), is_admin=self.database.is_admin)

    def _usage(self, context: CommandContext, usage: str) -> str:
        return f"Usage: {context.dispatcher.prefix} {context.command.name} {usage}"

    async def help(self, context: CommandContext) -> str:
        return context.dispatcher.help_text()

    async def count(self, context: CommandContext) -> str:
        user = context.command.args[0] if context.command.args else context.sender
        total = self.database.message_counts.get(user)
        noun = "message" if total == 1 else "messages"
        return f"{user} has sent {total} {noun}."

    async def top(self, context: CommandContext) -> str:
        n = DEFAULT_TOP
        if context.command.args:
            try:
                n = int(context.command.args[0])
            except ValueError:
                return self._usage(context, "[n]")
        n = max(1, min(n, MAX_TOP))

        ranking = self.database.message_counts.top(n)
        if not ranking:
            return "No messages counted yet."
        entries = [f"{i}. {user} ({count})" for i, (user, count) in enumerate(ranking, start=1)]
        return f"Top {len(ranking)}: " + ", ".join(entries)

    async def uptime(self, context: CommandContext) -> str:
        started = self.started_at()
        if started is None:
            return NOT_CONNECTED
        elapsed = (datetime.now(timezone.utc) - started).total_seconds()
        return f"Uptime: {format_duration(elapsed)}"

    async def admins(self, context: CommandContext) -> str:
        admins = self.database.admins.as_list()
        if not admins:
            return "No admins yet."
        return "Admins: " + ", ".join(admins)

    async def add_admin(self, context: CommandContext) -> str:
        if not context.command.args:
            return self._usage(context, "<user>")
        user = context.command.args[0]
        if not self.database.add_admin(user):
            return f"{user} is already an admin."
        logger.info(f"{context.sender} made {user} an admin")
        return f"{user} is now an admin."

    async def ban(self, context: CommandContext) -> str:
        if not context.command.args:
            return self._usage(context, "<user>")
        user = context.command.args[0]
        if self.database.is_admin(user):
            return "Admins cannot be banned."
        if not self.database.ban_user(user):
            return f"{user} is already banned."
        logger.info(f"{context.sender} banned {user}")
        return f"{user} has been banned."

    async def ask(self, context: CommandContext) -> str:
        question = context.command.raw_args
        if not question:
            return self._usage(context, "<question>")
        if self.ai_delegate is None:
            return "The AI is not available."
        return await self.ai_delegate.answer(context.sender, question)
