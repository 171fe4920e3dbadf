"""
HejBot entry point.

Loads settings (and ``.env``), wires the stores, the Twoblade channel, the
AI delegate and the command dispatcher together and runs until the
connection is closed or the process is interrupted.
"""

import argparse
import asyncio
import logging
import sys
from dataclasses import dataclass
from typing import Any, List, Optional

from .channels import AuthenticationError, ChannelError, ChannelEvent, ChannelMessage, TwobladeChannel
from .chatbot import BotCommands, ChatbotCore
from .config import Settings, configure_logging, get_validation_errors, load_config
from .database import BotDatabase, create_database
from .llm import AIDelegate, LLMConfig, LLMError, create_llm_client

logger = logging.getLogger(__name__)

FRAME_WIDTH = 60
SHORT_TEXT_LENGTH = 35


def shorten(text: Any, limit: int = SHORT_TEXT_LENGTH) -> str:
    text = str(text)
    return text[:limit] + "..." if len(text) > limit else text


def format_message_frame(message: ChannelMessage, width: int = FRAME_WIDTH) -> List[str]:
    """Boxed summary of an inbound message for the console log."""
    def line(label: str, value: Any) -> str:
        content = f"{label}: '{value}',"
        return f"| {content}".ljust(width - 1) + "|"

    border = "=" * width
    return [
        border,
        "|   new message :".ljust(width - 1) + "|",
        line("  id", message.message_id),
        line("  text", shorten(message.text)),
        line("  fromUser", message.sender_id),
        border,
    ]


@dataclass
class HejBot:
    """The wired application."""
    settings: Settings
    database: BotDatabase
    channel: TwobladeChannel
    ai_delegate: AIDelegate
    core: ChatbotCore


def build_bot(settings: Settings) -> HejBot:
    database = create_database(settings.storage, settings.bot.max_recent_messages)
    channel = TwobladeChannel(settings.platform)

    llm_client = None
    if settings.llm.api_key:
        try:
            llm_client = create_llm_client(LLMConfig.from_settings(settings.llm))
        except (LLMError, ValueError) as e:
            logger.warning(f"AI disabled: {e}")
    else:
        logger.warning(f"No API key for {settings.llm.provider}; the ask command will apologise")

    ai_delegate = AIDelegate(
        llm_client,
        database.recent_messages,
        bot_name=settings.bot.name,
        max_reply_chars=settings.llm.max_reply_chars,
    )
    dispatcher = BotCommands(
        database, ai_delegate, started_at=lambda: channel.started_at
    ).create_dispatcher(settings.bot.command_prefix)

    core = ChatbotCore(
        channel,
        database,
        dispatcher,
        initial_admins=settings.bot.initial_admins,
        greeting=settings.bot.greeting,
        greeting_delay=settings.bot.greeting_delay,
        ignore_own_messages=settings.bot.ignore_own_messages,
    )

    @channel.on(ChannelEvent.MESSAGE)
    def log_message(message: ChannelMessage) -> None:
        logger.info("\n" + "\n".join(format_message_frame(message)))

    @channel.on(ChannelEvent.DISCONNECT)
    def log_disconnect(reason: Any = None) -> None:
        logger.warning(f"Bot disconnected! ({reason})")

    @channel.on(ChannelEvent.ERROR)
    def log_error(error: Exception) -> None:
        logger.error(f"Channel error: {error}")

    return HejBot(settings, database, channel, ai_delegate, core)


async def main(config_path: Optional[str] = None) -> int:
    """Run the bot; returns the process exit code."""
    settings = load_config(config_path)
    configure_logging(settings.observability)

    errors = get_validation_errors(settings)
    if errors:
        for error in errors:
            logger.error(f"Invalid configuration: {error}")
        return 2

    bot = build_bot(settings)

    try:
        await bot.core.start()
    except AuthenticationError as e:
        logger.error(f"Login failed: {e}")
        return 1
    except ChannelError as e:
        logger.error(f"Could not connect: {e}")
        await bot.core.stop()
        return 1

    logger.info(f"{settings.bot.name} connected - Version: {settings.bot.version}")

    try:
        await bot.channel.wait()
    except ChannelError as e:
        logger.error(f"Connection lost: {e}")
        return 1
    finally:
        await bot.core.stop()
    return 0


def run(argv: Optional[List[str]] = None) -> None:
    """Console script entry point."""
    parser = argparse.ArgumentParser(prog="hejbot", description="Twoblade chat bot")
    parser.add_argument("--config", help="Path to a settings YAML file")
    args = parser.parse_args(argv)

    try:
        exit_code = asyncio.run(main(args.config))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
        exit_code = 0
    sys.exit(exit_code)


if __name__ == "__main__":
    run()
