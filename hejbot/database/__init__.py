"""
Database Module
===============

JSON-file persistence for message counts, recent message history and the
admin and banned user lists.

Quick Start:
    from hejbot.database import create_database

    database = create_database(settings.storage, settings.bot.max_recent_messages)
    database.recent_messages.append("alice#twoblade.com", "hello")
"""

from .base import (
    BaseStore,
    DatabaseError,
    ReadError,
    WriteError,
)

from .json_store import (
    JsonDocumentStore,
    MessageCountStore,
    RecentMessageStore,
    UserListStore,
)

from .factory import BotDatabase, create_database

__all__ = [
    "BaseStore",
    "DatabaseError",
    "ReadError",
    "WriteError",
    "JsonDocumentStore",
    "MessageCountStore",
    "RecentMessageStore",
    "UserListStore",
    "BotDatabase",
    "create_database",
]
