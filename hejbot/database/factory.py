"""
Database Factory
================

Builds the four JSON stores the bot persists from the storage settings.

Usage:
    database = create_database(settings.storage, settings.bot.max_recent_messages)
    database.message_counts.increment("alice#twoblade.com")
"""

import logging
from dataclasses import dataclass
from pathlib import Path

from ..config.config_manager import StorageConfig
from .json_store import MessageCountStore, RecentMessageStore, UserListStore

logger = logging.getLogger(__name__)


@dataclass
class BotDatabase:
    """All persisted bot state."""
    message_counts: MessageCountStore
    recent_messages: RecentMessageStore
    admins: UserListStore
    banned_users: UserListStore

    def is_admin(self, user: str) -> bool:
        return self.admins.contains(user)

    def is_banned(self, user: str) -> bool:
        return self.banned_users.contains(user)

    def add_admin(self, user: str) -> bool:
        return self.admins.add(user)

    def ban_user(self, user: str) -> bool:
        return self.banned_users.add(user)


def create_database(storage: StorageConfig, max_recent_messages: int = 400) -> BotDatabase:
    """Load every store from the configured data directory."""
    data_dir = Path(storage.data_dir)
    if not data_dir.exists():
        logger.info(f"Creating data directory {data_dir}")
        data_dir.mkdir(parents=True, exist_ok=True)

    return BotDatabase(
        message_counts=MessageCountStore(storage.path_for(storage.message_counts_file)),
        recent_messages=RecentMessageStore(
            storage.path_for(storage.recent_messages_file), max_recent_messages
        ),
        admins=UserListStore(storage.path_for(storage.admins_file)),
        banned_users=UserListStore(storage.path_for(storage.banned_users_file)),
    )
