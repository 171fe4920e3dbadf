"""
JSON File Stores
================

Flat JSON documents backing the bot's counters and lists:

- ``messageCounts.json``  -- object mapping user identifier to message count
- ``recentMessages.json`` -- array of ``{fromUser, text, timestamp}``, capped
- ``admins.json``         -- array of user identifiers
- ``bannedUsers.json``    -- array of user identifiers

Read and write failures are logged and never propagated; the bot keeps
running on its in-memory state.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from .base import BaseStore, ReadError, WriteError

logger = logging.getLogger(__name__)


class JsonDocumentStore(BaseStore):
    """Whole-file JSON document with a typed default."""

    def __init__(self, path: Path, default_factory: Callable[[], Any]):
        super().__init__(path)
        self.default_factory = default_factory
        self.data = self.load()

    def _read(self) -> Any:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            raise ReadError(f"Could not read {self.path}: {e}", original_error=e)

    def _write(self, value: Any) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(value, f, indent=2, ensure_ascii=False)
        except (OSError, TypeError) as e:
            raise WriteError(f"Could not write {self.path}: {e}", original_error=e)

    def load(self) -> Any:
        default = self.default_factory()
        if not self.path.exists():
            logger.info(f"No {self.name} found, starting empty")
            return default

        try:
            value = self._read()
        except ReadError as e:
            logger.error(f"Error loading {self.name}: {e}")
            return default

        if not isinstance(value, type(default)):
            logger.error(
                f"Unexpected content in {self.name}: expected {type(default).__name__}, "
                f"got {type(value).__name__}; starting empty"
            )
            return default

        logger.info(f"Loaded {self.name}")
        return value

    def save(self) -> bool:
        try:
            self._write(self.data)
            return True
        except WriteError as e:
            logger.error(f"Error saving {self.name}: {e}")
            return False


class MessageCountStore(JsonDocumentStore):
    """Per-user message counters."""

    def __init__(self, path: Path):
        super().__init__(path, dict)
        # Drop anything that is not a non-negative integer count
        self.data = {
            str(user): count for user, count in self.data.items()
            if isinstance(count, int) and not isinstance(count, bool) and count >= 0
        }

    def increment(self, user: str) -> int:
        self.data[user] = self.data.get(user, 0) + 1
        self.save()
        return self.data[user]

    def get(self, user: str) -> int:
        return self.data.get(user, 0)

    def top(self, n: int = 5) -> List[Tuple[str, int]]:
        """Users with the most messages, highest first, ties by name."""
        ranked = sorted(self.data.items(), key=lambda item: (-item[1], item[0]))
        return ranked[:max(n, 0)]

    def total(self) -> int:
        return sum(self.data.values())

    def as_dict(self) -> Dict[str, int]:
        return dict(self.data)


class RecentMessageStore(JsonDocumentStore):
    """Bounded, insertion-ordered history; the oldest entry is dropped first."""

    def __init__(self, path: Path, max_messages: int = 400):
        if max_messages <= 0:
            raise ValueError("max_messages must be positive")
        self.max_messages = max_messages
        super().__init__(path, list)
        self.data = [entry for entry in self.data if self._is_entry(entry)]
        self._trim()

    @staticmethod
    def _is_entry(entry: Any) -> bool:
        return isinstance(entry, dict) and "fromUser" in entry and "text" in entry

    def _trim(self) -> None:
        overflow = len(self.data) - self.max_messages
        if overflow > 0:
            del self.data[:overflow]

    def append(self, user: str, text: str, timestamp: Optional[datetime] = None) -> Dict[str, str]:
        stamp = (timestamp or datetime.now(timezone.utc)).isoformat()
        entry = {"fromUser": user, "text": text, "timestamp": stamp}
        self.data.append(entry)
        self._trim()
        self.save()
        return entry

    def as_list(self) -> List[Dict[str, str]]:
        return list(self.data)

    def __len__(self) -> int:
        return len(self.data)


class UserListStore(JsonDocumentStore):
    """Append-only list of unique user identifiers."""

    def __init__(self, path: Path):
        super().__init__(path, list)
        unique: List[str] = []
        for user in self.data:
            if isinstance(user, str) and user not in unique:
                unique.append(user)
        self.data = unique

    def add(self, user: str) -> bool:
        if user in self.data:
            return False
        self.data.append(user)
        self.save()
        logger.info(f"Added {user} to {self.name}")
        return True

    def contains(self, user: str) -> bool:
        return user in self.data

    def as_list(self) -> List[str]:
        return list(self.data)

    def __contains__(self, user: str) -> bool:
        return self.contains(user)

    def __len__(self) -> int:
        return len(self.data)
