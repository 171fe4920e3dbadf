"""
Unit Tests for Database Module
==============================

Test suite for the JSON stores:
- load/save behaviour and failure tolerance
- message counters
- bounded recent-message history
- append-only user lists
- factory wiring of the four documents
"""

import json
import logging
from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from hejbot.config.config_manager import StorageConfig
from hejbot.database.base import WriteError
from hejbot.database.factory import create_database
from hejbot.database.json_store import (
    JsonDocumentStore, MessageCountStore, RecentMessageStore, UserListStore,
)


class TestJsonDocumentStore:
    """Test generic document loading and saving."""

    def test_missing_file_gives_default(self, tmp_path):
        store = JsonDocumentStore(tmp_path / "doc.json", dict)
        assert store.data == {}
        assert not (tmp_path / "doc.json").exists()

    def test_save_writes_indented_json(self, tmp_path):
        path = tmp_path / "doc.json"
        store = JsonDocumentStore(path, dict)
        store.data["a"] = 1

        assert store.save() is True
        assert path.read_text(encoding="utf-8") == json.dumps({"a": 1}, indent=2)

    def test_invalid_json_is_logged_and_ignored(self, tmp_path, caplog):
        path = tmp_path / "doc.json"
        path.write_text("{not json")

        with caplog.at_level(logging.ERROR):
            store = JsonDocumentStore(path, list)

        assert store.data == []
        assert "Error loading doc.json" in caplog.text

    def test_wrong_top_level_type_gives_default(self, tmp_path):
        path = tmp_path / "doc.json"
        path.write_text(json.dumps({"not": "a list"}))

        store = JsonDocumentStore(path, list)
        assert store.data == []

    def test_write_failure_is_swallowed(self, tmp_path, caplog):
        store = JsonDocumentStore(tmp_path / "doc.json", dict)

        with patch.object(store, "_write", side_effect=WriteError("disk full")):
            with caplog.at_level(logging.ERROR):
                assert store.save() is False

        assert "Error saving doc.json" in caplog.text


class TestMessageCountStore:
    """Test per-user counters."""

    def test_increment_persists_every_update(self, tmp_path):
        path = tmp_path / "messageCounts.json"
        store = MessageCountStore(path)

        assert store.increment("alice#twoblade.com") == 1
        assert store.increment("alice#twoblade.com") == 2
        assert store.increment("bob#twoblade.com") == 1

        on_disk = json.loads(path.read_text())
        assert on_disk == {"alice#twoblade.com": 2, "bob#twoblade.com": 1}

    def test_reload_from_disk(self, tmp_path):
        path = tmp_path / "messageCounts.json"
        path.write_text(json.dumps({"alice": 7}))

        store = MessageCountStore(path)
        assert store.get("alice") == 7
        assert store.get("nobody") == 0
        assert store.increment("alice") == 8

    def test_invalid_counts_are_dropped(self, tmp_path):
        path = tmp_path / "messageCounts.json"
        path.write_text(json.dumps({"alice": 3, "bob": -2, "carol": "x", "dave": True}))

        store = MessageCountStore(path)
        assert store.as_dict() == {"alice": 3}

    def test_top_orders_by_count_then_name(self, tmp_path):
        store = MessageCountStore(tmp_path / "c.json")
        store.data = {"carol": 2, "alice": 5, "bob": 2, "dave": 1}

        assert store.top(3) == [("alice", 5), ("bob", 2), ("carol", 2)]
        assert store.top(0) == []
        assert store.total() == 10


class TestRecentMessageStore:
    """Test the bounded recent-message history."""

    def test_append_records_entry(self, tmp_path):
        store = RecentMessageStore(tmp_path / "recent.json", max_messages=5)
        stamp = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

        entry = store.append("alice", "hello", timestamp=stamp)

        assert entry == {"fromUser": "alice", "text": "hello", "timestamp": "2024-05-01T12:00:00+00:00"}
        assert store.as_list() == [entry]

    def test_never_exceeds_cap_and_drops_oldest_first(self, tmp_path):
        path = tmp_path / "recent.json"
        store = RecentMessageStore(path, max_messages=3)

        for i in range(10):
            store.append("alice", f"message {i}")
            assert len(store) <= 3

        assert [m["text"] for m in store.as_list()] == ["message 7", "message 8", "message 9"]
        assert [m["text"] for m in json.loads(path.read_text())] == ["message 7", "message 8", "message 9"]

    def test_oversized_file_is_truncated_on_load(self, tmp_path):
        path = tmp_path / "recent.json"
        entries = [{"fromUser": "u", "text": str(i), "timestamp": ""} for i in range(6)]
        path.write_text(json.dumps(entries))

        store = RecentMessageStore(path, max_messages=4)
        assert [m["text"] for m in store.as_list()] == ["2", "3", "4", "5"]

    def test_malformed_entries_are_skipped(self, tmp_path):
        path = tmp_path / "recent.json"
        path.write_text(json.dumps([{"fromUser": "u", "text": "ok"}, "junk", {"text": "no user"}]))

        store = RecentMessageStore(path, max_messages=10)
        assert len(store) == 1

    def test_cap_must_be_positive(self, tmp_path):
        with pytest.raises(ValueError):
            RecentMessageStore(tmp_path / "recent.json", max_messages=0)


class TestUserListStore:
    """Test append-only user lists."""

    def test_add_is_idempotent(self, tmp_path):
        path = tmp_path / "admins.json"
        store = UserListStore(path)

        assert store.add("alice") is True
        assert store.add("alice") is False
        assert store.add("bob") is True

        assert store.as_list() == ["alice", "bob"]
        assert json.loads(path.read_text()) == ["alice", "bob"]
        assert "alice" in store
        assert not store.contains("carol")

    def test_duplicates_in_file_are_collapsed(self, tmp_path):
        path = tmp_path / "bannedUsers.json"
        path.write_text(json.dumps(["x", "y", "x", 3]))

        store = UserListStore(path)
        assert store.as_list() == ["x", "y"]


class TestDatabaseFactory:
    """Test wiring of the four stores."""

    def test_create_database_uses_configured_files(self, tmp_path):
        storage = StorageConfig(data_dir=str(tmp_path / "data"))
        database = create_database(storage, max_recent_messages=2)

        database.message_counts.increment("alice")
        database.recent_messages.append("alice", "hi")
        database.add_admin("alice")
        database.ban_user("mallory")

        data_dir = tmp_path / "data"
        assert sorted(p.name for p in data_dir.iterdir()) == [
            "admins.json", "bannedUsers.json", "messageCounts.json", "recentMessages.json",
        ]
        assert database.recent_messages.max_messages == 2
        assert database.is_admin("alice")
        assert database.is_banned("mallory")
        assert not database.is_banned("alice")
