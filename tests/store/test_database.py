"""Tests for the local SQLite store."""

from __future__ import annotations

from datetime import UTC, date, datetime
from pathlib import Path

import pytest

from pagesync.core.types import Operation, QueueStatus, SyncStatus
from pagesync.store.database import LocalStore
from pagesync.store.models import Category, Item, Project, Prompt, Tag


class TestStoreCreation:
    """Tests for LocalStore initialization."""

    def test_creates_database(self, tmp_path: Path) -> None:
        """Should create database file and parent directories."""
        db_path = tmp_path / "nested" / "store.db"
        store = LocalStore(db_path)

        assert db_path.exists()
        store.close()

    def test_reopens_existing_db(self, tmp_path: Path) -> None:
        """Should reopen existing database with data preserved."""
        db_path = tmp_path / "store.db"

        store1 = LocalStore(db_path)
        store1.add_item(Item(id="i1", title="Keep me"))
        store1.close()

        store2 = LocalStore(db_path)
        item = store2.get_item("i1")
        assert item is not None
        assert item.title == "Keep me"
        store2.close()


class TestItems:
    """Tests for item CRUD."""

    def test_round_trip_all_fields(self, store: LocalStore) -> None:
        """Should persist every item field with its Python type."""
        created = datetime(2025, 1, 1, 8, 0, tzinfo=UTC)
        item = Item(
            id="i1",
            type="task",
            title="Write report",
            content="Details",
            priority="high",
            deadline=date(2025, 2, 1),
            completed=True,
            category_id="c1",
            project_id="p1",
            tags=["t1", "t2"],
            created_at=created,
            updated_at=created,
        )
        store.add_item(item)

        loaded = store.get_item("i1")
        assert loaded == item
        assert loaded.sync_status is SyncStatus.PENDING

    def test_get_missing(self, store: LocalStore) -> None:
        """Should return None for an unknown id."""
        assert store.get_item("nope") is None

    def test_update_fields(self, store: LocalStore) -> None:
        """Should update only the given columns."""
        store.add_item(Item(id="i1", title="Old", content="Body"))
        store.update_item("i1", title="New", sync_status=SyncStatus.SYNCED, tags=["x"])

        item = store.get_item("i1")
        assert item.title == "New"
        assert item.content == "Body"
        assert item.sync_status is SyncStatus.SYNCED
        assert item.tags == ["x"]

    def test_delete(self, store: LocalStore) -> None:
        """Should remove the row."""
        store.add_item(Item(id="i1"))
        store.delete_item("i1")
        assert store.list_items() == []

    def test_list_newest_first(self, store: LocalStore) -> None:
        """Should order by updated_at descending."""
        store.add_item(Item(id="old", updated_at=datetime(2025, 1, 1, tzinfo=UTC)))
        store.add_item(Item(id="new", updated_at=datetime(2025, 6, 1, tzinfo=UTC)))
        assert [i.id for i in store.list_items()] == ["new", "old"]


class TestPrompts:
    """Tests for prompt CRUD."""

    def test_round_trip(self, store: LocalStore) -> None:
        """Should persist prompt fields."""
        prompt = Prompt(
            id="p1",
            title="Summarize",
            prompt="Summarize {text}",
            type="text",
            category="Writing",
            tags=["short"],
            approved=True,
            quality=4,
            url_demo="https://example.com/demo",
        )
        store.add_prompt(prompt)
        assert store.get_prompt("p1") == prompt

    def test_update_and_delete(self, store: LocalStore) -> None:
        """Should update then delete a prompt."""
        store.add_prompt(Prompt(id="p1", title="A"))
        store.update_prompt("p1", favorite=True)
        assert store.get_prompt("p1").favorite is True

        store.delete_prompt("p1")
        assert store.get_prompt("p1") is None


class TestRemoteIdLink:
    """Tests for link_remote_id."""

    def test_links_once(self, store: LocalStore) -> None:
        """A remote id should be set once and never replaced."""
        store.add_item(Item(id="i1"))

        assert store.link_remote_id("items", "i1", "r1") is True
        assert store.link_remote_id("items", "i1", "r2") is False
        assert store.get_item("i1").remote_id == "r1"

    def test_rejects_unknown_table(self, store: LocalStore) -> None:
        """Should refuse tables that are not entity tables."""
        with pytest.raises(ValueError):
            store.link_remote_id("settings", "x", "r1")


class TestMetadata:
    """Tests for tags, categories and projects."""

    def test_tags(self, store: LocalStore) -> None:
        store.add_tag(Tag(id="t1", name="work", color="#fff"))
        assert store.list_tags() == [Tag(id="t1", name="work", color="#fff")]

    def test_categories_ordered(self, store: LocalStore) -> None:
        """Should list categories by sort order and count root siblings."""
        store.add_category(Category(id="b", name="B", icon="folder", sort_order=1))
        store.add_category(Category(id="a", name="A", icon="folder", sort_order=0))
        store.add_category(Category(id="c", name="C", icon="folder", parent_id="a", sort_order=5))

        assert [c.id for c in store.list_categories()] == ["a", "b", "c"]
        assert store.count_sibling_categories(None) == 2
        assert store.count_sibling_categories("a") == 1

    def test_projects(self, store: LocalStore) -> None:
        store.add_project(Project(id="p1", name="Launch", color="#000"))
        assert [p.name for p in store.list_projects()] == ["Launch"]


class TestQueue:
    """Tests for the sync_queue table."""

    def test_add_and_list_in_order(self, store: LocalStore) -> None:
        """Entries should come back oldest first."""
        store.add_queue_entry("items", "b", Operation.CREATE, enqueued_at=20.0)
        store.add_queue_entry("items", "a", Operation.CREATE, enqueued_at=10.0)

        assert [e.entity_id for e in store.list_queue("items")] == ["a", "b"]

    def test_families_are_separate(self, store: LocalStore) -> None:
        """Each family should only see its own entries."""
        store.add_queue_entry("items", "i1", Operation.CREATE)
        store.add_queue_entry("prompts", "p1", Operation.CREATE)

        assert [e.entity_id for e in store.list_queue("prompts")] == ["p1"]

    def test_payload_round_trip(self, store: LocalStore) -> None:
        """JSON payloads should be decoded on read."""
        entry = store.add_queue_entry("items", "i1", Operation.DELETE, {"remote_id": "r1"})

        loaded = store.get_queue_entry(entry.id)
        assert loaded.payload == {"remote_id": "r1"}
        assert loaded.remote_id == "r1"
        assert loaded.status is QueueStatus.QUEUED

    def test_update_entry(self, store: LocalStore) -> None:
        """Should update operation, retries and status."""
        entry = store.add_queue_entry("items", "i1", Operation.UPDATE)
        store.update_queue_entry(
            entry.id, operation=Operation.CREATE, retry_count=2, status=QueueStatus.FAILED
        )

        loaded = store.get_queue_entry(entry.id)
        assert loaded.operation is Operation.CREATE
        assert loaded.retry_count == 2
        assert loaded.status is QueueStatus.FAILED

    def test_filter_by_status(self, store: LocalStore) -> None:
        entry = store.add_queue_entry("items", "i1", Operation.CREATE)
        store.add_queue_entry("items", "i2", Operation.CREATE)
        store.update_queue_entry(entry.id, status=QueueStatus.FAILED)

        failed = store.list_queue("items", status=QueueStatus.FAILED)
        assert [e.entity_id for e in failed] == ["i1"]


class TestSettings:
    """Tests for the settings record."""

    def test_defaults(self, store: LocalStore) -> None:
        """A fresh store should report default settings."""
        settings = store.get_settings()
        assert settings.token is None
        assert settings.items_last_sync_at is None
        assert settings.auto_sync_enabled is True
        assert settings.auto_sync_interval == 5

    def test_update(self, store: LocalStore) -> None:
        """Should persist typed values."""
        checkpoint = datetime(2025, 3, 1, 9, 30, tzinfo=UTC)
        store.update_settings(
            token="tok",
            items_last_sync_at=checkpoint,
            auto_sync_enabled=False,
            auto_sync_interval=15,
        )

        settings = store.get_settings()
        assert settings.token == "tok"
        assert settings.items_last_sync_at == checkpoint
        assert settings.auto_sync_enabled is False
        assert settings.auto_sync_interval == 15

    def test_clear_value(self, store: LocalStore) -> None:
        """None should clear a setting."""
        store.update_settings(token="tok")
        store.update_settings(token=None)
        assert store.get_settings().token is None

    def test_unknown_key(self, store: LocalStore) -> None:
        with pytest.raises(ValueError):
            store.update_settings(colour="blue")
