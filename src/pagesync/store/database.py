"""Local persisted store.

This module provides:
- LocalStore: SQLite-backed storage for entities, the outbox and settings

The sync engine only touches entities through single-row operations, so
every method is its own transaction (autocommit). A re-entrant lock makes
the connection safe to share with the rate limiter and scheduler threads.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
import time
from pathlib import Path
from typing import Any

from pagesync.core.types import Operation, QueueStatus
from pagesync.store.models import (
    Category,
    Item,
    Project,
    Prompt,
    QueueEntry,
    Settings,
    Tag,
    encode_value,
)

logger = logging.getLogger(__name__)

ENTITY_TABLES = ("items", "prompts", "tags", "categories", "projects")


class LocalStore:
    """SQLite database holding everything the engine reads and writes."""

    def __init__(self, db_path: Path) -> None:
        """Initialize the local store.

        Args:
            db_path: Path to SQLite database file.
        """
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        self._lock = threading.RLock()

        self._conn = sqlite3.connect(
            str(self._db_path),
            check_same_thread=False,
            isolation_level=None,  # Autocommit mode
        )
        self._conn.row_factory = sqlite3.Row

        # Enable WAL mode for better concurrency
        self._conn.execute("PRAGMA journal_mode=WAL")

        self._create_tables()

    def _create_tables(self) -> None:
        """Create database tables if they don't exist."""
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS items (
                id TEXT PRIMARY KEY,
                type TEXT NOT NULL,
                title TEXT NOT NULL,
                content TEXT NOT NULL,
                url TEXT,
                favicon_url TEXT,
                priority TEXT,
                deadline TEXT,
                completed INTEGER NOT NULL DEFAULT 0,
                category_id TEXT,
                project_id TEXT,
                tags TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                remote_id TEXT,
                sync_status TEXT NOT NULL
            );
            CREATE INDEX IF NOT EXISTS idx_items_remote_id ON items (remote_id);

            CREATE TABLE IF NOT EXISTS prompts (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                description TEXT NOT NULL,
                prompt TEXT NOT NULL,
                type TEXT NOT NULL,
                category TEXT,
                tags TEXT,
                note TEXT NOT NULL,
                approved INTEGER NOT NULL DEFAULT 0,
                favorite INTEGER NOT NULL DEFAULT 0,
                quality INTEGER,
                text_demo TEXT,
                file_demo TEXT,
                url_demo TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                remote_id TEXT,
                sync_status TEXT NOT NULL
            );
            CREATE INDEX IF NOT EXISTS idx_prompts_remote_id ON prompts (remote_id);

            CREATE TABLE IF NOT EXISTS tags (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                color TEXT NOT NULL,
                remote_id TEXT
            );

            CREATE TABLE IF NOT EXISTS categories (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                icon TEXT NOT NULL,
                parent_id TEXT,
                sort_order INTEGER NOT NULL DEFAULT 0,
                remote_id TEXT
            );

            CREATE TABLE IF NOT EXISTS projects (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                color TEXT NOT NULL,
                remote_id TEXT
            );

            -- Outbox, one logical queue per sync family
            CREATE TABLE IF NOT EXISTS sync_queue (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                family TEXT NOT NULL,
                entity_id TEXT NOT NULL,
                operation TEXT NOT NULL,
                payload TEXT,
                enqueued_at REAL NOT NULL,
                retry_count INTEGER NOT NULL DEFAULT 0,
                status TEXT NOT NULL
            );
            CREATE INDEX IF NOT EXISTS idx_sync_queue_family_status
                ON sync_queue (family, status, enqueued_at);

            -- Key-value settings record
            CREATE TABLE IF NOT EXISTS settings (
                key TEXT PRIMARY KEY,
                value TEXT
            );
        """)

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    # === Generic row helpers ===

    def _insert(self, table: str, row: dict[str, Any]) -> None:
        columns = ", ".join(row)
        placeholders = ", ".join("?" for _ in row)
        with self._lock:
            self._conn.execute(
                f"INSERT INTO {table} ({columns}) VALUES ({placeholders})",
                list(row.values()),
            )

    def _update(self, table: str, entity_id: str, fields: dict[str, Any]) -> None:
        if not fields:
            return
        assignments = ", ".join(f"{name} = ?" for name in fields)
        values = [encode_value(v) for v in fields.values()]
        values.append(entity_id)
        with self._lock:
            self._conn.execute(
                f"UPDATE {table} SET {assignments} WHERE id = ?",
                values,
            )

    def _fetch_one(self, sql: str, params: tuple[Any, ...]) -> sqlite3.Row | None:
        with self._lock:
            cursor = self._conn.execute(sql, params)
            row: sqlite3.Row | None = cursor.fetchone()
        return row

    def _fetch_all(self, sql: str, params: tuple[Any, ...] = ()) -> list[sqlite3.Row]:
        with self._lock:
            cursor = self._conn.execute(sql, params)
            return cursor.fetchall()

    def link_remote_id(self, table: str, entity_id: str, remote_id: str) -> bool:
        """Attach a remote id to an entity that has none yet.

        A remote id, once set, is never replaced.

        Args:
            table: One of the entity tables.
            entity_id: Local id.
            remote_id: Remote record id.

        Returns:
            True if the link was written, False if one already existed.
        """
        if table not in ENTITY_TABLES:
            raise ValueError(f"Unknown entity table: {table}")
        with self._lock:
            cursor = self._conn.execute(
                f"UPDATE {table} SET remote_id = ? WHERE id = ? AND remote_id IS NULL",
                (remote_id, entity_id),
            )
            return cursor.rowcount > 0

    # === Items ===

    def get_item(self, item_id: str) -> Item | None:
        """Get an item by id."""
        row = self._fetch_one("SELECT * FROM items WHERE id = ?", (item_id,))
        return Item.from_row(row) if row else None

    def list_items(self) -> list[Item]:
        """List all items, most recently updated first."""
        rows = self._fetch_all("SELECT * FROM items ORDER BY updated_at DESC")
        return [Item.from_row(row) for row in rows]

    def add_item(self, item: Item) -> Item:
        """Insert a new item."""
        self._insert("items", item.to_row())
        return item

    def update_item(self, item_id: str, **fields: Any) -> None:
        """Update the given item columns."""
        self._update("items", item_id, fields)

    def delete_item(self, item_id: str) -> None:
        """Delete an item row."""
        with self._lock:
            self._conn.execute("DELETE FROM items WHERE id = ?", (item_id,))

    # === Prompts ===

    def get_prompt(self, prompt_id: str) -> Prompt | None:
        """Get a prompt by id."""
        row = self._fetch_one("SELECT * FROM prompts WHERE id = ?", (prompt_id,))
        return Prompt.from_row(row) if row else None

    def list_prompts(self) -> list[Prompt]:
        """List all prompts, most recently updated first."""
        rows = self._fetch_all("SELECT * FROM prompts ORDER BY updated_at DESC")
        return [Prompt.from_row(row) for row in rows]

    def add_prompt(self, prompt: Prompt) -> Prompt:
        """Insert a new prompt."""
        self._insert("prompts", prompt.to_row())
        return prompt

    def update_prompt(self, prompt_id: str, **fields: Any) -> None:
        """Update the given prompt columns."""
        self._update("prompts", prompt_id, fields)

    def delete_prompt(self, prompt_id: str) -> None:
        """Delete a prompt row."""
        with self._lock:
            self._conn.execute("DELETE FROM prompts WHERE id = ?", (prompt_id,))

    # === Metadata ===

    def list_tags(self) -> list[Tag]:
        """List all tags."""
        return [Tag.from_row(row) for row in self._fetch_all("SELECT * FROM tags")]

    def add_tag(self, tag: Tag) -> Tag:
        """Insert a new tag."""
        self._insert("tags", tag.to_row())
        return tag

    def list_categories(self) -> list[Category]:
        """List all categories in display order."""
        rows = self._fetch_all("SELECT * FROM categories ORDER BY sort_order")
        return [Category.from_row(row) for row in rows]

    def add_category(self, category: Category) -> Category:
        """Insert a new category."""
        self._insert("categories", category.to_row())
        return category

    def count_sibling_categories(self, parent_id: str | None) -> int:
        """Count categories sharing ``parent_id`` (None = root)."""
        if parent_id is None:
            row = self._fetch_one(
                "SELECT COUNT(*) AS n FROM categories WHERE parent_id IS NULL", ()
            )
        else:
            row = self._fetch_one(
                "SELECT COUNT(*) AS n FROM categories WHERE parent_id = ?", (parent_id,)
            )
        return int(row["n"]) if row else 0

    def list_projects(self) -> list[Project]:
        """List all projects."""
        return [Project.from_row(row) for row in self._fetch_all("SELECT * FROM projects")]

    def add_project(self, project: Project) -> Project:
        """Insert a new project."""
        self._insert("projects", project.to_row())
        return project

    # === Sync queue ===

    def add_queue_entry(
        self,
        family: str,
        entity_id: str,
        operation: Operation,
        payload: dict[str, Any] | None = None,
        enqueued_at: float | None = None,
    ) -> QueueEntry:
        """Append a queued entry to the outbox table.

        Returns:
            The stored entry with its row id.
        """
        timestamp = time.time() if enqueued_at is None else enqueued_at
        with self._lock:
            cursor = self._conn.execute(
                """
                INSERT INTO sync_queue
                (family, entity_id, operation, payload, enqueued_at, retry_count, status)
                VALUES (?, ?, ?, ?, ?, 0, ?)
                """,
                (
                    family,
                    entity_id,
                    operation.value,
                    json.dumps(payload) if payload is not None else None,
                    timestamp,
                    QueueStatus.QUEUED.value,
                ),
            )
            entry_id = cursor.lastrowid
        assert entry_id is not None
        return QueueEntry(
            id=entry_id,
            family=family,
            entity_id=entity_id,
            operation=operation,
            payload=payload,
            enqueued_at=timestamp,
        )

    def get_queue_entry(self, entry_id: int) -> QueueEntry | None:
        """Get an outbox entry by row id."""
        row = self._fetch_one("SELECT * FROM sync_queue WHERE id = ?", (entry_id,))
        return QueueEntry.from_row(row) if row else None

    def list_queue(
        self,
        family: str,
        status: QueueStatus | None = None,
        entity_id: str | None = None,
    ) -> list[QueueEntry]:
        """List outbox entries of a family, oldest first.

        Args:
            family: Sync family name.
            status: Optional status filter.
            entity_id: Optional entity filter.
        """
        sql = "SELECT * FROM sync_queue WHERE family = ?"
        params: list[Any] = [family]
        if status is not None:
            sql += " AND status = ?"
            params.append(status.value)
        if entity_id is not None:
            sql += " AND entity_id = ?"
            params.append(entity_id)
        sql += " ORDER BY enqueued_at, id"
        return [QueueEntry.from_row(row) for row in self._fetch_all(sql, tuple(params))]

    def update_queue_entry(
        self,
        entry_id: int,
        *,
        operation: Operation | None = None,
        payload: dict[str, Any] | None = None,
        retry_count: int | None = None,
        status: QueueStatus | None = None,
    ) -> None:
        """Update outbox entry columns. Only provided parameters are updated."""
        updates: list[str] = []
        values: list[Any] = []

        if operation is not None:
            updates.append("operation = ?")
            values.append(operation.value)
        if payload is not None:
            updates.append("payload = ?")
            values.append(json.dumps(payload))
        if retry_count is not None:
            updates.append("retry_count = ?")
            values.append(retry_count)
        if status is not None:
            updates.append("status = ?")
            values.append(status.value)

        if not updates:
            return

        values.append(entry_id)
        with self._lock:
            self._conn.execute(
                f"UPDATE sync_queue SET {', '.join(updates)} WHERE id = ?",
                values,
            )

    def delete_queue_entry(self, entry_id: int) -> None:
        """Remove an outbox entry."""
        with self._lock:
            self._conn.execute("DELETE FROM sync_queue WHERE id = ?", (entry_id,))

    def reset_queue_status(
        self,
        family: str,
        from_status: QueueStatus,
        reset_retries: bool = False,
    ) -> int:
        """Move every entry in ``from_status`` back to QUEUED.

        Returns:
            Number of entries changed.
        """
        sql = "UPDATE sync_queue SET status = ?"
        if reset_retries:
            sql += ", retry_count = 0"
        sql += " WHERE family = ? AND status = ?"
        with self._lock:
            cursor = self._conn.execute(
                sql, (QueueStatus.QUEUED.value, family, from_status.value)
            )
            return cursor.rowcount

    def delete_queue_status(self, family: str, status: QueueStatus) -> int:
        """Delete every entry of a family in ``status``.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            cursor = self._conn.execute(
                "DELETE FROM sync_queue WHERE family = ? AND status = ?",
                (family, status.value),
            )
            return cursor.rowcount

    # === Settings ===

    def get_settings(self) -> Settings:
        """Load the settings record (defaults for missing keys)."""
        rows = self._fetch_all("SELECT key, value FROM settings")
        return Settings.from_mapping({row["key"]: row["value"] or "" for row in rows})

    def update_settings(self, **fields: Any) -> None:
        """Persist the given settings fields.

        Raises:
            ValueError: If a field is not a Settings attribute.
        """
        known = Settings.__dataclass_fields__
        with self._lock:
            for key, value in fields.items():
                if key not in known:
                    raise ValueError(f"Unknown setting: {key}")
                encoded = "" if value is None else str(encode_value(value))
                self._conn.execute(
                    "INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?)",
                    (key, encoded),
                )
