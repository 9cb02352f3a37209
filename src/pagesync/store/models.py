"""Local entities persisted by LocalStore.

This module provides:
- Item, Prompt: the two synchronized entity families
- Tag, Category, Project: relational metadata referenced by items
- QueueEntry: a pending outbox mutation
- Settings: credentials, checkpoints and auto-sync configuration

Each dataclass knows how to build itself from a sqlite3.Row and how to
flatten itself into column values (``to_row``).
"""

from __future__ import annotations

import json
import sqlite3
from dataclasses import dataclass, field, fields
from datetime import UTC, date, datetime
from enum import Enum
from typing import Any

from pagesync.core.types import Operation, QueueStatus, SyncStatus

ITEM_TYPES = ("task", "bookmark", "note")
PRIORITIES = ("high", "medium", "low")
PROMPT_TYPES = ("text", "image", "video")


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def encode_value(value: Any) -> Any:
    """Convert a Python value into something sqlite3 can store."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (list, dict)):
        return json.dumps(value)
    return value


def decode_datetime(value: str | None) -> datetime | None:
    """Parse a stored ISO timestamp (always aware)."""
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _decode_date(value: str | None) -> date | None:
    return date.fromisoformat(value) if value else None


def _row_dict(obj: Any) -> dict[str, Any]:
    return {f.name: encode_value(getattr(obj, f.name)) for f in fields(obj)}


@dataclass
class Tag:
    """A colored label attached to items."""

    id: str
    name: str
    color: str
    remote_id: str | None = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Tag:
        return cls(id=row["id"], name=row["name"], color=row["color"], remote_id=row["remote_id"])

    def to_row(self) -> dict[str, Any]:
        return _row_dict(self)


@dataclass
class Category:
    """A (possibly nested) folder for items."""

    id: str
    name: str
    icon: str
    parent_id: str | None = None
    sort_order: int = 0
    remote_id: str | None = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Category:
        return cls(
            id=row["id"],
            name=row["name"],
            icon=row["icon"],
            parent_id=row["parent_id"],
            sort_order=row["sort_order"],
            remote_id=row["remote_id"],
        )

    def to_row(self) -> dict[str, Any]:
        return _row_dict(self)


@dataclass
class Project:
    """A colored grouping of items."""

    id: str
    name: str
    color: str
    remote_id: str | None = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Project:
        return cls(id=row["id"], name=row["name"], color=row["color"], remote_id=row["remote_id"])

    def to_row(self) -> dict[str, Any]:
        return _row_dict(self)


@dataclass
class Item:
    """A task, bookmark or note.

    Attributes:
        id: Opaque local id, never reused.
        tags: Local tag ids.
        updated_at: Last local modification; the only input to conflict resolution.
        remote_id: Remote record id, set once on first push or pull match.
    """

    id: str
    type: str = "note"
    title: str = ""
    content: str = ""
    url: str | None = None
    favicon_url: str | None = None
    priority: str | None = None
    deadline: date | None = None
    completed: bool = False
    category_id: str | None = None
    project_id: str | None = None
    tags: list[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    remote_id: str | None = None
    sync_status: SyncStatus = SyncStatus.PENDING

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Item:
        return cls(
            id=row["id"],
            type=row["type"],
            title=row["title"],
            content=row["content"],
            url=row["url"],
            favicon_url=row["favicon_url"],
            priority=row["priority"],
            deadline=_decode_date(row["deadline"]),
            completed=bool(row["completed"]),
            category_id=row["category_id"],
            project_id=row["project_id"],
            tags=json.loads(row["tags"]) if row["tags"] else [],
            created_at=decode_datetime(row["created_at"]) or utcnow(),
            updated_at=decode_datetime(row["updated_at"]) or utcnow(),
            remote_id=row["remote_id"],
            sync_status=SyncStatus(row["sync_status"]),
        )

    def to_row(self) -> dict[str, Any]:
        return _row_dict(self)


@dataclass
class Prompt:
    """An entry of the prompt library.

    Category and tags are stored as names, not ids.
    """

    id: str
    title: str = ""
    description: str = ""
    prompt: str = ""
    type: str = "text"
    category: str | None = None
    tags: list[str] = field(default_factory=list)
    note: str = ""
    approved: bool = False
    favorite: bool = False
    quality: int | None = None
    text_demo: str | None = None
    file_demo: str | None = None
    url_demo: str | None = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    remote_id: str | None = None
    sync_status: SyncStatus = SyncStatus.PENDING

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Prompt:
        return cls(
            id=row["id"],
            title=row["title"],
            description=row["description"],
            prompt=row["prompt"],
            type=row["type"],
            category=row["category"],
            tags=json.loads(row["tags"]) if row["tags"] else [],
            note=row["note"],
            approved=bool(row["approved"]),
            favorite=bool(row["favorite"]),
            quality=row["quality"],
            text_demo=row["text_demo"],
            file_demo=row["file_demo"],
            url_demo=row["url_demo"],
            created_at=decode_datetime(row["created_at"]) or utcnow(),
            updated_at=decode_datetime(row["updated_at"]) or utcnow(),
            remote_id=row["remote_id"],
            sync_status=SyncStatus(row["sync_status"]),
        )

    def to_row(self) -> dict[str, Any]:
        return _row_dict(self)


@dataclass
class QueueEntry:
    """A local mutation waiting to be applied to the remote.

    Attributes:
        id: Row id (assigned by the store).
        family: Sync family the entity belongs to ("items" or "prompts").
        entity_id: Local id of the mutated entity.
        operation: CREATE, UPDATE or DELETE.
        payload: Snapshot data; for DELETE it carries ``remote_id``.
        enqueued_at: Epoch seconds when the mutation was queued.
        retry_count: Failed attempts so far.
        status: QUEUED, SYNCING or FAILED.
    """

    id: int
    family: str
    entity_id: str
    operation: Operation
    payload: dict[str, Any] | None
    enqueued_at: float
    retry_count: int = 0
    status: QueueStatus = QueueStatus.QUEUED

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> QueueEntry:
        return cls(
            id=row["id"],
            family=row["family"],
            entity_id=row["entity_id"],
            operation=Operation(row["operation"]),
            payload=json.loads(row["payload"]) if row["payload"] else None,
            enqueued_at=row["enqueued_at"],
            retry_count=row["retry_count"],
            status=QueueStatus(row["status"]),
        )

    @property
    def remote_id(self) -> str | None:
        """Remote reference captured in the payload, if any."""
        if not self.payload:
            return None
        value = self.payload.get("remote_id")
        return str(value) if value else None


@dataclass
class Settings:
    """Single settings record.

    Attributes:
        token: Bearer credential shared by both remote databases.
        items_database_id: Remote database holding items.
        prompts_database_id: Remote database holding prompts.
        items_last_sync_at: Items checkpoint (last completed pull).
        prompts_last_sync_at: Prompts checkpoint.
        auto_sync_enabled: Whether the periodic trigger runs.
        auto_sync_interval: Minutes between periodic syncs.
    """

    token: str | None = None
    items_database_id: str | None = None
    prompts_database_id: str | None = None
    items_last_sync_at: datetime | None = None
    prompts_last_sync_at: datetime | None = None
    auto_sync_enabled: bool = True
    auto_sync_interval: int = 5

    @classmethod
    def from_mapping(cls, values: dict[str, str]) -> Settings:
        """Build settings from the raw key-value table."""
        settings = cls()
        if "token" in values:
            settings.token = values["token"] or None
        if "items_database_id" in values:
            settings.items_database_id = values["items_database_id"] or None
        if "prompts_database_id" in values:
            settings.prompts_database_id = values["prompts_database_id"] or None
        settings.items_last_sync_at = decode_datetime(values.get("items_last_sync_at"))
        settings.prompts_last_sync_at = decode_datetime(values.get("prompts_last_sync_at"))
        if "auto_sync_enabled" in values:
            settings.auto_sync_enabled = values["auto_sync_enabled"] == "1"
        if values.get("auto_sync_interval"):
            settings.auto_sync_interval = int(values["auto_sync_interval"])
        return settings
