"""Local mutations that feed the outbox.

Every function writes the entity (``updated_at`` = now, status pending) and
records the matching outbox operation in the same call. Nothing here talks
to the remote; the next push does.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import fields as dataclass_fields
from datetime import date
from typing import Any

from pagesync.core.types import Operation, SyncStatus
from pagesync.store.database import LocalStore
from pagesync.store.models import ITEM_TYPES, PRIORITIES, PROMPT_TYPES, Item, Prompt, utcnow
from pagesync.sync.outbox import OutboxQueue
from pagesync.sync.transform import favicon_url
from pagesync.sync.types import EntityNotFoundError

logger = logging.getLogger(__name__)

ITEMS = "items"
PROMPTS = "prompts"

# Managed by the store and the sync engine, not by callers
_PROTECTED_FIELDS = frozenset({"id", "created_at", "updated_at", "remote_id", "sync_status"})


def _check_updates(entity_type: type, updates: dict[str, Any]) -> None:
    allowed = {f.name for f in dataclass_fields(entity_type)} - _PROTECTED_FIELDS
    unknown = set(updates) - allowed
    if unknown:
        raise ValueError(f"Cannot update field(s): {', '.join(sorted(unknown))}")


def _validate_item(values: dict[str, Any]) -> None:
    if "type" in values and values["type"] not in ITEM_TYPES:
        raise ValueError(f"Invalid item type: {values['type']!r}")
    if values.get("priority") is not None and values["priority"] not in PRIORITIES:
        raise ValueError(f"Invalid priority: {values['priority']!r}")


def _validate_prompt(values: dict[str, Any]) -> None:
    if "type" in values and values["type"] not in PROMPT_TYPES:
        raise ValueError(f"Invalid prompt type: {values['type']!r}")
    quality = values.get("quality")
    if quality is not None and not 1 <= quality <= 5:
        raise ValueError(f"Quality must be between 1 and 5, got {quality}")


# === Items ===


def create_item(
    store: LocalStore,
    title: str,
    type: str = "note",
    content: str = "",
    url: str | None = None,
    priority: str | None = None,
    deadline: date | None = None,
    category_id: str | None = None,
    project_id: str | None = None,
    tags: list[str] | None = None,
) -> Item:
    """Create an item and queue its creation on the remote.

    Bookmarks get a favicon derived from their URL.

    Returns:
        The stored item.

    Raises:
        ValueError: If type or priority is not a known value.
    """
    _validate_item({"type": type, "priority": priority})
    now = utcnow()
    item = Item(
        id=str(uuid.uuid4()),
        type=type,
        title=title,
        content=content,
        url=url or None,
        favicon_url=favicon_url(url) if type == "bookmark" else None,
        priority=priority,
        deadline=deadline,
        category_id=category_id,
        project_id=project_id,
        tags=list(tags or []),
        created_at=now,
        updated_at=now,
    )
    store.add_item(item)
    OutboxQueue(store, ITEMS).enqueue(item.id, Operation.CREATE, item.to_row())
    logger.debug("Created item %s", item.id)
    return item


def update_item(store: LocalStore, item_id: str, **updates: Any) -> Item:
    """Update item fields and queue the update.

    Args:
        store: Local store.
        item_id: Item to update.
        **updates: Item fields to change.

    Returns:
        The updated item.

    Raises:
        EntityNotFoundError: If the item does not exist.
        ValueError: If a field is unknown, protected or invalid.
    """
    item = store.get_item(item_id)
    if item is None:
        raise EntityNotFoundError(ITEMS, item_id)
    _check_updates(Item, updates)
    _validate_item(updates)

    if "url" in updates and item.type == "bookmark":
        updates["favicon_url"] = favicon_url(updates["url"])

    store.update_item(item_id, **updates, updated_at=utcnow(), sync_status=SyncStatus.PENDING)
    updated = store.get_item(item_id)
    if updated is None:
        raise EntityNotFoundError(ITEMS, item_id)
    OutboxQueue(store, ITEMS).enqueue(item_id, Operation.UPDATE, updated.to_row())
    return updated


def toggle_item_completed(store: LocalStore, item_id: str) -> Item:
    """Flip the completed flag of an item."""
    item = store.get_item(item_id)
    if item is None:
        raise EntityNotFoundError(ITEMS, item_id)
    return update_item(store, item_id, completed=not item.completed)


def delete_item(store: LocalStore, item_id: str) -> None:
    """Delete an item and queue the archival of its remote record.

    The remote id is captured before the row disappears. Deleting an
    unknown item still queues a (no-op) delete.
    """
    item = store.get_item(item_id)
    remote_id = item.remote_id if item else None
    store.delete_item(item_id)
    OutboxQueue(store, ITEMS).enqueue(
        item_id, Operation.DELETE, {"remote_id": remote_id} if remote_id else None
    )


# === Prompts ===


def create_prompt(
    store: LocalStore,
    title: str,
    prompt: str = "",
    description: str = "",
    type: str = "text",
    category: str | None = None,
    tags: list[str] | None = None,
    note: str = "",
    approved: bool = False,
    favorite: bool = False,
    quality: int | None = None,
    text_demo: str | None = None,
    file_demo: str | None = None,
    url_demo: str | None = None,
) -> Prompt:
    """Create a prompt and queue its creation on the remote.

    Returns:
        The stored prompt.

    Raises:
        ValueError: If type or quality is out of range.
    """
    _validate_prompt({"type": type, "quality": quality})
    now = utcnow()
    entry = Prompt(
        id=str(uuid.uuid4()),
        title=title,
        description=description,
        prompt=prompt,
        type=type,
        category=category or None,
        tags=list(tags or []),
        note=note,
        approved=approved,
        favorite=favorite,
        quality=quality,
        text_demo=text_demo or None,
        file_demo=file_demo or None,
        url_demo=url_demo or None,
        created_at=now,
        updated_at=now,
    )
    store.add_prompt(entry)
    OutboxQueue(store, PROMPTS).enqueue(entry.id, Operation.CREATE, entry.to_row())
    logger.debug("Created prompt %s", entry.id)
    return entry


def update_prompt(store: LocalStore, prompt_id: str, **updates: Any) -> Prompt:
    """Update prompt fields and queue the update.

    Raises:
        EntityNotFoundError: If the prompt does not exist.
        ValueError: If a field is unknown, protected or invalid.
    """
    if store.get_prompt(prompt_id) is None:
        raise EntityNotFoundError(PROMPTS, prompt_id)
    _check_updates(Prompt, updates)
    _validate_prompt(updates)

    store.update_prompt(prompt_id, **updates, updated_at=utcnow(), sync_status=SyncStatus.PENDING)
    updated = store.get_prompt(prompt_id)
    if updated is None:
        raise EntityNotFoundError(PROMPTS, prompt_id)
    OutboxQueue(store, PROMPTS).enqueue(prompt_id, Operation.UPDATE, updated.to_row())
    return updated


def delete_prompt(store: LocalStore, prompt_id: str) -> None:
    """Delete a prompt and queue the archival of its remote record."""
    entry = store.get_prompt(prompt_id)
    remote_id = entry.remote_id if entry else None
    store.delete_prompt(prompt_id)
    OutboxQueue(store, PROMPTS).enqueue(
        prompt_id, Operation.DELETE, {"remote_id": remote_id} if remote_id else None
    )
