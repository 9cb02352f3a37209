"""Entity families sharing the sync engine.

This module provides:
- SyncFamily: Abstract adapter between the engine and one entity type
- PullContext: Lookup state of one pull pass
- ItemFamily: Tasks, bookmarks and notes (relations resolved by name)
- PromptFamily: Prompt library entries

The engine never touches Item or Prompt fields directly. Everything that
differs between the two families (where the database id and checkpoint live,
how records are parsed, which fields a remote win overwrites, how a push
property bag is built) sits behind this interface.
"""

from __future__ import annotations

import dataclasses
import logging
import uuid
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from pagesync.client.api import RemoteRecord
from pagesync.core.config import RemoteConfig
from pagesync.core.types import Operation, SyncStatus
from pagesync.store.database import LocalStore
from pagesync.store.models import Item, Prompt, Settings, utcnow
from pagesync.sync.resolver import IdentifierResolver
from pagesync.sync.transform import (
    MetadataLookup,
    favicon_url,
    item_to_properties,
    prompt_to_properties,
    properties_to_item,
    properties_to_prompt,
)
from pagesync.sync.types import Outcome

logger = logging.getLogger(__name__)

Entity = Item | Prompt

# Builds the remote property bag of one local entity
PropertiesBuilder = Callable[[Any], dict[str, Any]]


@dataclass
class PullContext:
    """Local lookups for one pull pass.

    Entities created or updated during the pass are remembered, so a later
    record of the same pass sees them.
    """

    resolver: IdentifierResolver
    by_remote_id: dict[str, Any] = field(default_factory=dict)
    by_local_id: dict[str, Any] = field(default_factory=dict)

    def remember(self, entity: Entity | None) -> None:
        """Index an entity by local id and, if linked, remote id."""
        if entity is None:
            return
        self.by_local_id[entity.id] = entity
        if entity.remote_id:
            self.by_remote_id[entity.remote_id] = entity


class SyncFamily(ABC):
    """Adapter between the sync engine and one entity type."""

    #: Queue family and settings prefix
    name: str
    #: Entity table in the local store
    table: str
    #: Human readable name used in messages
    label: str

    # === Settings ===

    @abstractmethod
    def database_id(self, settings: Settings) -> str | None:
        """Return the remote database id of this family."""

    @abstractmethod
    def checkpoint(self, settings: Settings) -> datetime | None:
        """Return the checkpoint of the last completed pull."""

    @abstractmethod
    def set_checkpoint(self, store: LocalStore, value: datetime) -> None:
        """Persist a new checkpoint."""

    def remote_config(self, settings: Settings) -> RemoteConfig:
        """Build the connection settings of this family's database."""
        return RemoteConfig(token=settings.token, database_id=self.database_id(settings))

    # === Local entities ===

    @abstractmethod
    def list_entities(self, store: LocalStore) -> list[Any]:
        """List every local entity of this family."""

    @abstractmethod
    def get_entity(self, store: LocalStore, entity_id: str) -> Any | None:
        """Get one local entity, or None if it no longer exists."""

    @abstractmethod
    def add_entity(self, store: LocalStore, entity: Any) -> None:
        """Insert a new local entity."""

    @abstractmethod
    def update_entity(self, store: LocalStore, entity_id: str, **fields: Any) -> None:
        """Update columns of a local entity."""

    # === Pull ===

    @abstractmethod
    def remote_fields(self, ctx: PullContext, record: RemoteRecord) -> tuple[str | None, dict[str, Any]]:
        """Parse a record into its embedded local id and syncable local fields.

        Relation names are resolved to local ids here.
        """

    @abstractmethod
    def new_entity(self, entity_id: str, fields: dict[str, Any], record: RemoteRecord) -> Any:
        """Build a local entity for a record with no local counterpart."""

    def begin_pull(self, store: LocalStore) -> PullContext:
        """Load local entities and relation metadata for a pull pass."""
        ctx = PullContext(resolver=IdentifierResolver.from_store(store))
        for entity in self.list_entities(store):
            ctx.remember(entity)
        return ctx

    def apply_record(self, store: LocalStore, ctx: PullContext, record: RemoteRecord) -> Outcome:
        """Merge one non-archived remote record into the local store.

        The local match is found by remote id, then by embedded local id.
        The remote version wins only when strictly newer than the local one.

        Returns:
            CREATED, UPDATED or SKIPPED (local version kept, or the
            entity is queued for deletion).
        """
        local_id, fields = self.remote_fields(ctx, record)

        local = ctx.by_remote_id.get(record.remote_id)
        if local is None and local_id:
            local = ctx.by_local_id.get(local_id)
            if local is not None and local.remote_id and local.remote_id != record.remote_id:
                logger.warning(
                    "Skipping %s record %s: local %s is linked to %s",
                    self.name, record.remote_id, local.id, local.remote_id,
                )
                return Outcome.SKIPPED

        if local is None and local_id and self._delete_pending(store, local_id):
            logger.debug(
                "Skipping %s record %s: local %s is queued for deletion",
                self.name, record.remote_id, local_id,
            )
            return Outcome.SKIPPED

        if local is None:
            entity = self.new_entity(local_id or str(uuid.uuid4()), fields, record)
            self.add_entity(store, entity)
            ctx.remember(entity)
            logger.debug("Created local %s %s from %s", self.name, entity.id, record.remote_id)
            return Outcome.CREATED

        if local.remote_id is None:
            store.link_remote_id(self.table, local.id, record.remote_id)

        if record.last_edited_at > local.updated_at:
            self.update_entity(
                store,
                local.id,
                **fields,
                sync_status=SyncStatus.SYNCED,
                updated_at=record.last_edited_at,
            )
            ctx.remember(self.get_entity(store, local.id))
            logger.debug("Remote wins for %s %s", self.name, local.id)
            return Outcome.UPDATED

        ctx.remember(self.get_entity(store, local.id))
        logger.debug("Local wins for %s %s", self.name, local.id)
        return Outcome.SKIPPED

    def _delete_pending(self, store: LocalStore, entity_id: str) -> bool:
        """Whether the outbox still holds a delete for this entity."""
        entries = store.list_queue(self.name, entity_id=entity_id)
        return any(e.operation is Operation.DELETE for e in entries)

    # === Push ===

    @abstractmethod
    def properties_builder(self, store: LocalStore) -> PropertiesBuilder:
        """Return a function building push property bags for this drain."""

    def mark_pushed(self, store: LocalStore, entity_id: str, remote_id: str) -> None:
        """Link the remote record (if not yet linked) and mark synced."""
        store.link_remote_id(self.table, entity_id, remote_id)
        self.update_entity(store, entity_id, sync_status=SyncStatus.SYNCED)


class ItemFamily(SyncFamily):
    """Tasks, bookmarks and notes."""

    name = "items"
    table = "items"
    label = "Items"

    def database_id(self, settings: Settings) -> str | None:
        return settings.items_database_id

    def checkpoint(self, settings: Settings) -> datetime | None:
        return settings.items_last_sync_at

    def set_checkpoint(self, store: LocalStore, value: datetime) -> None:
        store.update_settings(items_last_sync_at=value)

    def list_entities(self, store: LocalStore) -> list[Item]:
        return store.list_items()

    def get_entity(self, store: LocalStore, entity_id: str) -> Item | None:
        return store.get_item(entity_id)

    def add_entity(self, store: LocalStore, entity: Item) -> None:
        store.add_item(entity)

    def update_entity(self, store: LocalStore, entity_id: str, **fields: Any) -> None:
        store.update_item(entity_id, **fields)

    def remote_fields(self, ctx: PullContext, record: RemoteRecord) -> tuple[str | None, dict[str, Any]]:
        parsed = properties_to_item(record)
        resolver = ctx.resolver
        fields: dict[str, Any] = {
            "type": parsed.type,
            "title": parsed.title,
            "content": parsed.content,
            "url": parsed.url,
            "priority": parsed.priority,
            "deadline": parsed.deadline,
            "completed": parsed.completed,
            "tags": resolver.resolve_tags(parsed.tag_names, parsed.tag_colors),
            "category_id": resolver.resolve_category(parsed.category_name, parsed.category_icon),
            "project_id": resolver.resolve_project(parsed.project_name, parsed.project_color),
        }
        # Only bookmarks get a favicon; an existing one is kept otherwise
        if parsed.type == "bookmark":
            icon = favicon_url(parsed.url)
            if icon:
                fields["favicon_url"] = icon
        return parsed.local_id, fields

    def new_entity(self, entity_id: str, fields: dict[str, Any], record: RemoteRecord) -> Item:
        return Item(
            id=entity_id,
            created_at=utcnow(),
            updated_at=record.last_edited_at,
            remote_id=record.remote_id,
            sync_status=SyncStatus.SYNCED,
            **fields,
        )

    def properties_builder(self, store: LocalStore) -> PropertiesBuilder:
        metadata = MetadataLookup(
            tags=store.list_tags(),
            categories=store.list_categories(),
            projects=store.list_projects(),
        )
        return lambda item: item_to_properties(item, metadata)


class PromptFamily(SyncFamily):
    """Prompt library entries. Category and tags are plain names."""

    name = "prompts"
    table = "prompts"
    label = "Prompts"

    _NON_FIELDS = ("remote_id", "updated_at", "local_id")

    def database_id(self, settings: Settings) -> str | None:
        return settings.prompts_database_id

    def checkpoint(self, settings: Settings) -> datetime | None:
        return settings.prompts_last_sync_at

    def set_checkpoint(self, store: LocalStore, value: datetime) -> None:
        store.update_settings(prompts_last_sync_at=value)

    def list_entities(self, store: LocalStore) -> list[Prompt]:
        return store.list_prompts()

    def get_entity(self, store: LocalStore, entity_id: str) -> Prompt | None:
        return store.get_prompt(entity_id)

    def add_entity(self, store: LocalStore, entity: Prompt) -> None:
        store.add_prompt(entity)

    def update_entity(self, store: LocalStore, entity_id: str, **fields: Any) -> None:
        store.update_prompt(entity_id, **fields)

    def remote_fields(self, ctx: PullContext, record: RemoteRecord) -> tuple[str | None, dict[str, Any]]:
        parsed = properties_to_prompt(record)
        fields = {
            f.name: getattr(parsed, f.name)
            for f in dataclasses.fields(parsed)
            if f.name not in self._NON_FIELDS
        }
        return parsed.local_id, fields

    def new_entity(self, entity_id: str, fields: dict[str, Any], record: RemoteRecord) -> Prompt:
        return Prompt(
            id=entity_id,
            created_at=utcnow(),
            updated_at=record.last_edited_at,
            remote_id=record.remote_id,
            sync_status=SyncStatus.SYNCED,
            **fields,
        )

    def properties_builder(self, store: LocalStore) -> PropertiesBuilder:
        return prompt_to_properties


FAMILIES: dict[str, SyncFamily] = {
    family.name: family for family in (ItemFamily(), PromptFamily())
}
