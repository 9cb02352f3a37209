"""Conversion between local entities and remote property bags.

This module provides:
- Column: One typed remote column bound to an entity field
- ITEM_COLUMNS, PROMPT_COLUMNS: Column tables of both families
- split_text / join_text: rich_text block chunking
- item_to_properties / properties_to_item
- prompt_to_properties / properties_to_prompt
- favicon_url: Bookmark favicon derived from the URL host

Locally, items reference tags, categories and projects by id. Remotely the
same relations are stored by name, with colors and icons carried in side
channel columns (TagColors, CategoryIcon, ProjectColor) so that a pull on a
fresh store can recreate them faithfully. Parsing never resolves names:
that is the job of IdentifierResolver.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any
from urllib.parse import urlparse

from pagesync.client.api import LOCAL_ID_COLUMN, RemoteRecord
from pagesync.store.models import (
    ITEM_TYPES,
    PRIORITIES,
    PROMPT_TYPES,
    Category,
    Item,
    Project,
    Prompt,
    Tag,
)

logger = logging.getLogger(__name__)

TEXT_BLOCK_LIMIT = 2000  # characters per rich_text block
FAVICON_SERVICE = "https://www.google.com/s2/favicons?domain={host}&sz=32"


class ColumnKind(str, Enum):
    """Remote property types used by the two databases."""

    TITLE = "title"
    RICH_TEXT = "rich_text"
    SELECT = "select"
    MULTI_SELECT = "multi_select"
    URL = "url"
    DATE = "date"
    CHECKBOX = "checkbox"
    FILES = "files"


@dataclass(frozen=True)
class Column:
    """A remote column and the entity field it carries.

    Attributes:
        field: Attribute name on the local entity (or parsed record).
        name: Remote column name.
        kind: Remote property type.
    """

    field: str
    name: str
    kind: ColumnKind

    def encode(self, value: Any) -> dict[str, Any]:
        """Build the property value for ``value``."""
        match self.kind:
            case ColumnKind.TITLE:
                return {"title": split_text(value or "")}
            case ColumnKind.RICH_TEXT:
                return {"rich_text": split_text(value or "")}
            case ColumnKind.SELECT:
                return {"select": {"name": str(value)} if value else None}
            case ColumnKind.MULTI_SELECT:
                return {"multi_select": [{"name": name} for name in value or []]}
            case ColumnKind.URL:
                return {"url": value or None}
            case ColumnKind.DATE:
                return {"date": {"start": value.isoformat()} if value else None}
            case ColumnKind.CHECKBOX:
                return {"checkbox": bool(value)}
            case ColumnKind.FILES:
                if not value:
                    return {"files": []}
                name = urlparse(value).path.rsplit("/", 1)[-1] or value
                return {"files": [{"name": name, "external": {"url": value}}]}

    def decode(self, properties: dict[str, Any]) -> Any:
        """Read this column out of a record's property bag.

        Missing or mistyped properties decode to the kind's empty value.
        """
        prop = properties.get(self.name)
        if not isinstance(prop, dict) or prop.get("type", self.kind.value) != self.kind.value:
            prop = {}

        match self.kind:
            case ColumnKind.TITLE:
                return join_text(prop.get("title"))
            case ColumnKind.RICH_TEXT:
                return join_text(prop.get("rich_text"))
            case ColumnKind.SELECT:
                selected = prop.get("select")
                return (selected or {}).get("name") or None
            case ColumnKind.MULTI_SELECT:
                return [o["name"] for o in prop.get("multi_select") or [] if o.get("name")]
            case ColumnKind.URL:
                return prop.get("url") or None
            case ColumnKind.DATE:
                return _parse_date(prop.get("date"))
            case ColumnKind.CHECKBOX:
                return bool(prop.get("checkbox", False))
            case ColumnKind.FILES:
                files = prop.get("files") or []
                if not files:
                    return None
                first = files[0]
                return (first.get("file") or {}).get("url") or (
                    first.get("external") or {}
                ).get("url") or None


def _column_map(*columns: Column) -> dict[str, Column]:
    return {c.field: c for c in columns}


LOCAL_ID = Column("id", LOCAL_ID_COLUMN, ColumnKind.RICH_TEXT)

ITEM_COLUMNS = _column_map(
    Column("title", "Title", ColumnKind.TITLE),
    Column("type", "Type", ColumnKind.SELECT),
    Column("content", "Content", ColumnKind.RICH_TEXT),
    Column("url", "URL", ColumnKind.URL),
    Column("priority", "Priority", ColumnKind.SELECT),
    Column("deadline", "Deadline", ColumnKind.DATE),
    Column("completed", "Completed", ColumnKind.CHECKBOX),
    Column("tag_names", "Tags", ColumnKind.MULTI_SELECT),
    Column("category_name", "Category", ColumnKind.SELECT),
    Column("project_name", "Project", ColumnKind.SELECT),
    LOCAL_ID,
    Column("tag_colors", "TagColors", ColumnKind.RICH_TEXT),
    Column("category_icon", "CategoryIcon", ColumnKind.RICH_TEXT),
    Column("project_color", "ProjectColor", ColumnKind.RICH_TEXT),
)

PROMPT_COLUMNS = _column_map(
    Column("title", "Title", ColumnKind.TITLE),
    Column("description", "Description", ColumnKind.RICH_TEXT),
    Column("prompt", "Prompt", ColumnKind.RICH_TEXT),
    Column("type", "Type", ColumnKind.SELECT),
    Column("category", "Category", ColumnKind.SELECT),
    Column("tags", "Tags", ColumnKind.MULTI_SELECT),
    Column("note", "Note", ColumnKind.RICH_TEXT),
    Column("approved", "Approved", ColumnKind.CHECKBOX),
    Column("favorite", "Favorite", ColumnKind.CHECKBOX),
    Column("quality", "Quality", ColumnKind.SELECT),
    Column("text_demo", "TextDemo", ColumnKind.RICH_TEXT),
    Column("file_demo", "FileDemo", ColumnKind.FILES),
    Column("url_demo", "URLDemo", ColumnKind.URL),
    LOCAL_ID,
)


def _parse_date(value: Any) -> date | None:
    if not isinstance(value, dict) or not value.get("start"):
        return None
    try:
        return date.fromisoformat(str(value["start"])[:10])
    except ValueError:
        logger.debug("Ignoring unparseable date %r", value["start"])
        return None


# === Rich text ===


def split_text(text: str) -> list[dict[str, Any]]:
    """Split text into rich_text blocks of at most 2000 characters.

    Empty text yields a single empty block.
    """
    if not text:
        return [{"text": {"content": ""}}]
    return [
        {"text": {"content": text[i : i + TEXT_BLOCK_LIMIT]}}
        for i in range(0, len(text), TEXT_BLOCK_LIMIT)
    ]


def join_text(blocks: list[dict[str, Any]] | None) -> str:
    """Concatenate rich_text blocks back into a string."""
    parts: list[str] = []
    for block in blocks or []:
        if "plain_text" in block:
            parts.append(block.get("plain_text") or "")
        else:
            parts.append((block.get("text") or {}).get("content") or "")
    return "".join(parts)


def favicon_url(url: str | None) -> str | None:
    """Favicon service URL for a bookmark's host, or None."""
    if not url:
        return None
    host = urlparse(url).hostname
    if not host:
        return None
    return FAVICON_SERVICE.format(host=host)


# === Items ===


@dataclass
class MetadataLookup:
    """Local relational metadata used to turn ids into names."""

    tags: list[Tag] = field(default_factory=list)
    categories: list[Category] = field(default_factory=list)
    projects: list[Project] = field(default_factory=list)


@dataclass
class ParsedItem:
    """An item read from a remote record, relations still by name.

    Attributes:
        local_id: Embedded local id, if the record has one.
        tag_colors: Tag name to color hints from the TagColors column.
        updated_at: The record's last edit time.
    """

    remote_id: str
    updated_at: datetime
    local_id: str | None = None
    type: str = "note"
    title: str = ""
    content: str = ""
    url: str | None = None
    priority: str | None = None
    deadline: date | None = None
    completed: bool = False
    tag_names: list[str] = field(default_factory=list)
    tag_colors: dict[str, str] = field(default_factory=dict)
    category_name: str | None = None
    category_icon: str | None = None
    project_name: str | None = None
    project_color: str | None = None


def item_to_properties(item: Item, metadata: MetadataLookup | None = None) -> dict[str, Any]:
    """Convert a local item into a remote property bag.

    Every column is emitted, empty ones with the kind's empty value, so a
    field cleared locally is cleared remotely too. Relations are emitted by
    name. Ids missing from ``metadata`` are dropped; without metadata, tag
    values are sent as they are.

    Args:
        item: Local item.
        metadata: Tags, categories and projects for id to name lookup.

    Returns:
        Property bag keyed by remote column name.
    """
    cols = ITEM_COLUMNS
    properties: dict[str, Any] = {}

    def put(field_name: str, value: Any) -> None:
        column = cols[field_name]
        properties[column.name] = column.encode(value)

    put("title", item.title)
    put("type", item.type)
    put("content", item.content)
    put("url", item.url)
    put("priority", item.priority)
    put("deadline", item.deadline)
    put("completed", item.completed)
    put("id", item.id)

    if metadata is not None:
        by_id = {t.id: t for t in metadata.tags}
        tag_colors: dict[str, str] = {}
        for tag_id in item.tags:
            tag = by_id.get(tag_id)
            if tag is not None:
                tag_colors[tag.name] = tag.color
        put("tag_names", list(tag_colors))
        put("tag_colors", json.dumps(tag_colors, separators=(",", ":")) if tag_colors else "")
    else:
        put("tag_names", item.tags)
        put("tag_colors", "")

    category = None
    if item.category_id and metadata is not None:
        category = next((c for c in metadata.categories if c.id == item.category_id), None)
    put("category_name", category.name if category else None)
    put("category_icon", category.icon if category else None)

    project = None
    if item.project_id and metadata is not None:
        project = next((p for p in metadata.projects if p.id == item.project_id), None)
    put("project_name", project.name if project else None)
    put("project_color", project.color if project else None)

    return properties


def _parse_tag_colors(text: str) -> dict[str, str]:
    if not text:
        return {}
    try:
        value = json.loads(text)
    except ValueError:
        logger.debug("Ignoring malformed TagColors: %r", text)
        return {}
    if not isinstance(value, dict):
        return {}
    return {str(k): str(v) for k, v in value.items()}


def properties_to_item(record: RemoteRecord) -> ParsedItem:
    """Parse a remote record of the items database."""
    props = record.properties
    cols = ITEM_COLUMNS

    item_type = cols["type"].decode(props)
    priority = cols["priority"].decode(props)

    return ParsedItem(
        remote_id=record.remote_id,
        updated_at=record.last_edited_at,
        local_id=cols["id"].decode(props) or None,
        type=item_type if item_type in ITEM_TYPES else "note",
        title=cols["title"].decode(props),
        content=cols["content"].decode(props),
        url=cols["url"].decode(props),
        priority=priority if priority in PRIORITIES else None,
        deadline=cols["deadline"].decode(props),
        completed=cols["completed"].decode(props),
        tag_names=cols["tag_names"].decode(props),
        tag_colors=_parse_tag_colors(cols["tag_colors"].decode(props)),
        category_name=cols["category_name"].decode(props),
        category_icon=cols["category_icon"].decode(props) or None,
        project_name=cols["project_name"].decode(props),
        project_color=cols["project_color"].decode(props) or None,
    )


# === Prompts ===


@dataclass
class ParsedPrompt:
    """A prompt read from a remote record."""

    remote_id: str
    updated_at: datetime
    local_id: str | None = None
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


def prompt_to_properties(prompt: Prompt) -> dict[str, Any]:
    """Convert a local prompt into a remote property bag.

    Every column is emitted, empty ones with the kind's empty value.
    """
    return {column.name: column.encode(getattr(prompt, name)) for name, column in PROMPT_COLUMNS.items()}


def _parse_quality(value: str | None) -> int | None:
    if not value:
        return None
    try:
        quality = int(value)
    except ValueError:
        return None
    return quality if 1 <= quality <= 5 else None


def properties_to_prompt(record: RemoteRecord) -> ParsedPrompt:
    """Parse a remote record of the prompts database.

    When the Prompt column is empty the Note column holds the prompt text
    and the parsed note is left empty.
    """
    props = record.properties
    cols = PROMPT_COLUMNS

    prompt_text = cols["prompt"].decode(props)
    note_text = cols["note"].decode(props)
    prompt_type = (cols["type"].decode(props) or "text").lower()

    return ParsedPrompt(
        remote_id=record.remote_id,
        updated_at=record.last_edited_at,
        local_id=cols["id"].decode(props) or None,
        title=cols["title"].decode(props),
        description=cols["description"].decode(props),
        prompt=prompt_text or note_text,
        type=prompt_type if prompt_type in PROMPT_TYPES else "text",
        category=cols["category"].decode(props),
        tags=cols["tags"].decode(props),
        note=note_text if prompt_text else "",
        approved=cols["approved"].decode(props),
        favorite=cols["favorite"].decode(props),
        quality=_parse_quality(cols["quality"].decode(props)),
        text_demo=cols["text_demo"].decode(props) or None,
        file_demo=cols["file_demo"].decode(props),
        url_demo=cols["url_demo"].decode(props),
    )
