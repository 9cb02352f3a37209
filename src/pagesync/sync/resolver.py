"""Name to id resolution for pulled relations.

This module provides:
- IdentifierResolver: Maps tag/category/project names to local ids,
  creating missing local entities on the fly
"""

from __future__ import annotations

import logging
import uuid
from typing import TypeVar

from pagesync.store.database import LocalStore
from pagesync.store.models import Category, Project, Tag

logger = logging.getLogger(__name__)

DEFAULT_TAG_COLORS = ("#3b82f6", "#ef4444", "#22c55e", "#f59e0b", "#8b5cf6")
DEFAULT_PROJECT_COLORS = ("#06b6d4", "#ec4899", "#14b8a6", "#f97316", "#6366f1")
DEFAULT_CATEGORY_ICON = "folder"

T = TypeVar("T", Tag, Category, Project)


class IdentifierResolver:
    """Resolve relation names within a single pull pass.

    Matching is case-insensitive. Entities created during the pass are
    appended to the in-memory collections, so a name seen twice in the same
    pass resolves to the same id.
    """

    def __init__(
        self,
        store: LocalStore,
        tags: list[Tag],
        categories: list[Category],
        projects: list[Project],
    ) -> None:
        """Initialize the resolver.

        Args:
            store: Store where missing entities are created.
            tags: Existing tags (mutated as tags are created).
            categories: Existing categories (mutated likewise).
            projects: Existing projects (mutated likewise).
        """
        self._store = store
        self.tags = tags
        self.categories = categories
        self.projects = projects

    @classmethod
    def from_store(cls, store: LocalStore) -> IdentifierResolver:
        """Create a resolver over the store's current metadata."""
        return cls(store, store.list_tags(), store.list_categories(), store.list_projects())

    def resolve_tags(
        self,
        names: list[str],
        color_hints: dict[str, str] | None = None,
    ) -> list[str]:
        """Resolve tag names to tag ids, in order.

        Args:
            names: Tag names from the remote record.
            color_hints: Name to color map carried by the record.

        Returns:
            Local tag ids, one per name.
        """
        hints = color_hints or {}
        ids: list[str] = []
        for name in names:
            tag = _find(self.tags, name)
            if tag is None:
                color = hints.get(name) or DEFAULT_TAG_COLORS[len(ids) % len(DEFAULT_TAG_COLORS)]
                tag = self._store.add_tag(Tag(id=str(uuid.uuid4()), name=name, color=color))
                self.tags.append(tag)
                logger.debug("Created tag %r (%s)", name, color)
            ids.append(tag.id)
        return ids

    def resolve_category(self, name: str | None, icon_hint: str | None = None) -> str | None:
        """Resolve a category name to its id, creating a root category if needed."""
        if not name:
            return None
        category = _find(self.categories, name)
        if category is None:
            category = self._store.add_category(
                Category(
                    id=str(uuid.uuid4()),
                    name=name,
                    icon=icon_hint or DEFAULT_CATEGORY_ICON,
                    sort_order=self._store.count_sibling_categories(None),
                )
            )
            self.categories.append(category)
            logger.debug("Created category %r", name)
        return category.id

    def resolve_project(self, name: str | None, color_hint: str | None = None) -> str | None:
        """Resolve a project name to its id, creating the project if needed."""
        if not name:
            return None
        project = _find(self.projects, name)
        if project is None:
            color = color_hint or DEFAULT_PROJECT_COLORS[
                len(self.projects) % len(DEFAULT_PROJECT_COLORS)
            ]
            project = self._store.add_project(
                Project(id=str(uuid.uuid4()), name=name, color=color)
            )
            self.projects.append(project)
            logger.debug("Created project %r (%s)", name, color)
        return project.id


def _find(entities: list[T], name: str) -> T | None:
    wanted = name.lower()
    return next((e for e in entities if e.name.lower() == wanted), None)
