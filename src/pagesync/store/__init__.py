"""Store module - Local SQLite persistence of entities, outbox and settings.

Mutation helpers that also enqueue outbox entries live in
``pagesync.store.operations``.
"""

from pagesync.store.database import LocalStore
from pagesync.store.models import (
    Category,
    Item,
    Project,
    Prompt,
    QueueEntry,
    Settings,
    Tag,
)

__all__ = [
    "LocalStore",
    # Models
    "Category",
    "Item",
    "Project",
    "Prompt",
    "QueueEntry",
    "Settings",
    "Tag",
]
