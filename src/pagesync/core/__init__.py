"""Core module - Shared configuration and enums."""

from pagesync.core.config import DEFAULT_API_VERSION, DEFAULT_BASE_URL, RemoteConfig
from pagesync.core.types import Operation, QueueStatus, SyncPhase, SyncStatus

__all__ = [
    # Config
    "DEFAULT_API_VERSION",
    "DEFAULT_BASE_URL",
    "RemoteConfig",
    # Types
    "Operation",
    "QueueStatus",
    "SyncPhase",
    "SyncStatus",
]
