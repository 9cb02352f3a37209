"""Shared configuration classes for pagesync.

This module defines the connection settings used by the remote client.
"""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_BASE_URL = "https://api.notion.com/v1"
DEFAULT_API_VERSION = "2022-06-28"


@dataclass
class RemoteConfig:
    """Configuration for connecting to one remote database.

    Each sync family (items, prompts) gets its own RemoteConfig sharing
    the same token but pointing at a different database.

    Attributes:
        token: Bearer credential for the remote API.
        database_id: Identifier of the remote database.
        base_url: Base URL of the remote API.
        api_version: Value sent in the protocol-version header.
        timeout: Request timeout in seconds.
        page_size: Number of records requested per query page.
    """

    token: str | None
    database_id: str | None
    base_url: str = DEFAULT_BASE_URL
    api_version: str = DEFAULT_API_VERSION
    timeout: float = 30.0
    page_size: int = 100

    def __post_init__(self) -> None:
        """Normalize base URL and blank credentials."""
        self.base_url = self.base_url.rstrip("/")
        if self.token is not None:
            self.token = self.token.strip() or None
        if self.database_id is not None:
            self.database_id = self.database_id.strip() or None

    @property
    def is_configured(self) -> bool:
        """Check if both the token and the database are set.

        Returns:
            True when requests can be made.
        """
        return bool(self.token and self.database_id)
