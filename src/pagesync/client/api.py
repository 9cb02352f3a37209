"""HTTP client for the remote document database.

This module provides:
- RemoteClient: Typed wrapper around the database query and page endpoints
- RemoteRecord: One remote page (id, last edit time, archived flag, properties)
- QueryResult: One page of query results with its pagination cursor

Every request goes through the shared RateLimiter.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

import httpx

from pagesync.client.errors import (
    AuthenticationError,
    NotConfiguredError,
    NotFoundError,
    RateLimitedError,
    RemoteError,
    TransportError,
)
from pagesync.client.rate_limiter import RateLimiter
from pagesync.core.config import RemoteConfig

logger = logging.getLogger(__name__)

LOCAL_ID_COLUMN = "LocalID"


def local_id_filter(local_id: str) -> dict[str, Any]:
    """Query filter matching the record that embeds ``local_id``."""
    return {"property": LOCAL_ID_COLUMN, "rich_text": {"equals": local_id}}


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp from the API into an aware datetime."""
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def format_timestamp(value: datetime) -> str:
    """Format a datetime the way the API filters expect (UTC, millisecond precision)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class RemoteRecord:
    """A page from the remote database."""

    remote_id: str
    last_edited_at: datetime
    archived: bool
    properties: dict[str, Any]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RemoteRecord:
        """Create from API response dictionary."""
        return cls(
            remote_id=data["id"],
            last_edited_at=parse_timestamp(data["last_edited_time"]),
            archived=bool(data.get("archived", False)),
            properties=dict(data.get("properties") or {}),
        )


@dataclass
class QueryResult:
    """Result of one database query call."""

    records: list[RemoteRecord]
    has_more: bool
    next_cursor: str | None


class RemoteClient:
    """HTTP client for one remote database."""

    def __init__(
        self,
        config: RemoteConfig,
        limiter: RateLimiter,
    ) -> None:
        """Initialize the remote client.

        Args:
            config: Connection settings (token, database id, ...).
            limiter: Shared rate limiter every request is routed through.
        """
        self._config = config
        self._limiter = limiter
        headers = {
            "Notion-Version": config.api_version,
            "Content-Type": "application/json",
        }
        if config.token:
            headers["Authorization"] = f"Bearer {config.token}"
        self._client = httpx.Client(
            base_url=config.base_url,
            timeout=config.timeout,
            headers=headers,
        )

    @property
    def config(self) -> RemoteConfig:
        """Connection settings of this client."""
        return self._config

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> RemoteClient:
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()

    def _database_id(self) -> str:
        if not self._config.is_configured or self._config.database_id is None:
            raise NotConfiguredError()
        return self._config.database_id

    def _handle_response(self, response: httpx.Response) -> dict[str, Any]:
        """Decode a response or raise the matching RemoteError."""
        if response.is_success:
            data: dict[str, Any] = response.json()
            return data

        code = "unknown"
        message = response.reason_phrase or "Unknown error"
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            code = body.get("code") or code
            message = body.get("message") or message

        status = response.status_code
        if status == 429:
            retry_after: float | None = None
            header = response.headers.get("retry-after")
            if header:
                try:
                    retry_after = float(header)
                except ValueError:
                    logger.debug("Ignoring unparseable Retry-After: %r", header)
            raise RateLimitedError(message, retry_after=retry_after, code=code)
        if status in (401, 403):
            raise AuthenticationError(message, status, code)
        if status == 404:
            raise NotFoundError(message, status, code)
        raise RemoteError(message, status, code)

    def _request(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Send one request through the rate limiter."""
        if not self._config.is_configured:
            raise NotConfiguredError()

        def send() -> dict[str, Any]:
            try:
                response = self._client.request(method, path, json=json)
            except httpx.RequestError as e:
                raise TransportError(f"{method} {path} failed: {e}") from e
            return self._handle_response(response)

        return self._limiter.execute(send)

    # === Database queries ===

    def query(
        self,
        query_filter: dict[str, Any] | None = None,
        cursor: str | None = None,
    ) -> QueryResult:
        """Query one page of database records.

        Args:
            query_filter: Optional server-side filter object.
            cursor: Pagination cursor from a previous call.

        Returns:
            QueryResult with records and pagination state.
        """
        body: dict[str, Any] = {"page_size": self._config.page_size}
        if query_filter is not None:
            body["filter"] = query_filter
        if cursor is not None:
            body["start_cursor"] = cursor

        data = self._request("POST", f"/databases/{self._database_id()}/query", json=body)
        return QueryResult(
            records=[RemoteRecord.from_dict(r) for r in data.get("results") or []],
            has_more=bool(data.get("has_more", False)),
            next_cursor=data.get("next_cursor"),
        )

    def fetch_all(self, query_filter: dict[str, Any] | None = None) -> list[RemoteRecord]:
        """Fetch every record matching ``query_filter``, following pagination.

        Args:
            query_filter: Optional server-side filter object.

        Returns:
            All matching records in server order.
        """
        records: list[RemoteRecord] = []
        cursor: str | None = None
        while True:
            result = self.query(query_filter, cursor)
            records.extend(result.records)
            if not result.has_more or not result.next_cursor:
                break
            cursor = result.next_cursor
        logger.debug("Fetched %d records from %s", len(records), self._config.database_id)
        return records

    def fetch_modified_since(self, since: datetime) -> list[RemoteRecord]:
        """Fetch records edited after ``since`` (delta pull).

        Args:
            since: Checkpoint timestamp.

        Returns:
            Records whose last edit is after the checkpoint.
        """
        return self.fetch_all(
            {
                "timestamp": "last_edited_time",
                "last_edited_time": {"after": format_timestamp(since)},
            }
        )

    def find_by_local_id(self, local_id: str) -> RemoteRecord | None:
        """Find the record embedding ``local_id`` in its LocalID column.

        Returns:
            The first matching record, or None.
        """
        result = self.query(local_id_filter(local_id))
        return result.records[0] if result.records else None

    # === Record operations ===

    def create_record(self, properties: dict[str, Any]) -> RemoteRecord:
        """Create a record in the database.

        Args:
            properties: Property bag keyed by remote column name.

        Returns:
            The created record.
        """
        data = self._request(
            "POST",
            "/pages",
            json={
                "parent": {"database_id": self._database_id()},
                "properties": properties,
            },
        )
        return RemoteRecord.from_dict(data)

    def update_record(self, remote_id: str, properties: dict[str, Any]) -> RemoteRecord:
        """Overwrite the given properties of a record.

        Args:
            remote_id: Record id.
            properties: Property bag keyed by remote column name.

        Returns:
            The updated record.
        """
        data = self._request("PATCH", f"/pages/{remote_id}", json={"properties": properties})
        return RemoteRecord.from_dict(data)

    def archive_record(self, remote_id: str) -> RemoteRecord:
        """Archive (soft delete) a record.

        Args:
            remote_id: Record id.

        Returns:
            The archived record.
        """
        data = self._request("PATCH", f"/pages/{remote_id}", json={"archived": True})
        return RemoteRecord.from_dict(data)

    def test_connection(self) -> bool:
        """Check that the credentials can read the database.

        Returns:
            True if the database is reachable.
        """
        try:
            self._request("GET", f"/databases/{self._database_id()}")
        except RemoteError as e:
            logger.info("Connection test failed: %s", e)
            return False
        return True
