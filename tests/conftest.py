"""Shared fixtures: a temporary local store and an in-memory remote database."""

from __future__ import annotations

import uuid
from collections.abc import Callable, Iterator
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import pytest

from pagesync.client.api import RemoteRecord, format_timestamp
from pagesync.client.rate_limiter import RateLimiter
from pagesync.core.config import RemoteConfig
from pagesync.store.database import LocalStore
from pagesync.sync.transform import join_text


class FakeRemote:
    """In-memory stand-in for the remote databases.

    Pages are kept as API-shaped dicts. ``now`` is the edit time stamped on
    every create/update; tests move it forward explicitly.
    """

    def __init__(self) -> None:
        self.pages: dict[str, dict[str, Any]] = {}
        self.calls: list[tuple[str, Any]] = []
        self.failures: dict[str, Exception] = {}
        self.now = datetime(2025, 1, 1, 12, 0, tzinfo=UTC)

    def tick(self, seconds: float = 60) -> datetime:
        """Advance the remote clock."""
        self.now += timedelta(seconds=seconds)
        return self.now

    def add_page(
        self,
        properties: dict[str, Any],
        last_edited: datetime | None = None,
        archived: bool = False,
        page_id: str | None = None,
    ) -> dict[str, Any]:
        """Insert a page directly, as if edited on the remote side."""
        page = {
            "id": page_id or str(uuid.uuid4()),
            "last_edited_time": format_timestamp(last_edited or self.now),
            "archived": archived,
            "properties": properties,
        }
        self.pages[page["id"]] = page
        return page

    def call_names(self) -> list[str]:
        return [name for name, _ in self.calls]


class FakeRemoteClient:
    """RemoteClient look-alike operating on a FakeRemote."""

    def __init__(self, remote: FakeRemote, config: RemoteConfig, limiter: RateLimiter) -> None:
        self.remote = remote
        self.config = config
        self.limiter = limiter
        self.closed = False

    def _record(self, name: str, arg: Any = None) -> None:
        self.remote.calls.append((name, arg))
        failure = self.remote.failures.get(name)
        if failure is not None:
            raise failure

    def close(self) -> None:
        self.closed = True

    def fetch_all(self, query_filter: dict[str, Any] | None = None) -> list[RemoteRecord]:
        self._record("fetch_all")
        return [RemoteRecord.from_dict(p) for p in self.remote.pages.values()]

    def fetch_modified_since(self, since: datetime) -> list[RemoteRecord]:
        self._record("fetch_modified_since", since)
        records = [RemoteRecord.from_dict(p) for p in self.remote.pages.values()]
        return [r for r in records if r.last_edited_at > since]

    def find_by_local_id(self, local_id: str) -> RemoteRecord | None:
        self._record("find_by_local_id", local_id)
        for page in self.remote.pages.values():
            prop = page["properties"].get("LocalID") or {}
            if not page["archived"] and join_text(prop.get("rich_text")) == local_id:
                return RemoteRecord.from_dict(page)
        return None

    def create_record(self, properties: dict[str, Any]) -> RemoteRecord:
        self._record("create_record", properties)
        return RemoteRecord.from_dict(self.remote.add_page(dict(properties)))

    def update_record(self, remote_id: str, properties: dict[str, Any]) -> RemoteRecord:
        self._record("update_record", remote_id)
        page = self.remote.pages[remote_id]
        page["properties"].update(properties)
        page["last_edited_time"] = format_timestamp(self.remote.now)
        return RemoteRecord.from_dict(page)

    def archive_record(self, remote_id: str) -> RemoteRecord:
        self._record("archive_record", remote_id)
        page = self.remote.pages[remote_id]
        page["archived"] = True
        return RemoteRecord.from_dict(page)

    def test_connection(self) -> bool:
        self._record("test_connection")
        return True


@pytest.fixture
def store(tmp_path: Path) -> Iterator[LocalStore]:
    """Create an empty local store."""
    s = LocalStore(tmp_path / "store.db")
    yield s
    s.close()


@pytest.fixture
def configured_store(store: LocalStore) -> LocalStore:
    """Local store with a token and both database ids."""
    store.update_settings(
        token="secret_token",
        items_database_id="items-db",
        prompts_database_id="prompts-db",
    )
    return store


@pytest.fixture
def remote() -> FakeRemote:
    """Create an empty in-memory remote."""
    return FakeRemote()


@pytest.fixture
def client_factory(remote: FakeRemote) -> Callable[[RemoteConfig, RateLimiter], FakeRemoteClient]:
    """Client factory producing fake clients bound to ``remote``."""

    def factory(config: RemoteConfig, limiter: RateLimiter) -> FakeRemoteClient:
        return FakeRemoteClient(remote, config, limiter)

    return factory
