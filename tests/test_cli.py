"""Tests for CLI commands - configure, status, sync, test-connection, queue maintenance."""

from collections.abc import Iterator
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from pagesync.cli import cli
from pagesync.core.types import QueueStatus
from pagesync.store.database import LocalStore
from pagesync.store.operations import create_item
from pagesync.sync.types import SyncResult

API = "https://api.notion.com/v1"
ITEMS_QUERY = f"{API}/databases/items-db/query"
EMPTY_QUERY = {"results": [], "has_more": False, "next_cursor": None}


@pytest.fixture
def runner() -> CliRunner:
    """Create a CLI test runner."""
    return CliRunner()


@pytest.fixture
def config_dir(tmp_path: Path) -> Iterator[Path]:
    """Point the CLI at a temporary config directory."""
    with patch("pagesync.cli.config.get_config_dir", return_value=tmp_path):
        yield tmp_path


def open_test_store(config_dir: Path) -> LocalStore:
    return LocalStore(config_dir / "pagesync.db")


def configure_items(config_dir: Path) -> None:
    store = open_test_store(config_dir)
    store.update_settings(token="secret_token", items_database_id="items-db")
    store.close()


class TestConfigureCommand:
    """Tests for 'pagesync configure' command."""

    def test_stores_settings(self, runner: CliRunner, config_dir: Path) -> None:
        """Options should be persisted in the local store."""
        result = runner.invoke(
            cli,
            ["configure", "--token", "tok", "--items-db", " db1 ", "--no-auto-sync", "--interval", "10"],
        )
        assert result.exit_code == 0, result.output

        store = open_test_store(config_dir)
        settings = store.get_settings()
        store.close()
        assert settings.token == "tok"
        assert settings.items_database_id == "db1"
        assert settings.prompts_database_id is None
        assert settings.auto_sync_enabled is False
        assert settings.auto_sync_interval == 10

    def test_prompts_for_missing_token(self, runner: CliRunner, config_dir: Path) -> None:
        """Should ask for the token when none is stored."""
        result = runner.invoke(cli, ["configure", "--prompts-db", "pdb"], input="typed_token\n")
        assert result.exit_code == 0, result.output

        store = open_test_store(config_dir)
        assert store.get_settings().token == "typed_token"
        store.close()

    def test_keeps_existing_token(self, runner: CliRunner, config_dir: Path) -> None:
        configure_items(config_dir)
        result = runner.invoke(cli, ["configure", "--prompts-db", "pdb"])
        assert result.exit_code == 0, result.output

        store = open_test_store(config_dir)
        assert store.get_settings().token == "secret_token"
        store.close()

    def test_rejects_zero_interval(self, runner: CliRunner, config_dir: Path) -> None:
        result = runner.invoke(cli, ["configure", "--token", "t", "--interval", "0"])
        assert result.exit_code != 0


class TestStatusCommand:
    """Tests for 'pagesync status' command."""

    def test_unconfigured(self, runner: CliRunner, config_dir: Path) -> None:
        result = runner.invoke(cli, ["status"])
        assert result.exit_code == 0
        assert "Token: not set" in result.output
        assert "Database: not configured" in result.output
        assert "Last sync: never" in result.output

    def test_shows_queue_counts(self, runner: CliRunner, config_dir: Path) -> None:
        configure_items(config_dir)
        store = open_test_store(config_dir)
        create_item(store, "Pending")
        store.close()

        result = runner.invoke(cli, ["status"])

        assert result.exit_code == 0
        assert "Database: items-db" in result.output
        assert "Queue: 1 queued, 0 syncing, 0 failed" in result.output


class TestSyncCommand:
    """Tests for 'pagesync sync' command."""

    def test_nothing_configured_is_skipped(self, runner: CliRunner, config_dir: Path) -> None:
        result = runner.invoke(cli, ["sync"])
        assert result.exit_code == 0
        assert "Items: not configured, skipped" in result.output
        assert "Prompts: not configured, skipped" in result.output

    def test_explicit_family_must_be_configured(self, runner: CliRunner, config_dir: Path) -> None:
        result = runner.invoke(cli, ["sync", "--family", "prompts"])
        assert result.exit_code == 1
        assert "Prompts database not configured" in result.output

    def test_pushes_local_item(self, runner: CliRunner, config_dir: Path, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """A queued item should be created remotely and linked locally."""
        configure_items(config_dir)
        store = open_test_store(config_dir)
        item = create_item(store, "Ship it", type="task")
        store.close()

        # Full pull, then the idempotency lookup before the create
        httpx_mock.add_response(url=ITEMS_QUERY, method="POST", json=EMPTY_QUERY)
        httpx_mock.add_response(url=ITEMS_QUERY, method="POST", json=EMPTY_QUERY)
        httpx_mock.add_response(
            url=f"{API}/pages",
            method="POST",
            json={
                "id": "page-1",
                "last_edited_time": "2025-01-01T12:00:00.000Z",
                "archived": False,
                "properties": {},
            },
        )

        result = runner.invoke(cli, ["sync", "--family", "items"])

        assert result.exit_code == 0, result.output
        assert "Items: 1 created, 0 updated, 0 deleted" in result.output
        store = open_test_store(config_dir)
        assert store.get_item(item.id).remote_id == "page-1"
        assert store.get_settings().items_last_sync_at is not None
        store.close()

    def test_remote_error_exits_nonzero(self, runner: CliRunner, config_dir: Path, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        configure_items(config_dir)
        httpx_mock.add_response(
            url=ITEMS_QUERY,
            method="POST",
            status_code=401,
            json={"object": "error", "code": "unauthorized", "message": "API token is invalid."},
        )

        result = runner.invoke(cli, ["sync", "--family", "items"])

        assert result.exit_code == 1
        assert "API token is invalid." in result.output


class TestTestConnectionCommand:
    """Tests for 'pagesync test-connection' command."""

    def test_ok(self, runner: CliRunner, config_dir: Path, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        configure_items(config_dir)
        httpx_mock.add_response(url=f"{API}/databases/items-db", method="GET", json={"id": "items-db"})

        result = runner.invoke(cli, ["test-connection"])

        assert result.exit_code == 0
        assert "Items: OK" in result.output
        assert "Prompts: not configured" in result.output

    def test_failure(self, runner: CliRunner, config_dir: Path, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        configure_items(config_dir)
        httpx_mock.add_response(url=f"{API}/databases/items-db", method="GET", status_code=404)

        result = runner.invoke(cli, ["test-connection", "--family", "items"])

        assert result.exit_code == 1
        assert "Items: FAILED" in result.output


class TestQueueCommands:
    """Tests for 'pagesync retry-failed' and 'pagesync clear-failed'."""

    def _park_failed(self, config_dir: Path) -> None:
        store = open_test_store(config_dir)
        create_item(store, "Broken")
        [entry] = store.list_queue("items")
        store.update_queue_entry(entry.id, retry_count=3, status=QueueStatus.FAILED)
        store.close()

    def test_retry_failed(self, runner: CliRunner, config_dir: Path) -> None:
        self._park_failed(config_dir)

        result = runner.invoke(cli, ["retry-failed", "--family", "items"])

        assert result.exit_code == 0
        assert "Items: 1 entries re-queued" in result.output
        store = open_test_store(config_dir)
        [entry] = store.list_queue("items")
        assert entry.status is QueueStatus.QUEUED
        assert entry.retry_count == 0
        store.close()

    def test_clear_failed_requires_confirmation(self, runner: CliRunner, config_dir: Path) -> None:
        self._park_failed(config_dir)

        result = runner.invoke(cli, ["clear-failed"], input="n\n")
        assert result.exit_code != 0

        result = runner.invoke(cli, ["clear-failed", "--yes"])
        assert result.exit_code == 0
        assert "Items: 1 entries cleared" in result.output

        store = open_test_store(config_dir)
        assert store.list_queue("items") == []
        store.close()


class TestWatchCommand:
    """Tests for 'pagesync watch' command."""

    def test_requires_configuration(self, runner: CliRunner, config_dir: Path) -> None:
        result = runner.invoke(cli, ["watch"])
        assert result.exit_code == 1
        assert "no database configured" in result.output

    @pytest.fixture
    def scheduler_cls(self) -> Iterator[MagicMock]:
        """Replace the scheduler so no background thread is started."""
        with patch("pagesync.cli.sync.AutoSyncScheduler") as cls:
            cls.return_value.run_now.return_value = {"items": SyncResult(created=1)}
            yield cls

    def test_honours_disabled_auto_sync(
        self, runner: CliRunner, config_dir: Path, scheduler_cls: MagicMock
    ) -> None:
        """With auto-sync off, only the initial sync should run."""
        configure_items(config_dir)
        store = open_test_store(config_dir)
        store.update_settings(auto_sync_enabled=False)
        store.close()

        with patch("pagesync.cli.sync.threading") as threading_mock:
            threading_mock.Event.return_value.wait.side_effect = KeyboardInterrupt()
            result = runner.invoke(cli, ["watch"])

        assert result.exit_code == 0, result.output
        assert scheduler_cls.call_args.kwargs["enabled"] is False
        assert "Auto-sync disabled" in result.output
        scheduler_cls.return_value.stop.assert_called_once_with()

    def test_applies_changed_settings(
        self, runner: CliRunner, config_dir: Path, scheduler_cls: MagicMock
    ) -> None:
        """Settings stored while watching should reschedule the timer."""
        configure_items(config_dir)
        calls = iter([False, KeyboardInterrupt()])

        def wait(timeout: float) -> bool:
            outcome = next(calls)
            if isinstance(outcome, BaseException):
                raise outcome
            store = open_test_store(config_dir)
            store.update_settings(auto_sync_interval=10)
            store.close()
            return outcome

        with patch("pagesync.cli.sync.threading") as threading_mock:
            threading_mock.Event.return_value.wait.side_effect = wait
            result = runner.invoke(cli, ["watch"])

        assert result.exit_code == 0, result.output
        assert scheduler_cls.call_args.kwargs == {"interval_minutes": 5, "enabled": True}
        scheduler_cls.return_value.reschedule.assert_called_once_with(10, True)
        assert "syncing every 10 min" in result.output
