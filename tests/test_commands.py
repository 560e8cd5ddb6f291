# tests/test_commands.py

from __future__ import annotations

import threading

import pytest
import pytest_asyncio

from tasksheet.cli import commands
from tasksheet.cli.commands import TasksheetContext, parse_fields, resolve_task
from tasksheet.config import TasksheetConfig
from tasksheet.core.bridge import CONNECTION_KEY, SheetsBridge
from tasksheet.core.errors import RemoteUnavailableError
from tasksheet.core.models import SheetConfig, TaskStatus
from tasksheet.core.registry import ConnectionRegistry
from tasksheet.core.store import MemoryStore
from tasksheet.integrations.google_sheets.auth import BearerTokenAuth

from .fakes import FakeSheetAdapter

SHEET_URL = "https://docs.google.com/spreadsheets/d/sheet-1/edit#gid=0"


@pytest_asyncio.fixture()
async def cli(monkeypatch, clock):
    """Command context wired to an in-memory sheet instead of Google."""
    adapter = FakeSheetAdapter()
    context = TasksheetContext(TasksheetConfig())
    context.registry = ConnectionRegistry(MemoryStore(), lambda config: adapter, clock=clock)
    context.bridge = SheetsBridge(
        context.registry.get_adapter,
        context.registry.store,
        clock=clock,
        sync_interval=3600,
    )
    monkeypatch.setattr(commands, "_context", context)

    yield context, adapter
    context.bridge.close()


def test_parse_fields_with_aliases() -> None:
    assert parse_fields(["due=2024-06-01", "Priority=high", "desc=a=b"]) == {
        "due_date": "2024-06-01",
        "priority": "high",
        "description": "a=b",
    }


@pytest.mark.parametrize("args", [["status"], ["colour=red"]])
def test_parse_fields_rejects_bad_input(args) -> None:
    with pytest.raises(ValueError):
        parse_fields(args)


@pytest.mark.asyncio
async def test_connect_links_sheet_and_syncs(cli) -> None:
    context, adapter = cli

    assert await commands.connect_command([SHEET_URL]) == 0

    assert context.bridge.connection.id == "sheet-1"
    assert context.bridge.connection.name == "Fake sheet"
    assert context.bridge.connection.url == SHEET_URL
    assert adapter.rows == [["Task", "Status"]]
    assert [s.id for s in context.registry.list_connections("local")] == ["sheet-1"]


@pytest.mark.asyncio
async def test_connect_rejects_non_sheet_url(cli) -> None:
    context, adapter = cli

    assert await commands.connect_command(["https://example.com/page"]) == 1
    assert adapter.calls == []


@pytest.mark.asyncio
async def test_task_commands_round_trip(cli) -> None:
    context, adapter = cli
    await commands.connect_command([SHEET_URL])

    assert await commands.add_command(["Buy", "milk", "priority=high"]) == 0
    assert adapter.rows[-1] == ["Buy milk", "Pending", "", "", "high"]

    task = resolve_task(context.bridge, "2")
    assert task.title == "Buy milk"
    assert resolve_task(context.bridge, task.id) is task
    assert resolve_task(context.bridge, "#2") is task

    assert await commands.done_command(["2"]) == 0
    assert context.bridge.get_task(task.id).status == TaskStatus.DONE

    assert await commands.delete_command(["#2"]) == 0
    assert context.bridge.tasks == []
    assert adapter.rows == [["Task", "Status"]]


@pytest.mark.asyncio
async def test_commands_need_a_connection(cli) -> None:
    assert await commands.list_command([]) == 1
    assert await commands.sync_command([]) == 1
    assert await commands.add_command(["Buy milk"]) == 1


@pytest.mark.asyncio
async def test_update_unknown_task(cli) -> None:
    await commands.connect_command([SHEET_URL])

    assert await commands.update_command(["7", "status=done"]) == 1


@pytest.mark.asyncio
async def test_disconnect_and_forget(cli) -> None:
    context, _ = cli
    await commands.connect_command([SHEET_URL])

    assert await commands.disconnect_command(["--forget"]) == 0

    assert not context.bridge.is_connected
    assert context.registry.list_connections("local") == []


@pytest.mark.asyncio
async def test_failed_connect_leaves_nothing_bound(cli) -> None:
    context, adapter = cli
    adapter.offline = RemoteUnavailableError("timed out", url="https://sheets.googleapis.com")

    assert await commands.connect_command([SHEET_URL]) == 1

    assert not context.bridge.is_connected
    assert context.registry.store.get(CONNECTION_KEY) is None
    assert context.registry.list_connections("local") == []


@pytest.mark.asyncio
async def test_status_uses_active_adapter_credentials(cli, monkeypatch) -> None:
    await commands.connect_command([SHEET_URL])

    def no_reload(config):
        raise AssertionError("status must not load credentials")

    monkeypatch.setattr(commands, "load_bearer_auth", no_reload)

    assert await commands.status_command([]) == 0


@pytest.mark.asyncio
async def test_credentials_load_once_off_the_event_loop(monkeypatch) -> None:
    threads = []

    def fake_load(config):
        threads.append(threading.current_thread())
        return BearerTokenAuth.from_token("tok")

    monkeypatch.setattr(commands, "load_bearer_auth", fake_load)
    context = TasksheetContext(TasksheetConfig())

    bearer = await context.load_credentials()
    assert await context.load_credentials() is bearer

    assert len(threads) == 1
    assert threads[0] is not threading.main_thread()


@pytest.mark.asyncio
async def test_new_adapters_use_loaded_credentials(monkeypatch) -> None:
    monkeypatch.setattr(commands, "load_bearer_auth", lambda config: None)
    context = TasksheetContext(TasksheetConfig())
    await context.load_credentials()
    context.ensure_bridge()

    assert context.registry.get_adapter(SheetConfig(id="abc")).reader is None

    context.set_credentials(BearerTokenAuth.from_token("tok"))
    context.registry.evict("abc")

    assert context.registry.get_adapter(SheetConfig(id="abc")).reader.name == "bearer"
