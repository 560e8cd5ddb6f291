# tests/conftest.py

from __future__ import annotations

from datetime import datetime, timezone

import pytest
import pytest_asyncio

from tasksheet.core.bridge import SheetsBridge
from tasksheet.core.models import Connection
from tasksheet.core.store import MemoryStore

from .fakes import FakeSheetAdapter


FIXED_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def isolated_config_dir(tmp_path, monkeypatch):
    """Keep every test away from the real ~/.config/tasksheet and env credentials."""
    monkeypatch.setattr("tasksheet.config.settings.CONFIG_DIR", tmp_path / "config")
    monkeypatch.delenv("TASKSHEET_API_KEY", raising=False)
    monkeypatch.delenv("TASKSHEET_WEBHOOK_URL", raising=False)


@pytest.fixture()
def clock():
    return lambda: FIXED_NOW


@pytest.fixture()
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture()
def adapter() -> FakeSheetAdapter:
    """Empty sheet; tests seed ``adapter.rows`` as needed."""
    return FakeSheetAdapter()


@pytest.fixture()
def connection() -> Connection:
    return Connection(id="sheet-1", name="Team tasks", connected_at=FIXED_NOW)


@pytest_asyncio.fixture()
async def bridge(adapter, store, clock):
    """
    Bridge wired to the in-memory adapter.

    The sync interval is long enough that the timer never fires on its own;
    timer behaviour is tested with a dedicated short-interval bridge.
    """
    b = SheetsBridge(
        adapter_factory=lambda config: adapter,
        store=store,
        clock=clock,
        sync_interval=3600,
    )
    yield b
    b.close()
