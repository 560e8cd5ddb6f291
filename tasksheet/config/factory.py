"""Wiring of stores, adapters, registry and bridge from a TasksheetConfig."""

from typing import Callable, Optional

from tasksheet.config.settings import TasksheetConfig
from tasksheet.core.bridge import SheetsBridge
from tasksheet.core.models import SheetConfig
from tasksheet.core.registry import AdapterFactory, ConnectionRegistry
from tasksheet.core.store import JsonFileStore, KeyValueStore
from tasksheet.integrations.google_sheets.auth import BearerTokenAuth, default_strategies
from tasksheet.integrations.google_sheets.client import GoogleSheetsClient


BearerSource = Callable[[], Optional[BearerTokenAuth]]


def build_store(config: TasksheetConfig) -> KeyValueStore:
    """Returns the persistent store configured for this installation."""
    return JsonFileStore(config.storage.state_path)


def build_adapter_factory(
    config: TasksheetConfig,
    bearer: Optional[BearerSource] = None
) -> AdapterFactory:
    """Returns a factory that builds a GoogleSheetsClient per sheet.

    ``bearer`` hands out already-loaded credentials and must not block: the
    factory runs inside coroutines. It is asked again for every new adapter,
    so a token obtained after startup is picked up once the old adapter is
    evicted.
    """
    def factory(sheet: SheetConfig) -> GoogleSheetsClient:
        strategies = default_strategies(
            config.google_sheets,
            sheet,
            bearer=bearer() if bearer else None,
        )
        return GoogleSheetsClient.from_config(sheet, strategies)

    return factory


def build_registry(
    config: TasksheetConfig,
    store: Optional[KeyValueStore] = None,
    adapter_factory: Optional[AdapterFactory] = None,
) -> ConnectionRegistry:
    return ConnectionRegistry(
        store=store or build_store(config),
        adapter_factory=adapter_factory or build_adapter_factory(config),
    )


def build_bridge(config: TasksheetConfig, registry: ConnectionRegistry) -> SheetsBridge:
    """Returns a bridge sharing the registry's store and adapter cache."""
    return SheetsBridge(
        adapter_factory=registry.get_adapter,
        store=registry.store,
        sync_interval=config.sync.interval_seconds,
        sheet_name=config.google_sheets.sheet_name,
    )
