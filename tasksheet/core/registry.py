"""Adapter cache and per-user bookkeeping of linked sheets."""

import logging
from typing import Callable, Optional

from tasksheet.core.models import LinkedSheet, SheetConfig, utcnow
from tasksheet.core.store import KeyValueStore
from tasksheet.integrations.base import TabularTaskSource


logger = logging.getLogger(__name__)

AdapterFactory = Callable[[SheetConfig], TabularTaskSource]


class ConnectionRegistry:
    """Hands out one adapter per spreadsheet id and remembers linked sheets."""

    def __init__(
        self,
        store: KeyValueStore,
        adapter_factory: AdapterFactory,
        clock: Callable = utcnow,
    ):
        self.store = store
        self.adapter_factory = adapter_factory
        self.clock = clock
        self._adapters: dict[str, TabularTaskSource] = {}

    def get_adapter(self, config: SheetConfig) -> TabularTaskSource:
        """Return the cached adapter for this spreadsheet, creating it on first use."""
        if config.id not in self._adapters:
            logger.debug("Creating adapter for sheet %s", config.id)
            self._adapters[config.id] = self.adapter_factory(config)
        return self._adapters[config.id]

    def evict(self, sheet_id: str) -> None:
        self._adapters.pop(sheet_id, None)

    @staticmethod
    def _key(user_id: str) -> str:
        return f"users/{user_id}/connected_sheets"

    def list_connections(self, user_id: str) -> list[LinkedSheet]:
        raw = self.store.get(self._key(user_id), [])
        return [LinkedSheet.model_validate(item) for item in raw]

    def _save(self, user_id: str, sheets: list[LinkedSheet]) -> None:
        self.store.set(self._key(user_id), [s.model_dump(mode="json") for s in sheets])

    def add_connection(self, user_id: str, config: SheetConfig) -> LinkedSheet:
        """Add a sheet to the user's list, or refresh it if already linked."""
        sheets = self.list_connections(user_id)
        now = self.clock()

        for i, existing in enumerate(sheets):
            if existing.id == config.id:
                entry = LinkedSheet(
                    id=config.id,
                    name=config.name or existing.name,
                    url=config.url,
                    created_at=existing.created_at,
                    last_accessed=now,
                )
                sheets[i] = entry
                break
        else:
            entry = LinkedSheet(id=config.id, name=config.name, url=config.url, created_at=now)
            sheets.append(entry)

        self._save(user_id, sheets)
        return entry

    def remove_connection(self, user_id: str, sheet_id: str) -> bool:
        """Unlink a sheet and drop its cached adapter. Returns False if it was not linked."""
        sheets = self.list_connections(user_id)
        remaining = [s for s in sheets if s.id != sheet_id]

        self.evict(sheet_id)
        if len(remaining) == len(sheets):
            return False

        self._save(user_id, remaining)
        return True

    def touch_last_accessed(self, user_id: str, sheet_id: str) -> Optional[LinkedSheet]:
        sheets = self.list_connections(user_id)

        for sheet in sheets:
            if sheet.id == sheet_id:
                sheet.last_accessed = self.clock()
                self._save(user_id, sheets)
                return sheet

        return None
