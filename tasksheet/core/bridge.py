"""Stateful bridge between a connected sheet and an in-memory task cache.

Every sync replaces the cache wholesale. The one exception is ``update_task``,
which patches a single cached task right after the remote write instead of
waiting for the next sync.

Syncs are not serialized: a manual sync started while a background sync is in
flight runs concurrently, and whichever finishes last overwrites the cache.
A local edit applied between the start and the end of a slower sync can be
lost this way.
"""

import asyncio
import logging
from typing import Any, Callable, Optional, Union

from tasksheet.core.errors import NotConnectedError, TasksheetError, TaskNotFoundError
from tasksheet.core.events import BridgeEvents, Listener
from tasksheet.core.models import (
    BridgeState,
    Connection,
    SheetConfig,
    SyncErrorEvent,
    SyncState,
    Task,
    TaskDraft,
    TaskErrorEvent,
    TaskUpdatedEvent,
    utcnow,
)
from tasksheet.core.registry import AdapterFactory
from tasksheet.core.store import KeyValueStore
from tasksheet.core.transform import (
    FIELD_COLUMNS,
    HEADER_ROW,
    a1_range,
    normalize_priority,
    normalize_status,
    task_to_row,
    transform_rows,
)
from tasksheet.integrations.base import TabularTaskSource


logger = logging.getLogger(__name__)

CONNECTION_KEY = "connected_sheet"
DEFAULT_SYNC_INTERVAL = 30.0


class SheetsBridge:
    """Owns the active connection, the task cache, the refresh timer and the events."""

    def __init__(
        self,
        adapter_factory: AdapterFactory,
        store: KeyValueStore,
        clock: Callable = utcnow,
        sync_interval: float = DEFAULT_SYNC_INTERVAL,
        sheet_name: str = "Sheet1",
    ):
        self.adapter_factory = adapter_factory
        self.store = store
        self.clock = clock
        self.sync_interval = sync_interval
        self.sheet_name = sheet_name
        self.events = BridgeEvents()

        self._connection: Optional[Connection] = None
        self._tasks: list[Task] = []
        self._state = BridgeState.DISCONNECTED
        self._last_sync_time = None
        self._last_error: Optional[str] = None
        self._syncs_in_flight = 0
        self._timer: Optional[asyncio.Task] = None
        self._background_syncs: set[asyncio.Task] = set()

    # -- observers ---------------------------------------------------------

    def on(self, event: str, callback: Listener) -> Listener:
        """Subscribe to an event by name (``tasksUpdated`` or ``tasks_updated``)."""
        return self.events.get(event).subscribe(callback)

    def off(self, event: str, callback: Listener) -> bool:
        return self.events.get(event).unsubscribe(callback)

    # -- accessors ---------------------------------------------------------

    @property
    def tasks(self) -> list[Task]:
        return list(self._tasks)

    @property
    def connection(self) -> Optional[Connection]:
        return self._connection

    @property
    def is_connected(self) -> bool:
        return self._connection is not None

    @property
    def state(self) -> BridgeState:
        return self._state

    @property
    def sync_state(self) -> SyncState:
        return SyncState(
            state=self._state,
            is_loading=self._syncs_in_flight > 0,
            last_sync_time=self._last_sync_time,
            task_count=len(self._tasks),
            last_error=self._last_error,
            connection=self._connection,
        )

    def get_task(self, task_id: str) -> Optional[Task]:
        return next((t for t in self._tasks if t.id == task_id), None)

    def _adapter(self) -> TabularTaskSource:
        if self._connection is None:
            raise NotConnectedError()
        return self.adapter_factory(
            SheetConfig.from_connection(self._connection, sheet_name=self.sheet_name)
        )

    # -- connection lifecycle ---------------------------------------------

    async def connect(self, connection: Connection) -> Connection:
        """Bind a sheet: persist it, make sure it has a header row, sync, start the timer."""
        logger.info("Connecting to sheet %s (%s)", connection.id, connection.name)

        self.stop_background_sync()
        self._state = BridgeState.CONNECTING
        self._connection = connection
        self._tasks = []
        self.store.set(CONNECTION_KEY, connection.model_dump(mode="json"))

        await self._initialize_sheet()
        await self.sync_from_source()

        self.start_background_sync()
        self.events.sheet_connected.emit(connection)
        return connection

    async def _initialize_sheet(self) -> None:
        """Write the header row into an empty sheet. Failures are not fatal."""
        try:
            adapter = self._adapter()
            data = await adapter.fetch_all(a1_range(self.sheet_name, "A1:B1"))
            if not data.values:
                logger.info("Initializing empty sheet %s with headers", self._connection.id)
                await adapter.append(HEADER_ROW)
        except TasksheetError as e:
            logger.warning("Failed to initialize sheet headers: %s", e)

    async def restore(self) -> Optional[Connection]:
        """Re-bind the sheet persisted by a previous session, if any."""
        saved = self.store.get(CONNECTION_KEY)
        if not saved:
            return None

        connection = Connection.model_validate(saved)
        logger.info("Restoring connection to sheet %s", connection.id)

        self._connection = connection
        self._state = BridgeState.CONNECTING
        self.start_background_sync()
        await self.sync_from_source()
        return connection

    def disconnect(self) -> None:
        """Unbind the sheet. Syncs already in flight are not cancelled."""
        previous = self._connection
        self._connection = None
        self._tasks = []
        self._last_error = None
        self._state = BridgeState.DISCONNECTED
        self.store.delete(CONNECTION_KEY)
        self.stop_background_sync()

        if previous is not None:
            logger.info("Disconnected from sheet %s", previous.id)
        self.events.sheet_disconnected.emit(None)

    # -- sync --------------------------------------------------------------

    async def sync_from_source(self) -> list[Task]:
        """Fetch every row, rebuild the task list and replace the cache."""
        connection = self._connection
        if connection is None:
            logger.warning("No sheet connected, cannot sync")
            return []

        self._syncs_in_flight += 1
        self._state = BridgeState.SYNCING
        self.events.sync_started.emit(None)

        try:
            adapter = self._adapter()
            payload = await adapter.fetch_all()
            tasks = transform_rows(payload.values, connection.id)
        except Exception as e:
            if self._connection is connection:
                self._last_error = str(e)
                self._state = BridgeState.ERROR
            logger.error("Failed to sync from sheet %s: %s", connection.id, e)
            self.events.sync_error.emit(SyncErrorEvent(
                message=str(e),
                connection_id=connection.id,
                timestamp=self.clock(),
                details={
                    "sheet_id": connection.id,
                    "sheet_name": connection.name,
                    "error_type": type(e).__name__,
                },
            ))
            raise
        finally:
            self._syncs_in_flight -= 1

        if self._connection is not connection:
            logger.info("Discarding sync result for sheet %s: no longer connected", connection.id)
            return []

        self._tasks = tasks
        self._last_sync_time = self.clock()
        self._last_error = None
        if self._syncs_in_flight == 0:
            self._state = BridgeState.IDLE

        logger.debug("Sync completed for %s: %d tasks", connection.id, len(tasks))
        self.events.tasks_updated.emit(self.tasks)
        self.events.sync_completed.emit(None)
        return self.tasks

    async def manual_sync(self) -> list[Task]:
        return await self.sync_from_source()

    def start_background_sync(self) -> None:
        """Start the fixed-interval refresh. Must be called from a running event loop."""
        self.stop_background_sync()
        self._timer = asyncio.get_running_loop().create_task(self._background_loop())

    def stop_background_sync(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    async def _background_loop(self) -> None:
        # Each tick spawns its sync without waiting for the previous one,
        # and stopping the timer leaves spawned syncs running.
        while True:
            await asyncio.sleep(self.sync_interval)
            task = asyncio.create_task(self._background_sync())
            self._background_syncs.add(task)
            task.add_done_callback(self._background_syncs.discard)

    async def _background_sync(self) -> None:
        try:
            await self.sync_from_source()
        except Exception as e:
            logger.warning("Background sync failed: %s", e)

    # -- mutations ---------------------------------------------------------

    def _report_task_error(self, operation: str, error: Exception, context: dict[str, Any]) -> None:
        logger.error("Failed to %s task: %s", operation, error)
        context = dict(context)
        if self._connection is not None:
            context.setdefault("sheet_id", self._connection.id)
        self.events.task_error.emit(TaskErrorEvent(
            operation=operation,
            message=str(error),
            context=context,
        ))

    def _require_task(self, task_id: str) -> Task:
        if self._connection is None:
            raise NotConnectedError()
        task = self.get_task(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    async def create_task(self, data: Union[TaskDraft, dict[str, Any]]) -> list[Task]:
        """Append a row and resync. The new task's position is only known after the sync."""
        context = {"task": data.model_dump() if isinstance(data, TaskDraft) else dict(data)}
        try:
            adapter = self._adapter()
            draft = data if isinstance(data, TaskDraft) else TaskDraft.model_validate(data)

            row = [
                draft.title,
                draft.status,
                draft.description,
                draft.assignee,
                draft.priority,
                draft.due_date,
            ]
            while len(row) > 2 and not row[-1]:
                row.pop()

            logger.info("Creating task '%s'", draft.title)
            await adapter.append(row)
            tasks = await self.sync_from_source()
        except Exception as e:
            self._report_task_error("create", e, context)
            raise

        self.events.task_created.emit(draft)
        return tasks

    def _normalize_patch(self, patch: dict[str, Any]) -> dict[str, Any]:
        unknown = set(patch) - set(FIELD_COLUMNS)
        if unknown:
            raise ValueError(f"Unknown task fields: {', '.join(sorted(unknown))}")
        if not patch:
            raise ValueError("No fields to update")

        normalized: dict[str, Any] = {}
        for field, value in patch.items():
            if field == "title":
                title = str(value or "").strip()
                if not title:
                    raise ValueError("Task title is required")
                normalized[field] = title
            elif field == "status":
                normalized[field] = normalize_status(value)
            elif field == "priority":
                normalized[field] = normalize_priority(value)
            elif field in ("assignee", "due_date"):
                normalized[field] = str(value).strip() if value else None
            else:
                normalized[field] = str(value or "")
        return normalized

    async def update_task(self, task_id: str, patch: dict[str, Any]) -> Optional[Task]:
        """Write the patched columns, then patch the cached task without resyncing."""
        context = {"task_id": task_id, "updates": dict(patch)}
        try:
            task = self._require_task(task_id)
            updates = self._normalize_patch(patch)
            adapter = self._adapter()

            width = max(FIELD_COLUMNS.index(field) for field in patch) + 1
            row = task_to_row(task, width)
            for field, value in patch.items():
                row[FIELD_COLUMNS.index(field)] = "" if value is None else str(value)

            logger.info("Updating task %s at row %d", task_id, task.row_index)
            await adapter.update_range(task.row_index, row)
        except Exception as e:
            self._report_task_error("update", e, context)
            raise

        updated = None
        for i, cached in enumerate(self._tasks):
            if cached.id == task_id:
                updated = cached.model_copy(update=updates)
                self._tasks[i] = updated
                self.events.tasks_updated.emit(self.tasks)
                break

        self.events.task_updated.emit(TaskUpdatedEvent(id=task_id, updates=dict(patch)))
        return updated

    async def delete_task(self, task_id: str) -> list[Task]:
        """Delete the task's row and resync, since every later row moves up."""
        context = {"task_id": task_id}
        try:
            task = self._require_task(task_id)
            adapter = self._adapter()

            logger.info("Deleting task %s at row %d", task_id, task.row_index)
            await adapter.delete_row(task.row_index)
            tasks = await self.sync_from_source()
        except Exception as e:
            self._report_task_error("delete", e, context)
            raise

        self.events.task_deleted.emit(task_id)
        return tasks

    def close(self) -> None:
        """Stop the timer and drop every listener. The cache is left as is."""
        self.stop_background_sync()
        self.events.clear()
