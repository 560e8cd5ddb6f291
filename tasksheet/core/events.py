"""Typed publish/subscribe channels for bridge notifications."""

import logging
import re
from typing import Any, Callable, Generic, Optional, TypeVar

from tasksheet.core.models import (
    Connection,
    Task,
    TaskDraft,
    TaskErrorEvent,
    TaskUpdatedEvent,
    SyncErrorEvent,
)


logger = logging.getLogger(__name__)

T = TypeVar("T")
Listener = Callable[[T], Any]


class EventChannel(Generic[T]):
    """A single event kind with an ordered list of listeners.

    Dispatch is synchronous and follows subscription order. A listener that
    raises is logged and skipped; the remaining listeners still run and the
    emitter never sees the exception.
    """

    def __init__(self, name: str):
        self.name = name
        self._listeners: list[Listener] = []

    def subscribe(self, callback: Listener) -> Listener:
        self._listeners.append(callback)
        return callback

    def unsubscribe(self, callback: Listener) -> bool:
        try:
            self._listeners.remove(callback)
        except ValueError:
            return False
        return True

    def emit(self, payload: Optional[T] = None) -> None:
        for callback in list(self._listeners):
            try:
                callback(payload)
            except Exception:
                logger.exception("Event listener error on '%s'", self.name)

    def clear(self) -> None:
        self._listeners.clear()

    def __len__(self) -> int:
        return len(self._listeners)


def _snake_case(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


class BridgeEvents:
    """All event channels exposed by a SheetsBridge."""

    def __init__(self):
        self.sheet_connected: EventChannel[Connection] = EventChannel("sheet_connected")
        self.sheet_disconnected: EventChannel[None] = EventChannel("sheet_disconnected")
        self.sync_started: EventChannel[None] = EventChannel("sync_started")
        self.tasks_updated: EventChannel[list[Task]] = EventChannel("tasks_updated")
        self.sync_completed: EventChannel[None] = EventChannel("sync_completed")
        self.sync_error: EventChannel[SyncErrorEvent] = EventChannel("sync_error")
        self.task_created: EventChannel[TaskDraft] = EventChannel("task_created")
        self.task_updated: EventChannel[TaskUpdatedEvent] = EventChannel("task_updated")
        self.task_deleted: EventChannel[str] = EventChannel("task_deleted")
        self.task_error: EventChannel[TaskErrorEvent] = EventChannel("task_error")

    def channels(self) -> list[EventChannel]:
        return [value for value in vars(self).values() if isinstance(value, EventChannel)]

    def get(self, name: str) -> EventChannel:
        """Look up a channel by name; accepts ``tasksUpdated`` or ``tasks_updated``."""
        channel = getattr(self, _snake_case(name), None)
        if not isinstance(channel, EventChannel):
            raise KeyError(f"Unknown event: {name}")
        return channel

    def clear(self) -> None:
        for channel in self.channels():
            channel.clear()
