"""Domain models for sheet-backed tasks and connections."""

import re
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel, Field, field_validator, model_validator


SHEET_URL_TEMPLATE = "https://docs.google.com/spreadsheets/d/{id}/edit"
_SHEET_URL_PATTERN = re.compile(r"/spreadsheets/d/([a-zA-Z0-9_-]+)")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def canonical_sheet_url(spreadsheet_id: str) -> str:
    """Build the browser URL for a spreadsheet id."""
    return SHEET_URL_TEMPLATE.format(id=spreadsheet_id)


def extract_spreadsheet_id(url_or_id: str) -> str:
    """Return the spreadsheet id from a sheet URL, or the input itself if it is a bare id."""
    value = url_or_id.strip()
    match = _SHEET_URL_PATTERN.search(value)
    if match:
        return match.group(1)
    if not value or "/" in value:
        raise ValueError(f"Not a spreadsheet URL or id: {url_or_id!r}")
    return value


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    BLOCKED = "blocked"


class TaskPriority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class Task(BaseModel):
    """A task as held in the sync cache, one per non-empty sheet row.

    ``id`` is derived from the connection id and the row's ordinal in the
    current sync, so it changes whenever rows above it are inserted or removed.
    ``row_index`` is the 1-based physical row in the sheet.
    """

    id: str
    title: str
    status: TaskStatus = TaskStatus.PENDING
    priority: TaskPriority = TaskPriority.MEDIUM
    description: str = ""
    assignee: Optional[str] = None
    due_date: Optional[str] = None
    row_index: int
    source_metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("row_index")
    @classmethod
    def validate_row_index_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("row_index is 1-based and must be positive")
        return v


class TaskDraft(BaseModel):
    """Input for creating a task; appended as a new sheet row."""

    title: str
    status: str = "Pending"
    description: str = ""
    assignee: str = ""
    priority: str = ""
    due_date: str = ""

    @field_validator("title")
    @classmethod
    def validate_title_nonempty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Task title is required")
        return v.strip()


class RawTablePayload(BaseModel):
    """A values range exactly as returned by the Sheets API."""

    values: list[list[str]] = Field(default_factory=list)
    range: Optional[str] = None
    major_dimension: str = "ROWS"

    @field_validator("values", mode="before")
    @classmethod
    def stringify_cells(cls, v: Any) -> Any:
        if v is None:
            return []
        return [[str(cell) for cell in row] for row in v]


class Connection(BaseModel):
    """The sheet a bridge is currently bound to."""

    id: str
    name: str = ""
    url: Optional[str] = None
    connected_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def set_default_url(self):
        if not self.url:
            self.url = canonical_sheet_url(self.id)
        return self


class SheetConfig(BaseModel):
    """Everything needed to build an adapter for one spreadsheet."""

    id: str
    name: str = ""
    url: Optional[str] = None
    sheet_name: str = "Sheet1"
    webhook_url: Optional[str] = None

    @model_validator(mode="after")
    def set_default_url(self):
        if not self.url:
            self.url = canonical_sheet_url(self.id)
        return self

    @classmethod
    def from_connection(cls, connection: Connection, **overrides: Any) -> "SheetConfig":
        return cls(id=connection.id, name=connection.name, url=connection.url, **overrides)


class LinkedSheet(BaseModel):
    """An entry in a user's list of previously connected sheets."""

    id: str
    name: str = ""
    url: Optional[str] = None
    created_at: Optional[datetime] = None
    last_accessed: Optional[datetime] = None


class ConnectionProbe(BaseModel):
    """Result of a non-mutating reachability check."""

    success: bool
    title: Optional[str] = None
    sheet_names: list[str] = Field(default_factory=list)
    error: Optional[str] = None


class SpreadsheetInfo(BaseModel):
    """A spreadsheet visible to the signed-in user in Google Drive."""

    id: str
    name: str
    url: str
    web_view_link: Optional[str] = None
    modified_time: Optional[datetime] = None
    is_owner: bool = False
    is_shared: bool = False


class BridgeState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    IDLE = "idle"
    SYNCING = "syncing"
    ERROR = "error"


class SyncState(BaseModel):
    """Snapshot of the bridge's sync bookkeeping. Never persisted."""

    state: BridgeState = BridgeState.DISCONNECTED
    is_loading: bool = False
    last_sync_time: Optional[datetime] = None
    task_count: int = 0
    last_error: Optional[str] = None
    connection: Optional[Connection] = None


class SyncErrorEvent(BaseModel):
    message: str
    connection_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=utcnow)
    details: dict[str, Any] = Field(default_factory=dict)


class TaskUpdatedEvent(BaseModel):
    id: str
    updates: dict[str, Any] = Field(default_factory=dict)


class TaskErrorEvent(BaseModel):
    operation: str
    message: str
    context: dict[str, Any] = Field(default_factory=dict)
