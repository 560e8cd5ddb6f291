"""Conversion between raw sheet rows and canonical Task records.

Column contract (A..F): title, status, description, assignee, priority, due date.
Only A and B are required; anything missing falls back to a default.
"""

import logging
import re
from enum import Enum
from typing import Any, Optional, Sequence

from tasksheet.core.models import Task, TaskPriority, TaskStatus


logger = logging.getLogger(__name__)

DEFAULT_HEADERS = ["Task", "Status", "Description", "Assignee", "Priority", "Due Date"]
HEADER_ROW = DEFAULT_HEADERS[:2]
FIELD_COLUMNS = ["title", "status", "description", "assignee", "priority", "due_date"]

_PLAIN_SHEET_NAME = re.compile(r"^[A-Za-z0-9_]+$")

STATUS_SYNONYMS: dict[str, TaskStatus] = {
    # pending
    "pending": TaskStatus.PENDING,
    "todo": TaskStatus.PENDING,
    "to do": TaskStatus.PENDING,
    "not started": TaskStatus.PENDING,
    "new": TaskStatus.PENDING,
    "open": TaskStatus.PENDING,
    # in progress
    "in_progress": TaskStatus.IN_PROGRESS,
    "in progress": TaskStatus.IN_PROGRESS,
    "in-progress": TaskStatus.IN_PROGRESS,
    "inprogress": TaskStatus.IN_PROGRESS,
    "working": TaskStatus.IN_PROGRESS,
    "doing": TaskStatus.IN_PROGRESS,
    "active": TaskStatus.IN_PROGRESS,
    "started": TaskStatus.IN_PROGRESS,
    # done
    "done": TaskStatus.DONE,
    "completed": TaskStatus.DONE,
    "finished": TaskStatus.DONE,
    "complete": TaskStatus.DONE,
    "closed": TaskStatus.DONE,
    "resolved": TaskStatus.DONE,
    # blocked
    "blocked": TaskStatus.BLOCKED,
    "stuck": TaskStatus.BLOCKED,
    "on hold": TaskStatus.BLOCKED,
    "waiting": TaskStatus.BLOCKED,
    "paused": TaskStatus.BLOCKED,
    "hold": TaskStatus.BLOCKED,
}

PRIORITY_SYNONYMS: dict[str, TaskPriority] = {
    "high": TaskPriority.HIGH,
    "urgent": TaskPriority.HIGH,
    "critical": TaskPriority.HIGH,
    "3": TaskPriority.HIGH,
    "medium": TaskPriority.MEDIUM,
    "normal": TaskPriority.MEDIUM,
    "med": TaskPriority.MEDIUM,
    "2": TaskPriority.MEDIUM,
    "low": TaskPriority.LOW,
    "minor": TaskPriority.LOW,
    "1": TaskPriority.LOW,
}


def column_letter(index: int) -> str:
    """Convert a 1-based column number to its A1 letter (1 -> A, 27 -> AA)."""
    if index < 1:
        raise ValueError("column index is 1-based")

    letters = ""
    while index > 0:
        index, remainder = divmod(index - 1, 26)
        letters = chr(ord("A") + remainder) + letters
    return letters


def a1_range(sheet_name: str, cells: str) -> str:
    """Qualify a cell range with a tab name, quoting the name when needed."""
    if _PLAIN_SHEET_NAME.match(sheet_name):
        return f"{sheet_name}!{cells}"
    escaped = sheet_name.replace("'", "''")
    return f"'{escaped}'!{cells}"


def _key(raw: Any) -> str:
    if raw is None:
        return ""
    if isinstance(raw, Enum):
        raw = raw.value
    return str(raw).strip().lower()


def _cell(row: Sequence[Any], index: int) -> str:
    if index >= len(row) or row[index] is None:
        return ""
    return str(row[index]).strip()


def normalize_status(raw: Any) -> TaskStatus:
    """Map free-text status to a canonical status. Unknown values become pending."""
    return STATUS_SYNONYMS.get(_key(raw), TaskStatus.PENDING)


def normalize_priority(raw: Any) -> TaskPriority:
    """Map free-text priority to a canonical priority. Unknown values become Medium."""
    return PRIORITY_SYNONYMS.get(_key(raw), TaskPriority.MEDIUM)


def detect_header(rows: Sequence[Sequence[Any]]) -> bool:
    """Return True if the first row looks like a header row."""
    if not rows:
        return False

    first_row = rows[0]
    return "task" in _key(_cell(first_row, 0)) or "status" in _key(_cell(first_row, 1))


def resolve_headers(rows: Sequence[Sequence[Any]]) -> list[str]:
    """Return column names, padding a short header row with the defaults."""
    if not detect_header(rows):
        return list(DEFAULT_HEADERS)

    headers = [_cell(rows[0], i) for i in range(len(rows[0]))]
    for i in range(len(headers), len(DEFAULT_HEADERS)):
        headers.append(DEFAULT_HEADERS[i])
    return headers


def row_offset(header_present: bool) -> int:
    """Distance between a data row's ordinal and its 1-based sheet row."""
    return 2 if header_present else 1


def parse_row(
    row: Sequence[Any],
    ordinal: int,
    header_present: bool,
    connection_id: str = "",
    headers: Optional[list[str]] = None,
) -> Optional[Task]:
    """Parse one data row into a Task.

    Args:
        row: Raw cells, column A first
        ordinal: Zero-based position of the row among the data rows
        header_present: Whether the sheet starts with a header row
        connection_id: Spreadsheet id used to derive the task id
        headers: Resolved column names, kept in source metadata

    Returns:
        Task, or None if the title cell is empty
    """
    title = _cell(row, 0)
    if not title:
        logger.debug("Skipping row %d: empty title", ordinal + row_offset(header_present))
        return None

    row_index = ordinal + row_offset(header_present)

    return Task(
        id=f"sheet-task-{connection_id}-{ordinal}",
        title=title,
        status=normalize_status(_cell(row, 1) or "pending"),
        description=_cell(row, 2),
        assignee=_cell(row, 3) or None,
        priority=normalize_priority(_cell(row, 4) or "medium"),
        due_date=_cell(row, 5) or None,
        row_index=row_index,
        source_metadata={
            "sheet_id": connection_id,
            "headers": list(headers) if headers else list(DEFAULT_HEADERS),
            "original_row": [str(cell) for cell in row],
        },
    )


def transform_rows(rows: Sequence[Sequence[Any]], connection_id: str = "") -> list[Task]:
    """Turn a full values range into the list of non-empty tasks."""
    if not rows:
        return []

    header_present = detect_header(rows)
    headers = resolve_headers(rows)
    data_rows = rows[1:] if header_present else rows

    tasks = []
    for ordinal, row in enumerate(data_rows):
        task = parse_row(row, ordinal, header_present, connection_id, headers)
        if task is not None:
            tasks.append(task)

    logger.debug(
        "Transformed %d rows into %d tasks (header=%s)",
        len(data_rows), len(tasks), header_present
    )
    return tasks


def task_to_row(task: Task, width: int = len(DEFAULT_HEADERS)) -> list[str]:
    """Render a Task back into sheet column order, truncated to ``width`` columns."""
    row = [
        task.title,
        task.status.value,
        task.description,
        task.assignee or "",
        task.priority.value,
        task.due_date or "",
    ]
    return row[:width]
