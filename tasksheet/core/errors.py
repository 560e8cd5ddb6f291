"""Error taxonomy for the sheet synchronization engine."""

from typing import Optional


class TasksheetError(Exception):
    """Base class for every error raised by tasksheet."""


class NoAuthenticationError(TasksheetError):
    """Raised when no credential is usable for reading a sheet."""

    def __init__(self, message: Optional[str] = None):
        super().__init__(
            message
            or "No authentication method available. Sign in with Google or provide an API key."
        )


class SheetPermissionError(TasksheetError):
    """Raised when a write is attempted with read-only credentials."""

    def __init__(self, operation: str, message: Optional[str] = None):
        self.operation = operation
        super().__init__(
            message
            or f"Cannot {operation}: sign in with Google or configure a webhook to edit tasks."
        )


class RemoteHttpError(TasksheetError):
    """Raised when the remote API answers with a non-success status.

    Attributes:
        status: HTTP status code of the response
        body: Raw response body (decoded as text when possible)
        url: Request URI, if known
    """

    def __init__(self, status: int, body: str = "", url: Optional[str] = None):
        self.status = status
        self.body = body
        self.url = url
        super().__init__(f"HTTP error {status}")

    def __str__(self) -> str:
        parts = [f"HTTP error {self.status}"]
        if self.body:
            body = self.body if len(self.body) <= 200 else self.body[:197] + "..."
            parts.append(body)
        return " - ".join(parts)

    def __repr__(self) -> str:
        return f"RemoteHttpError(status={self.status!r}, body={self.body!r}, url={self.url!r})"


class RemoteUnavailableError(TasksheetError):
    """Raised when the remote API cannot be reached at all (DNS, socket, TLS)."""

    def __init__(self, reason: str, url: Optional[str] = None):
        self.reason = reason
        self.url = url
        super().__init__(f"Could not reach {url or 'Google'}: {reason}")


class UnsupportedWriteError(SheetPermissionError):
    """Raised when the write channel cannot carry every column of a write."""

    def __init__(self, operation: str, columns: list[str]):
        self.columns = columns
        super().__init__(
            operation,
            f"Cannot {operation}: the webhook only writes the task and status columns "
            f"({', '.join(columns)} would be lost). Sign in with Google to edit other fields.",
        )


class WebhookError(TasksheetError):
    """Raised when the write webhook reports a failed operation."""

    def __init__(self, action: str, message: Optional[str] = None):
        self.action = action
        super().__init__(message or "Webhook operation failed")


class MissingMetadataError(TasksheetError):
    """Raised when the numeric grid id of the backing tab cannot be resolved."""

    def __init__(self, spreadsheet_id: str, sheet_name: Optional[str] = None):
        self.spreadsheet_id = spreadsheet_id
        self.sheet_name = sheet_name
        target = f"tab '{sheet_name}'" if sheet_name else "any tab"
        super().__init__(
            f"Could not resolve sheet metadata for {target} in spreadsheet {spreadsheet_id}"
        )


class NotConnectedError(TasksheetError):
    """Raised when an operation needs a connected sheet and none is bound."""

    def __init__(self):
        super().__init__("No sheet connected. Connect a Google Sheet first.")


class TaskNotFoundError(TasksheetError):
    """Raised when a task id is not present in the current cache."""

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Task '{task_id}' not found or missing sheet metadata")
