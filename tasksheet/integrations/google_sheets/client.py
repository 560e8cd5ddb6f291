"""Google Sheets API client acting as a per-spreadsheet adapter."""

import asyncio
import logging
from typing import Any, Optional, Sequence

import httplib2
from google.auth.exceptions import RefreshError, TransportError
from googleapiclient.errors import HttpError

from tasksheet.core.errors import (
    MissingMetadataError,
    NoAuthenticationError,
    RemoteHttpError,
    RemoteUnavailableError,
    SheetPermissionError,
    UnsupportedWriteError,
)
from tasksheet.core.models import ConnectionProbe, RawTablePayload, SheetConfig
from tasksheet.core.transform import DEFAULT_HEADERS, a1_range, column_letter
from tasksheet.integrations.base import TabularTaskSource
from tasksheet.integrations.google_sheets.auth import AuthStrategy, GoogleApiAuth, WebhookAuth


logger = logging.getLogger(__name__)


async def execute_request(request: Any, http: Optional[Any] = None) -> dict[str, Any]:
    """Execute a prepared googleapiclient request off the event loop.

    ``httplib2.Http`` is not thread-safe, so callers pass a fresh transport for
    every request instead of sharing the one the service was built with.
    """
    try:
        return await asyncio.to_thread(request.execute, http=http)
    except HttpError as e:
        body = e.content.decode("utf-8", "replace") if isinstance(e.content, bytes) else str(e.content)
        raise RemoteHttpError(int(e.resp.status), body, url=e.uri) from e
    except RefreshError as e:
        raise NoAuthenticationError(f"Google sign-in is no longer valid: {e}") from e
    except (httplib2.HttpLib2Error, TransportError, OSError) as e:
        raise RemoteUnavailableError(str(e) or type(e).__name__, url=getattr(request, "uri", None)) from e


def _webhook_row(operation: str, values: list[Any]) -> None:
    """The webhook carries only the task and status columns; refuse anything wider."""
    dropped = [
        DEFAULT_HEADERS[i] if i < len(DEFAULT_HEADERS) else column_letter(i + 1)
        for i, value in enumerate(values[2:], start=2)
        if value not in (None, "")
    ]
    if dropped:
        raise UnsupportedWriteError(operation, dropped)


class GoogleSheetsClient(TabularTaskSource):
    """Adapter for one spreadsheet.

    Credentials are resolved once, at construction: the first usable
    read-capable strategy serves reads, the first usable write-capable
    strategy serves writes. Blocking API calls run in a worker thread.
    """

    def __init__(
        self,
        spreadsheet_id: str,
        strategies: list[AuthStrategy],
        sheet_name: str = "Sheet1",
        name: str = "",
    ):
        self.spreadsheet_id = spreadsheet_id
        self.sheet_name = sheet_name
        self.name = name
        self.strategies = list(strategies)
        self.reader: Optional[AuthStrategy] = next(
            (s for s in self.strategies if s.can_read and s.is_usable()), None
        )
        self.writer: Optional[AuthStrategy] = next(
            (s for s in self.strategies if s.can_write and s.is_usable()), None
        )
        self._services: dict[int, Any] = {}

        logger.debug(
            "Adapter for %s: reader=%s writer=%s",
            spreadsheet_id,
            self.reader.name if self.reader else None,
            self.writer.name if self.writer else None,
        )

    @classmethod
    def from_config(cls, sheet: SheetConfig, strategies: list[AuthStrategy]) -> "GoogleSheetsClient":
        return cls(sheet.id, strategies, sheet_name=sheet.sheet_name, name=sheet.name)

    @property
    def can_read(self) -> bool:
        return self.reader is not None

    @property
    def can_write(self) -> bool:
        return self.writer is not None

    def _service(self, strategy: GoogleApiAuth) -> Any:
        """Lazily build and cache the API service for a strategy."""
        key = id(strategy)
        if key not in self._services:
            self._services[key] = strategy.get_service()
        return self._services[key]

    def _require_reader(self) -> GoogleApiAuth:
        if not isinstance(self.reader, GoogleApiAuth):
            raise NoAuthenticationError()
        return self.reader

    def _require_writer(self, operation: str) -> AuthStrategy:
        if self.writer is None:
            raise SheetPermissionError(operation)
        return self.writer

    async def fetch_all(self, range: Optional[str] = None) -> RawTablePayload:
        """Read a values range (default: every column of the tab)."""
        strategy = self._require_reader()
        target = range or a1_range(self.sheet_name, "A:Z")

        logger.debug("Fetching %s from %s via %s", target, self.spreadsheet_id, strategy.name)
        request = self._service(strategy).spreadsheets().values().get(
            spreadsheetId=self.spreadsheet_id,
            range=target,
        )
        data = await execute_request(request, http=strategy.new_http())

        return RawTablePayload(
            values=data.get("values", []),
            range=data.get("range"),
            major_dimension=data.get("majorDimension", "ROWS"),
        )

    async def append(self, row: Sequence[Any]) -> dict[str, Any]:
        """Append a row such as ``[title, status]`` after the last data row."""
        strategy = self._require_writer("add tasks")
        values = list(row)

        if isinstance(strategy, WebhookAuth):
            _webhook_row("add tasks", values)
            return await asyncio.to_thread(
                strategy.client.send,
                "ADD",
                task=values[0] if values else "",
                status=values[1] if len(values) > 1 else None,
            )

        target = a1_range(self.sheet_name, f"A:{column_letter(max(len(values), 1))}")
        request = self._service(strategy).spreadsheets().values().append(
            spreadsheetId=self.spreadsheet_id,
            range=target,
            valueInputOption="RAW",
            body={"values": [values]},
        )
        return await execute_request(request, http=strategy.new_http())

    async def update_range(self, row_index: int, values: Sequence[Any]) -> dict[str, Any]:
        """Overwrite columns A..len(values) of a single row."""
        if row_index < 1:
            raise ValueError("row_index is 1-based")
        strategy = self._require_writer("edit tasks")
        values = list(values)

        if isinstance(strategy, WebhookAuth):
            _webhook_row("edit tasks", values)
            return await asyncio.to_thread(
                strategy.client.send,
                "UPDATE",
                row_index=row_index,
                task=values[0] if values else None,
                status=values[1] if len(values) > 1 else None,
            )

        last_column = column_letter(max(len(values), 1))
        target = a1_range(self.sheet_name, f"A{row_index}:{last_column}{row_index}")
        request = self._service(strategy).spreadsheets().values().update(
            spreadsheetId=self.spreadsheet_id,
            range=target,
            valueInputOption="RAW",
            body={"values": [values]},
        )
        return await execute_request(request, http=strategy.new_http())

    async def delete_row(self, row_index: int) -> dict[str, Any]:
        """Remove a row. Rows below it shift up by one; callers must resync."""
        if row_index < 1:
            raise ValueError("row_index is 1-based")
        strategy = self._require_writer("delete tasks")

        if isinstance(strategy, WebhookAuth):
            return await asyncio.to_thread(strategy.client.send, "DELETE", row_index=row_index)

        service = self._service(strategy)
        metadata = await execute_request(
            service.spreadsheets().get(
                spreadsheetId=self.spreadsheet_id,
                fields="sheets.properties",
            ),
            http=strategy.new_http(),
        )
        grid_id = self._resolve_grid_id(metadata)

        request = service.spreadsheets().batchUpdate(
            spreadsheetId=self.spreadsheet_id,
            body={
                "requests": [{
                    "deleteDimension": {
                        "range": {
                            "sheetId": grid_id,
                            "dimension": "ROWS",
                            "startIndex": row_index - 1,
                            "endIndex": row_index,
                        }
                    }
                }]
            },
        )
        return await execute_request(request, http=strategy.new_http())

    def _resolve_grid_id(self, metadata: dict[str, Any]) -> int:
        """Find the numeric sheetId of our tab, falling back to the first tab."""
        sheets = metadata.get("sheets") or []
        properties = [s.get("properties", {}) for s in sheets]

        for props in properties:
            if props.get("title") == self.sheet_name and "sheetId" in props:
                return props["sheetId"]

        if properties and "sheetId" in properties[0]:
            logger.warning(
                "Tab '%s' not found in %s, using first tab '%s'",
                self.sheet_name, self.spreadsheet_id, properties[0].get("title"),
            )
            return properties[0]["sheetId"]

        raise MissingMetadataError(self.spreadsheet_id, self.sheet_name)

    async def test_connection(self) -> ConnectionProbe:
        """Check that the spreadsheet is reachable with the current credentials."""
        try:
            strategy = self._require_reader()
            data = await execute_request(
                self._service(strategy).spreadsheets().get(
                    spreadsheetId=self.spreadsheet_id,
                    fields="properties.title,sheets.properties.title",
                ),
                http=strategy.new_http(),
            )
        except Exception as e:
            logger.warning("Connection test failed for %s: %s", self.spreadsheet_id, e)
            return ConnectionProbe(success=False, error=str(e))

        return ConnectionProbe(
            success=True,
            title=data.get("properties", {}).get("title"),
            sheet_names=[
                s.get("properties", {}).get("title", "")
                for s in data.get("sheets", [])
            ],
        )
