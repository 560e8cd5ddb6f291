# tests/test_drive.py

from __future__ import annotations

from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from tasksheet.core.errors import NoAuthenticationError
from tasksheet.integrations.google_sheets.auth import BearerTokenAuth
from tasksheet.integrations.google_sheets.drive import GoogleDriveBrowser

from .fakes import FakeGoogleService


class FakeBearer(BearerTokenAuth):
    """Bearer auth whose services are fakes, one per API name."""

    def __init__(self, services: dict[str, FakeGoogleService]) -> None:
        super().__init__(SimpleNamespace(token="tok", expired=False))
        self.services = services

    def get_service(self, api: str = "sheets", version: str = "v4"):
        return self.services[api]

    def new_http(self):
        return object()


def test_requires_usable_bearer() -> None:
    with pytest.raises(NoAuthenticationError):
        GoogleDriveBrowser(None)
    with pytest.raises(NoAuthenticationError):
        GoogleDriveBrowser(BearerTokenAuth(SimpleNamespace(token="tok", expired=True)))


@pytest.mark.asyncio
async def test_list_spreadsheets() -> None:
    drive = FakeGoogleService({
        "files.list": {
            "files": [
                {
                    "id": "abc",
                    "name": "Team tasks",
                    "modifiedTime": "2024-05-01T10:00:00.000Z",
                    "owners": [{"me": True}],
                    "shared": True,
                    "webViewLink": "https://docs.google.com/spreadsheets/d/abc/edit?usp=drivesdk",
                },
                {"id": "def", "name": "Shared with me", "owners": [{"me": False}]},
            ]
        }
    })
    browser = GoogleDriveBrowser(FakeBearer({"drive": drive}))

    sheets = await browser.list_spreadsheets()

    query = drive.calls_to("files.list")[0]
    assert drive.transports[0] is not None
    assert "application/vnd.google-apps.spreadsheet" in query["q"]
    assert query["orderBy"] == "modifiedTime desc"
    assert query["pageSize"] == 50

    assert [s.id for s in sheets] == ["abc", "def"]
    assert sheets[0].url == "https://docs.google.com/spreadsheets/d/abc/edit"
    assert sheets[0].modified_time == datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)
    assert sheets[0].is_owner and sheets[0].is_shared
    assert not sheets[1].is_owner
    assert sheets[1].modified_time is None


@pytest.mark.asyncio
async def test_create_spreadsheet_with_header_row() -> None:
    sheets_api = FakeGoogleService({
        "spreadsheets.create": {
            "spreadsheetId": "new1",
            "properties": {"title": "Sprint 12"},
            "spreadsheetUrl": "https://docs.google.com/spreadsheets/d/new1/edit",
        }
    })
    browser = GoogleDriveBrowser(FakeBearer({"sheets": sheets_api}))

    info = await browser.create_spreadsheet("Sprint 12", sheet_name="Backlog")

    body = sheets_api.calls_to("spreadsheets.create")[0]["body"]
    assert body["sheets"][0]["properties"]["title"] == "Backlog"
    header = body["sheets"][0]["data"][0]["rowData"][0]["values"]
    assert [cell["userEnteredValue"]["stringValue"] for cell in header] == ["Task", "Status"]
    assert info.id == "new1"
    assert info.name == "Sprint 12"
    assert info.is_owner
