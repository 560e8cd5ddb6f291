# tests/test_client.py

from __future__ import annotations

from types import SimpleNamespace

import httplib2
import pytest
from google.auth.exceptions import RefreshError
from googleapiclient.errors import HttpError

from tasksheet.core.errors import (
    MissingMetadataError,
    NoAuthenticationError,
    RemoteHttpError,
    RemoteUnavailableError,
    SheetPermissionError,
    UnsupportedWriteError,
)
from tasksheet.core.models import SheetConfig
from tasksheet.integrations.google_sheets.auth import ApiKeyAuth, WebhookAuth
from tasksheet.integrations.google_sheets.client import GoogleSheetsClient
from tasksheet.integrations.google_sheets.webhook import WebhookClient

from .fakes import FakeApiAuth, FakeGoogleService, FakeSession


def make_client(*strategies, sheet_name: str = "Sheet1") -> GoogleSheetsClient:
    return GoogleSheetsClient("abc", list(strategies), sheet_name=sheet_name)


def webhook_auth(session: FakeSession) -> WebhookAuth:
    url = "https://script.example.com/exec"
    return WebhookAuth(url, client=WebhookClient(url, session=session))


def test_strategies_resolved_in_order() -> None:
    service = FakeGoogleService()
    expired = FakeApiAuth(service, name="bearer", usable=False)
    api_key = FakeApiAuth(service, name="api_key", can_write=False)
    hook = webhook_auth(FakeSession())

    client = make_client(expired, api_key, hook)

    assert client.reader is api_key
    assert client.writer is hook


def test_bearer_preferred_for_both_directions() -> None:
    service = FakeGoogleService()
    bearer = FakeApiAuth(service)
    client = make_client(bearer, ApiKeyAuth("key"), webhook_auth(FakeSession()))

    assert client.reader is bearer
    assert client.writer is bearer


def test_from_config_uses_sheet_settings() -> None:
    sheet = SheetConfig(id="abc", name="Team", sheet_name="Backlog")
    client = GoogleSheetsClient.from_config(sheet, [])

    assert client.spreadsheet_id == "abc"
    assert client.sheet_name == "Backlog"
    assert not client.can_read
    assert not client.can_write


@pytest.mark.asyncio
async def test_fetch_all_reads_whole_tab() -> None:
    service = FakeGoogleService({
        "values.get": {
            "range": "Sheet1!A1:B3",
            "majorDimension": "ROWS",
            "values": [["Task", "Status"], ["Buy milk", "todo"], ["Count", 3]],
        }
    })
    client = make_client(FakeApiAuth(service))

    payload = await client.fetch_all()

    assert service.calls_to("values.get") == [{"spreadsheetId": "abc", "range": "Sheet1!A:Z"}]
    assert payload.values[2] == ["Count", "3"]
    assert payload.range == "Sheet1!A1:B3"


@pytest.mark.asyncio
async def test_fetch_all_without_values_is_empty() -> None:
    client = make_client(FakeApiAuth(FakeGoogleService({"values.get": {"range": "Sheet1!A1:Z1000"}})))

    payload = await client.fetch_all("Sheet1!A1:B1")

    assert payload.values == []


@pytest.mark.asyncio
async def test_fetch_all_without_reader_raises() -> None:
    client = make_client(webhook_auth(FakeSession()))

    with pytest.raises(NoAuthenticationError):
        await client.fetch_all()


@pytest.mark.asyncio
async def test_http_errors_become_remote_http_errors() -> None:
    error = HttpError(
        SimpleNamespace(status=404, reason="Not Found"),
        b'{"error": {"code": 404, "message": "Requested entity was not found."}}',
        uri="https://sheets.googleapis.com/v4/spreadsheets/abc/values/Sheet1!A:Z",
    )
    client = make_client(FakeApiAuth(FakeGoogleService(errors={"values.get": error})))

    with pytest.raises(RemoteHttpError) as excinfo:
        await client.fetch_all()

    assert excinfo.value.status == 404
    assert "Requested entity was not found." in excinfo.value.body
    assert excinfo.value.url.startswith("https://sheets.googleapis.com/")


@pytest.mark.asyncio
async def test_append_request_shape() -> None:
    service = FakeGoogleService()
    client = make_client(FakeApiAuth(service), sheet_name="My Tasks")

    await client.append(["Buy milk", "Pending"])

    assert service.calls_to("values.append") == [{
        "spreadsheetId": "abc",
        "range": "'My Tasks'!A:B",
        "valueInputOption": "RAW",
        "body": {"values": [["Buy milk", "Pending"]]},
    }]


@pytest.mark.asyncio
async def test_write_with_read_only_credentials_raises() -> None:
    service = FakeGoogleService()
    client = make_client(FakeApiAuth(service, name="api_key", can_write=False))

    with pytest.raises(SheetPermissionError):
        await client.append(["Buy milk", "Pending"])
    with pytest.raises(SheetPermissionError):
        await client.delete_row(2)

    assert service.calls == []


@pytest.mark.asyncio
async def test_update_range_targets_one_row() -> None:
    service = FakeGoogleService()
    client = make_client(FakeApiAuth(service))

    await client.update_range(3, ["Ship", "done", "", "dana"])

    call = service.calls_to("values.update")[0]
    assert call["range"] == "Sheet1!A3:D3"
    assert call["body"] == {"values": [["Ship", "done", "", "dana"]]}
    assert call["valueInputOption"] == "RAW"


@pytest.mark.asyncio
async def test_update_range_rejects_row_zero() -> None:
    client = make_client(FakeApiAuth(FakeGoogleService()))

    with pytest.raises(ValueError):
        await client.update_range(0, ["x"])


@pytest.mark.asyncio
async def test_delete_row_resolves_grid_id_by_tab_title() -> None:
    service = FakeGoogleService({
        "spreadsheets.get": {
            "sheets": [
                {"properties": {"title": "Archive", "sheetId": 7}},
                {"properties": {"title": "Sheet1", "sheetId": 42}},
            ]
        }
    })
    client = make_client(FakeApiAuth(service))

    await client.delete_row(5)

    assert service.calls_to("spreadsheets.get")[0]["fields"] == "sheets.properties"
    request = service.calls_to("spreadsheets.batchUpdate")[0]["body"]["requests"][0]
    assert request == {
        "deleteDimension": {
            "range": {"sheetId": 42, "dimension": "ROWS", "startIndex": 4, "endIndex": 5}
        }
    }


@pytest.mark.asyncio
async def test_delete_row_falls_back_to_first_tab() -> None:
    service = FakeGoogleService({
        "spreadsheets.get": {"sheets": [{"properties": {"title": "Tasks", "sheetId": 0}}]}
    })
    client = make_client(FakeApiAuth(service))

    await client.delete_row(2)

    body = service.calls_to("spreadsheets.batchUpdate")[0]["body"]
    assert body["requests"][0]["deleteDimension"]["range"]["sheetId"] == 0


@pytest.mark.asyncio
async def test_delete_row_without_metadata_raises() -> None:
    service = FakeGoogleService({"spreadsheets.get": {}})
    client = make_client(FakeApiAuth(service))

    with pytest.raises(MissingMetadataError):
        await client.delete_row(2)

    assert service.calls_to("spreadsheets.batchUpdate") == []


@pytest.mark.asyncio
async def test_webhook_writes_post_actions() -> None:
    session = FakeSession()
    client = make_client(ApiKeyAuth("key"), webhook_auth(session))

    await client.append(["Buy milk", "Pending"])
    await client.update_range(4, ["Buy oat milk", "done"])
    await client.delete_row(4)

    assert [body for _, body in session.posts] == [
        {"action": "ADD", "task": "Buy milk", "status": "Pending"},
        {"action": "UPDATE", "rowIndex": 4, "task": "Buy oat milk", "status": "done"},
        {"action": "DELETE", "rowIndex": 4},
    ]


@pytest.mark.asyncio
async def test_connection_probe_reports_title_and_tabs() -> None:
    service = FakeGoogleService({
        "spreadsheets.get": {
            "properties": {"title": "Team tasks"},
            "sheets": [{"properties": {"title": "Sheet1"}}, {"properties": {"title": "Archive"}}],
        }
    })
    client = make_client(FakeApiAuth(service))

    probe = await client.test_connection()

    assert probe.success
    assert probe.title == "Team tasks"
    assert probe.sheet_names == ["Sheet1", "Archive"]


@pytest.mark.asyncio
async def test_connection_probe_never_raises() -> None:
    error = HttpError(SimpleNamespace(status=403, reason="Forbidden"), b"denied", uri="https://x")
    client = make_client(FakeApiAuth(FakeGoogleService(errors={"spreadsheets.get": error})))

    probe = await client.test_connection()

    assert not probe.success
    assert "403" in probe.error

    no_reader = await make_client().test_connection()
    assert not no_reader.success
    assert no_reader.error


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [
    OSError("Network is unreachable"),
    httplib2.ServerNotFoundError("Unable to find the server at sheets.googleapis.com"),
])
async def test_transport_failures_become_remote_unavailable(error) -> None:
    client = make_client(FakeApiAuth(FakeGoogleService(errors={"values.get": error})))

    with pytest.raises(RemoteUnavailableError) as excinfo:
        await client.fetch_all()

    assert excinfo.value.__cause__ is error


@pytest.mark.asyncio
async def test_revoked_token_means_no_authentication() -> None:
    error = RefreshError("invalid_grant: Token has been expired or revoked.")
    client = make_client(FakeApiAuth(FakeGoogleService(errors={"values.get": error})))

    with pytest.raises(NoAuthenticationError):
        await client.fetch_all()


@pytest.mark.asyncio
async def test_each_request_gets_its_own_transport() -> None:
    service = FakeGoogleService({
        "spreadsheets.get": {"sheets": [{"properties": {"title": "Sheet1", "sheetId": 0}}]}
    })
    client = make_client(FakeApiAuth(service))

    await client.fetch_all()
    await client.delete_row(2)

    assert len(service.transports) == 3
    assert None not in service.transports
    assert len({id(t) for t in service.transports}) == 3


@pytest.mark.asyncio
async def test_webhook_refuses_columns_it_cannot_write() -> None:
    session = FakeSession()
    client = make_client(ApiKeyAuth("key"), webhook_auth(session))

    with pytest.raises(UnsupportedWriteError) as excinfo:
        await client.update_range(2, ["Write report", "pending", "", "", "High"])
    assert excinfo.value.columns == ["Priority"]

    with pytest.raises(SheetPermissionError):
        await client.append(["Ship", "todo", "notes"])

    assert session.posts == []
