"""Browse and create spreadsheets in the signed-in user's Google Drive."""

import logging
from datetime import datetime
from typing import Any, Optional

from tasksheet.core.errors import NoAuthenticationError
from tasksheet.core.models import SpreadsheetInfo, canonical_sheet_url
from tasksheet.core.transform import HEADER_ROW
from tasksheet.integrations.google_sheets.auth import BearerTokenAuth
from tasksheet.integrations.google_sheets.client import execute_request


logger = logging.getLogger(__name__)

SPREADSHEET_MIME_TYPE = "application/vnd.google-apps.spreadsheet"


class GoogleDriveBrowser:
    """Lists and creates spreadsheets. Requires bearer credentials."""

    def __init__(self, auth: Optional[BearerTokenAuth]):
        if auth is None or not auth.is_usable():
            raise NoAuthenticationError("Sign in with Google to browse your spreadsheets.")
        self.auth = auth
        self._drive = None
        self._sheets = None

    @property
    def drive(self) -> Any:
        if self._drive is None:
            self._drive = self.auth.get_service("drive", "v3")
        return self._drive

    @property
    def sheets(self) -> Any:
        if self._sheets is None:
            self._sheets = self.auth.get_service("sheets", "v4")
        return self._sheets

    async def list_spreadsheets(self, page_size: int = 50) -> list[SpreadsheetInfo]:
        """Return the user's spreadsheets, most recently modified first."""
        data = await execute_request(
            self.drive.files().list(
                q=f"mimeType='{SPREADSHEET_MIME_TYPE}' and trashed=false",
                fields="files(id,name,modifiedTime,owners,shared,webViewLink)",
                orderBy="modifiedTime desc",
                pageSize=page_size,
            ),
            http=self.auth.new_http(),
        )

        sheets = []
        for file in data.get("files", []):
            modified = file.get("modifiedTime")
            sheets.append(SpreadsheetInfo(
                id=file["id"],
                name=file.get("name", ""),
                url=canonical_sheet_url(file["id"]),
                web_view_link=file.get("webViewLink"),
                modified_time=datetime.fromisoformat(modified.replace("Z", "+00:00")) if modified else None,
                is_owner=any(owner.get("me") for owner in file.get("owners", [])),
                is_shared=bool(file.get("shared", False)),
            ))

        logger.debug("Found %d spreadsheets in Drive", len(sheets))
        return sheets

    async def create_spreadsheet(self, title: str = "My Tasks", sheet_name: str = "Sheet1") -> SpreadsheetInfo:
        """Create a spreadsheet whose first tab, ``sheet_name``, already carries the header row."""
        data = await execute_request(
            self.sheets.spreadsheets().create(
                body={
                    "properties": {"title": title},
                    "sheets": [{
                        "properties": {"title": sheet_name},
                        "data": [{
                            "startRow": 0,
                            "startColumn": 0,
                            "rowData": [{
                                "values": [
                                    {"userEnteredValue": {"stringValue": header}}
                                    for header in HEADER_ROW
                                ]
                            }],
                        }],
                    }],
                },
                fields="spreadsheetId,properties.title,spreadsheetUrl",
            ),
            http=self.auth.new_http(),
        )

        spreadsheet_id = data["spreadsheetId"]
        logger.info("Created spreadsheet '%s' (%s)", title, spreadsheet_id)
        return SpreadsheetInfo(
            id=spreadsheet_id,
            name=data.get("properties", {}).get("title", title),
            url=canonical_sheet_url(spreadsheet_id),
            web_view_link=data.get("spreadsheetUrl"),
            is_owner=True,
        )
