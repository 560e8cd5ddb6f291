"""Client for a write-capable script webhook (e.g. a deployed Apps Script)."""

import logging
from typing import Any, Optional

import requests

from tasksheet.core.errors import RemoteHttpError, RemoteUnavailableError, WebhookError


logger = logging.getLogger(__name__)

ACTIONS = ("ADD", "UPDATE", "DELETE")


class WebhookClient:
    """Posts ``{action, rowIndex?, task?, status?}`` and expects ``{success, error?}``."""

    def __init__(self, url: str, session: Optional[requests.Session] = None):
        self.url = url
        self.session = session or requests.Session()

    def send(
        self,
        action: str,
        row_index: Optional[int] = None,
        task: Optional[str] = None,
        status: Optional[str] = None,
    ) -> dict[str, Any]:
        """Send one operation and return the decoded reply."""
        if action not in ACTIONS:
            raise ValueError(f"Unknown webhook action: {action}")

        payload: dict[str, Any] = {"action": action}
        if row_index is not None:
            payload["rowIndex"] = row_index
        if task is not None:
            payload["task"] = task
        if status is not None:
            payload["status"] = status

        logger.debug("Webhook %s -> %s", action, self.url)
        try:
            response = self.session.post(self.url, json=payload)
        except requests.RequestException as e:
            raise RemoteUnavailableError(str(e), url=self.url) from e

        if not response.ok:
            raise RemoteHttpError(response.status_code, response.text, url=self.url)

        try:
            result = response.json()
        except ValueError as e:
            raise WebhookError(action, f"Webhook returned a non-JSON reply: {response.text[:100]}") from e

        if not isinstance(result, dict) or not result.get("success"):
            error = result.get("error") if isinstance(result, dict) else None
            raise WebhookError(action, error or "Webhook operation failed")

        return result
