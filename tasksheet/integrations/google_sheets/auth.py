"""Authentication strategies for the Google Sheets API.

Each strategy declares what it can do (read, write) and whether it is usable
right now. Adapters evaluate an ordered list of strategies once, when they are
constructed, and keep the first usable reader and the first usable writer.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import google_auth_httplib2
import httplib2
from google.auth.exceptions import RefreshError, TransportError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google.oauth2 import service_account
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build

from tasksheet.config.settings import DEFAULT_SCOPES, GoogleSheetsConfig
from tasksheet.core.models import SheetConfig
from tasksheet.integrations.google_sheets.webhook import WebhookClient


logger = logging.getLogger(__name__)

SCOPES = DEFAULT_SCOPES


class AuthStrategy(ABC):
    """Abstract base class for a way of talking to a spreadsheet."""

    name = "abstract"
    can_read = False
    can_write = False

    @abstractmethod
    def is_usable(self) -> bool:
        """Whether this strategy currently holds a usable credential."""
        pass

    def describe(self) -> str:
        abilities = [a for a, ok in (("read", self.can_read), ("write", self.can_write)) if ok]
        return f"{self.name} ({'/'.join(abilities) or 'none'})"


class GoogleApiAuth(AuthStrategy):
    """A strategy that authenticates googleapiclient service objects."""

    @abstractmethod
    def _build_kwargs(self) -> dict[str, Any]:
        pass

    def get_service(self, api: str = "sheets", version: str = "v4"):
        """Returns an authenticated Google API service."""
        return build(api, version, cache_discovery=False, **self._build_kwargs())

    def new_http(self) -> httplib2.Http:
        """A fresh transport for one request."""
        return httplib2.Http()


class BearerTokenAuth(GoogleApiAuth):
    """OAuth access token (user or service account). Reads and writes."""

    name = "bearer"
    can_read = True
    can_write = True

    def __init__(self, credentials):
        self.credentials = credentials

    def is_usable(self) -> bool:
        if getattr(self.credentials, "refresh_token", None) or isinstance(
            self.credentials, service_account.Credentials
        ):
            return True
        return bool(getattr(self.credentials, "token", None)) and not self.credentials.expired

    def _build_kwargs(self) -> dict[str, Any]:
        return {"credentials": self.credentials}

    def new_http(self) -> google_auth_httplib2.AuthorizedHttp:
        # Refreshes the token in the worker thread when it expires
        return google_auth_httplib2.AuthorizedHttp(self.credentials, http=httplib2.Http())

    @classmethod
    def from_token(cls, token: str, expiry: Optional[datetime] = None) -> "BearerTokenAuth":
        """Wrap an externally obtained access token."""
        if expiry is not None and expiry.tzinfo is not None:
            # google-auth compares expiry against naive UTC
            expiry = expiry.astimezone(timezone.utc).replace(tzinfo=None)
        return cls(Credentials(token=token, expiry=expiry))

    @classmethod
    def from_authorized_user_file(
        cls,
        token_path: Path,
        scopes: list[str] = SCOPES
    ) -> "BearerTokenAuth":
        """Load a cached OAuth token, refreshing and re-saving it if it expired."""
        if not token_path.exists():
            raise FileNotFoundError(
                f"OAuth token not found at {token_path}. Run 'tasksheet login' first."
            )

        creds = Credentials.from_authorized_user_file(str(token_path), scopes)

        if not creds.valid and creds.expired and creds.refresh_token:
            logger.info("Refreshing expired OAuth token from %s", token_path)
            creds.refresh(Request())
            _save_token(creds, token_path)

        return cls(creds)

    @classmethod
    def from_service_account_file(
        cls,
        credentials_path: Path,
        scopes: list[str] = SCOPES
    ) -> "BearerTokenAuth":
        """Authenticate as a service account and fetch an access token."""
        if not credentials_path.exists():
            raise FileNotFoundError(
                f"Service account credentials not found at {credentials_path}"
            )

        creds = service_account.Credentials.from_service_account_file(
            str(credentials_path), scopes=scopes
        )
        creds.refresh(Request())
        return cls(creds)


class ApiKeyAuth(GoogleApiAuth):
    """Static API key. Only works for reading publicly shared sheets."""

    name = "api_key"
    can_read = True
    can_write = False

    def __init__(self, api_key: Optional[str]):
        self.api_key = api_key or ""

    def is_usable(self) -> bool:
        return bool(self.api_key.strip())

    def _build_kwargs(self) -> dict[str, Any]:
        return {"developerKey": self.api_key}


class WebhookAuth(AuthStrategy):
    """Externally hosted script endpoint that performs writes on our behalf."""

    name = "webhook"
    can_read = False
    can_write = True

    def __init__(self, url: Optional[str], client: Optional[WebhookClient] = None):
        self.url = url or ""
        self._client = client

    def is_usable(self) -> bool:
        return bool(self.url.strip())

    @property
    def client(self) -> WebhookClient:
        if self._client is None:
            self._client = WebhookClient(self.url)
        return self._client


def _save_token(creds: Credentials, token_path: Path) -> None:
    token_path.parent.mkdir(parents=True, exist_ok=True)
    with open(token_path, "w") as token_file:
        token_file.write(creds.to_json())


def run_oauth_flow(
    credentials_path: Path,
    token_path: Path,
    scopes: list[str] = SCOPES
) -> BearerTokenAuth:
    """Run the installed-app OAuth flow in a browser and cache the token."""
    if not credentials_path.exists():
        raise FileNotFoundError(
            f"OAuth credentials not found at {credentials_path}. "
            "Download OAuth client credentials from Google Cloud Console."
        )

    flow = InstalledAppFlow.from_client_secrets_file(str(credentials_path), scopes)
    creds = flow.run_local_server(port=0)
    _save_token(creds, token_path)
    logger.info("OAuth token saved to %s", token_path)
    return BearerTokenAuth(creds)


def load_bearer_auth(config: GoogleSheetsConfig) -> Optional[BearerTokenAuth]:
    """Load bearer credentials per the configured auth method, if any exist."""
    try:
        if config.auth_method == "service_account":
            return BearerTokenAuth.from_service_account_file(config.credentials_path, config.scopes)
        if config.auth_method == "oauth" and config.token_path.exists():
            return BearerTokenAuth.from_authorized_user_file(config.token_path, config.scopes)
    except (FileNotFoundError, ValueError, RefreshError, TransportError) as e:
        logger.warning("Bearer credentials unavailable: %s", e)
    return None


def default_strategies(
    config: GoogleSheetsConfig,
    sheet: Optional[SheetConfig] = None,
    bearer: Optional[BearerTokenAuth] = None,
) -> list[AuthStrategy]:
    """Build the ordered strategy list: bearer token, then API key, then webhook.

    Bearer credentials are never loaded here; loading may refresh a token over
    the network, so callers do it once with ``load_bearer_auth`` off the event loop.
    """
    strategies: list[AuthStrategy] = []

    if bearer is not None:
        strategies.append(bearer)

    strategies.append(ApiKeyAuth(config.resolved_api_key()))

    webhook_url = (sheet.webhook_url if sheet else None) or config.resolved_webhook_url()
    strategies.append(WebhookAuth(webhook_url))

    return strategies
