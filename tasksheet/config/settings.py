"""User configuration and settings management."""

import os
from pathlib import Path
from typing import Optional, Literal
from pydantic import BaseModel, Field, field_validator, model_validator
import tomllib
import tomli_w


CONFIG_DIR = Path.home() / ".config" / "tasksheet"
API_KEY_ENV = "TASKSHEET_API_KEY"
WEBHOOK_URL_ENV = "TASKSHEET_WEBHOOK_URL"

DEFAULT_SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive.readonly",
]


class GoogleSheetsConfig(BaseModel):
    """Configuration for Google Sheets access."""

    auth_method: Literal["oauth", "service_account", "api_key"] = Field(default="oauth")
    credentials_path: Optional[Path] = Field(default=None, description="Path to OAuth client credentials or service account key")
    token_path: Optional[Path] = Field(default=None, description="Path to OAuth token cache")
    api_key: Optional[str] = Field(default=None, description="Read-only API key for publicly shared sheets")
    webhook_url: Optional[str] = Field(default=None, description="Write-capable script endpoint")
    sheet_name: str = Field(default="Sheet1", description="Tab holding the tasks")
    scopes: list[str] = Field(default_factory=lambda: list(DEFAULT_SCOPES))

    @field_validator("credentials_path", "token_path")
    @classmethod
    def expand_path(cls, v: Optional[Path]) -> Optional[Path]:
        if v is None:
            return None
        return Path(v).expanduser().resolve()

    @field_validator("sheet_name")
    @classmethod
    def validate_sheet_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("sheet_name must not be empty")
        return v

    @model_validator(mode="after")
    def set_defaults(self):
        """Set default credential and token paths."""
        if self.credentials_path is None:
            name = "service_account.json" if self.auth_method == "service_account" else "credentials.json"
            self.credentials_path = CONFIG_DIR / "google" / name
        if self.token_path is None:
            self.token_path = CONFIG_DIR / "google" / "token.json"
        return self

    # Environment values are read at use time so they never end up in config.toml
    def resolved_api_key(self) -> Optional[str]:
        return self.api_key or os.environ.get(API_KEY_ENV) or None

    def resolved_webhook_url(self) -> Optional[str]:
        return self.webhook_url or os.environ.get(WEBHOOK_URL_ENV) or None


class SyncConfig(BaseModel):
    """Configuration for background refresh."""

    interval_seconds: float = Field(default=30.0, gt=0, description="Seconds between background syncs")


class StorageConfig(BaseModel):
    """Where connection bookkeeping is persisted."""

    state_path: Optional[Path] = Field(default=None, description="JSON file holding the connected sheet and linked sheets")
    user_id: str = Field(default="local", description="Key for this user's list of linked sheets")

    @field_validator("state_path")
    @classmethod
    def expand_path(cls, v: Optional[Path]) -> Optional[Path]:
        if v is None:
            return None
        return Path(v).expanduser().resolve()

    @model_validator(mode="after")
    def set_default_path(self):
        if self.state_path is None:
            self.state_path = CONFIG_DIR / "state.json"
        return self


class LoggingConfig(BaseModel):
    """Logging verbosity and optional log file."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "WARNING"
    log_file: Optional[Path] = None

    @field_validator("level", mode="before")
    @classmethod
    def uppercase_level(cls, v):
        return v.upper() if isinstance(v, str) else v


class TasksheetConfig(BaseModel):
    """Root configuration for tasksheet."""

    google_sheets: GoogleSheetsConfig = Field(default_factory=GoogleSheetsConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_toml(cls, path: Path) -> "TasksheetConfig":
        """Load configuration from TOML file."""
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        with open(path, "rb") as f:
            data = tomllib.load(f)

        return cls.model_validate(data)

    def to_toml(self, path: Path) -> None:
        """Save configuration to TOML file."""
        path.parent.mkdir(parents=True, exist_ok=True)

        # TOML has no null; drop unset optionals
        data = self.model_dump(mode="json", exclude_none=True)

        with open(path, "wb") as f:
            tomli_w.dump(data, f)

    @classmethod
    def get_default_path(cls) -> Path:
        """Get the default configuration file path."""
        return CONFIG_DIR / "config.toml"

    @classmethod
    def load_or_default(cls) -> "TasksheetConfig":
        """Load configuration or return default if not found."""
        path = cls.get_default_path()
        if path.exists():
            return cls.from_toml(path)
        return cls()

    @classmethod
    def create_default(cls, path: Optional[Path] = None) -> "TasksheetConfig":
        """Create a default configuration file."""
        if path is None:
            path = cls.get_default_path()

        config = cls()
        config.to_toml(path)
        return config
