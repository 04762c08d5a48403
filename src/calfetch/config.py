"""Configuration management for calfetch."""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from .exceptions import ConfigLoadError

logger = logging.getLogger(__name__)

CALFETCH_HOME = Path(os.environ.get("CALFETCH_HOME", Path.home() / "calfetch"))
CONFIG_FILE = CALFETCH_HOME / "config" / "calfetch.conf"
CREDENTIALS_DIR = CALFETCH_HOME / ".credentials"

CLIENT_SECRET_NAME = "client_secret.json"
TOKEN_NAME = "calendar-credentials.json"

DEFAULT_RELOAD_INTERVAL_MS = 5 * 60 * 1000
DEFAULT_MAX_ENTRIES = 10
DEFAULT_MAX_WINDOW_DAYS = 365


@dataclass
class JobConfig:
    """A named set of calendars refreshed on one timer."""

    name: str
    calendar_ids: list[str] = field(default_factory=lambda: ["primary"])
    reload_interval_ms: int = DEFAULT_RELOAD_INTERVAL_MS
    max_entries: int = DEFAULT_MAX_ENTRIES
    max_window_days: int = DEFAULT_MAX_WINDOW_DAYS

    @classmethod
    def from_payload(cls, data: dict) -> "JobConfig":
        """Build from a consumer payload (camelCase) or a config entry (snake_case)."""
        name = data.get("calendarName") or data.get("name")
        if not name:
            raise ValueError("Calendar job needs a name")

        calendar_ids = data.get("calendarIds") or data.get("calendar_ids") or ["primary"]
        if isinstance(calendar_ids, str):
            calendar_ids = [calendar_ids]

        return cls(
            name=name,
            calendar_ids=list(calendar_ids),
            reload_interval_ms=int(
                _first_set(data, "fetchInterval", "reload_interval_ms", default=DEFAULT_RELOAD_INTERVAL_MS)
            ),
            max_entries=int(_first_set(data, "maximumEntries", "max_entries", default=DEFAULT_MAX_ENTRIES)),
            max_window_days=int(
                _first_set(data, "maximumNumberOfDays", "max_window_days", default=DEFAULT_MAX_WINDOW_DAYS)
            ),
        )


def _first_set(data: dict, *keys: str, default):
    """Return the first value present under any of keys; zero counts as set."""
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return default


@dataclass
class Config:
    """calfetch configuration."""

    timezone: str = "America/Toronto"
    credentials_dir: str = ""
    auth_port: int = 3000
    auth_timeout: int | None = None
    calendars: list[JobConfig] = field(default_factory=list)

    @property
    def credentials_path(self) -> Path:
        if self.credentials_dir:
            return Path(self.credentials_dir).expanduser()
        return CREDENTIALS_DIR

    @property
    def client_secret_file(self) -> Path:
        return self.credentials_path / CLIENT_SECRET_NAME

    @property
    def token_file(self) -> Path:
        return self.credentials_path / TOKEN_NAME


def _parse_calendars(value: str) -> list[JobConfig]:
    """Parse the CALENDARS setting.

    JSON format: [{"name": "...", "calendar_ids": [...], "max_entries": 10, ...}]
    Simple format: "name1:id1|id2,name2:id3"
    """
    jobs = []
    if value.startswith("["):
        try:
            for item in json.loads(value):
                jobs.append(JobConfig.from_payload(item))
        except (json.JSONDecodeError, TypeError, ValueError) as e:
            logger.warning(f"Failed to parse CALENDARS JSON: {e}")
        return jobs

    for entry in value.split(","):
        entry = entry.strip()
        if not entry:
            continue
        if ":" in entry:
            name, ids = entry.split(":", 1)
            calendar_ids = [i.strip() for i in ids.split("|") if i.strip()] or ["primary"]
            jobs.append(JobConfig(name=name.strip(), calendar_ids=calendar_ids))
        else:
            jobs.append(JobConfig(name=entry))
    return jobs


def _unquote(value: str) -> str:
    """Strip quotes, or an inline comment from an unquoted value."""
    if value.startswith('"') or value.startswith("'"):
        quote = value[0]
        end_quote = value.find(quote, 1)
        return value[1:end_quote] if end_quote != -1 else value[1:]
    if "#" in value:
        return value.split("#")[0].strip()
    return value


def load_config(path: Path | None = None) -> Config:
    """Load configuration from calfetch.conf."""
    config = Config()
    path = path or CONFIG_FILE

    if not path.exists():
        return config

    for line in path.read_text().splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue

        if "=" not in line:
            continue

        key, _, value = line.partition("=")
        key = key.strip().lower()
        value = _unquote(value.strip())

        match key:
            case "timezone":
                config.timezone = value
            case "credentials_dir":
                config.credentials_dir = value
            case "auth_port":
                try:
                    config.auth_port = int(value)
                except ValueError:
                    logger.warning(f"Invalid AUTH_PORT: {value}")
            case "auth_timeout":
                try:
                    config.auth_timeout = int(value) if value else None
                except ValueError:
                    logger.warning(f"Invalid AUTH_TIMEOUT: {value}")
            case "calendars":
                config.calendars = _parse_calendars(value)

    return config


def load_client_config(path: Path) -> dict:
    """Load a Google OAuth client secrets file.

    Returns the whole document ({"web": {...}} or {"installed": {...}}).

    Raises:
        ConfigLoadError: If the file is missing, not JSON, or lacks client fields.
    """
    if not path.exists():
        raise ConfigLoadError(
            f"Client secret file not found: {path}. "
            "Download OAuth client credentials from Google Cloud Console."
        )

    try:
        data = json.loads(path.read_text())
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigLoadError(f"Could not read client secret file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigLoadError(f"Invalid client secret file {path}: expected a JSON object")

    app = data.get("web") or data.get("installed")
    if not isinstance(app, dict):
        raise ConfigLoadError(f"Invalid client secret file {path}: expected 'web' or 'installed' key")

    missing = [k for k in ("client_id", "client_secret") if not app.get(k)]
    if missing:
        raise ConfigLoadError(f"Invalid client secret file {path}: missing {', '.join(missing)}")

    return data
