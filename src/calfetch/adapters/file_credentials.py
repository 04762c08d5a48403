"""File-based credential storage adapter."""

import json
import logging
from datetime import datetime
from pathlib import Path

from google.oauth2.credentials import Credentials

from calfetch.exceptions import TokenPersistError

logger = logging.getLogger(__name__)

TOKEN_URI = "https://oauth2.googleapis.com/token"


def credentials_from_info(info: dict) -> Credentials:
    """
    Rebuild Credentials from the JSON written by Credentials.to_json().

    Unlike Credentials.from_authorized_user_info, nothing is required: a stored
    credential is used as-is and problems only show up when calling the API.
    """
    expiry = info.get("expiry")
    if expiry:
        # to_json() writes naive UTC as "2025-01-15T10:00:00.123456Z"
        expiry = datetime.strptime(expiry.rstrip("Z").split(".")[0], "%Y-%m-%dT%H:%M:%S")

    return Credentials(
        token=info.get("token") or info.get("access_token"),
        refresh_token=info.get("refresh_token"),
        token_uri=info.get("token_uri", TOKEN_URI),
        client_id=info.get("client_id"),
        client_secret=info.get("client_secret"),
        scopes=info.get("scopes"),
        expiry=expiry or None,
    )


class FileCredentialStore:
    """
    Credential store backed by a single JSON file.

    Implements CredentialStore protocol.
    """

    def __init__(self, token_path: Path | str):
        self.token_path = Path(token_path).expanduser()

    def exists(self) -> bool:
        return self.token_path.exists()

    def load(self) -> Credentials | None:
        """Load the stored credential. Missing or unreadable files count as no credential."""
        if not self.token_path.exists():
            logger.info(f"No stored credential at {self.token_path}")
            return None

        try:
            info = json.loads(self.token_path.read_text())
            return credentials_from_info(info)
        except (OSError, ValueError, TypeError, AttributeError) as e:
            logger.warning(f"Ignoring unreadable credential file {self.token_path}: {e}")
            return None

    def save(self, credentials: Credentials) -> None:
        """Write the credential, creating its directory if needed."""
        try:
            self.token_path.parent.mkdir(parents=True, exist_ok=True)
            self.token_path.write_text(credentials.to_json())
            self.token_path.chmod(0o600)
        except OSError as e:
            raise TokenPersistError(f"Unable to write token to {self.token_path}: {e}") from e

        logger.info(f"Successfully wrote token to {self.token_path}")

    def clear(self) -> bool:
        """Delete the stored credential. Returns True if a file was removed."""
        if not self.token_path.exists():
            return False
        self.token_path.unlink()
        logger.info(f"Removed stored credential {self.token_path}")
        return True
