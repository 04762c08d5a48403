"""Google OAuth adapter - browser-based authorization for the Calendar API."""

import logging
from pathlib import Path
from urllib.parse import urlparse

import requests
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow

from calfetch.config import load_client_config
from calfetch.exceptions import AuthorizationError, ConfigLoadError

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/calendar.readonly"]
REVOKE_URL = "https://oauth2.googleapis.com/revoke"
SUCCESS_MESSAGE = "Authentication successful! Please return to the console."
PROMPT_MESSAGE = "Please visit this URL to authorize calfetch: {url}"


def redirect_host(client_config: dict) -> str:
    """Host of the first configured redirect URI, e.g. "localhost"."""
    app = client_config.get("web") or client_config.get("installed") or {}
    uris = app.get("redirect_uris") or []
    if uris:
        host = urlparse(uris[0]).hostname
        if host:
            return host
    return "localhost"


class GoogleAuthorizer:
    """
    Interactive OAuth authorizer.

    Implements Authorizer protocol. Opens the consent page in a browser and
    waits for the redirect on a local listener bound to a fixed port. Only one
    flow can run at a time per port.
    """

    def __init__(
        self,
        client_secret_file: Path | str,
        port: int = 3000,
        timeout: int | None = None,
        open_browser: bool = True,
    ):
        self.client_secret_file = Path(client_secret_file).expanduser()
        self.port = port
        self.timeout = timeout
        self.open_browser = open_browser

    def authorize(self) -> Credentials:
        """Run the consent flow and exchange the code for a credential."""
        client_config = load_client_config(self.client_secret_file)

        try:
            flow = InstalledAppFlow.from_client_config(client_config, SCOPES)
        except ValueError as e:
            raise ConfigLoadError(f"Invalid client configuration: {e}") from e

        host = redirect_host(client_config)
        logger.info(f"Waiting for authorization callback on http://{host}:{self.port}/")

        try:
            creds = flow.run_local_server(
                host=host,
                port=self.port,
                open_browser=self.open_browser,
                success_message=SUCCESS_MESSAGE,
                authorization_prompt_message=PROMPT_MESSAGE,
                timeout_seconds=self.timeout,
            )
        except Exception as e:
            # oauthlib, requests and socket errors all mean the same thing here
            raise AuthorizationError(f"Authorization failed: {e}") from e

        if creds is None or not creds.token:
            raise AuthorizationError("Authorization failed: no token received")

        logger.info("Authorization successful")
        return creds


def revoke_token(token: str) -> None:
    """Revoke an access or refresh token at Google."""
    resp = requests.post(
        REVOKE_URL,
        params={"token": token},
        headers={"content-type": "application/x-www-form-urlencoded"},
        timeout=30,
    )

    if resp.status_code != 200:
        raise AuthorizationError(f"Token revocation failed: {resp.text}")
