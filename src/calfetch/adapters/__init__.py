"""Adapters - I/O implementations of ports."""

from .file_credentials import FileCredentialStore
from .google_auth import GoogleAuthorizer, revoke_token
from .google_calendar import GoogleCalendarSource

__all__ = [
    "FileCredentialStore",
    "GoogleAuthorizer",
    "GoogleCalendarSource",
    "revoke_token",
]
