"""Credential storage interface."""

from typing import Protocol

from google.oauth2.credentials import Credentials


class CredentialStore(Protocol):
    """Interface for persisting the single shared OAuth credential."""

    def load(self) -> Credentials | None:
        """Load the stored credential. Returns None if there is none."""
        ...

    def save(self, credentials: Credentials) -> None:
        """Persist a credential. Raises TokenPersistError on failure."""
        ...
