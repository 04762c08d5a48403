"""Authorizer interface."""

from typing import Protocol

from google.oauth2.credentials import Credentials


class Authorizer(Protocol):
    """Interface for obtaining a fresh credential from the user."""

    def authorize(self) -> Credentials:
        """Run the authorization flow. Raises AuthorizationError."""
        ...
