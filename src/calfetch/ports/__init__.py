"""Ports - interfaces/protocols for external dependencies."""

from .authorizer import Authorizer
from .calendar_source import CalendarSource
from .credential_store import CredentialStore

__all__ = [
    "Authorizer",
    "CalendarSource",
    "CredentialStore",
]
