"""Calendar source interface."""

from datetime import datetime
from typing import Protocol

from google.oauth2.credentials import Credentials

from calfetch.core.events import RawEvent


class CalendarSource(Protocol):
    """Interface for listing upcoming events of one calendar."""

    def list_upcoming(
        self,
        calendar_id: str,
        credentials: Credentials,
        max_results: int,
        time_min: datetime | None = None,
    ) -> list[RawEvent]:
        """List events from time_min (default now) forward. Raises SourceFetchError."""
        ...
