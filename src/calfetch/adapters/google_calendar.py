"""Google Calendar API adapter."""

import logging
from datetime import datetime, timezone

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build

from calfetch.core.events import RawEvent
from calfetch.exceptions import SourceFetchError

logger = logging.getLogger(__name__)


def format_time_min(dt: datetime) -> str:
    """Format an instant for the timeMin query parameter."""
    return dt.isoformat() + "Z" if dt.tzinfo is None else dt.isoformat()


class GoogleCalendarSource:
    """
    Lists upcoming events from Google Calendar.

    Implements CalendarSource protocol. Stateless: every call builds its own
    service object, so calls can run in parallel threads.
    """

    def _build_service(self, credentials: Credentials):
        """Build a Google Calendar API service."""
        return build("calendar", "v3", credentials=credentials, cache_discovery=False)

    def list_upcoming(
        self,
        calendar_id: str,
        credentials: Credentials,
        max_results: int,
        time_min: datetime | None = None,
    ) -> list[RawEvent]:
        """List expanded event instances ordered by start time, from time_min forward."""
        time_min = time_min or datetime.now(timezone.utc)
        logger.info(f"Calendar ID: {calendar_id}")

        try:
            service = self._build_service(credentials)
            result = (
                service.events()
                .list(
                    calendarId=calendar_id,
                    timeMin=format_time_min(time_min),
                    maxResults=max_results,
                    singleEvents=True,
                    orderBy="startTime",
                )
                .execute()
            )
        except Exception as e:
            raise SourceFetchError(calendar_id, e) from e

        items = result.get("items", [])
        logger.info(f"Calendar {calendar_id} returned {len(items)} events")

        events = []
        for item in items:
            try:
                events.append(RawEvent.from_api(item))
            except (ValueError, TypeError, AttributeError) as e:
                logger.debug(f"Skipping malformed event in {calendar_id}: {e}")
        return events
