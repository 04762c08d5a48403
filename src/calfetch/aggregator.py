"""Aggregator - fans out one listing per calendar and merges the results."""

import asyncio
import logging
from datetime import datetime, tzinfo
from typing import Callable
from zoneinfo import ZoneInfo

from google.oauth2.credentials import Credentials

from .core.events import NormalizedEvent, display_window, merge_events, normalize_all
from .exceptions import SourceFetchError
from .job import FetchJob
from .ports import CalendarSource

logger = logging.getLogger(__name__)


class CalendarAggregator:
    """
    Combines the calendars of a job into one list.

    Every calendar is listed concurrently. A failing calendar is reported on
    the job's error channel and left out; the others still make it into the
    result, even when none succeed.
    """

    def __init__(
        self,
        source: CalendarSource,
        timezone: str | tzinfo = "America/Toronto",
        clock: Callable[[], datetime] | None = None,
    ):
        self.source = source
        self.tz = ZoneInfo(timezone) if isinstance(timezone, str) else timezone
        self._clock = clock or (lambda: datetime.now(self.tz))

    async def run(self, job: FetchJob, credentials: Credentials) -> list[NormalizedEvent]:
        """Fetch, normalize, merge and publish one cycle for a job."""
        config = job.config

        # One window for the whole cycle, so all calendars are cut at the same instant
        now = self._clock()
        today_start, window_end = display_window(now, config.max_window_days, self.tz)

        results = await asyncio.gather(
            *(
                asyncio.to_thread(self.source.list_upcoming, calendar_id, credentials, config.max_entries, now)
                for calendar_id in config.calendar_ids
            ),
            return_exceptions=True,
        )

        batches = []
        for calendar_id, result in zip(config.calendar_ids, results):
            if isinstance(result, Exception):
                error = result if isinstance(result, SourceFetchError) else SourceFetchError(calendar_id, result)
                logger.warning(f"The API returned an error: {error}")
                job.broadcast_error(error)
                continue
            if isinstance(result, BaseException):
                raise result
            batches.append(normalize_all(result, now, today_start, window_end))

        events = merge_events(batches, config.max_entries)
        job.replace_events(events)
        job.last_fetch = now

        logger.info(
            f"{job.name}: {len(events)} events from {len(batches)}/{len(config.calendar_ids)} calendars"
        )
        job.broadcast_events()
        return events
