"""Job registry - the consumer-facing side of calfetch.

The host sends ADD_CALENDAR requests and receives CALENDAR_EVENTS and
FETCH_ERROR notifications through a single sink callable.
"""

import asyncio
import logging
from typing import Callable

from .config import JobConfig
from .job import FetchJob
from .scheduler import FetchScheduler

logger = logging.getLogger(__name__)

ADD_CALENDAR = "ADD_CALENDAR"
CALENDAR_EVENTS = "CALENDAR_EVENTS"
FETCH_ERROR = "FETCH_ERROR"

NotificationSink = Callable[[str, dict], None]


class JobRegistry:
    """Creates one fetch job per calendar name and forwards its notifications."""

    def __init__(self, scheduler: FetchScheduler, sink: NotificationSink):
        self.scheduler = scheduler
        self.sink = sink
        self.jobs: dict[str, FetchJob] = {}
        self._tasks: set[asyncio.Task] = set()

    def notification_received(self, notification: str, payload: dict) -> None:
        """Handle a notification from the host."""
        if notification == ADD_CALENDAR:
            try:
                self.add_calendar(payload)
            except (ValueError, TypeError, AttributeError) as e:
                logger.error(f"Ignoring invalid {ADD_CALENDAR} payload {payload!r}: {e}")
        else:
            logger.debug(f"Ignoring notification {notification}")

    def add_calendar(self, request: JobConfig | dict) -> FetchJob:
        """
        Create a fetch job, or return the existing one with the same name.

        A new job starts fetching right away; must be called from a running
        event loop. An existing job keeps the settings it was created with.
        """
        config = request if isinstance(request, JobConfig) else JobConfig.from_payload(request)

        job = self.jobs.get(config.name)
        if job is not None:
            logger.info(f"Reusing calendar fetcher for: {config.name}")
            return job

        job = FetchJob(config, self.scheduler)
        logger.info(f"Create new calendar fetcher for: {config.name} - Interval: {config.reload_interval_ms}")

        job.on_receive(self._forward_events)
        job.on_error(self._forward_error)
        self.jobs[config.name] = job

        task = asyncio.get_running_loop().create_task(job.start_fetch())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return job

    def _forward_events(self, job: FetchJob) -> None:
        self.sink(
            CALENDAR_EVENTS,
            {
                "calendarName": job.name,
                "events": [e.to_dict() for e in job.events()],
            },
        )

    def _forward_error(self, job: FetchJob, error: Exception) -> None:
        self.sink(
            FETCH_ERROR,
            {
                "calendarName": job.name,
                "error": str(error),
            },
        )
