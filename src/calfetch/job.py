"""Fetch jobs and their observers."""

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Callable

from .config import JobConfig
from .core.events import NormalizedEvent

if TYPE_CHECKING:
    from .scheduler import FetchScheduler

logger = logging.getLogger(__name__)

EventsCallback = Callable[["FetchJob"], None]
ErrorCallback = Callable[["FetchJob", Exception], None]


class FetchJob:
    """
    A named set of calendars refreshed on its own timer.

    The job owns its event snapshot and its timer handle. The snapshot is a
    tuple replaced at the end of each cycle, so readers never see a partial
    update. Observers registered after a cycle has fired only see later cycles.
    """

    def __init__(self, config: JobConfig, scheduler: "FetchScheduler | None" = None):
        self.config = config
        self._scheduler = scheduler
        self._events: tuple[NormalizedEvent, ...] = ()
        self._receive_callbacks: list[EventsCallback] = []
        self._error_callbacks: list[ErrorCallback] = []
        self.timer = None
        self.running = False
        self.last_fetch: datetime | None = None

    @property
    def name(self) -> str:
        return self.config.name

    def events(self) -> tuple[NormalizedEvent, ...]:
        """Current event snapshot."""
        return self._events

    def replace_events(self, events: list[NormalizedEvent]) -> None:
        self._events = tuple(events)

    async def start_fetch(self) -> None:
        """Run a fetch cycle now; the scheduler re-arms the timer afterwards."""
        if self._scheduler is None:
            raise RuntimeError(f"Job {self.name} is not attached to a scheduler")
        await self._scheduler.start_fetch(self)

    def on_receive(self, callback: EventsCallback) -> None:
        """Register an observer called with the job after each completed cycle."""
        self._receive_callbacks.append(callback)

    def on_error(self, callback: ErrorCallback) -> None:
        """Register an observer called with (job, error) for each failure."""
        self._error_callbacks.append(callback)

    def broadcast_events(self) -> None:
        for callback in self._receive_callbacks:
            try:
                callback(self)
            except Exception:
                logger.exception(f"Events observer failed for {self.name}")

    def broadcast_error(self, error: Exception) -> None:
        for callback in self._error_callbacks:
            try:
                callback(self, error)
            except Exception:
                logger.exception(f"Error observer failed for {self.name}")
