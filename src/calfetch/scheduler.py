"""Fetch scheduler - runs job cycles and re-arms their timers."""

import logging
from datetime import datetime, timedelta, timezone

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger

from .adapters import FileCredentialStore, GoogleAuthorizer, GoogleCalendarSource
from .aggregator import CalendarAggregator
from .config import Config
from .credentials import CredentialProvider
from .exceptions import AuthorizationError
from .job import FetchJob

logger = logging.getLogger(__name__)


class FetchScheduler:
    """
    Drives fetch cycles for any number of jobs.

    Each job gets a one-shot timer that is cancelled and re-armed after every
    cycle, whatever its outcome, so a job keeps retrying at its normal
    interval for as long as the process runs.
    """

    def __init__(
        self,
        provider: CredentialProvider,
        aggregator: CalendarAggregator,
        scheduler: AsyncIOScheduler | None = None,
    ):
        self.provider = provider
        self.aggregator = aggregator
        self.scheduler = scheduler or AsyncIOScheduler(timezone=aggregator.tz)

    def start(self) -> None:
        """Start the underlying scheduler. Must be called from a running event loop."""
        if not self.scheduler.running:
            self.scheduler.start()
            logger.info("Scheduler started")

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)

    async def start_fetch(self, job: FetchJob) -> None:
        """Run one cycle for a job, then schedule the next one."""
        if job.running:
            logger.warning(f"Fetch already running for {job.name} - skipping")
            return

        job.running = True
        try:
            await self._run_cycle(job)
        finally:
            job.running = False
            self.schedule_timer(job)

    async def _run_cycle(self, job: FetchJob) -> None:
        try:
            credentials = await self.provider.acquire()
            await self.aggregator.run(job, credentials)
        except AuthorizationError as e:
            logger.error(f"Authorization failed for {job.name}: {e}")
            job.broadcast_error(e)
        except Exception as e:
            logger.exception(f"Fetch cycle failed for {job.name}")
            job.broadcast_error(e)

    def schedule_timer(self, job: FetchJob) -> None:
        """Cancel the job's pending timer and arm a new one."""
        self.cancel_timer(job)
        run_date = datetime.now(timezone.utc) + timedelta(milliseconds=job.config.reload_interval_ms)
        job.timer = self.scheduler.add_job(
            self.start_fetch,
            DateTrigger(run_date=run_date, timezone=timezone.utc),
            args=[job],
            id=f"calfetch:{job.name}",
            name=f"fetch {job.name}",
            replace_existing=True,
            misfire_grace_time=None,
            # the cycle arming this timer is still counted as running until it returns
            max_instances=2,
        )
        logger.debug(f"Next fetch for {job.name} at {run_date.isoformat()}")

    def cancel_timer(self, job: FetchJob) -> None:
        if job.timer is None:
            return
        try:
            job.timer.remove()
        except JobLookupError:
            # one-shot timers are dropped by the scheduler once they fire
            pass
        job.timer = None


def create_fetch_scheduler(config: Config, open_browser: bool = True) -> FetchScheduler:
    """Wire the Google adapters into a scheduler from configuration."""
    store = FileCredentialStore(config.token_file)
    authorizer = GoogleAuthorizer(
        config.client_secret_file,
        port=config.auth_port,
        timeout=config.auth_timeout,
        open_browser=open_browser,
    )
    provider = CredentialProvider(store, authorizer)
    aggregator = CalendarAggregator(GoogleCalendarSource(), timezone=config.timezone)
    return FetchScheduler(provider, aggregator)
