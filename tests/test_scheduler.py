"""Tests for the fetch scheduler."""

import asyncio
from datetime import timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from apscheduler.jobstores.base import JobLookupError
from apscheduler.triggers.date import DateTrigger

from calfetch.config import JobConfig
from calfetch.exceptions import AuthorizationError, ConfigLoadError
from calfetch.job import FetchJob
from calfetch.scheduler import FetchScheduler


@pytest.fixture
def provider():
    provider = MagicMock()
    provider.acquire = AsyncMock(return_value=MagicMock(name="credentials"))
    return provider


@pytest.fixture
def aggregator():
    aggregator = MagicMock()
    aggregator.run = AsyncMock(return_value=[])
    return aggregator


@pytest.fixture
def apscheduler():
    scheduler = MagicMock()
    scheduler.add_job.side_effect = lambda *args, **kwargs: MagicMock(name="timer")
    return scheduler


@pytest.fixture
def fetch_scheduler(provider, aggregator, apscheduler):
    return FetchScheduler(provider, aggregator, scheduler=apscheduler)


@pytest.fixture
def job(fetch_scheduler):
    return FetchJob(JobConfig(name="Work", calendar_ids=["a"], reload_interval_ms=60_000), fetch_scheduler)


class TestFetchScheduler:
    def test_successful_cycle_rearms_timer(self, job, aggregator, apscheduler, provider):
        asyncio.run(job.start_fetch())

        aggregator.run.assert_awaited_once_with(job, provider.acquire.return_value)
        apscheduler.add_job.assert_called_once()
        args, kwargs = apscheduler.add_job.call_args
        assert isinstance(args[1], DateTrigger)
        assert kwargs["args"] == [job]
        assert kwargs["id"] == "calfetch:Work"
        assert kwargs["max_instances"] == 2
        assert job.timer is not None
        assert job.running is False

    def test_authorization_failure_notifies_and_rearms(self, job, provider, aggregator, apscheduler):
        provider.acquire.side_effect = AuthorizationError("exchange failed")
        errors = []
        job.on_error(lambda j, e: errors.append(e))

        asyncio.run(job.start_fetch())

        aggregator.run.assert_not_awaited()
        assert len(errors) == 1
        apscheduler.add_job.assert_called_once()

    def test_config_failure_notifies_and_rearms(self, job, provider, apscheduler):
        provider.acquire.side_effect = ConfigLoadError("client secret missing")
        errors = []
        job.on_error(lambda j, e: errors.append(e))

        asyncio.run(job.start_fetch())

        assert isinstance(errors[0], ConfigLoadError)
        apscheduler.add_job.assert_called_once()

    def test_unexpected_failure_notifies_and_rearms(self, job, aggregator, apscheduler):
        aggregator.run.side_effect = RuntimeError("boom")
        errors = []
        job.on_error(lambda j, e: errors.append(e))

        asyncio.run(job.start_fetch())

        assert str(errors[0]) == "boom"
        apscheduler.add_job.assert_called_once()

    def test_previous_timer_cancelled_before_rearm(self, job, apscheduler):
        asyncio.run(job.start_fetch())
        first_timer = job.timer

        asyncio.run(job.start_fetch())

        first_timer.remove.assert_called_once()
        assert job.timer is not first_timer
        assert apscheduler.add_job.call_count == 2

    def test_fired_timer_is_tolerated(self, job):
        asyncio.run(job.start_fetch())
        job.timer.remove.side_effect = JobLookupError("calfetch:Work")

        asyncio.run(job.start_fetch())

        assert job.timer is not None

    def test_running_job_is_not_started_twice(self, job, aggregator, apscheduler):
        job.running = True

        asyncio.run(job.start_fetch())

        aggregator.run.assert_not_awaited()
        apscheduler.add_job.assert_not_called()

    def test_overlapping_starts_run_once(self, job, aggregator):
        gate = asyncio.Event()

        async def slow_run(j, creds):
            await gate.wait()
            return []

        aggregator.run.side_effect = slow_run

        async def overlap():
            first = asyncio.create_task(job.start_fetch())
            await asyncio.sleep(0)
            await job.start_fetch()
            gate.set()
            await first

        asyncio.run(overlap())

        assert aggregator.run.await_count == 1

    def test_job_without_scheduler(self):
        job = FetchJob(JobConfig(name="Detached"))
        with pytest.raises(RuntimeError):
            asyncio.run(job.start_fetch())


class TestFetchJobObservers:
    def test_failing_observer_does_not_stop_others(self):
        job = FetchJob(JobConfig(name="Work"))
        seen = []

        def broken(j):
            raise ValueError("observer bug")

        job.on_receive(broken)
        job.on_receive(lambda j: seen.append(j.name))

        job.broadcast_events()

        assert seen == ["Work"]

    def test_late_observer_misses_earlier_cycles(self):
        job = FetchJob(JobConfig(name="Work"))
        job.broadcast_events()

        seen = []
        job.on_receive(lambda j: seen.append(j.name))

        assert seen == []


class TestTimerLoop:
    """Runs against a real AsyncIOScheduler so re-armed timers actually fire."""

    def _run_for(self, provider, aggregator, interval_ms: int, seconds: float) -> None:
        aggregator.tz = timezone.utc

        async def scenario():
            fetch_scheduler = FetchScheduler(provider, aggregator)
            fetch_scheduler.start()
            job = FetchJob(JobConfig(name="W", reload_interval_ms=interval_ms), fetch_scheduler)
            try:
                await job.start_fetch()
                await asyncio.sleep(seconds)
            finally:
                fetch_scheduler.cancel_timer(job)
                fetch_scheduler.shutdown()

        asyncio.run(scenario())

    def test_timer_keeps_refiring(self, provider, aggregator):
        self._run_for(provider, aggregator, interval_ms=100, seconds=0.6)
        assert aggregator.run.await_count >= 3

    def test_immediately_due_timer_keeps_refiring(self, provider, aggregator):
        self._run_for(provider, aggregator, interval_ms=0, seconds=0.5)
        assert aggregator.run.await_count >= 5

    def test_failing_cycles_keep_refiring(self, provider, aggregator):
        provider.acquire.side_effect = AuthorizationError("denied")

        self._run_for(provider, aggregator, interval_ms=50, seconds=0.5)

        aggregator.run.assert_not_awaited()
        assert provider.acquire.await_count >= 3
