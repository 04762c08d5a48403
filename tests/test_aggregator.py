"""Tests for the calendar aggregator."""

import asyncio
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from calfetch.aggregator import CalendarAggregator
from calfetch.config import JobConfig
from calfetch.core.events import RawEvent
from calfetch.exceptions import SourceFetchError
from calfetch.job import FetchJob

NOW = datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc)


def raw(start: str, end: str, title: str = "Meeting") -> RawEvent:
    return RawEvent.from_api(
        {
            "kind": "calendar#event",
            "summary": title,
            "start": {"dateTime": start},
            "end": {"dateTime": end},
        }
    )


class FakeSource:
    """In-memory CalendarSource."""

    def __init__(self, responses: dict):
        self.responses = responses
        self.calls = []

    def list_upcoming(self, calendar_id, credentials, max_results, time_min=None):
        self.calls.append((calendar_id, max_results, time_min))
        response = self.responses[calendar_id]
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def make_job():
    def _make(calendar_ids: list[str], max_entries: int = 10) -> FetchJob:
        return FetchJob(JobConfig(name="Work", calendar_ids=calendar_ids, max_entries=max_entries, max_window_days=7))
    return _make


def run(aggregator: CalendarAggregator, job: FetchJob):
    return asyncio.run(aggregator.run(job, MagicMock()))


def aggregator_for(source: FakeSource) -> CalendarAggregator:
    return CalendarAggregator(source, timezone="UTC", clock=lambda: NOW)


class TestCalendarAggregator:
    def test_merges_sorts_and_truncates(self, make_job):
        source = FakeSource(
            {
                "a": [
                    raw("2024-03-10T13:00:00Z", "2024-03-10T14:00:00Z", "a1"),
                    raw("2024-03-10T17:00:00Z", "2024-03-10T18:00:00Z", "a2"),
                ],
                "b": [raw("2024-03-10T15:00:00Z", "2024-03-10T16:00:00Z", "b1")],
            }
        )
        job = make_job(["a", "b"], max_entries=2)

        events = run(aggregator_for(source), job)

        assert [e.title for e in events] == ["a1", "b1"]
        assert job.events() == tuple(events)

    def test_one_call_per_calendar_with_shared_now(self, make_job):
        source = FakeSource({"a": [], "b": []})
        run(aggregator_for(source), make_job(["a", "b"], max_entries=5))

        assert sorted(c[0] for c in source.calls) == ["a", "b"]
        assert all(c[1] == 5 and c[2] == NOW for c in source.calls)

    def test_failed_source_is_isolated(self, make_job):
        error = SourceFetchError("b", RuntimeError("boom"))
        source = FakeSource(
            {
                "a": [
                    raw("2024-03-10T17:00:00Z", "2024-03-10T18:00:00Z", "late"),
                    raw("2024-03-10T13:00:00Z", "2024-03-10T14:00:00Z", "early"),
                ],
                "b": error,
            }
        )
        job = make_job(["a", "b"])
        received, errors = [], []
        job.on_receive(lambda j: received.append(j.events()))
        job.on_error(lambda j, e: errors.append(e))

        events = run(aggregator_for(source), job)

        assert [e.title for e in events] == ["early", "late"]
        assert errors == [error]
        assert len(received) == 1

    def test_unexpected_exception_is_wrapped(self, make_job):
        source = FakeSource({"a": ValueError("bad response")})
        job = make_job(["a"])
        errors = []
        job.on_error(lambda j, e: errors.append(e))

        run(aggregator_for(source), job)

        assert isinstance(errors[0], SourceFetchError)
        assert errors[0].calendar_id == "a"

    def test_all_sources_failing_still_publishes(self, make_job):
        source = FakeSource({"a": SourceFetchError("a", RuntimeError("x")), "b": SourceFetchError("b", RuntimeError("y"))})
        job = make_job(["a", "b"])
        received, errors = [], []
        job.on_receive(lambda j: received.append(j.events()))
        job.on_error(lambda j, e: errors.append(e))

        events = run(aggregator_for(source), job)

        assert events == []
        assert received == [()]
        assert len(errors) == 2

    def test_filters_elapsed_events(self, make_job):
        source = FakeSource(
            {
                "a": [
                    raw("2024-03-10T09:00:00Z", "2024-03-10T10:00:00Z", "past"),
                    raw("2024-03-10T13:00:00Z", "2024-03-10T14:00:00Z", "future"),
                ]
            }
        )
        events = run(aggregator_for(source), make_job(["a"]))
        assert [e.title for e in events] == ["future"]

    def test_snapshot_is_replaced(self, make_job):
        source = FakeSource({"a": [raw("2024-03-10T13:00:00Z", "2024-03-10T14:00:00Z")]})
        job = make_job(["a"])
        aggregator = aggregator_for(source)

        run(aggregator, job)
        first = job.events()
        source.responses["a"] = []
        run(aggregator, job)

        assert len(first) == 1
        assert job.events() == ()

    def test_repeated_runs_are_identical(self, make_job):
        source = FakeSource(
            {
                "a": [raw("2024-03-10T13:00:00Z", "2024-03-10T14:00:00Z", "x")],
                "b": [raw("2024-03-11T13:00:00Z", "2024-03-11T14:00:00Z", "y")],
            }
        )
        aggregator = aggregator_for(source)

        first = run(aggregator, make_job(["a", "b"]))
        second = run(aggregator, make_job(["a", "b"]))

        assert [e.to_dict() for e in first] == [e.to_dict() for e in second]
