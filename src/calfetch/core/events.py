"""Pure event domain logic - no I/O dependencies."""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from itertools import chain
from typing import Iterable

logger = logging.getLogger(__name__)

EVENT_KIND = "calendar#event"
DEFAULT_TITLE = "Event"
FULL_DAY = timedelta(days=1)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class AllDay:
    """An event boundary with date granularity ({"date": "2025-01-15"})."""

    day: date

    def resolve(self, tz: tzinfo | None) -> datetime:
        """Local midnight of the day."""
        return datetime.combine(self.day, time(0, 0), tzinfo=tz or timezone.utc)


@dataclass(frozen=True)
class Timed:
    """An event boundary with a timestamp ({"dateTime": "2025-01-15T10:00:00-05:00"})."""

    at: datetime

    def resolve(self, tz: tzinfo | None) -> datetime:
        return self.at


EventTime = AllDay | Timed


def parse_datetime(value: str) -> datetime:
    """Parse an RFC 3339 timestamp. Naive values are taken as UTC."""
    dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def parse_event_time(data: dict | None) -> EventTime | None:
    """Turn an API start/end object into an AllDay or Timed boundary."""
    if not data:
        return None
    if data.get("date"):
        return AllDay(date.fromisoformat(data["date"]))
    if data.get("dateTime"):
        return Timed(parse_datetime(data["dateTime"]))
    return None


@dataclass(frozen=True)
class RawEvent:
    """An event item as listed by the provider."""

    kind: str
    summary: str
    description: str
    start: EventTime | None
    end: EventTime | None

    @classmethod
    def from_api(cls, data: dict) -> "RawEvent":
        """Build from an events.list item. Raises ValueError on malformed times."""
        return cls(
            kind=data.get("kind", ""),
            summary=data.get("summary") or "",
            description=data.get("description") or "",
            start=parse_event_time(data.get("start")),
            end=parse_event_time(data.get("end")),
        )

    @property
    def title(self) -> str:
        return self.summary or self.description or DEFAULT_TITLE


@dataclass(frozen=True)
class NormalizedEvent:
    """An upcoming event ready to be published."""

    title: str
    start_ms: int
    end_ms: int
    is_full_day: bool

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "startDate": self.start_ms,
            "endDate": self.end_ms,
            "fullDayEvent": self.is_full_day,
        }


def to_epoch_millis(dt: datetime) -> int:
    return (dt - _EPOCH) // timedelta(milliseconds=1)


def display_window(now: datetime, max_window_days: int, tz: tzinfo | None = None) -> tuple[datetime, datetime]:
    """
    Compute (today_start, window_end) for a cycle.

    today_start is local midnight of `now`; window_end is today_start plus
    `max_window_days` days minus one second, so an event starting exactly at
    midnight after the last day is not shown twice.
    """
    local = now.astimezone(tz) if tz else now
    today_start = local.replace(hour=0, minute=0, second=0, microsecond=0)
    window_end = today_start + timedelta(days=max_window_days) - timedelta(seconds=1)
    return today_start, window_end


def is_full_day(event: RawEvent, tz: tzinfo | None = None) -> bool:
    """
    Check whether an event covers whole days.

    True for date-only starts, and for timed events that last exactly 24 hours
    starting at local midnight.
    """
    if isinstance(event.start, AllDay):
        return True
    if not isinstance(event.start, Timed) or not isinstance(event.end, Timed):
        return False

    start = event.start.at
    if event.end.at - start != FULL_DAY:
        return False

    local = start.astimezone(tz) if tz else start
    return local.hour == 0 and local.minute == 0


def normalize(
    event: RawEvent,
    now: datetime,
    today_start: datetime,
    window_end: datetime,
) -> NormalizedEvent | None:
    """
    Normalize a raw event, or return None when it should not be shown.

    Pure function - no I/O.

    Exclusion rules, first match wins:
        1. Timed event that already ended (end < now).
        2. Full-day event that ended on or before today_start.
        3. Event starting after window_end.
    """
    if event.kind != EVENT_KIND:
        logger.info(f"Skipping item of kind {event.kind!r}")
        return None

    title = event.title
    if event.start is None or event.end is None:
        logger.debug(f"Skipping event without start or end: {title}")
        return None

    tz = today_start.tzinfo
    start = event.start.resolve(tz)
    end = event.end.resolve(tz)
    full_day = is_full_day(event, tz)

    if not full_day and end < now:
        logger.debug(f"Skipping elapsed event: {title}")
        return None
    if full_day and end <= today_start:
        logger.debug(f"Skipping full-day event before today: {title}")
        return None
    if start > window_end:
        logger.debug(f"Skipping event outside the display window: {title}")
        return None

    return NormalizedEvent(
        title=title,
        start_ms=to_epoch_millis(start),
        end_ms=to_epoch_millis(end),
        is_full_day=full_day,
    )


def normalize_all(
    events: Iterable[RawEvent],
    now: datetime,
    today_start: datetime,
    window_end: datetime,
) -> list[NormalizedEvent]:
    """Normalize a batch, dropping filtered events."""
    result = []
    for event in events:
        normalized = normalize(event, now, today_start, window_end)
        if normalized is not None:
            result.append(normalized)
    return result


def merge_events(batches: Iterable[Iterable[NormalizedEvent]], max_entries: int) -> list[NormalizedEvent]:
    """Merge per-calendar batches into one list sorted by start, capped at max_entries."""
    merged = sorted(chain.from_iterable(batches), key=lambda e: e.start_ms)
    return merged[:max_entries]
