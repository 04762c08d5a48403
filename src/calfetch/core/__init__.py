"""Functional core - pure business logic with no I/O."""

from .events import (
    AllDay,
    Timed,
    RawEvent,
    NormalizedEvent,
    display_window,
    is_full_day,
    normalize,
    normalize_all,
    merge_events,
)

__all__ = [
    "AllDay",
    "Timed",
    "RawEvent",
    "NormalizedEvent",
    "display_window",
    "is_full_day",
    "normalize",
    "normalize_all",
    "merge_events",
]
