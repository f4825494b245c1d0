from __future__ import annotations

from collections.abc import Iterable, Iterator

from .models import LOGIN, LOGOUT, ActivityEvent, Session


def event_sort_key(event: ActivityEvent) -> tuple[int, int]:
    # A logout sorts before a login at the same instant so touching sessions stay paired.
    return (event.timestamp, 0 if event.kind == LOGOUT else 1)


def sort_events(events: Iterable[ActivityEvent]) -> list[ActivityEvent]:
    return sorted(events, key=event_sort_key)


def pair_events(events: Iterable[ActivityEvent]) -> list[ActivityEvent]:
    """Reduce raw login/logout events to a strictly alternating sequence.

    The first login wins while one is pending; a logout only closes the
    pending login when it is strictly later. Everything else is dropped.
    """
    paired: list[ActivityEvent] = []
    pending: ActivityEvent | None = None

    for event in sort_events(events):
        if event.kind == LOGIN:
            if pending is None:
                pending = event
        elif event.kind == LOGOUT:
            if pending is not None and event.timestamp > pending.timestamp:
                paired.append(pending)
                paired.append(event)
                pending = None

    return paired


def iter_pairs(events: list[ActivityEvent]) -> Iterator[tuple[ActivityEvent, ActivityEvent]]:
    """Walk an already paired sequence two events at a time."""
    for index in range(0, len(events) - 1, 2):
        login, logout = events[index], events[index + 1]
        if login.kind == LOGIN and logout.kind == LOGOUT:
            yield login, logout


def to_intervals(events: list[ActivityEvent]) -> list[tuple[int, int]]:
    return [(login.timestamp, logout.timestamp) for login, logout in iter_pairs(events)]


def from_intervals(intervals: Iterable[tuple[int, int]]) -> list[ActivityEvent]:
    events: list[ActivityEvent] = []
    for start, end in intervals:
        events.append(ActivityEvent(LOGIN, start))
        events.append(ActivityEvent(LOGOUT, end))
    return events


def total_duration_ms(events: list[ActivityEvent]) -> int:
    return sum(logout.timestamp - login.timestamp for login, logout in iter_pairs(events))


def build_sessions(events: Iterable[ActivityEvent]) -> list[Session]:
    paired = pair_events(events)
    return [
        Session(start=login.timestamp, end=logout.timestamp, source_events=(login, logout))
        for login, logout in iter_pairs(paired)
    ]
