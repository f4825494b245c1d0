from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

from .models import MergedSession
from .timeutil import MS_IN_MINUTE, parse_timestamp

SESSION_WINDOW_MS = 30 * MS_IN_MINUTE

logger = logging.getLogger(__name__)


def merge_activity_records(
    records: Iterable[Mapping],
    window_ms: int = SESSION_WINDOW_MS,
) -> list[MergedSession]:
    """Group real activity records into sessions split by inactivity gaps.

    A record joins the running session when it lands within `window_ms` of
    that session's latest record; otherwise the session is closed and a new
    one starts. Records without a usable timestamp are skipped.
    """
    timed: list[tuple[int, Mapping]] = []
    for record in records:
        timestamp = parse_timestamp(record.get("timestamp"))
        if timestamp is None:
            logger.debug("Skipping activity record without timestamp: %r", record)
            continue
        timed.append((timestamp, record))

    timed.sort(key=lambda item: item[0])

    sessions: list[MergedSession] = []
    start = end = 0
    course_name = None
    count = 0

    for timestamp, record in timed:
        if count and timestamp - end <= window_ms:
            end = timestamp
            count += 1
            continue

        if count:
            sessions.append(MergedSession(start, end, course_name, count))

        start = end = timestamp
        course_name = record.get("course")
        count = 1

    if count:
        sessions.append(MergedSession(start, end, course_name, count))

    return sessions
