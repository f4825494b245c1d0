from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime

from .cache import ActivityCacheStore
from .generator import ActivityGenerator
from .models import CacheRecord, CourseRecord
from .pairing import build_sessions, from_intervals, pair_events
from .timeutil import MS_IN_MINUTE, to_millis

DEFAULT_REFRESH_MINUTES = 60


class ActivityCacheExtender:
    """Serve a user's cached history, extending it forward when it goes stale.

    History before the last cached event is never regenerated. Callers
    should serialize calls for the same user; load and save are not atomic.
    """

    def __init__(
        self,
        store: ActivityCacheStore,
        generator: ActivityGenerator,
        refresh_minutes: int = DEFAULT_REFRESH_MINUTES,
        logger: logging.Logger | None = None,
    ) -> None:
        self.store = store
        self.generator = generator
        self.refresh_ms = refresh_minutes * MS_IN_MINUTE
        self.logger = logger or logging.getLogger(__name__)

    def resolve(self, user_id: str, courses: Sequence[CourseRecord], now: datetime) -> CacheRecord:
        cached = self.store.load(user_id)
        if cached is None or not cached.activities:
            result = self.generator.generate(courses, now=now)
            record = CacheRecord(user_id, result.events, result.total_duration_ms)
            self.store.save(record)
            self.logger.info("Generated %d events for user %s", len(record.activities), user_id)
            return record

        last_timestamp = cached.activities[-1].timestamp
        if to_millis(now) - last_timestamp <= self.refresh_ms:
            return cached

        return self.extend(cached, courses, now)

    def extend(self, cached: CacheRecord, courses: Sequence[CourseRecord], now: datetime) -> CacheRecord:
        last_timestamp = cached.activities[-1].timestamp
        result = self.generator.generate(courses, now=now, resume_from=last_timestamp + 1)

        # Whole pairs only, so a session straddling the resume point is not split.
        new_intervals = [
            (session.start, session.end)
            for session in build_sessions(result.events)
            if session.start > last_timestamp
        ]
        if not new_intervals:
            self.logger.debug("No new activity for user %s after %s", cached.user_id, last_timestamp)
            return cached

        added_ms = sum(end - start for start, end in new_intervals)
        record = CacheRecord(
            user_id=cached.user_id,
            activities=pair_events(cached.activities + from_intervals(new_intervals)),
            total_duration_ms=cached.total_duration_ms + added_ms,
        )
        self.store.save(record)
        self.logger.info(
            "Extended user %s by %d sessions (%sms)", cached.user_id, len(new_intervals), added_ms
        )
        return record
