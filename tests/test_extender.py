import random
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from activity_tracker.cache import InMemoryCacheStore, SQLiteCacheStore
from activity_tracker.extender import ActivityCacheExtender
from activity_tracker.generator import ActivityGenerator
from activity_tracker.models import LOGIN, LOGOUT, ActivityEvent, CacheRecord, CourseRecord, GenerationResult
from activity_tracker.pairing import from_intervals, pair_events
from activity_tracker.timeutil import MS_IN_DAY, MS_IN_HOUR, MS_IN_MINUTE, to_millis

NOW = datetime(2026, 2, 1, 12, 0, 0, tzinfo=timezone.utc)
NOW_MS = to_millis(NOW)


class FakeGenerator:
    def __init__(self, intervals: list[tuple[int, int]]) -> None:
        self.events = from_intervals(intervals)
        self.calls: list[int | None] = []

    def generate(self, courses, now, resume_from=None) -> GenerationResult:
        self.calls.append(resume_from)
        total = sum(logout.timestamp - login.timestamp for login, logout in zip(self.events[::2], self.events[1::2]))
        return GenerationResult(self.events, total)


def test_missing_cache_generates_and_saves() -> None:
    store = InMemoryCacheStore()
    generator = FakeGenerator([(NOW_MS - 3 * MS_IN_HOUR, NOW_MS - 2 * MS_IN_HOUR)])
    extender = ActivityCacheExtender(store, generator)

    record = extender.resolve("7", [], NOW)

    assert generator.calls == [None]
    assert record.total_duration_ms == MS_IN_HOUR
    assert store.load("7") == record


def test_recent_cache_is_returned_unchanged() -> None:
    store = InMemoryCacheStore()
    cached = CacheRecord("7", from_intervals([(NOW_MS - 90 * MS_IN_MINUTE, NOW_MS - 30 * MS_IN_MINUTE)]), MS_IN_HOUR)
    store.save(cached)
    generator = FakeGenerator([])
    extender = ActivityCacheExtender(store, generator)

    assert extender.resolve("7", [], NOW) == cached
    assert generator.calls == []


def test_stale_cache_appends_only_whole_pairs_after_last_event() -> None:
    last = NOW_MS - 5 * MS_IN_HOUR
    store = InMemoryCacheStore()
    cached = CacheRecord("7", from_intervals([(last - MS_IN_HOUR, last)]), MS_IN_HOUR)
    store.save(cached)
    generator = FakeGenerator(
        [
            (last - 2 * MS_IN_HOUR, last - 90 * MS_IN_MINUTE),  # history, ignored
            (last - 10 * MS_IN_MINUTE, last + 20 * MS_IN_MINUTE),  # straddles the resume point
            (last + MS_IN_HOUR, last + 3 * MS_IN_HOUR),
        ]
    )
    extender = ActivityCacheExtender(store, generator)

    record = extender.resolve("7", [], NOW)

    assert generator.calls == [last + 1]
    assert record.activities == from_intervals([(last - MS_IN_HOUR, last), (last + MS_IN_HOUR, last + 3 * MS_IN_HOUR)])
    assert record.total_duration_ms == 3 * MS_IN_HOUR
    assert store.load("7") == record


def test_stale_cache_without_new_activity_is_kept() -> None:
    last = NOW_MS - 5 * MS_IN_HOUR
    store = InMemoryCacheStore()
    cached = CacheRecord("7", from_intervals([(last - MS_IN_HOUR, last)]), MS_IN_HOUR)
    store.save(cached)
    extender = ActivityCacheExtender(store, FakeGenerator([(last - MS_IN_HOUR, last)]))

    assert extender.resolve("7", [], NOW) == cached


def test_extension_with_real_generator_preserves_history() -> None:
    tz = ZoneInfo("Atlantic/Canary")
    courses = [CourseRecord("c1", "Python 101", enrolled_at=NOW_MS - 20 * MS_IN_DAY)]
    store = InMemoryCacheStore()
    extender = ActivityCacheExtender(store, ActivityGenerator(tz, entropy=random.Random(8)))

    first = extender.resolve("7", courses, NOW)
    later = extender.resolve("7", courses, NOW + timedelta(days=3))

    assert later.activities[: len(first.activities)] == first.activities
    assert pair_events(later.activities) == later.activities
    assert later.total_duration_ms >= first.total_duration_ms


def test_sqlite_store_round_trip() -> None:
    store = SQLiteCacheStore(":memory:")
    store.initialize()
    record = CacheRecord("7", from_intervals([(1_000, 5_000), (9_000, 12_000)]), 7_000)

    assert store.load("7") is None
    store.save(record)
    assert store.load("7") == record

    store.save(CacheRecord("7", [], 0))
    assert store.load("7") == CacheRecord("7", [], 0)
    store.close()
    store.close()


def test_loaded_activities_are_re_paired() -> None:
    store = InMemoryCacheStore()
    store.save(
        CacheRecord(
            "7",
            [ActivityEvent(LOGOUT, 10), ActivityEvent(LOGIN, 20), ActivityEvent(LOGOUT, 30), ActivityEvent(LOGOUT, 40)],
            10,
        )
    )

    assert store.load("7").activities == [ActivityEvent(LOGIN, 20), ActivityEvent(LOGOUT, 30)]
