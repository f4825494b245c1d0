from __future__ import annotations

import logging
from bisect import bisect_right, insort
from collections.abc import Collection, Iterable, Sequence
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from .config import DEFAULT_HOLIDAYS
from .entropy import EntropySource, chance, default_entropy, draw_float, draw_int
from .models import LOGIN, LOGOUT, ActivityEvent, CourseRecord, GenerationResult
from .pairing import from_intervals, pair_events, to_intervals, total_duration_ms
from .quota import QuotaEnforcer
from .timeutil import (
    MS_IN_DAY,
    MS_IN_HOUR,
    MS_IN_MINUTE,
    add_months,
    from_millis,
    is_public_holiday,
    iter_local_days,
    local_date,
    local_millis,
    to_millis,
)

Interval = tuple[int, int]

HABIT_WEEKDAYS = frozenset({3, 4, 5})  # Thursday, Friday, Saturday
HOLIDAY_RETRIES = 10
RECENT_ENROLLMENT_MONTHS = 2


def pool_events(*groups: Iterable[Interval]) -> list[ActivityEvent]:
    """Flatten candidate sessions into events, keeping each (kind, timestamp) once."""
    events: list[ActivityEvent] = []
    seen: set[tuple[str, int]] = set()
    for group in groups:
        for login, logout in group:
            for kind, timestamp in ((LOGIN, login), (LOGOUT, logout)):
                if (kind, timestamp) in seen:
                    continue
                seen.add((kind, timestamp))
                events.append(ActivityEvent(kind, timestamp))
    return events


class ActivityGenerator:
    """Fabricate a plausible login/logout history from enrollment data.

    Enrollments and lecture completions are always covered by a session;
    weekly evening habits and randomly spaced background sessions fill in
    the rest, and the result is handed to the quota enforcer.
    """

    def __init__(
        self,
        tz: ZoneInfo,
        holidays: Collection[str] = DEFAULT_HOLIDAYS,
        enforcer: QuotaEnforcer | None = None,
        entropy: EntropySource | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.tz = tz
        self.holidays = holidays
        self.entropy = entropy or default_entropy()
        self.logger = logger or logging.getLogger(__name__)
        self.enforcer = enforcer or QuotaEnforcer(tz, entropy=self.entropy, logger=self.logger)

    def generate(
        self,
        courses: Sequence[CourseRecord],
        now: datetime,
        resume_from: int | None = None,
    ) -> GenerationResult:
        now_ms = to_millis(now)
        started = [course for course in courses if course.enrolled_at <= now_ms]
        if not started:
            return GenerationResult()

        earliest = min(course.enrolled_at for course in started)
        completions = sorted(
            moment for course in started for moment in course.completion_times() if moment <= now_ms
        )
        milestones = sorted([course.enrolled_at for course in started] + completions)

        enrollment = self.enrollment_sessions(started, now_ms)
        completion = self.completion_sessions(completions, enrollment, now_ms)
        end = self.history_end(earliest, completions, now_ms)
        habit = self.habit_sessions(earliest, end)
        background = self.background_sessions(resume_from or earliest, end)

        paired = pair_events(pool_events(enrollment, completion, habit, background))
        paired = self.ensure_coverage(paired, milestones, now_ms)
        final = self.enforcer.enforce(paired, earliest, now_ms, milestones)
        total = total_duration_ms(final)

        self.logger.debug(
            "Generated %d sessions (%sms) for %d courses", len(final) // 2, total, len(started)
        )
        return GenerationResult(events=final, total_duration_ms=total)

    def history_end(self, earliest: int, completions: Sequence[int], now_ms: int) -> int:
        recent_cutoff = add_months(from_millis(earliest, self.tz), RECENT_ENROLLMENT_MONTHS)
        if to_millis(recent_cutoff) >= now_ms or not completions:
            return now_ms
        return min(completions[-1] + draw_int(self.entropy, 1, 2) * MS_IN_DAY, now_ms)

    def enrollment_sessions(self, courses: Sequence[CourseRecord], now_ms: int) -> list[Interval]:
        sessions: list[Interval] = []
        for course in courses:
            start = course.enrolled_at - draw_int(self.entropy, 0, 30) * MS_IN_MINUTE
            end = min(course.enrolled_at + draw_int(self.entropy, 0, 30) * MS_IN_MINUTE, now_ms)
            if start < end and start < now_ms:
                sessions.append((start, end))
        return sessions

    def completion_sessions(
        self,
        completions: Sequence[int],
        covering: Sequence[Interval],
        now_ms: int,
    ) -> list[Interval]:
        sessions: list[Interval] = []
        for moment in completions:
            if any(start <= moment <= end for start, end in [*covering, *sessions]):
                continue
            start = moment - draw_int(self.entropy, 10, 30) * MS_IN_MINUTE
            end = min(moment + draw_int(self.entropy, 5, 20) * MS_IN_MINUTE, now_ms)
            sessions.append((start, end))
        return sessions

    def habit_sessions(self, earliest: int, end: int) -> list[Interval]:
        sessions: list[Interval] = []
        for day in iter_local_days(earliest, end, self.tz):
            if day.weekday() not in HABIT_WEEKDAYS or is_public_holiday(day, self.tz, self.holidays):
                continue
            # 16:30-18:59 login, 20:00-20:50 logout.
            login = local_millis(day, 16, 30, self.tz) + draw_int(self.entropy, 0, 149) * MS_IN_MINUTE
            logout = local_millis(day, 20, draw_int(self.entropy, 0, 50), self.tz)
            if login >= earliest and logout <= end:
                sessions.append((login, logout))
        return sessions

    def background_sessions(self, cursor: int, end: int) -> list[Interval]:
        sessions: list[Interval] = []
        while cursor < end:
            day = self.pick_day(cursor)
            if chance(self.entropy, 0.7):
                hour = draw_int(self.entropy, 8, 17)
            else:
                hour = draw_int(self.entropy, 18, 22)
            login = local_millis(day, hour, draw_int(self.entropy, 0, 59), self.tz)
            if login > end:
                break

            if chance(self.entropy, 0.95):
                hours = draw_float(self.entropy, 1, 5)
            else:
                hours = draw_float(self.entropy, 5, 8)
            logout = login + int(hours * MS_IN_HOUR)

            if logout >= local_millis(day, 21, 0, self.tz) and not chance(self.entropy, 0.02):
                logout = local_millis(day, 20, draw_int(self.entropy, 30, 59), self.tz)
            logout = min(logout, local_millis(day, 23, 59, self.tz), end)

            if logout > login:
                sessions.append((login, logout))

            if chance(self.entropy, 0.95):
                gap_hours = draw_float(self.entropy, 1, 5)
            else:
                gap_hours = draw_float(self.entropy, 5, 12)
            cursor = max(login, logout) + int(gap_hours * MS_IN_HOUR)
        return sessions

    def pick_day(self, cursor: int) -> date:
        """Next day after the cursor, 80% weekdays, avoiding holidays where possible."""
        cursor_day = local_date(cursor, self.tz)
        day = cursor_day
        for _ in range(HOLIDAY_RETRIES + 1):
            if chance(self.entropy, 0.8):
                weekday = draw_int(self.entropy, 0, 4)
            else:
                weekday = draw_int(self.entropy, 5, 6)
            day = cursor_day + timedelta(days=(weekday - cursor_day.weekday()) % 7 or 7)
            if not is_public_holiday(day, self.tz, self.holidays):
                break
        return day

    def ensure_coverage(
        self,
        paired: list[ActivityEvent],
        milestones: Sequence[int],
        now_ms: int,
    ) -> list[ActivityEvent]:
        """Insert a bracketing session for every milestone left uncovered by pairing.

        Insertions are clipped to the free gap around the milestone so the
        pairer can never discard them.
        """
        intervals = to_intervals(paired)
        for moment in milestones:
            index = bisect_right(intervals, (moment, float("inf")))
            if index and intervals[index - 1][1] >= moment:
                continue

            start = moment - draw_int(self.entropy, 10, 30) * MS_IN_MINUTE
            end = min(moment + draw_int(self.entropy, 5, 20) * MS_IN_MINUTE, now_ms)
            if index:
                start = max(start, intervals[index - 1][1])
            if index < len(intervals):
                end = min(end, intervals[index][0])
            if end > start:
                insort(intervals, (start, end))

        return from_intervals(intervals)
