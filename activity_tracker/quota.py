from __future__ import annotations

import logging
import math
from bisect import bisect_left, bisect_right, insort
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import timedelta
from zoneinfo import ZoneInfo

from .entropy import EntropySource, default_entropy, draw_int
from .models import ActivityEvent, MonthlyWindow
from .pairing import from_intervals, pair_events, to_intervals
from .timeutil import (
    MS_IN_HOUR,
    MS_IN_MINUTE,
    add_months,
    iter_local_days,
    local_date,
    local_millis,
    start_of_month,
    to_millis,
)

Interval = tuple[int, int]

FILL_MIN_MS = 2 * MS_IN_HOUR
FILL_MAX_MS = 4 * MS_IN_HOUR
MILESTONE_MARGIN_MS = 30 * MS_IN_MINUTE


@dataclass(frozen=True, slots=True)
class QuotaBand:
    min_hours: float = 75.0
    max_hours: float = 95.0

    def limits_ms(self, fraction: float) -> tuple[int, int]:
        return (
            round(self.min_hours * fraction * MS_IN_HOUR),
            round(self.max_hours * fraction * MS_IN_HOUR),
        )


def month_windows(earliest: int, horizon: int, tz: ZoneInfo) -> list[MonthlyWindow]:
    """Local calendar months from the one holding `earliest` up to `horizon`.

    The first and last windows are clipped to those instants, so their
    elapsed fraction is below one.
    """
    windows: list[MonthlyWindow] = []
    month = start_of_month(earliest, tz)
    while to_millis(month) < horizon:
        following = add_months(month, 1)
        month_start, month_end = to_millis(month), to_millis(following)
        window_start = max(month_start, earliest)
        window_end = min(month_end, horizon)
        if window_end > window_start:
            windows.append(MonthlyWindow(month_start, month_end, window_start, window_end))
        month = following
    return windows


def overlap_ms(intervals: Iterable[Interval], window: MonthlyWindow) -> int:
    total = 0
    for start, end in intervals:
        clipped = min(end, window.window_end) - max(start, window.window_start)
        if clipped > 0:
            total += clipped
    return total


def free_gaps(intervals: Sequence[Interval], window: MonthlyWindow) -> list[Interval]:
    gaps: list[Interval] = []
    cursor = window.window_start
    for start, end in intervals:
        if cursor >= window.window_end:
            break
        if end <= cursor:
            continue
        if start > cursor:
            gaps.append((cursor, min(start, window.window_end)))
        cursor = max(cursor, end)
    if cursor < window.window_end:
        gaps.append((cursor, window.window_end))
    return gaps


def _overlaps(occupied: list[Interval], start: int, end: int) -> bool:
    index = bisect_left(occupied, (start, start))
    if index > 0 and occupied[index - 1][1] > start:
        return True
    return index < len(occupied) and occupied[index][0] < end


def _covers_milestone(milestones: Sequence[int], start: int, end: int) -> bool:
    index = bisect_left(milestones, start)
    return index < len(milestones) and milestones[index] <= end


def _shrink_to_milestones(milestones: Sequence[int], window: MonthlyWindow, start: int, end: int) -> Interval:
    """Cut a milestone session down to its milestones plus a margin, inside the window only."""
    first = milestones[bisect_left(milestones, start)]
    last = milestones[bisect_right(milestones, end) - 1]
    if start >= window.window_start:
        start = max(start, first - MILESTONE_MARGIN_MS)
    if end <= window.window_end:
        end = min(end, last + MILESTONE_MARGIN_MS)
    return start, end


def _repair(intervals: Iterable[Interval]) -> list[Interval]:
    return to_intervals(pair_events(from_intervals(intervals)))


class QuotaEnforcer:
    """Pull each month's logged-in total into the pro-rated quota band.

    Every month runs the same finite pipeline: trim when over the maximum,
    otherwise fill then close the remaining gap when under the minimum, and
    re-trim if filling overshot. Sessions covering a milestone are kept
    whole unless they alone exceed the maximum, in which case they are cut
    down to their milestones plus a margin.
    """

    def __init__(
        self,
        tz: ZoneInfo,
        band: QuotaBand | None = None,
        entropy: EntropySource | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.tz = tz
        self.band = band or QuotaBand()
        self.entropy = entropy or default_entropy()
        self.logger = logger or logging.getLogger(__name__)

    def enforce(
        self,
        events: list[ActivityEvent],
        earliest: int,
        horizon: int,
        milestones: Iterable[int] = (),
    ) -> list[ActivityEvent]:
        intervals = to_intervals(pair_events(events))
        marks = sorted(milestones)
        for window in month_windows(earliest, horizon, self.tz):
            intervals = self.enforce_month(intervals, window, marks)
        return from_intervals(intervals)

    def enforce_month(
        self,
        intervals: list[Interval],
        window: MonthlyWindow,
        milestones: Sequence[int] = (),
    ) -> list[Interval]:
        low, high = self.band.limits_ms(window.elapsed_fraction)
        measured = overlap_ms(intervals, window)

        if measured > high:
            self.logger.debug("Month %s over quota: %sms > %sms", window.month_start, measured, high)
            return self.trim_pass(intervals, window, high, milestones)

        if measured >= low:
            return intervals

        self.logger.debug("Month %s under quota: %sms < %sms", window.month_start, measured, low)
        intervals = self.fill_pass(intervals, window, low - measured)

        measured = overlap_ms(intervals, window)
        if measured < low:
            intervals = self.close_gap_pass(intervals, window, low - measured)

        if overlap_ms(intervals, window) > high:
            intervals = self.trim_pass(intervals, window, high, milestones)
        return intervals

    def trim_pass(
        self,
        intervals: list[Interval],
        window: MonthlyWindow,
        limit_ms: int,
        milestones: Sequence[int] = (),
    ) -> list[Interval]:
        inside = [
            (start, end)
            for start, end in intervals
            if end > window.window_start and start < window.window_end
        ]
        protected = {item for item in inside if _covers_milestone(milestones, *item)}
        kept = {item: item for item in protected}
        if overlap_ms(protected, window) > limit_ms:
            kept = {item: _shrink_to_milestones(milestones, window, *item) for item in protected}
            if overlap_ms(kept.values(), window) > limit_ms:
                self.logger.warning(
                    "Month %s stays over quota: milestone sessions alone exceed %sms",
                    window.month_start,
                    limit_ms,
                )
        budget = limit_ms - overlap_ms(kept.values(), window)

        trimmed: list[Interval] = []
        for start, end in intervals:
            if (start, end) in kept:
                trimmed.append(kept[(start, end)])
                continue
            if end <= window.window_start or start >= window.window_end:
                trimmed.append((start, end))
                continue

            clip_start = max(start, window.window_start)
            portion = min(end, window.window_end) - clip_start
            if portion <= budget:
                trimmed.append((start, end))
                budget -= portion
            elif budget > 0:
                trimmed.append((start, clip_start + budget))
                budget = 0
            elif start < window.window_start:
                # Keep the part that belongs to the previous month.
                trimmed.append((start, window.window_start))

        return trimmed

    def fill_pass(self, intervals: list[Interval], window: MonthlyWindow, needed_ms: int) -> list[Interval]:
        days = list(iter_local_days(window.window_start, window.window_end, self.tz))
        sessions_needed = math.ceil(needed_ms / FILL_MAX_MS)
        stride = max(1, len(days) // max(1, sessions_needed))

        occupied = sorted(intervals)
        extras: list[Interval] = []
        for day in days[::stride]:
            if needed_ms <= 0:
                break
            for _ in range(draw_int(self.entropy, 1, 2)):
                if needed_ms <= 0:
                    break
                start = local_millis(day, draw_int(self.entropy, 8, 19), draw_int(self.entropy, 0, 59), self.tz)
                length = min(FILL_MAX_MS, max(FILL_MIN_MS, needed_ms))
                end = start + length
                if start < window.window_start or end > window.window_end or _overlaps(occupied, start, end):
                    continue
                insort(occupied, (start, end))
                extras.append((start, end))
                needed_ms -= length

        return _repair(list(intervals) + extras)

    def close_gap_pass(self, intervals: list[Interval], window: MonthlyWindow, remaining_ms: int) -> list[Interval]:
        gaps = sorted(free_gaps(intervals, window), key=lambda gap: gap[1] - gap[0], reverse=True)

        additions: list[Interval] = []
        for gap_start, gap_end in gaps:
            if remaining_ms <= 0:
                break
            day = local_date(gap_start, self.tz)
            preferred = local_millis(day, 8, 0, self.tz)
            if preferred < gap_start:
                preferred = local_millis(day + timedelta(days=1), 8, 0, self.tz)
            start = max(gap_start, min(preferred, gap_end - remaining_ms))
            length = min(remaining_ms, gap_end - start)
            if length <= 0:
                continue
            additions.append((start, start + length))
            remaining_ms -= length

        return _repair(list(intervals) + additions)
