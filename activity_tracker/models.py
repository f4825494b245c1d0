from __future__ import annotations

from dataclasses import dataclass, field

LOGIN = "login"
LOGOUT = "logout"


@dataclass(frozen=True, slots=True)
class ActivityEvent:
    kind: str
    timestamp: int  # epoch millis

    def to_payload(self) -> dict:
        return {"event": self.kind, "timestamp": self.timestamp}


@dataclass(frozen=True, slots=True)
class Session:
    start: int
    end: int
    source_events: tuple[ActivityEvent, ...] = ()

    @property
    def duration_ms(self) -> int:
        return self.end - self.start

    @property
    def duration(self) -> int:
        """Duration in whole minutes."""
        return round(self.duration_ms / 60_000)


@dataclass(frozen=True, slots=True)
class Lecture:
    name: str
    is_completed: bool
    completed_at: int | None = None


@dataclass(frozen=True, slots=True)
class LectureSection:
    name: str
    lectures: tuple[Lecture, ...] = ()


@dataclass(frozen=True, slots=True)
class CourseRecord:
    course_id: str
    course_name: str
    enrolled_at: int
    completed_at: int | None = None
    lecture_sections: tuple[LectureSection, ...] = ()

    def completion_times(self) -> list[int]:
        return [
            lecture.completed_at
            for section in self.lecture_sections
            for lecture in section.lectures
            if lecture.is_completed and lecture.completed_at is not None
        ]


@dataclass(frozen=True, slots=True)
class MonthlyWindow:
    month_start: int
    month_end: int
    window_start: int
    window_end: int

    @property
    def elapsed_fraction(self) -> float:
        """Days covered by the window over days in the month.

        Measured in milliseconds, so a window ending mid-day counts that day
        partially and DST shifts do not skew whole months.
        """
        return (self.window_end - self.window_start) / (self.month_end - self.month_start)


@dataclass(frozen=True, slots=True)
class MonthlyRow:
    month: str
    sessions: int
    hours: float

    def to_payload(self) -> dict:
        return {"month": self.month, "sessions": self.sessions, "hours": self.hours}


@dataclass(frozen=True, slots=True)
class MergedSession:
    start: int
    end: int
    course_name: str | None
    activity_count: int

    @property
    def duration(self) -> int:
        return round((self.end - self.start) / 60_000)

    def to_payload(self) -> dict:
        return {
            "start": self.start,
            "end": self.end,
            "duration": self.duration,
            "course_name": self.course_name,
            "activity_count": self.activity_count,
        }


@dataclass(frozen=True, slots=True)
class GenerationResult:
    events: list[ActivityEvent] = field(default_factory=list)
    total_duration_ms: int = 0


@dataclass(frozen=True, slots=True)
class CacheRecord:
    user_id: str
    activities: list[ActivityEvent] = field(default_factory=list)
    total_duration_ms: int = 0

    def to_payload(self) -> dict:
        return {
            "activities": [event.to_payload() for event in self.activities],
            "totalDurationMs": self.total_duration_ms,
        }
