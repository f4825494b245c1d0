from __future__ import annotations

import logging
from collections.abc import Mapping

from .models import CourseRecord, Lecture, LectureSection
from .timeutil import parse_timestamp

logger = logging.getLogger(__name__)


def parse_course_records(payload: Mapping[str, object] | None) -> list[CourseRecord]:
    """Convert the course-id -> progress mapping into CourseRecords.

    Courses whose progress could not be fetched arrive as None and are
    treated as having no data. A course without a valid enrollment time is
    skipped, as is any lecture with a malformed completion time.
    """
    if not payload:
        return []

    courses: list[CourseRecord] = []
    for course_id, raw in payload.items():
        if not isinstance(raw, Mapping):
            logger.warning("Skipping course %s: no progress data", course_id)
            continue

        enrolled_at = parse_timestamp(raw.get("enrolled_at"))
        if enrolled_at is None:
            logger.warning("Skipping course %s: missing or invalid enrolled_at", course_id)
            continue

        courses.append(
            CourseRecord(
                course_id=str(course_id),
                course_name=str(raw.get("course_name") or course_id),
                enrolled_at=enrolled_at,
                completed_at=parse_timestamp(raw.get("completed_at")),
                lecture_sections=tuple(_parse_sections(raw.get("lecture_sections"))),
            )
        )

    return courses


def _parse_sections(raw_sections: object) -> list[LectureSection]:
    if not isinstance(raw_sections, list):
        return []

    sections: list[LectureSection] = []
    for raw in raw_sections:
        if not isinstance(raw, Mapping):
            continue
        lectures = [
            _parse_lecture(item) for item in raw.get("lectures") or [] if isinstance(item, Mapping)
        ]
        sections.append(LectureSection(name=str(raw.get("name") or ""), lectures=tuple(lectures)))
    return sections


def _parse_lecture(raw: Mapping) -> Lecture:
    completed_at = parse_timestamp(raw.get("completed_at"))
    if raw.get("completed_at") and completed_at is None:
        logger.debug("Ignoring malformed completed_at on lecture %r", raw.get("name"))
    return Lecture(
        name=str(raw.get("name") or ""),
        is_completed=bool(raw.get("is_completed")),
        completed_at=completed_at,
    )
