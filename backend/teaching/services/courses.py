"""Course and lecture management for approved teachers.

Why:
    Encapsulates course/lecture use cases so web adapters remain thin and the
    validation logic is unit-testable without a store.

Permissions:
    Every mutation and the teacher-side reads run the approved-teacher gate
    first, then require ownership of the course. Active courses are readable
    by anyone; inactive ones only by their owner.

Consistency:
    ``create_course`` writes the course and then appends its id to the
    teacher's ``courseIds``; the two writes are not atomic. ``delete_course``
    does not cascade to enrollments or rosters.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from identity_access.users import UserStore
from storage.errors import NotFound
from storage.timestamps import parse_timestamp
from teaching.errors import NotOwner
from teaching.models import DEFAULT_MAX_ENROLLMENT, Course, Lecture
from teaching.repo import CourseRepo, new_id
from teaching.services.approval import require_approved_teacher

_log = logging.getLogger("coursegate.teaching")

_UNSET = object()


def _normalize_title(value: object) -> str:
    if value is None or not isinstance(value, str):
        raise ValueError("invalid_title")
    trimmed = value.strip()
    if not trimmed:
        raise ValueError("invalid_title")
    return trimmed


def _normalize_text(value: object, field_name: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"invalid_{field_name}")
    return value.strip()


def _normalize_max_enrollment(value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValueError("invalid_max_enrollment")
    return value


def _normalize_when(value: object, field_name: str) -> datetime:
    try:
        return parse_timestamp(value)
    except ValueError as exc:
        raise ValueError(f"invalid_{field_name}") from exc


def _check_range(start: datetime, end: datetime, field_name: str) -> None:
    if end < start:
        raise ValueError(f"invalid_{field_name}")


def _normalize_active(value: object) -> bool:
    if not isinstance(value, bool):
        raise ValueError("invalid_is_active")
    return value


@dataclass
class CoursesService:
    users: UserStore
    courses: CourseRepo

    def _owned(self, teacher_id: str, course_id: str) -> Course:
        require_approved_teacher(self.users, teacher_id)
        course = self.courses.get(course_id)
        if course.teacher_id != teacher_id:
            raise NotOwner("Course belongs to another teacher")
        return course

    # --- reads --------------------------------------------------------------

    def list_active_courses(self) -> List[Course]:
        return self.courses.list_active()

    def get_course(self, course_id: str, viewer_id: Optional[str] = None) -> Course:
        course = self.courses.get(course_id)
        if not course.is_active and course.teacher_id != viewer_id:
            raise NotFound("course_not_found")
        return course

    def list_teacher_courses(self, teacher_id: str) -> List[Course]:
        require_approved_teacher(self.users, teacher_id)
        return self.courses.list_by_teacher(teacher_id)

    def get_teacher_course(self, teacher_id: str, course_id: str) -> Course:
        return self._owned(teacher_id, course_id)

    # --- course mutations ---------------------------------------------------

    def create_course(
        self,
        teacher_id: str,
        *,
        title: str,
        description: Optional[str] = None,
        max_enrollment: int = DEFAULT_MAX_ENROLLMENT,
        start_date: object,
        end_date: object,
    ) -> Course:
        teacher = require_approved_teacher(self.users, teacher_id)
        start = _normalize_when(start_date, "start_date")
        end = _normalize_when(end_date, "end_date")
        _check_range(start, end, "end_date")
        course = self.courses.create(
            Course(
                id="",
                title=_normalize_title(title),
                description=_normalize_text(description, "description"),
                teacher_id=teacher_id,
                teacher_name=teacher.display_name,
                max_enrollment=_normalize_max_enrollment(max_enrollment),
                start_date=start,
                end_date=end,
                is_active=True,
            )
        )
        if course.id not in teacher.course_ids:
            self.users.update_fields(teacher_id, {"courseIds": teacher.course_ids + [course.id]})
        _log.info("Course created id=%s teacher=~%s", course.id, teacher_id[-6:])
        return course

    def update_course(
        self,
        teacher_id: str,
        course_id: str,
        *,
        title: object = _UNSET,
        description: object = _UNSET,
        max_enrollment: object = _UNSET,
        start_date: object = _UNSET,
        end_date: object = _UNSET,
        is_active: object = _UNSET,
    ) -> Course:
        """Partial update; omitted fields keep their stored values."""
        course = self._owned(teacher_id, course_id)
        if title is not _UNSET:
            course.title = _normalize_title(title)
        if description is not _UNSET:
            course.description = _normalize_text(description, "description")
        if max_enrollment is not _UNSET:
            course.max_enrollment = _normalize_max_enrollment(max_enrollment)
        if start_date is not _UNSET:
            course.start_date = _normalize_when(start_date, "start_date")
        if end_date is not _UNSET:
            course.end_date = _normalize_when(end_date, "end_date")
        if is_active is not _UNSET:
            course.is_active = _normalize_active(is_active)
        _check_range(course.start_date, course.end_date, "end_date")
        return self.courses.save(course)

    def delete_course(self, teacher_id: str, course_id: str) -> None:
        self._owned(teacher_id, course_id)
        self.courses.delete(course_id)
        _log.info("Course deleted id=%s teacher=~%s", course_id, teacher_id[-6:])

    # --- lectures -----------------------------------------------------------

    def add_lecture(
        self,
        teacher_id: str,
        course_id: str,
        *,
        title: str,
        start_time: object,
        end_time: object,
        description: Optional[str] = None,
        location: Optional[str] = None,
    ) -> Lecture:
        course = self._owned(teacher_id, course_id)
        start = _normalize_when(start_time, "start_time")
        end = _normalize_when(end_time, "end_time")
        _check_range(start, end, "end_time")
        taken = {item.id for item in course.lectures}
        lecture_id = new_id()
        while lecture_id in taken:
            lecture_id = new_id()
        lecture = Lecture(
            id=lecture_id,
            title=_normalize_title(title),
            description=_normalize_text(description, "description"),
            start_time=start,
            end_time=end,
            location=_normalize_text(location, "location"),
        )
        course.lectures.append(lecture)
        self.courses.save(course)
        return lecture

    def update_lecture(
        self,
        teacher_id: str,
        course_id: str,
        lecture_id: str,
        *,
        title: object = _UNSET,
        description: object = _UNSET,
        start_time: object = _UNSET,
        end_time: object = _UNSET,
        location: object = _UNSET,
    ) -> Lecture:
        course = self._owned(teacher_id, course_id)
        lecture = course.lecture(lecture_id)
        if lecture is None:
            raise NotFound("lecture_not_found")
        if title is not _UNSET:
            lecture.title = _normalize_title(title)
        if description is not _UNSET:
            lecture.description = _normalize_text(description, "description")
        if start_time is not _UNSET:
            lecture.start_time = _normalize_when(start_time, "start_time")
        if end_time is not _UNSET:
            lecture.end_time = _normalize_when(end_time, "end_time")
        if location is not _UNSET:
            lecture.location = _normalize_text(location, "location")
        _check_range(lecture.start_time, lecture.end_time, "end_time")
        self.courses.save(course)
        return lecture

    def delete_lecture(self, teacher_id: str, course_id: str, lecture_id: str) -> None:
        course = self._owned(teacher_id, course_id)
        if course.lecture(lecture_id) is None:
            raise NotFound("lecture_not_found")
        course.lectures = [item for item in course.lectures if item.id != lecture_id]
        self.courses.save(course)


__all__ = ["CoursesService"]
