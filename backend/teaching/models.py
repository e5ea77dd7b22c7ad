"""
Course, lecture and enrollment records of the teaching context.

Courses and enrollments are top-level documents; lectures exist only inside
their course's ordered ``lectures`` list. All instants are stored as UTC ISO
strings.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from identity_access.domain import parse_enum
from identity_access.models import coerce_int
from storage.timestamps import parse_optional_timestamp, to_iso, utcnow

_log = logging.getLogger("coursegate.teaching")

DEFAULT_MAX_ENROLLMENT = 30


class EnrollmentStatus(str, Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


def parse_enrollment_status(value: object) -> EnrollmentStatus:
    return parse_enum(value, EnrollmentStatus, EnrollmentStatus.PENDING)


def _get(doc: Dict[str, Any], key: str, default: Any = None) -> Any:
    if key in doc:
        return doc[key]
    return doc.get(key[:1].upper() + key[1:], default)


def _text(doc: Dict[str, Any], key: str) -> str:
    value = _get(doc, key)
    return value if isinstance(value, str) else ""


def _maybe_when(doc: Dict[str, Any], key: str) -> Optional[datetime]:
    value = _get(doc, key)
    try:
        return parse_optional_timestamp(value)
    except ValueError:
        _log.warning("Unreadable %s on id=%s; ignoring", key, _text(doc, "id") or "?")
        return None


def _when(doc: Dict[str, Any], key: str) -> datetime:
    return _maybe_when(doc, key) or utcnow()


@dataclass
class Lecture:
    id: str
    title: str
    start_time: datetime
    end_time: datetime
    description: str = ""
    location: str = ""

    def to_document(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "startTime": to_iso(self.start_time),
            "endTime": to_iso(self.end_time),
            "location": self.location,
        }

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Lecture":
        return cls(
            id=_text(doc, "id"),
            title=_text(doc, "title"),
            description=_text(doc, "description"),
            start_time=_when(doc, "startTime"),
            end_time=_when(doc, "endTime"),
            location=_text(doc, "location"),
        )


@dataclass
class Course:
    id: str
    title: str
    teacher_id: str
    start_date: datetime
    end_date: datetime
    max_enrollment: int = DEFAULT_MAX_ENROLLMENT
    description: str = ""
    teacher_name: str = ""
    lectures: List[Lecture] = field(default_factory=list)
    is_active: bool = True
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def lecture(self, lecture_id: str) -> Optional[Lecture]:
        for item in self.lectures:
            if item.id == lecture_id:
                return item
        return None

    def to_document(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "teacherId": self.teacher_id,
            "teacherName": self.teacher_name,
            "maxEnrollment": self.max_enrollment,
            "startDate": to_iso(self.start_date),
            "endDate": to_iso(self.end_date),
            "lectures": [item.to_document() for item in self.lectures],
            "isActive": self.is_active,
            "createdAt": to_iso(self.created_at),
            "updatedAt": to_iso(self.updated_at),
        }

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Course":
        max_enrollment = coerce_int(_get(doc, "maxEnrollment"))
        active = _get(doc, "isActive", True)
        lectures = _get(doc, "lectures") or []
        return cls(
            id=_text(doc, "id"),
            title=_text(doc, "title"),
            description=_text(doc, "description"),
            teacher_id=_text(doc, "teacherId"),
            teacher_name=_text(doc, "teacherName"),
            max_enrollment=DEFAULT_MAX_ENROLLMENT if max_enrollment is None else max_enrollment,
            start_date=_when(doc, "startDate"),
            end_date=_when(doc, "endDate"),
            lectures=[Lecture.from_document(item) for item in lectures if isinstance(item, dict)],
            is_active=active if isinstance(active, bool) else True,
            created_at=_when(doc, "createdAt"),
            updated_at=_when(doc, "updatedAt"),
        )


@dataclass
class Enrollment:
    id: str
    course_id: str
    student_id: str
    teacher_id: str
    student_name: str = ""
    status: EnrollmentStatus = EnrollmentStatus.PENDING
    request_date: datetime = field(default_factory=utcnow)
    approval_date: Optional[datetime] = None
    grade: str = ""

    def to_document(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "courseId": self.course_id,
            "studentId": self.student_id,
            "studentName": self.student_name,
            "status": self.status.value,
            "requestDate": to_iso(self.request_date),
            "approvalDate": to_iso(self.approval_date),
            "grade": self.grade,
            "teacherId": self.teacher_id,
        }

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Enrollment":
        return cls(
            id=_text(doc, "id"),
            course_id=_text(doc, "courseId"),
            student_id=_text(doc, "studentId"),
            student_name=_text(doc, "studentName"),
            status=parse_enrollment_status(_get(doc, "status")),
            request_date=_when(doc, "requestDate"),
            approval_date=_maybe_when(doc, "approvalDate"),
            grade=_text(doc, "grade"),
            teacher_id=_text(doc, "teacherId"),
        )


__all__ = [
    "DEFAULT_MAX_ENROLLMENT",
    "EnrollmentStatus",
    "parse_enrollment_status",
    "Lecture",
    "Course",
    "Enrollment",
]
