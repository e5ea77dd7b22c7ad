"""
Course and enrollment repositories over the document store.

Design:
- Thin typed wrappers: conversion to/from documents and id generation. No
  authorization and no state-machine rules live here.
- Ids are random UUID4 strings generated on create.
- Lookups by foreign key use the store's equality ``query``.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from storage.config import COURSES_COLLECTION, ENROLLMENTS_COLLECTION
from storage.errors import NotFound
from storage.ports import DocumentStore
from storage.timestamps import utcnow

from .models import Course, Enrollment, EnrollmentStatus


def new_id() -> str:
    return str(uuid.uuid4())


@dataclass
class CourseRepo:
    store: DocumentStore
    collection: str = COURSES_COLLECTION

    def get(self, course_id: str) -> Course:
        doc = self.store.get(self.collection, course_id)
        if doc is None:
            raise NotFound("course_not_found")
        return Course.from_document(doc)

    def find(self, course_id: str) -> Optional[Course]:
        doc = self.store.get(self.collection, course_id)
        return Course.from_document(doc) if doc is not None else None

    def list_active(self) -> List[Course]:
        return [Course.from_document(doc) for doc in self.store.query(self.collection, "isActive", True)]

    def list_by_teacher(self, teacher_id: str) -> List[Course]:
        return [Course.from_document(doc) for doc in self.store.query(self.collection, "teacherId", teacher_id)]

    def create(self, course: Course) -> Course:
        if not course.id:
            course.id = new_id()
        now = utcnow()
        course.created_at = now
        course.updated_at = now
        self.store.put(self.collection, course.id, course.to_document())
        return course

    def save(self, course: Course) -> Course:
        """Overwrite the whole course (lectures are embedded)."""
        course.updated_at = utcnow()
        self.store.put(self.collection, course.id, course.to_document())
        return course

    def delete(self, course_id: str) -> None:
        self.store.delete(self.collection, course_id)


@dataclass
class EnrollmentRepo:
    store: DocumentStore
    collection: str = ENROLLMENTS_COLLECTION

    def get(self, enrollment_id: str) -> Enrollment:
        doc = self.store.get(self.collection, enrollment_id)
        if doc is None:
            raise NotFound("enrollment_not_found")
        return Enrollment.from_document(doc)

    def create(self, enrollment: Enrollment) -> Enrollment:
        if not enrollment.id:
            enrollment.id = new_id()
        self.store.put(self.collection, enrollment.id, enrollment.to_document())
        return enrollment

    def update_fields(self, enrollment_id: str, fields: Dict[str, Any]) -> None:
        self.store.merge(self.collection, enrollment_id, dict(fields))

    def list_by_course(self, course_id: str) -> List[Enrollment]:
        return [Enrollment.from_document(d) for d in self.store.query(self.collection, "courseId", course_id)]

    def list_by_student(self, student_id: str) -> List[Enrollment]:
        return [Enrollment.from_document(d) for d in self.store.query(self.collection, "studentId", student_id)]

    def find_by_course_and_student(self, course_id: str, student_id: str) -> Optional[Enrollment]:
        for enrollment in self.list_by_student(student_id):
            if enrollment.course_id == course_id:
                return enrollment
        return None

    def count_approved(self, course_id: str, *, exclude_id: str | None = None) -> int:
        return sum(
            1
            for e in self.list_by_course(course_id)
            if e.status is EnrollmentStatus.APPROVED and e.id != exclude_id
        )


__all__ = ["CourseRepo", "EnrollmentRepo", "new_id"]
