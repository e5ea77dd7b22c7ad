"""Enrollment workflow: request, review, grading and enrollment reads.

Why:
    Owns the enrollment state machine and its cross-document side effect so
    adapters only translate inputs and map the error kinds.

State machine:
    Pending -> Approved | Rejected, both terminal. Re-setting the current
    terminal status is a no-op success (re-approving also re-runs the roster
    append); switching between terminal statuses raises ``InvalidTransition``.

Consistency:
    Approving writes the enrollment status first and then appends the course
    to the student's ``enrolledCourseIds``. The two writes are not atomic;
    readers must treat roster membership and enrollment status as separate
    facts. Capacity is a soft limit: concurrent approvals can overshoot it.

Permissions:
    Review, grading and course enrollment listings run the approved-teacher
    gate before any other check and require ownership of the course.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from identity_access.errors import RoleMismatch
from identity_access.models import Student
from identity_access.users import UserStore
from storage.errors import NotFound
from storage.timestamps import to_iso, utcnow
from teaching.errors import (
    CapacityExceeded,
    CourseInactive,
    DuplicateEnrollment,
    InvalidTransition,
    NotOwner,
    StudentMismatch,
)
from teaching.models import Course, Enrollment, EnrollmentStatus, parse_enrollment_status
from teaching.repo import CourseRepo, EnrollmentRepo
from teaching.services.approval import require_approved_teacher

_log = logging.getLogger("coursegate.teaching")


def _parse_review_status(value: object) -> EnrollmentStatus:
    # Unknown values parse as Pending, which is never a valid target either.
    status = parse_enrollment_status(value)
    if status is EnrollmentStatus.PENDING:
        raise ValueError("invalid_status")
    return status


def _normalize_grade(value: object) -> str:
    if not isinstance(value, str):
        raise ValueError("invalid_grade")
    return value.strip()


@dataclass
class EnrollmentService:
    users: UserStore
    courses: CourseRepo
    enrollments: EnrollmentRepo

    # --- student side -------------------------------------------------------

    def request_enrollment(self, course_id: str, student_id: str) -> Enrollment:
        """Create a Pending enrollment for ``student_id`` in ``course_id``.

        Checks in order: caller is a student, course exists and is active, no
        prior enrollment for the pair in any status, approved count below
        ``maxEnrollment``.
        """
        student = self.users.get(student_id)
        if not isinstance(student, Student):
            raise RoleMismatch("student_required")
        course = self.courses.get(course_id)
        if not course.is_active:
            raise CourseInactive("Course is not active")
        existing = self.enrollments.find_by_course_and_student(course_id, student_id)
        if existing is not None:
            raise DuplicateEnrollment(f"Already enrolled in this course ({existing.status.value})")
        if self.enrollments.count_approved(course_id) >= course.max_enrollment:
            raise CapacityExceeded("Course has reached maximum enrollment capacity")
        enrollment = self.enrollments.create(
            Enrollment(
                id="",
                course_id=course_id,
                student_id=student_id,
                student_name=student.display_name,
                teacher_id=course.teacher_id,
                status=EnrollmentStatus.PENDING,
                request_date=utcnow(),
            )
        )
        _log.info("Enrollment requested id=%s course=%s student=~%s", enrollment.id, course_id, student_id[-6:])
        return enrollment

    def list_student_enrollments(self, student_id: str) -> List[Enrollment]:
        return self.enrollments.list_by_student(student_id)

    def get_student_enrollment(self, student_id: str, enrollment_id: str) -> Tuple[Enrollment, Optional[Course]]:
        """Return the student's own enrollment and its course (None when gone)."""
        enrollment = self.enrollments.get(enrollment_id)
        if enrollment.student_id != student_id:
            raise NotOwner("Enrollment belongs to another student")
        return enrollment, self.courses.find(enrollment.course_id)

    def list_enrolled_courses(self, student_id: str) -> List[Course]:
        """Resolve the student's roster; deleted courses are skipped."""
        student = self.users.get(student_id)
        if not isinstance(student, Student):
            raise RoleMismatch("student_required")
        result: List[Course] = []
        for course_id in student.enrolled_course_ids:
            course = self.courses.find(course_id)
            if course is not None:
                result.append(course)
        return result

    # --- teacher side -------------------------------------------------------

    def _owned_course(self, teacher_id: str, enrollment: Enrollment) -> Course:
        course = self.courses.get(enrollment.course_id)
        if course.teacher_id != teacher_id:
            raise NotOwner("Course belongs to another teacher")
        return course

    def list_course_enrollments(self, teacher_id: str, course_id: str) -> List[Enrollment]:
        require_approved_teacher(self.users, teacher_id)
        course = self.courses.get(course_id)
        if course.teacher_id != teacher_id:
            raise NotOwner("Course belongs to another teacher")
        return self.enrollments.list_by_course(course_id)

    def review_enrollment(self, enrollment_id: str, reviewer_teacher_id: str, new_status: object) -> Enrollment:
        """Approve or reject an enrollment of one of the reviewer's courses."""
        require_approved_teacher(self.users, reviewer_teacher_id)
        target = _parse_review_status(new_status)
        enrollment = self.enrollments.get(enrollment_id)
        course = self._owned_course(reviewer_teacher_id, enrollment)

        current = enrollment.status
        if current is not EnrollmentStatus.PENDING and current is not target:
            raise InvalidTransition(f"{current.value} -> {target.value}")

        if current is EnrollmentStatus.PENDING:
            if target is EnrollmentStatus.APPROVED:
                approved = self.enrollments.count_approved(course.id, exclude_id=enrollment.id)
                if approved >= course.max_enrollment:
                    raise CapacityExceeded("Course has reached maximum enrollment capacity")
            now = utcnow()
            self.enrollments.update_fields(enrollment.id, {"status": target.value, "approvalDate": to_iso(now)})
            enrollment.status = target
            enrollment.approval_date = now
            _log.info(
                "Enrollment reviewed id=%s status=%s by=~%s", enrollment.id, target.value, reviewer_teacher_id[-6:]
            )

        if target is EnrollmentStatus.APPROVED:
            self._append_to_roster(enrollment.student_id, enrollment.course_id)
        return enrollment

    def _append_to_roster(self, student_id: str, course_id: str) -> None:
        try:
            student = self.users.get(student_id)
        except NotFound:
            # Student deleted after requesting; nothing to update.
            _log.warning("Roster update skipped: student missing sub=~%s", student_id[-6:])
            return
        if not isinstance(student, Student):
            _log.warning("Roster update skipped: user is not a student sub=~%s", student_id[-6:])
            return
        if course_id in student.enrolled_course_ids:
            return
        self.users.update_fields(student_id, {"enrolledCourseIds": student.enrolled_course_ids + [course_id]})

    def set_grade(self, teacher_id: str, enrollment_id: str, student_id: str, grade: object) -> Enrollment:
        """Overwrite the grade. Allowed in any enrollment status."""
        require_approved_teacher(self.users, teacher_id)
        value = _normalize_grade(grade)
        enrollment = self.enrollments.get(enrollment_id)
        self._owned_course(teacher_id, enrollment)
        if enrollment.student_id != student_id:
            raise StudentMismatch("Student ID does not match enrollment record")
        self.enrollments.update_fields(enrollment.id, {"grade": value})
        enrollment.grade = value
        return enrollment


__all__ = ["EnrollmentService"]
