"""
Error kinds raised by the enrollment and approval engine.

Every kind carries a stable ``code``. ``NotOwner`` and ``NotApproved`` are
also ``PermissionError``s; the precondition failures are ``ValueError``s.
"""
from __future__ import annotations


class EnrollmentError(Exception):
    code = "enrollment_error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.code)
        self.message = message or self.code


class NotOwner(EnrollmentError, PermissionError):
    code = "not_owner"


class NotApproved(EnrollmentError, PermissionError):
    """Teacher account is still pending (or was rejected)."""

    code = "not_approved"

    def __init__(self, message: str | None = None):
        super().__init__(message or "Teacher account is pending approval")


class DuplicateEnrollment(EnrollmentError, ValueError):
    code = "duplicate_enrollment"


class CourseInactive(EnrollmentError, ValueError):
    code = "course_inactive"


class CapacityExceeded(EnrollmentError, ValueError):
    code = "capacity_exceeded"


class StudentMismatch(EnrollmentError, ValueError):
    code = "student_mismatch"


class InvalidTransition(EnrollmentError, ValueError):
    """Requested status change is not allowed from the current status."""

    code = "invalid_transition"


__all__ = [
    "EnrollmentError",
    "NotOwner",
    "NotApproved",
    "DuplicateEnrollment",
    "CourseInactive",
    "CapacityExceeded",
    "StudentMismatch",
    "InvalidTransition",
]
