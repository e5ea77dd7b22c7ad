"""
User variants persisted in the ``users`` collection.

The variants form a tagged union keyed by the stored ``role`` discriminant:
``User`` (least privileged), ``AdminUser``, ``Teacher`` and ``Student``. The
role is a class attribute so an instance can never disagree with its shape.

Documents use camelCase field names. Older documents were written with
PascalCase names (``DisplayName``, ``Role``); ``from_document`` accepts both
and always writes camelCase.
"""
from __future__ import annotations

import random
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar, Dict, List, Optional

from storage.timestamps import parse_timestamp, to_iso, utcnow

from .domain import ApprovalStatus, RoleKind, parse_approval_status

_INTEGER = re.compile(r"-?[0-9]+", re.ASCII)


def lookup(doc: Dict[str, Any], key: str, default: Any = None) -> Any:
    """Return ``doc[key]`` or its PascalCase legacy spelling."""
    if key in doc:
        return doc[key]
    legacy = key[:1].upper() + key[1:]
    return doc.get(legacy, default)


def _str(doc: Dict[str, Any], key: str) -> str:
    value = lookup(doc, key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"invalid_{key}")
    return value


def _bool(doc: Dict[str, Any], key: str) -> bool:
    value = lookup(doc, key)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise ValueError(f"invalid_{key}")
    return value


def coerce_int(value: object) -> Optional[int]:
    """Integers, whole-number floats and ASCII digit strings; else None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and _INTEGER.fullmatch(value.strip()):
        return int(value.strip())
    return None


def _int(doc: Dict[str, Any], key: str, default: int = 0) -> int:
    value = lookup(doc, key)
    if value is None:
        return default
    number = coerce_int(value)
    if number is None:
        raise ValueError(f"invalid_{key}")
    return number


def _ids(doc: Dict[str, Any], *keys: str) -> List[str]:
    """Merge one or more id lists into a deduplicated list, keeping order."""
    merged: List[str] = []
    for key in keys:
        value = lookup(doc, key)
        if value is None:
            continue
        if isinstance(value, str) or not isinstance(value, (list, tuple)):
            raise ValueError(f"invalid_{key}")
        for item in value:
            if not isinstance(item, str):
                raise ValueError(f"invalid_{key}")
            if item not in merged:
                merged.append(item)
    return merged


def _timestamp(doc: Dict[str, Any], key: str) -> datetime:
    value = lookup(doc, key)
    if value is None:
        return utcnow()
    return parse_timestamp(value)


def generate_student_number() -> str:
    """Return a student number shaped ``STU`` + 5 digits."""
    return f"STU{random.randint(10000, 99999)}"


@dataclass
class User:
    id: str
    email: str = ""
    display_name: str = ""
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    last_login: datetime = field(default_factory=utcnow)

    role: ClassVar[RoleKind] = RoleKind.USER

    def to_document(self) -> Dict[str, Any]:
        doc: Dict[str, Any] = {
            "id": self.id,
            "email": self.email,
            "displayName": self.display_name,
            "role": self.role.value,
            "createdAt": to_iso(self.created_at),
            "updatedAt": to_iso(self.updated_at),
            "lastLogin": to_iso(self.last_login),
        }
        doc.update(self._variant_fields())
        return doc

    def _variant_fields(self) -> Dict[str, Any]:
        return {}

    @classmethod
    def _common(cls, doc_id: str, doc: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "id": doc_id,
            "email": _str(doc, "email"),
            "display_name": _str(doc, "displayName"),
            "created_at": _timestamp(doc, "createdAt"),
            "updated_at": _timestamp(doc, "updatedAt"),
            "last_login": _timestamp(doc, "lastLogin"),
        }

    @classmethod
    def from_document(cls, doc_id: str, doc: Dict[str, Any]) -> "User":
        """Strict conversion. Raises ValueError on any ill-typed field."""
        return cls(**cls._common(doc_id, doc))


@dataclass
class AdminUser(User):
    is_super_admin: bool = False
    access_level: str = ""

    role: ClassVar[RoleKind] = RoleKind.ADMIN

    def _variant_fields(self) -> Dict[str, Any]:
        return {"isSuperAdmin": self.is_super_admin, "accessLevel": self.access_level}

    @classmethod
    def from_document(cls, doc_id: str, doc: Dict[str, Any]) -> "AdminUser":
        return cls(
            **cls._common(doc_id, doc),
            is_super_admin=_bool(doc, "isSuperAdmin"),
            access_level=_str(doc, "accessLevel"),
        )


@dataclass
class Teacher(User):
    department: str = ""
    qualification: str = ""
    approval_status: ApprovalStatus = ApprovalStatus.PENDING
    course_ids: List[str] = field(default_factory=list)

    role: ClassVar[RoleKind] = RoleKind.TEACHER

    @property
    def is_approved(self) -> bool:
        return self.approval_status is ApprovalStatus.APPROVED

    def _variant_fields(self) -> Dict[str, Any]:
        return {
            "department": self.department,
            "qualification": self.qualification,
            "approvalStatus": self.approval_status.value,
            "courseIds": list(self.course_ids),
        }

    @classmethod
    def from_document(cls, doc_id: str, doc: Dict[str, Any]) -> "Teacher":
        return cls(
            **cls._common(doc_id, doc),
            department=_str(doc, "department"),
            qualification=_str(doc, "qualification"),
            approval_status=parse_approval_status(lookup(doc, "approvalStatus")),
            course_ids=_ids(doc, "courseIds", "courses"),
        )


@dataclass
class Student(User):
    student_id: str = ""
    year: int = 1
    enrolled_course_ids: List[str] = field(default_factory=list)

    role: ClassVar[RoleKind] = RoleKind.STUDENT

    def _variant_fields(self) -> Dict[str, Any]:
        return {
            "studentId": self.student_id,
            "year": self.year,
            "enrolledCourseIds": list(self.enrolled_course_ids),
        }

    @classmethod
    def from_document(cls, doc_id: str, doc: Dict[str, Any]) -> "Student":
        return cls(
            **cls._common(doc_id, doc),
            student_id=_str(doc, "studentId"),
            year=_int(doc, "year", 1),
            enrolled_course_ids=_ids(doc, "enrolledCourseIds", "enrolledCourses"),
        )


VARIANTS: Dict[RoleKind, type] = {
    RoleKind.ADMIN: AdminUser,
    RoleKind.TEACHER: Teacher,
    RoleKind.STUDENT: Student,
    RoleKind.USER: User,
}

__all__ = [
    "User",
    "AdminUser",
    "Teacher",
    "Student",
    "VARIANTS",
    "lookup",
    "coerce_int",
    "generate_student_number",
]
