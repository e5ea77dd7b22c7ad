"""
Role-polymorphic user store over the document store.

Why:
- User documents have been written under several schema versions. The stored
  ``role`` discriminant decides which variant shape is valid; nothing else is
  assumed to exist.
- Listing must survive individual broken documents. A document that fails
  strict conversion is rebuilt field by field with defaults and logged, never
  dropped.

Design:
- Explicit dispatch table from ``RoleKind`` to a decode function.
- ``update`` and ``update_fields`` merge so fields unknown to this version of
  the code survive on the stored document.
- ``delete`` does not cascade. Readers treat dangling references as missing.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional

from storage.config import USERS_COLLECTION
from storage.errors import NotFound
from storage.ports import Document, DocumentStore
from storage.timestamps import parse_timestamp, to_iso, utcnow

from .domain import ApprovalStatus, RoleKind, parse_approval_status, parse_role
from .models import (
    VARIANTS,
    AdminUser,
    Student,
    Teacher,
    User,
    coerce_int,
    generate_student_number,
    lookup,
)

_log = logging.getLogger("coursegate.identity_access")

Decoder = Callable[[str, Document], User]

DECODERS: Dict[RoleKind, Decoder] = {
    RoleKind.ADMIN: AdminUser.from_document,
    RoleKind.TEACHER: Teacher.from_document,
    RoleKind.STUDENT: Student.from_document,
    RoleKind.USER: User.from_document,
}


def role_of(doc: Mapping[str, Any]) -> RoleKind:
    """Permissive discriminant read; missing or malformed means ``User``."""
    return parse_role(lookup(dict(doc), "role"))


def _lenient_str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _lenient_timestamp(value: Any) -> datetime:
    try:
        return parse_timestamp(value)
    except (TypeError, ValueError):
        return utcnow()


def _lenient_ids(*values: Any) -> List[str]:
    merged: List[str] = []
    for value in values:
        if not isinstance(value, (list, tuple)):
            continue
        for item in value:
            if isinstance(item, str) and item not in merged:
                merged.append(item)
    return merged


def reconstruct(doc_id: str, doc: Document) -> User:
    """Rebuild a user from an ill-typed document, one field at a time.

    Unparseable timestamps default to now, missing or non-string strings to
    empty, and variant fields to their defaults.
    """
    role = role_of(doc)
    common: Dict[str, Any] = {
        "id": doc_id,
        "email": _lenient_str(lookup(doc, "email")),
        "display_name": _lenient_str(lookup(doc, "displayName")),
        "created_at": _lenient_timestamp(lookup(doc, "createdAt")),
        "updated_at": _lenient_timestamp(lookup(doc, "updatedAt")),
        "last_login": _lenient_timestamp(lookup(doc, "lastLogin")),
    }
    if role is RoleKind.ADMIN:
        flag = lookup(doc, "isSuperAdmin")
        return AdminUser(
            **common,
            is_super_admin=flag if isinstance(flag, bool) else False,
            access_level=_lenient_str(lookup(doc, "accessLevel")),
        )
    if role is RoleKind.TEACHER:
        return Teacher(
            **common,
            department=_lenient_str(lookup(doc, "department")),
            qualification=_lenient_str(lookup(doc, "qualification")),
            approval_status=parse_approval_status(lookup(doc, "approvalStatus")),
            course_ids=_lenient_ids(lookup(doc, "courseIds"), lookup(doc, "courses")),
        )
    if role is RoleKind.STUDENT:
        year = coerce_int(lookup(doc, "year"))
        return Student(
            **common,
            student_id=_lenient_str(lookup(doc, "studentId")),
            year=year if year is not None else 1,
            enrolled_course_ids=_lenient_ids(
                lookup(doc, "enrolledCourseIds"), lookup(doc, "enrolledCourses")
            ),
        )
    return User(**common)


def decode_user(doc_id: str, doc: Document) -> User:
    """Dispatch on the discriminant; fall back to manual reconstruction."""
    role = role_of(doc)
    try:
        return DECODERS[role](doc_id, doc)
    except (TypeError, ValueError) as exc:
        _log.warning(
            "User document conversion failed id=~%s role=%s err=%s; reconstructing",
            doc_id[-6:],
            role.value,
            exc,
        )
        return reconstruct(doc_id, doc)


@dataclass
class UserStore:
    """Typed access to the ``users`` collection."""

    store: DocumentStore
    collection: str = USERS_COLLECTION

    def get(self, user_id: str) -> User:
        doc = self.store.get(self.collection, user_id)
        if doc is None:
            raise NotFound("user_not_found")
        return decode_user(user_id, doc)

    def find(self, user_id: str) -> Optional[User]:
        """Like ``get`` but returns None for a missing user."""
        try:
            return self.get(user_id)
        except NotFound:
            return None

    def list(self) -> List[User]:
        users: List[User] = []
        for doc in self.store.scan(self.collection):
            doc_id = str(doc.get("id") or "")
            users.append(decode_user(doc_id, doc))
        return users

    def create(self, user: User) -> User:
        if not user.id:
            raise ValueError("invalid_id")
        existing = self.store.get(self.collection, user.id)
        if existing is not None and lookup(existing, "createdAt") is not None:
            # Keep the original creation time when a record is re-created.
            user.created_at = _lenient_timestamp(lookup(existing, "createdAt"))
        user.updated_at = utcnow()
        self.store.put(self.collection, user.id, user.to_document())
        return user

    def update(self, user: User) -> User:
        user.updated_at = utcnow()
        doc = user.to_document()
        # createdAt is set once at creation.
        doc.pop("createdAt", None)
        self.store.merge(self.collection, user.id, doc)
        return user

    def update_fields(self, user_id: str, fields: Mapping[str, Any]) -> None:
        """Merge selected document fields; always stamps ``updatedAt``."""
        patch = dict(fields)
        patch.pop("id", None)
        patch["updatedAt"] = to_iso(utcnow())
        self.store.merge(self.collection, user_id, patch)

    def delete(self, user_id: str) -> None:
        self.store.delete(self.collection, user_id)

    def list_teachers(self) -> List[Teacher]:
        return [u for u in self.list() if isinstance(u, Teacher)]

    def list_students(self) -> List[Student]:
        return [u for u in self.list() if isinstance(u, Student)]

    def list_admins(self) -> List[AdminUser]:
        return [u for u in self.list() if isinstance(u, AdminUser)]

    def list_pending_teachers(self) -> List[Teacher]:
        return [t for t in self.list_teachers() if t.approval_status is ApprovalStatus.PENDING]

    def generate_student_number(self) -> str:
        """Return a student number not used by any stored student."""
        taken = {s.student_id for s in self.list_students()}
        for _ in range(20):
            candidate = generate_student_number()
            if candidate not in taken:
                return candidate
        raise RuntimeError("student_number_exhausted")


def reshape(user: User, role: RoleKind) -> User:
    """Return ``user`` as the variant for ``role``, keeping common fields."""
    cls = VARIANTS[role]
    if type(user) is cls:
        return user
    return cls(
        id=user.id,
        email=user.email,
        display_name=user.display_name,
        created_at=user.created_at,
        updated_at=user.updated_at,
        last_login=user.last_login,
    )


__all__ = ["UserStore", "DECODERS", "decode_user", "reconstruct", "reshape", "role_of"]
