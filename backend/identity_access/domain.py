"""
Identity domain enums and permissive parsing helpers.

Why:
- Centralize role and approval vocabularies to avoid drift between the user
  store, the principal resolver and the teaching services.
- Stored documents accumulated several historical encodings of the same enum
  (ordinal integers, lower-case names, PascalCase names). Reads normalize all
  of them instead of failing; writes always use the canonical name.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Type, TypeVar


class RoleKind(str, Enum):
    """User roles. Declaration order defines the legacy ordinal encoding."""

    ADMIN = "Admin"
    TEACHER = "Teacher"
    STUDENT = "Student"
    USER = "User"


class ApprovalStatus(str, Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


E = TypeVar("E", bound=Enum)

_ORDINAL = re.compile(r"-?[0-9]+", re.ASCII)


def parse_enum(value: object, enum_cls: Type[E], default: E) -> E:
    """Parse an ordinal or case-insensitive name into ``enum_cls``.

    Accepts enum members, integer ordinals (also as digit strings) and names
    in any casing. Everything else, including out-of-range ordinals and
    booleans, yields ``default``.
    """
    members = list(enum_cls)
    if isinstance(value, enum_cls):
        return value
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, int):
        return members[value] if 0 <= value < len(members) else default
    if isinstance(value, str):
        raw = value.strip()
        if _ORDINAL.fullmatch(raw):
            return parse_enum(int(raw), enum_cls, default)
        lowered = raw.lower()
        for member in members:
            if lowered in (str(member.value).lower(), member.name.lower()):
                return member
    return default


def parse_role(value: object) -> RoleKind:
    """Normalize a stored role discriminant; unknown values become ``User``."""
    return parse_enum(value, RoleKind, RoleKind.USER)


def parse_approval_status(value: object) -> ApprovalStatus:
    return parse_enum(value, ApprovalStatus, ApprovalStatus.PENDING)


__all__ = [
    "RoleKind",
    "ApprovalStatus",
    "parse_enum",
    "parse_role",
    "parse_approval_status",
]
