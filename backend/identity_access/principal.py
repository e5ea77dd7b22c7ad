"""
Authentication resolver: bearer token -> Principal.

Why:
- Higher layers only see a ``Principal`` (subject, role, attributes) and never
  touch tokens.
- The role always comes from the persisted user record. A role claim inside
  the token may be stale after an admin role change and is never trusted for
  authorization.

Order of checks: missing token, verifier rejection, empty subject, user
lookup. Read-only; callers stamp ``lastLogin`` themselves.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

from storage.errors import NotFound

from .domain import RoleKind, parse_role
from .errors import EmptySubject, MissingToken, RoleMismatch, TokenInvalid
from .models import AdminUser, Student, Teacher, User
from .tokens import IDTokenVerificationError, IdentityVerifier
from .users import UserStore

_log = logging.getLogger("coursegate.identity_access")


@dataclass(frozen=True)
class Principal:
    subject_id: str
    role: RoleKind
    attributes: Dict[str, str] = field(default_factory=dict)

    def require(self, *roles: RoleKind) -> None:
        """Raise ``RoleMismatch`` unless the principal has one of ``roles``."""
        if self.role not in roles:
            raise RoleMismatch(f"{'_or_'.join(r.value.lower() for r in roles)}_required")


def principal_attributes(user: User) -> Dict[str, str]:
    """Role-specific attributes exposed to the authorization context."""
    attrs = {"email": user.email, "displayName": user.display_name}
    if isinstance(user, Teacher):
        attrs["approvalStatus"] = user.approval_status.value
        attrs["department"] = user.department
    elif isinstance(user, Student):
        attrs["studentId"] = user.student_id
        attrs["year"] = str(user.year)
    elif isinstance(user, AdminUser):
        attrs["isSuperAdmin"] = "true" if user.is_super_admin else "false"
        attrs["accessLevel"] = user.access_level
    return attrs


def extract_bearer(header_value: Optional[str]) -> str:
    """Return the token from an ``Authorization: Bearer <token>`` value."""
    raw = (header_value or "").strip()
    if raw[:7].lower() == "bearer ":
        return raw[7:].strip()
    return raw


@dataclass
class AuthenticationResolver:
    verifier: IdentityVerifier
    users: UserStore

    def resolve(self, token: Optional[str]) -> Principal:
        principal, _ = self.resolve_user(token)
        return principal

    def resolve_user(self, token: Optional[str]) -> tuple[Principal, User]:
        """Like ``resolve`` but also return the loaded user record."""
        if not token or not token.strip():
            raise MissingToken()
        try:
            identity = self.verifier.verify(token.strip())
        except IDTokenVerificationError as exc:
            _log.info("Token rejected code=%s", exc.code)
            raise TokenInvalid(exc.code) from exc
        subject = (identity.subject or "").strip()
        if not subject:
            raise EmptySubject()
        try:
            user = self.users.get(subject)
        except NotFound:
            _log.info("Token subject has no user record sub=~%s", subject[-6:])
            raise
        claimed = identity.attributes.get("role")
        if claimed is not None and parse_role(claimed) is not user.role:
            _log.warning(
                "Token role claim differs from stored role sub=~%s claimed=%s stored=%s",
                subject[-6:],
                claimed,
                user.role.value,
            )
        return Principal(subject_id=subject, role=user.role, attributes=principal_attributes(user)), user


__all__ = ["Principal", "AuthenticationResolver", "principal_attributes", "extract_bearer"]
