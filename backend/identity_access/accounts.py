"""Account use cases: registration, login, admin user management.

Why:
    Keep account flows independent of any web framework. Each use case talks
    to the identity provider through the ``IdentityAdmin`` port and to the
    user store; both are injected.

Permissions:
    Registration and login are open. User management requires an Admin
    principal (``RoleMismatch`` otherwise). First-admin setup requires the
    configured setup key and only works while no Admin exists.

Consistency:
    The identity provider and the user store are separate systems. On create,
    a failed store write removes the just-created identity again; on delete,
    the identity goes first so a half-deleted user can no longer sign in.
"""

from __future__ import annotations

import hmac
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from storage.timestamps import to_iso, utcnow

from .admin_client import IdentityAdmin
from .config import AccountSettings
from .domain import ApprovalStatus, RoleKind, parse_enum
from .models import AdminUser, Student, Teacher, User
from .principal import AuthenticationResolver, Principal
from .users import UserStore, reshape

_log = logging.getLogger("coursegate.identity_access")

_MIN_PASSWORD_LENGTH = 6


def _normalize_email(value: object) -> str:
    if not isinstance(value, str):
        raise ValueError("invalid_email")
    trimmed = value.strip().lower()
    local, sep, domain = trimmed.partition("@")
    if not sep or not local or "." not in domain:
        raise ValueError("invalid_email")
    return trimmed


def _normalize_password(value: object) -> str:
    if not isinstance(value, str) or len(value) < _MIN_PASSWORD_LENGTH:
        raise ValueError("invalid_password")
    return value


def _normalize_display_name(value: object, email: str) -> str:
    if value is None:
        return email.split("@", 1)[0]
    if not isinstance(value, str):
        raise ValueError("invalid_display_name")
    return value.strip() or email.split("@", 1)[0]


def _normalize_year(value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValueError("invalid_year")
    return value


def _normalize_role(value: object) -> RoleKind:
    role = parse_enum(value, RoleKind, None)  # type: ignore[arg-type]
    if role is None:
        raise ValueError("invalid_role")
    return role


@dataclass(frozen=True)
class Profile:
    user: User
    approval_status: Optional[ApprovalStatus] = None

    @property
    def is_approved_teacher(self) -> bool:
        return self.approval_status is ApprovalStatus.APPROVED


@dataclass
class AccountsService:
    users: UserStore
    idp: IdentityAdmin
    resolver: AuthenticationResolver
    settings: AccountSettings = field(default_factory=AccountSettings)

    # --- registration -------------------------------------------------------

    def register_student(
        self, *, email: str, password: str, display_name: Optional[str] = None, year: int = 1
    ) -> Student:
        email = _normalize_email(email)
        password = _normalize_password(password)
        name = _normalize_display_name(display_name, email)
        student = Student(
            id="",
            email=email,
            display_name=name,
            student_id=self.users.generate_student_number(),
            year=_normalize_year(year),
        )
        return self._provision(student, password)  # type: ignore[return-value]

    def register_teacher(
        self,
        *,
        email: str,
        password: str,
        display_name: Optional[str] = None,
        department: str = "",
        qualification: str = "",
    ) -> Teacher:
        email = _normalize_email(email)
        password = _normalize_password(password)
        teacher = Teacher(
            id="",
            email=email,
            display_name=_normalize_display_name(display_name, email),
            department=(department or "").strip(),
            qualification=(qualification or "").strip(),
            approval_status=ApprovalStatus.PENDING,
        )
        return self._provision(teacher, password)  # type: ignore[return-value]

    def _provision(self, user: User, password: str) -> User:
        subject = self.idp.create_user(
            email=user.email, password=password, display_name=user.display_name, role=user.role.value
        )
        user.id = subject
        now = utcnow()
        user.created_at = now
        user.last_login = now
        try:
            self.users.create(user)
        except Exception:
            _log.warning("User record write failed; removing identity sub=~%s", subject[-6:])
            self.idp.delete_user(subject=subject)
            raise
        _log.info("Registered user sub=~%s role=%s", subject[-6:], user.role.value)
        return user

    # --- sign-in ------------------------------------------------------------

    def login(self, token: Optional[str]) -> User:
        """Resolve the token, stamp ``lastLogin`` and return the user."""
        principal, user = self.resolver.resolve_user(token)
        user.last_login = utcnow()
        self.users.update_fields(principal.subject_id, {"lastLogin": to_iso(user.last_login)})
        return user

    def profile(self, principal: Principal) -> Profile:
        user = self.users.get(principal.subject_id)
        if isinstance(user, Teacher):
            return Profile(user=user, approval_status=user.approval_status)
        return Profile(user=user)

    # --- administration -----------------------------------------------------

    def create_user(
        self,
        actor: Principal,
        *,
        email: str,
        password: str,
        role: object,
        display_name: Optional[str] = None,
        year: int = 1,
        department: str = "",
        qualification: str = "",
    ) -> User:
        actor.require(RoleKind.ADMIN)
        kind = _normalize_role(role)
        if kind is RoleKind.STUDENT:
            return self.register_student(email=email, password=password, display_name=display_name, year=year)
        if kind is RoleKind.TEACHER:
            return self.register_teacher(
                email=email,
                password=password,
                display_name=display_name,
                department=department,
                qualification=qualification,
            )
        email = _normalize_email(email)
        user: User
        if kind is RoleKind.ADMIN:
            user = AdminUser(id="", email=email, display_name=_normalize_display_name(display_name, email))
        else:
            user = User(id="", email=email, display_name=_normalize_display_name(display_name, email))
        return self._provision(user, _normalize_password(password))

    def update_role(self, actor: Principal, user_id: str, role: object) -> User:
        """Change a user's role at the identity provider and in the store.

        The identity attribute is written first so future tokens carry the new
        role; the stored record is then re-shaped into the new variant.
        """
        actor.require(RoleKind.ADMIN)
        kind = _normalize_role(role)
        current = self.users.get(user_id)
        self.idp.set_role(subject=user_id, role=kind.value)
        if current.role is kind:
            return current
        updated = reshape(current, kind)
        if isinstance(updated, Student) and not updated.student_id:
            updated.student_id = self.users.generate_student_number()
            updated.year = self.settings.default_student_year
        self.users.update(updated)
        _log.info(
            "Role updated sub=~%s from=%s to=%s by=~%s",
            user_id[-6:],
            current.role.value,
            kind.value,
            actor.subject_id[-6:],
        )
        return updated

    def delete_user(self, actor: Principal, user_id: str) -> None:
        actor.require(RoleKind.ADMIN)
        if user_id == actor.subject_id:
            raise ValueError("cannot_delete_self")
        self.users.get(user_id)
        self.idp.delete_user(subject=user_id)
        self.users.delete(user_id)
        _log.info("User deleted sub=~%s by=~%s", user_id[-6:], actor.subject_id[-6:])

    def list_users(self, actor: Principal) -> List[User]:
        actor.require(RoleKind.ADMIN)
        return self.users.list()

    def get_user(self, actor: Principal, user_id: str) -> User:
        actor.require(RoleKind.ADMIN)
        return self.users.get(user_id)

    def list_pending_teachers(self, actor: Principal) -> List[Teacher]:
        actor.require(RoleKind.ADMIN)
        return self.users.list_pending_teachers()

    # --- setup --------------------------------------------------------------

    def create_first_admin(
        self, *, setup_key: str, email: str, password: str, display_name: Optional[str] = None
    ) -> AdminUser:
        """Bootstrap the first super admin.

        Raises
        ------
        PermissionError:
            ``setup_disabled`` without a configured key, ``invalid_setup_key``
            on a wrong key.
        ValueError:
            ``admin_exists`` once any Admin user is stored.
        """
        expected = self.settings.setup_key
        if not expected:
            raise PermissionError("setup_disabled")
        if not hmac.compare_digest((setup_key or "").encode("utf-8"), expected.encode("utf-8")):
            _log.warning("First admin setup rejected: invalid setup key")
            raise PermissionError("invalid_setup_key")
        if self.users.list_admins():
            raise ValueError("admin_exists")
        email = _normalize_email(email)
        admin = AdminUser(
            id="",
            email=email,
            display_name=_normalize_display_name(display_name, email),
            is_super_admin=True,
            access_level="full",
        )
        return self._provision(admin, _normalize_password(password))  # type: ignore[return-value]


__all__ = ["AccountsService", "Profile"]
