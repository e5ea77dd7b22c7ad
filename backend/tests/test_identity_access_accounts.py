"""
Account use cases with a fake identity provider and the in-memory store.
"""
from __future__ import annotations

import re

import pytest

from identity_access.accounts import AccountsService
from identity_access.config import AccountSettings
from identity_access.domain import ApprovalStatus, RoleKind
from identity_access.errors import IdentityProviderError, RoleMismatch
from identity_access.models import AdminUser, Student, Teacher, User
from identity_access.principal import AuthenticationResolver, Principal
from identity_access.users import UserStore
from storage.errors import NotFound

ADMIN = Principal(subject_id="admin-1", role=RoleKind.ADMIN)
STUDENT = Principal(subject_id="student-1", role=RoleKind.STUDENT)


@pytest.fixture
def users(store) -> UserStore:
    return UserStore(store)


@pytest.fixture
def service(users, idp, verifier) -> AccountsService:
    return AccountsService(
        users=users,
        idp=idp,
        resolver=AuthenticationResolver(verifier=verifier, users=users),
        settings=AccountSettings(setup_key="let-me-in"),
    )


def test_register_student_creates_identity_and_record(service, idp, users):
    student = service.register_student(email=" Sam@Example.com ", password="secret1", year=2)
    assert student.id == "sub-0001"
    assert idp.users["sub-0001"]["role"] == "Student"
    stored = users.get(student.id)
    assert isinstance(stored, Student)
    assert stored.email == "sam@example.com"
    assert stored.display_name == "sam"
    assert stored.year == 2
    assert re.fullmatch(r"STU\d{5}", stored.student_id)


def test_register_teacher_starts_pending(service, users):
    teacher = service.register_teacher(
        email="t@example.com", password="secret1", display_name="Tina", department="Math"
    )
    stored = users.get(teacher.id)
    assert isinstance(stored, Teacher)
    assert stored.approval_status is ApprovalStatus.PENDING
    assert stored.department == "Math"


@pytest.mark.parametrize(
    "kwargs, code",
    [
        ({"email": "no-at-sign", "password": "secret1"}, "invalid_email"),
        ({"email": "a@example.com", "password": "123"}, "invalid_password"),
        ({"email": "a@example.com", "password": "secret1", "year": 0}, "invalid_year"),
    ],
)
def test_register_student_validation(service, idp, kwargs, code):
    with pytest.raises(ValueError) as excinfo:
        service.register_student(**kwargs)
    assert str(excinfo.value) == code
    assert idp.calls == []


def test_failed_record_write_removes_identity(service, idp, users, monkeypatch):
    def boom(user):
        raise RuntimeError("store down")

    monkeypatch.setattr(users, "create", boom)
    with pytest.raises(RuntimeError):
        service.register_teacher(email="t@example.com", password="secret1")
    assert ("delete_user", "sub-0001") in idp.calls
    assert idp.users == {}


def test_login_stamps_last_login(service, verifier, store, users):
    users.create(User(id="u1", email="u@example.com"))
    store.merge("users", "u1", {"lastLogin": "2000-01-01T00:00:00+00:00"})
    verifier.issue("tok", "u1")
    user = service.login("tok")
    assert user.id == "u1"
    assert store.get("users", "u1")["lastLogin"] > "2000-01-01T00:00:00+00:00"


def test_profile_includes_teacher_approval(service, users):
    users.create(Teacher(id="t1", approval_status=ApprovalStatus.APPROVED))
    profile = service.profile(Principal(subject_id="t1", role=RoleKind.TEACHER))
    assert profile.approval_status is ApprovalStatus.APPROVED
    assert profile.is_approved_teacher


def test_admin_operations_require_admin(service):
    with pytest.raises(RoleMismatch):
        service.list_users(STUDENT)
    with pytest.raises(RoleMismatch):
        service.create_user(STUDENT, email="x@example.com", password="secret1", role="Admin")
    with pytest.raises(RoleMismatch):
        service.update_role(STUDENT, "u1", "Admin")
    with pytest.raises(RoleMismatch):
        service.delete_user(STUDENT, "u1")
    with pytest.raises(RoleMismatch):
        service.list_pending_teachers(STUDENT)


def test_admin_creates_users_of_any_role(service, users):
    admin = service.create_user(ADMIN, email="a2@example.com", password="secret1", role="admin")
    plain = service.create_user(ADMIN, email="u@example.com", password="secret1", role=3)
    student = service.create_user(ADMIN, email="s@example.com", password="secret1", role="Student", year=3)
    assert isinstance(users.get(admin.id), AdminUser)
    assert type(users.get(plain.id)) is User
    assert users.get(student.id).year == 3
    with pytest.raises(ValueError):
        service.create_user(ADMIN, email="z@example.com", password="secret1", role="overlord")


def test_update_role_updates_identity_then_reshapes_record(service, idp, users):
    users.create(User(id="u1", email="u@example.com", display_name="Uma"))
    updated = service.update_role(ADMIN, "u1", "Student")
    assert ("set_role", "u1", "Student") in idp.calls
    stored = users.get("u1")
    assert isinstance(stored, Student)
    assert stored.display_name == "Uma"
    assert re.fullmatch(r"STU\d{5}", stored.student_id)
    assert updated.role is RoleKind.STUDENT


def test_update_role_failure_at_identity_leaves_record(service, idp, users, monkeypatch):
    users.create(User(id="u1"))

    def boom(**kwargs):
        raise IdentityProviderError("role_update_failed", "500")

    monkeypatch.setattr(idp, "set_role", boom)
    with pytest.raises(IdentityProviderError):
        service.update_role(ADMIN, "u1", "Admin")
    assert type(users.get("u1")) is User


def test_delete_user_removes_identity_and_record(service, idp, users):
    users.create(User(id="u1"))
    service.delete_user(ADMIN, "u1")
    assert ("delete_user", "u1") in idp.calls
    with pytest.raises(NotFound):
        users.get("u1")
    with pytest.raises(ValueError):
        service.delete_user(ADMIN, ADMIN.subject_id)


def test_list_pending_teachers(service, users):
    users.create(Teacher(id="t1"))
    users.create(Teacher(id="t2", approval_status=ApprovalStatus.APPROVED))
    assert [t.id for t in service.list_pending_teachers(ADMIN)] == ["t1"]


def test_first_admin_requires_key_and_runs_once(service, users):
    with pytest.raises(PermissionError) as excinfo:
        service.create_first_admin(setup_key="guess", email="root@example.com", password="secret1")
    assert str(excinfo.value) == "invalid_setup_key"

    admin = service.create_first_admin(setup_key="let-me-in", email="root@example.com", password="secret1")
    stored = users.get(admin.id)
    assert isinstance(stored, AdminUser) and stored.is_super_admin

    with pytest.raises(ValueError) as excinfo:
        service.create_first_admin(setup_key="let-me-in", email="two@example.com", password="secret1")
    assert str(excinfo.value) == "admin_exists"


def test_first_admin_disabled_without_key(users, idp, verifier):
    service = AccountsService(
        users=users, idp=idp, resolver=AuthenticationResolver(verifier=verifier, users=users)
    )
    with pytest.raises(PermissionError) as excinfo:
        service.create_first_admin(setup_key="", email="root@example.com", password="secret1")
    assert str(excinfo.value) == "setup_disabled"
