"""Teacher approval workflow and the approved-teacher gate.

Why:
    Every teacher-only operation (course and lecture management, enrollment
    review, grading) must first confirm the caller is an approved teacher.
    Keeping the gate here means services call one function before any other
    check or store access.

State machine:
    Pending -> Approved | Rejected. Setting the current status again is a
    no-op success; moving between Approved and Rejected is refused. Only an
    Admin principal may change the status.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from identity_access.domain import ApprovalStatus, RoleKind, parse_enum
from identity_access.errors import RoleMismatch
from identity_access.models import Teacher
from identity_access.principal import Principal
from identity_access.users import UserStore
from storage.errors import NotFound
from teaching.errors import InvalidTransition, NotApproved

_log = logging.getLogger("coursegate.teaching")


def parse_target_status(value: object) -> ApprovalStatus:
    """Parse a requested terminal status; ``Pending`` is never a target."""
    status = parse_enum(value, ApprovalStatus, None)  # type: ignore[arg-type]
    if status is None or status is ApprovalStatus.PENDING:
        raise ValueError("invalid_status")
    return status


def require_approved_teacher(users: UserStore, teacher_id: str) -> Teacher:
    """Load ``teacher_id`` and ensure it is an approved teacher.

    Raises ``RoleMismatch`` for non-teachers and ``NotApproved`` for pending
    or rejected teachers. Performs no writes.
    """
    user = users.get(teacher_id)
    if not isinstance(user, Teacher):
        raise RoleMismatch("teacher_required")
    if user.approval_status is ApprovalStatus.REJECTED:
        raise NotApproved("Teacher account was rejected")
    if not user.is_approved:
        raise NotApproved()
    return user


@dataclass
class TeacherApprovalService:
    users: UserStore

    def set_teacher_approval(self, actor: Principal, teacher_id: str, status: object) -> Teacher:
        actor.require(RoleKind.ADMIN)
        target = parse_target_status(status)
        try:
            user = self.users.get(teacher_id)
        except NotFound:
            raise NotFound("teacher_not_found") from None
        if not isinstance(user, Teacher):
            raise RoleMismatch("teacher_required")
        current = user.approval_status
        if current is target:
            return user
        if current is not ApprovalStatus.PENDING:
            raise InvalidTransition(f"{current.value} -> {target.value}")
        self.users.update_fields(teacher_id, {"approvalStatus": target.value})
        user.approval_status = target
        _log.info(
            "Teacher approval changed sub=~%s status=%s by=~%s",
            teacher_id[-6:],
            target.value,
            actor.subject_id[-6:],
        )
        return user

    def approve(self, actor: Principal, teacher_id: str) -> Teacher:
        return self.set_teacher_approval(actor, teacher_id, ApprovalStatus.APPROVED)

    def reject(self, actor: Principal, teacher_id: str) -> Teacher:
        return self.set_teacher_approval(actor, teacher_id, ApprovalStatus.REJECTED)


__all__ = ["TeacherApprovalService", "require_approved_teacher", "parse_target_status"]
