"""
Permissive enum parsing for stored role and approval discriminants.
"""
from __future__ import annotations

import pytest

from identity_access.domain import ApprovalStatus, RoleKind, parse_approval_status, parse_role


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("Admin", RoleKind.ADMIN),
        ("teacher", RoleKind.TEACHER),
        ("STUDENT", RoleKind.STUDENT),
        (" user ", RoleKind.USER),
        (0, RoleKind.ADMIN),
        (1, RoleKind.TEACHER),
        (2, RoleKind.STUDENT),
        (3, RoleKind.USER),
        ("2", RoleKind.STUDENT),
        (1.0, RoleKind.TEACHER),
        (RoleKind.ADMIN, RoleKind.ADMIN),
    ],
)
def test_parse_role_accepts_names_and_ordinals(raw, expected):
    assert parse_role(raw) is expected


@pytest.mark.parametrize(
    "raw", [None, "", "superuser", 7, -1, "-1", "--1", "\u00b2", "1-", True, False, 1.5, ["Admin"]]
)
def test_parse_role_defaults_to_least_privileged(raw):
    assert parse_role(raw) is RoleKind.USER


def test_parse_approval_status():
    assert parse_approval_status("approved") is ApprovalStatus.APPROVED
    assert parse_approval_status(2) is ApprovalStatus.REJECTED
    assert parse_approval_status(None) is ApprovalStatus.PENDING
    assert parse_approval_status("unknown") is ApprovalStatus.PENDING


def test_role_values_are_canonical_names():
    assert [r.value for r in RoleKind] == ["Admin", "Teacher", "Student", "User"]


@pytest.mark.parametrize("raw", ["--1", "\u00b2", "+1"])
def test_parse_approval_status_defaults_on_malformed_ordinal(raw):
    assert parse_approval_status(raw) is ApprovalStatus.PENDING
