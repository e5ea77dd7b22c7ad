"""
Pytest configuration for backend tests.

Why: Make the bounded-context packages under ``backend/`` importable and
provide small fakes for the ports (document store, token verifier, identity
admin) so no test needs a network or a database.
"""
import sys
from pathlib import Path
from typing import Dict, List

import pytest

# Ensure modules in backend/ are importable across tests
REPO_ROOT = Path(__file__).resolve().parents[2]
BACKEND_DIR = REPO_ROOT / "backend"
TESTS_DIR = BACKEND_DIR / "tests"
for p in (str(BACKEND_DIR), str(TESTS_DIR)):
    if p not in sys.path:
        sys.path.insert(0, p)

from identity_access.tokens import IDTokenVerificationError, VerifiedIdentity  # noqa: E402
from storage.memory import InMemoryDocumentStore  # noqa: E402


class FakeVerifier:
    """Maps raw token strings to identities; unknown tokens are rejected."""

    def __init__(self) -> None:
        self.tokens: Dict[str, VerifiedIdentity] = {}

    def issue(self, token: str, subject: str, **attributes: str) -> str:
        self.tokens[token] = VerifiedIdentity(subject=subject, attributes=dict(attributes))
        return token

    def verify(self, token: str) -> VerifiedIdentity:
        try:
            return self.tokens[token]
        except KeyError:
            raise IDTokenVerificationError("invalid_token") from None


class FakeIdentityAdmin:
    """Records identity-provider calls and hands out sequential subjects."""

    def __init__(self) -> None:
        self.users: Dict[str, dict] = {}
        self.calls: List[tuple] = []
        self._seq = 0

    def create_user(self, *, email: str, password: str, display_name: str, role: str) -> str:
        self._seq += 1
        subject = f"sub-{self._seq:04d}"
        self.users[subject] = {"email": email, "display_name": display_name, "role": role}
        self.calls.append(("create_user", subject, role))
        return subject

    def set_role(self, *, subject: str, role: str) -> None:
        self.users.setdefault(subject, {})["role"] = role
        self.calls.append(("set_role", subject, role))

    def delete_user(self, *, subject: str) -> None:
        self.users.pop(subject, None)
        self.calls.append(("delete_user", subject))


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def verifier() -> FakeVerifier:
    return FakeVerifier()


@pytest.fixture
def idp() -> FakeIdentityAdmin:
    return FakeIdentityAdmin()


@pytest.fixture(autouse=True)
def _clear_coursegate_env(monkeypatch: pytest.MonkeyPatch):
    """Keep env-driven configuration deterministic per test."""
    for var in (
        "COURSEGATE_ENV",
        "KC_BASE_URL",
        "KC_REALM",
        "KC_CLIENT_ID",
        "KC_ADMIN_REALM",
        "KC_ADMIN_CLIENT_ID",
        "KC_ADMIN_CLIENT_SECRET",
        "KEYCLOAK_CA_BUNDLE",
        "DOCUMENT_STORE_BACKEND",
        "DATABASE_URL",
        "DOCUMENT_STORE_TABLE",
        "ADMIN_SETUP_KEY",
    ):
        monkeypatch.delenv(var, raising=False)
    yield
