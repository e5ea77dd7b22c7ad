"""
Keycloak admin client against a monkeypatched ``requests.request``.

Focus:
    - Client-credentials token grant against the admin realm
    - Role is written as a user attribute, keeping other attributes
    - Transport failures and unexpected statuses map to IdentityProviderError
"""
from __future__ import annotations

from typing import Any, Dict, List

import pytest

from identity_access import admin_client as admin_mod
from identity_access.admin_client import AdminClient
from identity_access.config import AdminCredentials
from identity_access.errors import IdentityProviderError
from identity_access.oidc import OIDCConfig

CFG = OIDCConfig(base_url="http://kc:8080", realm="coursegate", client_id="coursegate-api")
CREDS = AdminCredentials(realm="master", client_id="coursegate-admin", client_secret="s3cret")


class FakeResp:
    def __init__(self, status_code: int, payload: Any = None, headers: Dict[str, str] | None = None):
        self.status_code = status_code
        self._payload = payload
        self.headers = headers or {}

    def json(self):
        return self._payload


class FakeHttp:
    def __init__(self) -> None:
        self.calls: List[Dict[str, Any]] = []
        self.routes: Dict[tuple, FakeResp] = {}

    def route(self, method: str, suffix: str, resp: FakeResp) -> None:
        self.routes[(method, suffix)] = resp

    def request(self, method, url, timeout=None, verify=None, **kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        if url.endswith("/protocol/openid-connect/token"):
            return FakeResp(200, {"access_token": "adm-token"})
        for (m, suffix), resp in self.routes.items():
            if m == method and url.endswith(suffix):
                return resp
        raise AssertionError(f"unexpected call {method} {url}")


@pytest.fixture
def http(monkeypatch: pytest.MonkeyPatch) -> FakeHttp:
    fake = FakeHttp()
    monkeypatch.setattr(admin_mod.requests, "request", fake.request)
    return fake


def test_create_user_uses_client_credentials_and_location_header(http: FakeHttp):
    http.route(
        "POST",
        "/admin/realms/coursegate/users",
        FakeResp(201, headers={"Location": "http://kc:8080/admin/realms/coursegate/users/abc-123"}),
    )
    sub = AdminClient(CFG, CREDS).create_user(
        email="t@example.com", password="pw123456", display_name="Tina", role="Teacher"
    )
    assert sub == "abc-123"
    token_call, create_call = http.calls
    assert token_call["url"] == "http://kc:8080/realms/master/protocol/openid-connect/token"
    assert token_call["data"]["grant_type"] == "client_credentials"
    assert token_call["data"]["client_secret"] == "s3cret"
    assert create_call["headers"]["Authorization"] == "Bearer adm-token"
    assert create_call["json"]["attributes"]["role"] == ["Teacher"]
    assert create_call["json"]["credentials"][0]["temporary"] is False


def test_create_user_conflict(http: FakeHttp):
    http.route("POST", "/admin/realms/coursegate/users", FakeResp(409))
    with pytest.raises(IdentityProviderError) as excinfo:
        AdminClient(CFG, CREDS).create_user(email="t@example.com", password="x" * 8, display_name="", role="User")
    assert excinfo.value.code == "user_exists"


def test_set_role_keeps_other_attributes(http: FakeHttp):
    http.route(
        "GET",
        "/users/u1",
        FakeResp(200, {"id": "u1", "attributes": {"display_name": ["Sam"], "role": ["Student"]}}),
    )
    http.route("PUT", "/users/u1", FakeResp(204))
    AdminClient(CFG, CREDS).set_role(subject="u1", role="Teacher")
    put = http.calls[-1]
    assert put["method"] == "PUT"
    assert put["json"] == {"attributes": {"display_name": ["Sam"], "role": ["Teacher"]}}


def test_delete_user_tolerates_missing(http: FakeHttp):
    http.route("DELETE", "/users/u1", FakeResp(404))
    AdminClient(CFG, CREDS).delete_user(subject="u1")


def test_transport_errors_are_wrapped(monkeypatch: pytest.MonkeyPatch):
    def boom(*args, **kwargs):
        raise admin_mod.requests.Timeout("slow")

    monkeypatch.setattr(admin_mod.requests, "request", boom)
    with pytest.raises(IdentityProviderError) as excinfo:
        AdminClient(CFG, CREDS).delete_user(subject="u1")
    assert excinfo.value.code == "admin_token_failed"
    assert excinfo.value.detail == "Timeout"
