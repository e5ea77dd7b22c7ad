"""
Keycloak Admin client (minimal) for user provisioning and role attributes.

Design:
- Framework-agnostic; accounts use cases depend on the ``IdentityAdmin``
  protocol, this client is the production implementation.
- Authenticates with the client-credentials grant (service account).
- The user's role is stored as the ``role`` user attribute so a protocol
  mapper can put it into future tokens. It is informational only; the user
  store stays authoritative.
- Every transport failure or unexpected status is raised as
  ``IdentityProviderError`` with a stable code.

Security:
- Do not log credentials, passwords or tokens.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Protocol

import requests

from .config import AdminCredentials
from .errors import IdentityProviderError
from .oidc import OIDCConfig

_log = logging.getLogger("coursegate.identity_access")


class IdentityAdmin(Protocol):
    def create_user(self, *, email: str, password: str, display_name: str, role: str) -> str: ...

    def set_role(self, *, subject: str, role: str) -> None: ...

    def delete_user(self, *, subject: str) -> None: ...


class AdminClient:
    def __init__(self, cfg: OIDCConfig, creds: AdminCredentials, *, timeout: float = 10) -> None:
        self.cfg = cfg
        self.creds = creds
        self.timeout = timeout

    def _request(self, method: str, url: str, code: str, **kwargs: Any) -> requests.Response:
        try:
            return requests.request(method, url, timeout=self.timeout, verify=self.cfg.verify, **kwargs)
        except requests.RequestException as exc:
            _log.warning("Keycloak admin call failed code=%s err=%s", code, exc.__class__.__name__)
            raise IdentityProviderError(code, exc.__class__.__name__) from exc

    def _token(self) -> str:
        url = f"{self.cfg.base_url}/realms/{self.creds.realm}/protocol/openid-connect/token"
        data = {
            "grant_type": "client_credentials",
            "client_id": self.creds.client_id,
            "client_secret": self.creds.client_secret,
        }
        r = self._request("POST", url, "admin_token_failed", data=data)
        if r.status_code != 200:
            raise IdentityProviderError("admin_token_failed", str(r.status_code))
        try:
            token = (r.json() or {}).get("access_token")
        except ValueError as exc:
            raise IdentityProviderError("admin_token_failed", "invalid_json") from exc
        if not token:
            raise IdentityProviderError("admin_token_failed", "no_access_token")
        return str(token)

    def _admin(self, token: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {token}", "Content-Type": "application/json"}

    def create_user(self, *, email: str, password: str, display_name: str, role: str) -> str:
        """Create an enabled user with password and role attribute; return its subject id."""
        token = self._token()
        url = f"{self.cfg.admin_base}/users"
        payload = {
            "username": email,
            "email": email,
            "enabled": True,
            "emailVerified": False,
            "attributes": {"role": [role], "display_name": [display_name]},
            "credentials": [{"type": "password", "value": password, "temporary": False}],
            **({"firstName": display_name} if display_name else {}),
        }
        r = self._request("POST", url, "user_create_failed", headers=self._admin(token), json=payload)
        if r.status_code == 409:
            raise IdentityProviderError("user_exists")
        if r.status_code not in (201, 204):
            raise IdentityProviderError("user_create_failed", str(r.status_code))
        # Keycloak returns the new id in the Location header.
        location = r.headers.get("Location", "")
        user_id = location.rstrip("/").rsplit("/", 1)[-1] if location else ""
        if not user_id:
            user_id = self._lookup_id(token, email)
        _log.info("Created identity user sub=~%s role=%s", user_id[-6:], role)
        return user_id

    def _lookup_id(self, token: str, email: str) -> str:
        q = self._request(
            "GET",
            f"{self.cfg.admin_base}/users",
            "user_lookup_failed",
            headers=self._admin(token),
            params={"email": email, "exact": "true"},
        )
        if q.status_code != 200:
            raise IdentityProviderError("user_lookup_failed", str(q.status_code))
        arr = q.json() or []
        if not arr or not arr[0].get("id"):
            raise IdentityProviderError("user_lookup_failed", "not_found")
        return str(arr[0]["id"])

    def set_role(self, *, subject: str, role: str) -> None:
        """Write the ``role`` attribute, keeping the user's other attributes."""
        token = self._token()
        url = f"{self.cfg.admin_base}/users/{subject}"
        current = self._request("GET", url, "user_lookup_failed", headers=self._admin(token))
        if current.status_code == 404:
            raise IdentityProviderError("user_not_found")
        if current.status_code != 200:
            raise IdentityProviderError("user_lookup_failed", str(current.status_code))
        attributes = dict((current.json() or {}).get("attributes") or {})
        attributes["role"] = [role]
        r = self._request("PUT", url, "role_update_failed", headers=self._admin(token), json={"attributes": attributes})
        if r.status_code not in (200, 204):
            raise IdentityProviderError("role_update_failed", str(r.status_code))
        _log.info("Updated identity role sub=~%s role=%s", subject[-6:], role)

    def delete_user(self, *, subject: str) -> None:
        """Delete the user; a user already gone counts as deleted."""
        token = self._token()
        r = self._request(
            "DELETE", f"{self.cfg.admin_base}/users/{subject}", "user_delete_failed", headers=self._admin(token)
        )
        if r.status_code not in (204, 404):
            raise IdentityProviderError("user_delete_failed", str(r.status_code))


__all__ = ["IdentityAdmin", "AdminClient"]
