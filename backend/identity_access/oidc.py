"""
OIDC realm configuration for the Keycloak identity provider.

Why: The verifier and the admin client both derive their endpoints from the
same realm settings. Keeping them in one frozen config passed into their
constructors avoids module-level client singletons.
"""

from __future__ import annotations

from dataclasses import dataclass
import os


@dataclass(frozen=True)
class OIDCConfig:
    base_url: str  # internal base URL (server-to-server), e.g., http://keycloak:8080
    realm: str  # e.g., coursegate
    client_id: str  # audience expected in bearer tokens, e.g., coursegate-api
    ca_bundle: str | None = None  # optional CA bundle for TLS to Keycloak

    @property
    def issuer(self) -> str:
        return f"{self.base_url}/realms/{self.realm}"

    @property
    def jwks_uri(self) -> str:
        return f"{self.issuer}/protocol/openid-connect/certs"

    @property
    def admin_base(self) -> str:
        return f"{self.base_url}/admin/realms/{self.realm}"

    @property
    def verify(self) -> bool | str:
        """Value for the ``verify`` argument of requests calls."""
        return self.ca_bundle or True


def load_oidc_config() -> OIDCConfig:
    base_url = (os.getenv("KC_BASE_URL") or "http://localhost:8080").rstrip("/")
    realm = os.getenv("KC_REALM") or "coursegate"
    client_id = os.getenv("KC_CLIENT_ID") or "coursegate-api"
    ca_bundle = (os.getenv("KEYCLOAK_CA_BUNDLE") or "").strip() or None
    return OIDCConfig(base_url=base_url, realm=realm, client_id=client_id, ca_bundle=ca_bundle)


__all__ = ["OIDCConfig", "load_oidc_config"]
