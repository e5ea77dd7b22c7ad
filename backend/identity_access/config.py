"""
Configuration and startup security checks for the identity context.

Why: Prevent accidental insecure deployments without burdening local
development. Settings are read once into frozen dataclasses and passed into
constructors.

Permissions: The caller needs no special privileges. The functions read
environment variables; the guard raises `SystemExit` on fatal
misconfiguration.
"""
from __future__ import annotations

from dataclasses import dataclass
import os


@dataclass(frozen=True)
class AdminCredentials:
    """Client-credentials grant for the Keycloak Admin REST API."""

    realm: str = "master"
    client_id: str = "admin-cli"
    client_secret: str = ""


@dataclass(frozen=True)
class AccountSettings:
    # Empty disables first-admin setup entirely.
    setup_key: str = ""
    default_student_year: int = 1


def load_admin_credentials() -> AdminCredentials:
    return AdminCredentials(
        realm=os.getenv("KC_ADMIN_REALM") or "master",
        client_id=os.getenv("KC_ADMIN_CLIENT_ID") or "admin-cli",
        client_secret=(os.getenv("KC_ADMIN_CLIENT_SECRET") or "").strip(),
    )


def load_account_settings() -> AccountSettings:
    return AccountSettings(setup_key=(os.getenv("ADMIN_SETUP_KEY") or "").strip())


def _is_prod_like(env: str) -> bool:
    env_l = (env or "").lower()
    return env_l in {"prod", "production", "stage", "staging"}


def _is_placeholder(value: str) -> bool:
    upper = (value or "").strip().upper()
    return not upper or upper.startswith("CHANGE_ME") or upper == "DUMMY_DO_NOT_USE"


def ensure_secure_config_on_startup() -> None:
    """Fail fast on insecure production configuration.

    Checks (prod-like environments only):
    - Keycloak base URL must use https.
    - The admin client secret must be set and not a placeholder.
    - ADMIN_SETUP_KEY, when set, must not be a placeholder.
    - The in-memory document store must not be selected.
    - DATABASE_URL must not explicitly disable TLS.
    """

    env = os.getenv("COURSEGATE_ENV", "dev")
    if not _is_prod_like(env):
        return  # dev/test remain permissive

    base_url = (os.getenv("KC_BASE_URL", "") or "").strip().lower()
    if not base_url.startswith("https://"):
        raise SystemExit("Refusing to start: KC_BASE_URL must use https in production.")

    if _is_placeholder(os.getenv("KC_ADMIN_CLIENT_SECRET", "")):
        raise SystemExit(
            "Refusing to start: KC_ADMIN_CLIENT_SECRET is unset or a placeholder in production."
        )

    setup_key = os.getenv("ADMIN_SETUP_KEY", "")
    if setup_key and _is_placeholder(setup_key):
        raise SystemExit("Refusing to start: ADMIN_SETUP_KEY is a placeholder in production.")

    backend = (os.getenv("DOCUMENT_STORE_BACKEND", "memory") or "memory").strip().lower()
    if backend == "memory":
        raise SystemExit("Refusing to start: in-memory document store selected in production.")

    dsn = os.getenv("DATABASE_URL", "")
    if "sslmode=disable" in dsn:
        raise SystemExit(
            "Refusing to start: DATABASE_URL contains sslmode=disable in production. Use sslmode=require or verify TLS."
        )


__all__ = [
    "AdminCredentials",
    "AccountSettings",
    "load_admin_credentials",
    "load_account_settings",
    "ensure_secure_config_on_startup",
]
