"""
Error kinds raised by the identity_access context.

Each error carries a machine-readable ``code``. The authentication errors
share the ``AuthError`` base so an adapter can map all of them to a single
"unauthenticated" response.
"""
from __future__ import annotations


class AuthError(Exception):
    """Base for failures while resolving a bearer token into a principal."""

    code = "auth_error"

    def __init__(self, code: str | None = None):
        self.code = code or self.code
        super().__init__(self.code)


class MissingToken(AuthError):
    code = "missing_token"


class TokenInvalid(AuthError):
    """Verifier rejected the token; ``diagnostic`` holds its reason."""

    code = "token_invalid"

    def __init__(self, diagnostic: str = ""):
        super().__init__()
        self.diagnostic = diagnostic

    def __str__(self) -> str:
        return f"{self.code}: {self.diagnostic}" if self.diagnostic else self.code


class EmptySubject(AuthError):
    code = "empty_subject"


class RoleMismatch(PermissionError):
    """Operation attempted by a principal of the wrong role."""

    def __init__(self, code: str = "role_mismatch"):
        super().__init__(code)
        self.code = code


class IdentityProviderError(RuntimeError):
    """The identity provider's admin API failed or refused a request."""

    def __init__(self, code: str, detail: str = ""):
        super().__init__(f"{code}: {detail}" if detail else code)
        self.code = code
        self.detail = detail


__all__ = [
    "AuthError",
    "MissingToken",
    "TokenInvalid",
    "EmptySubject",
    "RoleMismatch",
    "IdentityProviderError",
]
