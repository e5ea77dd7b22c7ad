"""
Bearer token verification for the identity_access bounded context.

Why: Keep cryptographic validation outside any web adapter so it can be unit
tested on its own and swapped for another provider behind the same
``IdentityVerifier`` port.

Security: Validates the RS256 signature with the realm's JWKS, ensures issuer,
audience and expiration are respected. The verifier returns the subject and
the string-valued custom claims; a ``role`` claim among them is informational
only (authorization re-derives the role from the user store).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Protocol, Tuple
import time

import requests
from jose import jwt
from jose.exceptions import JOSEError

from .oidc import OIDCConfig

ALLOWED_ALGORITHMS = ("RS256",)

# Registered claims that are not passed through as attributes.
_RESERVED_CLAIMS = frozenset(
    {"iss", "sub", "aud", "exp", "iat", "nbf", "jti", "azp", "typ", "nonce", "sid", "auth_time", "at_hash", "acr"}
)


class IDTokenVerificationError(Exception):
    """Raised when a bearer token fails verification."""

    def __init__(self, code: str):
        super().__init__(code)
        self.code = code


@dataclass(frozen=True)
class VerifiedIdentity:
    subject: str
    attributes: Dict[str, str] = field(default_factory=dict)


class IdentityVerifier(Protocol):
    def verify(self, token: str) -> VerifiedIdentity: ...


@dataclass
class _CacheEntry:
    jwks: Dict[str, object]
    expires_at: float


class JWKSCache:
    """Small in-memory cache for JWKS responses, owned by one verifier."""

    def __init__(self, ttl_seconds: int = 300):
        self.ttl_seconds = ttl_seconds
        self._entries: Dict[Tuple[str, str], _CacheEntry] = {}

    def _cache_key(self, cfg: OIDCConfig) -> Tuple[str, str]:
        return (cfg.base_url, cfg.realm)

    def get(self, cfg: OIDCConfig) -> Dict[str, object]:
        key = self._cache_key(cfg)
        now = time.time()
        entry = self._entries.get(key)
        if entry and entry.expires_at > now:
            return entry.jwks

        jwks = self._fetch(cfg)
        self._entries[key] = _CacheEntry(jwks=jwks, expires_at=now + self.ttl_seconds)
        return jwks

    def _fetch(self, cfg: OIDCConfig) -> Dict[str, object]:
        try:
            resp = requests.get(cfg.jwks_uri, timeout=5, verify=cfg.verify)
        except requests.RequestException as exc:
            raise IDTokenVerificationError("jwks_fetch_failed") from exc
        if resp.status_code != 200:
            raise IDTokenVerificationError("jwks_fetch_failed")
        try:
            jwks = resp.json()
        except ValueError as exc:
            raise IDTokenVerificationError("jwks_invalid") from exc
        if not isinstance(jwks, dict) or "keys" not in jwks:
            raise IDTokenVerificationError("jwks_invalid")
        return jwks


MAX_CLOCK_SKEW_SECONDS = 5  # Allow minimal skew between servers


class TokenVerifier:
    """Verify Keycloak-issued bearer tokens.

    Parameters
    ----------
    cfg:
        OIDC realm configuration (issuer, audience, JWKS location).
    cache:
        Optional JWKS cache; a private cache is created when omitted.
    """

    def __init__(self, cfg: OIDCConfig, cache: JWKSCache | None = None) -> None:
        self.cfg = cfg
        self.cache = cache or JWKSCache()

    def verify(self, token: str) -> VerifiedIdentity:
        """Validate ``token`` and return its subject plus custom attributes.

        Raises
        ------
        IDTokenVerificationError:
            When the token is invalid (format, signature, issuer, audience,
            expiry, kid) or the JWKS cannot be fetched.
        """
        claims = self.claims(token)
        subject = claims.get("sub")
        return VerifiedIdentity(
            subject=subject if isinstance(subject, str) else "",
            attributes=_attributes(claims),
        )

    def claims(self, token: str) -> Dict[str, object]:
        try:
            header = jwt.get_unverified_header(token)
        except JOSEError as exc:
            raise IDTokenVerificationError("malformed_token") from exc
        alg = header.get("alg")
        if alg not in ALLOWED_ALGORITHMS:
            raise IDTokenVerificationError("unsupported_alg")
        kid = header.get("kid")
        if not kid:
            raise IDTokenVerificationError("missing_kid")
        jwks = self.cache.get(self.cfg)
        key_dict = _find_key(jwks, kid)
        if not key_dict:
            raise IDTokenVerificationError("unknown_kid")

        try:
            claims = jwt.decode(
                token,
                key_dict,
                algorithms=list(ALLOWED_ALGORITHMS),
                audience=self.cfg.client_id,
                issuer=self.cfg.issuer,
                options={
                    "verify_signature": True,
                    "verify_aud": True,
                    "verify_exp": False,
                    "verify_iat": False,
                    "verify_nbf": False,
                    "verify_at_hash": False,
                },
            )
        except JOSEError as exc:
            raise IDTokenVerificationError("invalid_token") from exc

        _validate_temporal_claims(claims)

        return claims


def _attributes(claims: Dict[str, object]) -> Dict[str, str]:
    return {
        name: value
        for name, value in claims.items()
        if name not in _RESERVED_CLAIMS and isinstance(value, str)
    }


def _find_key(jwks: Dict[str, object], kid: str) -> Dict[str, object] | None:
    keys = jwks.get("keys")
    if not isinstance(keys, list):
        return None
    for key in keys:
        if isinstance(key, dict) and key.get("kid") == kid:
            return key
    return None


def _validate_temporal_claims(claims: Dict[str, object]) -> None:
    now = time.time()
    exp = claims.get("exp")
    if not isinstance(exp, (int, float)):
        raise IDTokenVerificationError("invalid_token")
    if exp + MAX_CLOCK_SKEW_SECONDS < now:
        raise IDTokenVerificationError("token_expired")

    iat = claims.get("iat")
    if isinstance(iat, (int, float)):
        if iat - MAX_CLOCK_SKEW_SECONDS > now:
            raise IDTokenVerificationError("invalid_token")

    nbf = claims.get("nbf")
    if isinstance(nbf, (int, float)) and nbf - MAX_CLOCK_SKEW_SECONDS > now:
        raise IDTokenVerificationError("invalid_token")


__all__ = [
    "IDTokenVerificationError",
    "VerifiedIdentity",
    "IdentityVerifier",
    "JWKSCache",
    "TokenVerifier",
    "MAX_CLOCK_SKEW_SECONDS",
]
