"""
Local pre-checks for bearer access tokens.

Why: The identity provider is the authority on whether an access token is
valid, but a round trip per request is wasted on tokens that are obviously
unusable. This module rejects malformed and expired JWTs locally so the
middleware only calls the provider for plausible tokens.

Security: The signature is NOT checked here; `get_unverified_claims` only
parses. A token that passes this check must still be verified remotely.
"""
from __future__ import annotations

from typing import Dict
import time

from jose import jwt
from jose.exceptions import JOSEError


class AccessTokenVerificationError(Exception):
    """Raised when an access token is malformed, expired or rejected."""

    def __init__(self, code: str):
        super().__init__(code)
        self.code = code


MAX_CLOCK_SKEW_SECONDS = 5  # Allow minimal skew between servers


def extract_bearer_token(header_value: str | None) -> str | None:
    """Return the token from an `Authorization: Bearer <token>` header."""
    if not header_value:
        return None
    scheme, _, token = header_value.strip().partition(" ")
    if scheme.lower() != "bearer":
        return None
    token = token.strip()
    return token or None


def precheck_access_token(token: str, *, now: float | None = None) -> Dict[str, object]:
    """Parse the token's claims and validate `exp`/`iat`/`nbf`.

    Returns the unverified claims. Raises AccessTokenVerificationError with
    code `malformed_token` or `token_expired`.
    """
    try:
        claims = jwt.get_unverified_claims(token)
    except JOSEError as exc:
        raise AccessTokenVerificationError("malformed_token") from exc
    if not isinstance(claims, dict):
        raise AccessTokenVerificationError("malformed_token")
    _validate_temporal_claims(claims, time.time() if now is None else now)
    return claims


def _validate_temporal_claims(claims: Dict[str, object], now: float) -> None:
    exp = claims.get("exp")
    if not isinstance(exp, (int, float)):
        raise AccessTokenVerificationError("malformed_token")
    if exp + MAX_CLOCK_SKEW_SECONDS < now:
        raise AccessTokenVerificationError("token_expired")

    iat = claims.get("iat")
    if isinstance(iat, (int, float)) and iat - MAX_CLOCK_SKEW_SECONDS > now:
        raise AccessTokenVerificationError("malformed_token")

    nbf = claims.get("nbf")
    if isinstance(nbf, (int, float)) and nbf - MAX_CLOCK_SKEW_SECONDS > now:
        raise AccessTokenVerificationError("token_expired")


__all__ = [
    "AccessTokenVerificationError",
    "MAX_CLOCK_SKEW_SECONDS",
    "extract_bearer_token",
    "precheck_access_token",
]
