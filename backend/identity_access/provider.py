"""
Minimal client for the Supabase Auth (GoTrue) REST API.

Why: Keep identity-provider calls out of the web adapter so the middleware
and the auth routes can be tested with a fake provider. The web layer only
depends on the three operations below.

Security:
- `get_user` and `sign_in_with_password` use the anon key.
- `create_user` uses the service role key and must only run server-side.
- Never log passwords or tokens; errors carry short codes only.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional
import logging
import os

# Small indirection to ease monkeypatching in tests
import requests as http

from .tokens import AccessTokenVerificationError

logger = logging.getLogger("portal.identity_access")


def http_request(method: str, url: str, *, headers: Dict[str, str], json: Any = None, timeout: float = 10.0):
    return http.request(method, url, headers=headers, json=json, timeout=timeout)


class IdentityProviderError(Exception):
    """Raised when the provider is unreachable or rejects a request."""

    def __init__(self, code: str, *, status: int | None = None):
        super().__init__(code)
        self.code = code
        self.status = status


@dataclass(frozen=True)
class ProviderConfig:
    base_url: str  # e.g., https://<project>.supabase.co
    anon_key: str
    service_role_key: str = ""
    timeout: float = 10.0

    @property
    def user_endpoint(self) -> str:
        return f"{self.base_url}/auth/v1/user"

    @property
    def password_grant_endpoint(self) -> str:
        return f"{self.base_url}/auth/v1/token?grant_type=password"

    @property
    def admin_users_endpoint(self) -> str:
        return f"{self.base_url}/auth/v1/admin/users"


def load_provider_config() -> ProviderConfig:
    """Build the provider config from SUPABASE_* and IDP_TIMEOUT_SECONDS."""
    raw_timeout = (os.getenv("IDP_TIMEOUT_SECONDS") or "").strip()
    try:
        timeout = float(raw_timeout) if raw_timeout else 10.0
    except ValueError:
        timeout = 10.0
    if timeout <= 0:
        timeout = 10.0
    return ProviderConfig(
        base_url=(os.getenv("SUPABASE_URL") or "http://localhost:54321").rstrip("/"),
        anon_key=(os.getenv("SUPABASE_ANON_KEY") or "").strip(),
        service_role_key=(os.getenv("SUPABASE_SERVICE_ROLE_KEY") or "").strip(),
        timeout=timeout,
    )


def _error_message(resp) -> Optional[str]:
    try:
        body = resp.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    for key in ("msg", "error_description", "message", "error"):
        value = body.get(key)
        if isinstance(value, str) and value:
            return value
    return None


class SupabaseAuthClient:
    def __init__(self, config: ProviderConfig):
        self.cfg = config

    def _headers(self, *, bearer: str | None = None, admin: bool = False) -> Dict[str, str]:
        key = self.cfg.service_role_key if admin else self.cfg.anon_key
        return {
            "apikey": key,
            "Authorization": f"Bearer {bearer or key}",
            "Content-Type": "application/json",
        }

    def _send(self, method: str, url: str, *, headers: Dict[str, str], json: Any = None):
        try:
            return http_request(method, url, headers=headers, json=json, timeout=self.cfg.timeout)
        except http.RequestException as exc:
            logger.warning("identity provider unreachable: error=%s", type(exc).__name__)
            raise IdentityProviderError("provider_unreachable") from exc

    def get_user(self, access_token: str) -> Dict[str, Any]:
        """Resolve an access token to the provider's user object.

        Raises AccessTokenVerificationError("invalid_token") when the provider
        rejects the token, IdentityProviderError when it cannot be asked.
        """
        resp = self._send("GET", self.cfg.user_endpoint, headers=self._headers(bearer=access_token))
        if resp.status_code in (401, 403):
            raise AccessTokenVerificationError("invalid_token")
        if resp.status_code != 200:
            raise IdentityProviderError("user_lookup_failed", status=resp.status_code)
        try:
            user = resp.json()
        except ValueError as exc:
            raise IdentityProviderError("invalid_response") from exc
        if not isinstance(user, dict) or not user.get("id"):
            raise AccessTokenVerificationError("invalid_token")
        return user

    def sign_in_with_password(self, *, email: str, password: str) -> Dict[str, Any]:
        """Password grant. Returns access_token, refresh_token, expires_in and user."""
        resp = self._send(
            "POST",
            self.cfg.password_grant_endpoint,
            headers=self._headers(),
            json={"email": email, "password": password},
        )
        if resp.status_code != 200:
            raise IdentityProviderError(_error_message(resp) or "Invalid login credentials", status=resp.status_code)
        try:
            data = resp.json()
        except ValueError as exc:
            raise IdentityProviderError("invalid_response") from exc
        if not isinstance(data, dict) or not data.get("access_token"):
            raise IdentityProviderError("invalid_response")
        return data

    def create_user(self, *, email: str, password: str, user_metadata: Dict[str, Any]) -> Dict[str, Any]:
        """Create a confirmed user via the admin API and return the user object."""
        payload = {
            "email": email,
            "password": password,
            "user_metadata": user_metadata,
            "email_confirm": True,
        }
        resp = self._send("POST", self.cfg.admin_users_endpoint, headers=self._headers(admin=True), json=payload)
        if resp.status_code not in (200, 201):
            raise IdentityProviderError(_error_message(resp) or "user_create_failed", status=resp.status_code)
        try:
            user = resp.json()
        except ValueError as exc:
            raise IdentityProviderError("invalid_response") from exc
        if isinstance(user, dict) and isinstance(user.get("user"), dict):
            user = user["user"]
        if not isinstance(user, dict) or not user.get("id"):
            raise IdentityProviderError("user_id_missing")
        return user


__all__ = [
    "IdentityProviderError",
    "ProviderConfig",
    "SupabaseAuthClient",
    "load_provider_config",
    "http_request",
]
