"""
Token Manager: hands out a valid access token, refreshing it when needed.

Behavior:
    - A token counts as expired five minutes before `expiresAt`, so a request
      started just before expiry still carries a live token.
    - `get_valid_token` attempts at most one refresh per call.
    - Refresh is fail-closed: any failure clears the stored credential and
      yields None, which ends the session for the caller.

Security:
    - Tokens are never logged; failures log the exception class or status.
"""
from __future__ import annotations

import logging
import os
import time
from typing import Callable, Optional

import httpx

from .token_store import SessionCredential, TokenStore

logger = logging.getLogger("portal.client")

REFRESH_THRESHOLD_SECONDS = 5 * 60
DEFAULT_EXPIRES_IN = 3600
DEFAULT_TIMEOUT_SECONDS = 10.0


def default_timeout() -> float:
    raw = (os.getenv("PORTAL_HTTP_TIMEOUT") or "").strip()
    try:
        value = float(raw) if raw else DEFAULT_TIMEOUT_SECONDS
    except ValueError:
        return DEFAULT_TIMEOUT_SECONDS
    return value if value > 0 else DEFAULT_TIMEOUT_SECONDS


class TokenManager:
    def __init__(
        self,
        store: TokenStore,
        *,
        auth_base_url: str,
        anon_key: str = "",
        http: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.time,
        timeout: Optional[float] = None,
    ):
        self._store = store
        self._auth_base_url = auth_base_url.rstrip("/")
        self._anon_key = anon_key
        self._http = http
        self._clock = clock
        self._timeout = timeout if timeout is not None else default_timeout()

    @property
    def refresh_url(self) -> str:
        return f"{self._auth_base_url}/auth/v1/token?grant_type=refresh_token"

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    # --- Stored credential ------------------------------------------------------

    def save_tokens(self, access_token: str, refresh_token: str, expires_in: int = DEFAULT_EXPIRES_IN) -> None:
        self._store.save(
            SessionCredential(
                access_token=access_token,
                refresh_token=refresh_token,
                expires_at_ms=self._now_ms() + int(expires_in) * 1000,
            )
        )

    def clear_tokens(self) -> None:
        self._store.clear()

    def get_access_token(self) -> Optional[str]:
        cred = self._store.load()
        return cred.access_token if cred else None

    def get_refresh_token(self) -> Optional[str]:
        cred = self._store.load()
        return cred.refresh_token if cred and cred.refresh_token else None

    def is_expired(self) -> bool:
        cred = self._store.load()
        if cred is None:
            return True
        return self._now_ms() >= cred.expires_at_ms - REFRESH_THRESHOLD_SECONDS * 1000

    # --- Refresh ----------------------------------------------------------------

    async def _post_refresh(self, refresh_token: str) -> httpx.Response:
        headers = {"Content-Type": "application/json"}
        if self._anon_key:
            headers["apikey"] = self._anon_key
        body = {"refresh_token": refresh_token}
        if self._http is not None:
            return await self._http.post(self.refresh_url, json=body, headers=headers, timeout=self._timeout)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.post(self.refresh_url, json=body, headers=headers)

    async def refresh_access_token(self) -> Optional[str]:
        """Exchange the refresh token for a new credential; None on any failure."""
        refresh_token = self.get_refresh_token()
        if not refresh_token:
            self.clear_tokens()
            return None
        try:
            resp = await self._post_refresh(refresh_token)
        except httpx.HTTPError as exc:
            logger.warning("token refresh failed: error=%s", exc.__class__.__name__)
            self.clear_tokens()
            return None
        if not (200 <= resp.status_code < 300):
            logger.info("token refresh rejected: status=%s", resp.status_code)
            self.clear_tokens()
            return None
        try:
            data = resp.json()
        except ValueError:
            logger.warning("token refresh returned malformed JSON")
            self.clear_tokens()
            return None
        access = data.get("access_token") if isinstance(data, dict) else None
        if not isinstance(access, str) or not access:
            logger.warning("token refresh response missing access_token")
            self.clear_tokens()
            return None
        try:
            expires_in = int(data.get("expires_in") or DEFAULT_EXPIRES_IN)
        except (TypeError, ValueError):
            expires_in = DEFAULT_EXPIRES_IN
        new_refresh = data.get("refresh_token")
        self.save_tokens(access, new_refresh if isinstance(new_refresh, str) and new_refresh else refresh_token, expires_in)
        return access

    async def get_valid_token(self) -> Optional[str]:
        access = self.get_access_token()
        if not access:
            return None
        if self.is_expired():
            return await self.refresh_access_token()
        return access


__all__ = ["TokenManager", "REFRESH_THRESHOLD_SECONDS", "DEFAULT_EXPIRES_IN", "default_timeout"]
