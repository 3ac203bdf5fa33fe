"""
API Client: authenticated JSON calls against the portal API.

Behavior:
    - Unless `skip_auth`, a valid token is obtained first; without one the
      call fails with `AuthenticationRequired` and nothing is sent.
    - A 401 triggers exactly one refresh and, if that yields a token, exactly
      one retry. A failed refresh raises `RefreshFailed`.
    - Non-2xx responses raise the `ApiError` subclass for their status with
      the server's `error` message (or "HTTP <status>").
    - Transport failures and timeouts raise `NetworkError`.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional, Tuple

import httpx

from .errors import (
    ApiError,
    AuthenticationRequired,
    NetworkError,
    RefreshFailed,
    ServerError,
    Unauthorized,
    error_for_status,
)
from .token_manager import TokenManager, default_timeout

logger = logging.getLogger("portal.client")


def _error_body(resp: httpx.Response) -> Tuple[str, Optional[str]]:
    """Return the server's `error` message (or "HTTP <status>") and its `code`."""
    try:
        data = resp.json()
    except ValueError:
        return f"HTTP {resp.status_code}", None
    if not isinstance(data, dict):
        return f"HTTP {resp.status_code}", None
    message = data.get("error")
    code = data.get("code")
    return (
        message if isinstance(message, str) and message else f"HTTP {resp.status_code}",
        code if isinstance(code, str) else None,
    )


class ApiClient:
    def __init__(
        self,
        base_url: str,
        tokens: TokenManager,
        *,
        http: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
        on_refresh_failed: Optional[Callable[[], None]] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._tokens = tokens
        self._http = http
        self._timeout = timeout if timeout is not None else default_timeout()
        self._on_refresh_failed = on_refresh_failed

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        if self._http is not None:
            return await self._http.request(method, url, timeout=self._timeout, **kwargs)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.request(method, url, **kwargs)

    async def request(
        self,
        endpoint: str,
        method: str = "GET",
        json: Any = None,
        *,
        skip_auth: bool = False,
        retry_count: int = 0,
        files: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        headers: Dict[str, str] = {}
        if not skip_auth:
            token = await self._tokens.get_valid_token()
            if not token:
                raise AuthenticationRequired()
            headers["Authorization"] = f"Bearer {token}"

        kwargs: Dict[str, Any] = {"headers": headers}
        if files is not None:
            kwargs["files"] = files
        elif json is not None:
            kwargs["json"] = json
        if params:
            kwargs["params"] = params

        try:
            resp = await self._send(method.upper(), f"{self.base_url}{endpoint}", **kwargs)
        except httpx.HTTPError as exc:
            logger.info("request failed: method=%s endpoint=%s error=%s", method, endpoint, exc.__class__.__name__)
            raise NetworkError() from exc

        if resp.status_code == 401 and not skip_auth:
            if retry_count == 0:
                new_token = await self._tokens.refresh_access_token()
                if new_token:
                    return await self.request(
                        endpoint, method, json, skip_auth=skip_auth, retry_count=1, files=files, params=params
                    )
                if self._on_refresh_failed is not None:
                    self._on_refresh_failed()
                raise RefreshFailed(_error_body(resp)[0], status=401)
            raise Unauthorized(_error_body(resp)[0], status=401)

        if not (200 <= resp.status_code < 300):
            message, code = _error_body(resp)
            raise error_for_status(resp.status_code, message, code=code)

        if not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError as exc:
            raise ServerError("Invalid JSON response", status=resp.status_code) from exc

    async def get(self, endpoint: str, *, params: Optional[Dict[str, Any]] = None, skip_auth: bool = False) -> Any:
        return await self.request(endpoint, "GET", skip_auth=skip_auth, params=params)

    async def post(self, endpoint: str, body: Any = None, *, skip_auth: bool = False) -> Any:
        return await self.request(endpoint, "POST", body, skip_auth=skip_auth)

    async def put(self, endpoint: str, body: Any = None, *, skip_auth: bool = False) -> Any:
        return await self.request(endpoint, "PUT", body, skip_auth=skip_auth)

    async def delete(self, endpoint: str, body: Any = None, *, skip_auth: bool = False) -> Any:
        return await self.request(endpoint, "DELETE", body, skip_auth=skip_auth)

    async def upload(self, endpoint: str, *, filename: str, content: bytes, content_type: str, field: str = "file") -> Any:
        return await self.request(endpoint, "POST", files={field: (filename, content, content_type)})


__all__ = ["ApiClient", "ApiError"]
