"""
Session: one explicit object owning the client's authentication state.

The session holds the token manager, the cached identity (`user` key), the
API client and any periodic tasks. There is no module-level state; callers
create a `Session`, `bootstrap()` it, and `logout()` when done.
"""
from __future__ import annotations

import json
import logging
import os
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from .api_client import ApiClient
from .errors import ApiError, NotFound
from .polling import DEFAULT_INTERVAL_SECONDS, PeriodicTask
from .storage import ClientStorage
from .token_manager import TokenManager
from .token_store import TokenStore

logger = logging.getLogger("portal.client")

USER_KEY = "user"
DEFAULT_API_BASE_URL = "http://localhost:8000/api"


class Session:
    def __init__(
        self,
        storage: ClientStorage,
        *,
        api_base_url: str,
        auth_base_url: str,
        anon_key: str = "",
        http: Optional[httpx.AsyncClient] = None,
        clock: Optional[Callable[[], float]] = None,
        timeout: Optional[float] = None,
    ):
        self._storage = storage
        manager_kwargs: Dict[str, Any] = {"auth_base_url": auth_base_url, "anon_key": anon_key, "http": http, "timeout": timeout}
        if clock is not None:
            manager_kwargs["clock"] = clock
        self.tokens = TokenManager(TokenStore(storage), **manager_kwargs)
        self.api = ApiClient(api_base_url, self.tokens, http=http, timeout=timeout, on_refresh_failed=self._end)
        self.user: Optional[Dict[str, Any]] = None
        self._tasks: List[PeriodicTask] = []

    @classmethod
    def from_env(cls, storage: ClientStorage, **kwargs: Any) -> "Session":
        api_base = (os.getenv("PORTAL_API_BASE_URL") or DEFAULT_API_BASE_URL).strip()
        auth_base = (os.getenv("SUPABASE_URL") or "http://localhost:54321").strip()
        anon_key = (os.getenv("SUPABASE_ANON_KEY") or "").strip()
        return cls(storage, api_base_url=api_base, auth_base_url=auth_base, anon_key=anon_key, **kwargs)

    @property
    def authenticated(self) -> bool:
        return self.user is not None

    # --- Cached identity -----------------------------------------------------------

    def _load_user(self) -> Optional[Dict[str, Any]]:
        raw = self._storage.get_item(USER_KEY)
        if raw is None:
            return None
        try:
            data = json.loads(raw)
        except ValueError:
            return None
        return data if isinstance(data, dict) else None

    def update_identity(self, user: Dict[str, Any]) -> None:
        self.user = dict(user)
        self._storage.set_item(USER_KEY, json.dumps(self.user))

    def _end(self) -> None:
        """Stop periodic tasks and drop credentials and identity.

        Also the API client's refresh-failure hook, so it cannot await.
        """
        for task in self._tasks:
            task.stop()
        self._tasks.clear()
        self.tokens.clear_tokens()
        self._storage.remove_item(USER_KEY)
        self.user = None

    # --- Lifecycle -------------------------------------------------------------------

    async def bootstrap(self) -> bool:
        """Restore a persisted session; returns whether the caller is signed in.

        A valid token plus a cached identity restores without touching the
        network beyond a possible token refresh. A valid token without a cached
        identity fetches `/user-data` once.
        """
        try:
            token = await self.tokens.get_valid_token()
        except Exception as exc:
            logger.warning("session restore failed: error=%s", exc.__class__.__name__)
            token = None
        if not token:
            self._end()
            return False
        cached = self._load_user()
        if cached is not None:
            self.user = cached
            return True
        try:
            body = await self.api.get("/user-data")
        except ApiError as exc:
            logger.info("identity fetch failed during restore: status=%s", exc.status)
            self._end()
            return False
        user = body.get("user") if isinstance(body, dict) else None
        if not isinstance(user, dict):
            self._end()
            return False
        self.update_identity(user)
        return True

    async def login(self, email: str, password: str) -> Dict[str, Any]:
        body = await self.api.post("/login", {"email": email, "password": password}, skip_auth=True)
        user = body.get("user")
        if not isinstance(user, dict) or not user:
            # Valid credentials but no portal profile: nothing to sign in as.
            self._end()
            raise NotFound("User data not found", status=404)
        self.tokens.save_tokens(body["accessToken"], body.get("refreshToken") or "", int(body.get("expiresIn") or 3600))
        self.update_identity(user)
        return self.user or {}

    async def logout(self) -> None:
        for task in list(self._tasks):
            await task.cancel()
        self._tasks.clear()
        self._end()

    # --- Periodic refresh ------------------------------------------------------------

    def every(
        self, callback: Callable[[], Awaitable[object]], *, interval: float = DEFAULT_INTERVAL_SECONDS, name: str = "periodic"
    ) -> PeriodicTask:
        task = PeriodicTask(callback, interval=interval, name=name)
        self._tasks.append(task)
        task.start()
        return task

    @property
    def tasks(self) -> List[PeriodicTask]:
        return list(self._tasks)

    async def close(self) -> None:
        """Stop periodic tasks but keep the persisted session."""
        for task in list(self._tasks):
            await task.cancel()
        self._tasks.clear()


__all__ = ["Session", "USER_KEY", "DEFAULT_API_BASE_URL"]
