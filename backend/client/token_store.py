"""
Token Store: persists the session credential under `auth_tokens`.

The credential is written wholesale on every save and never validated; the
only contract is that whatever was saved last is what `load` returns, and
that unreadable data loads as absent.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Optional

from .storage import ClientStorage

TOKEN_KEY = "auth_tokens"


@dataclass(frozen=True)
class SessionCredential:
    access_token: str
    refresh_token: str
    expires_at_ms: int

    def to_json(self) -> str:
        return json.dumps(
            {"accessToken": self.access_token, "refreshToken": self.refresh_token, "expiresAt": self.expires_at_ms}
        )

    @classmethod
    def from_json(cls, raw: str) -> Optional["SessionCredential"]:
        try:
            data = json.loads(raw)
        except ValueError:
            return None
        if not isinstance(data, dict):
            return None
        access = data.get("accessToken")
        if not isinstance(access, str):
            return None
        refresh = data.get("refreshToken")
        try:
            expires_at = int(data.get("expiresAt") or 0)
        except (TypeError, ValueError):
            expires_at = 0
        return cls(access_token=access, refresh_token=refresh if isinstance(refresh, str) else "", expires_at_ms=expires_at)


class TokenStore:
    def __init__(self, storage: ClientStorage):
        self._storage = storage

    def save(self, credential: SessionCredential) -> None:
        self._storage.set_item(TOKEN_KEY, credential.to_json())

    def load(self) -> Optional[SessionCredential]:
        raw = self._storage.get_item(TOKEN_KEY)
        if raw is None:
            return None
        return SessionCredential.from_json(raw)

    def clear(self) -> None:
        self._storage.remove_item(TOKEN_KEY)


__all__ = ["TOKEN_KEY", "SessionCredential", "TokenStore"]
