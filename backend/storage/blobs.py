"""
Blob storage for profile images.

The port is two calls: `put_object` stores bytes, `signed_url` returns a
time-limited download URL. Routes depend only on the protocol; the Supabase
adapter is wired at startup when credentials are present, otherwise the Null
adapter raises so uploads fail loudly instead of silently dropping files.

The Supabase adapter is duck-typed: it accepts either a `supabase` client
(`.storage.from_(bucket)`) or a storage3 client (`.from_(bucket)`).

Security:
- The client must be initialized with the service role key.
- Buckets are private; callers only ever see signed URLs.
"""
from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional, Protocol

from .bootstrap import ensure_buckets_from_env

logger = logging.getLogger("portal.storage")


class BlobStorageProtocol(Protocol):
    def put_object(self, *, bucket: str, key: str, body: bytes, content_type: str) -> None: ...

    def signed_url(self, *, bucket: str, key: str, expires_in: int) -> str: ...


class NullBlobStorage:
    """Default adapter when no storage backend is configured."""

    def put_object(self, *, bucket: str, key: str, body: bytes, content_type: str) -> None:
        raise RuntimeError("blob_storage_not_configured")

    def signed_url(self, *, bucket: str, key: str, expires_in: int) -> str:
        raise RuntimeError("blob_storage_not_configured")


class SupabaseBlobStorage:
    """Blob storage backed by Supabase Storage."""

    def __init__(self, client: Any):
        self._client = client

    def _bucket(self, bucket: str) -> Any:
        c = self._client
        storage = getattr(c, "storage", None)
        if storage is not None and hasattr(storage, "from_"):
            return storage.from_(bucket)
        if hasattr(c, "from_"):
            return c.from_(bucket)
        raise RuntimeError("invalid_supabase_client")

    @staticmethod
    def _norm_key(bucket: str, key: str) -> str:
        # storage3 prepends the bucket id itself
        norm_key = key.lstrip("/")
        prefix = f"{bucket}/"
        if norm_key.startswith(prefix):
            norm_key = norm_key[len(prefix):]
        return norm_key

    @staticmethod
    def _first_key(d: Dict[str, Any], *keys: str) -> Any:
        for k in keys:
            if k in d and d[k] is not None:
                return d[k]
        return None

    def put_object(self, *, bucket: str, key: str, body: bytes, content_type: str) -> None:
        b = self._bucket(bucket)
        # Client versions differ in the casing they expect for the content type.
        opts = {"content-type": content_type, "contentType": content_type}
        b.upload(self._norm_key(bucket, key), body, opts)

    def signed_url(self, *, bucket: str, key: str, expires_in: int) -> str:
        b = self._bucket(bucket)
        res = b.create_signed_url(self._norm_key(bucket, key), expires_in)
        url: Optional[str] = None
        if isinstance(res, dict):
            url = self._first_key(res, "signedURL", "signed_url", "url")
            data = res.get("data")
            if url is None and isinstance(data, dict):
                url = self._first_key(data, "signedURL", "signed_url", "url")
        if not url:
            raise RuntimeError("failed_to_sign_url")
        return str(url)


def build_blob_storage_from_env() -> BlobStorageProtocol:
    """Return a Supabase adapter when SUPABASE_URL and the service key are set."""
    url = (os.getenv("SUPABASE_URL") or "").strip()
    key = (os.getenv("SUPABASE_SERVICE_ROLE_KEY") or "").strip()
    if not url or not key:
        return NullBlobStorage()
    try:
        from supabase import create_client  # type: ignore

        adapter = SupabaseBlobStorage(create_client(url, key))
    except Exception as exc:
        logger.warning("Supabase client unavailable: %s", exc.__class__.__name__)
        return NullBlobStorage()
    ensure_buckets_from_env()
    return adapter


__all__ = [
    "BlobStorageProtocol",
    "NullBlobStorage",
    "SupabaseBlobStorage",
    "build_blob_storage_from_env",
]
