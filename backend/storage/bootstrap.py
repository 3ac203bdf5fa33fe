"""
Supabase Storage bootstrap for the profile-image bucket.

Opt-in via `AUTO_CREATE_STORAGE_BUCKETS=true`; requires the server-side
service role key. Idempotent: lists buckets first, creates only what is
missing. Failures are logged, never raised, so a dev server still starts
while Storage is unreachable.
"""
from __future__ import annotations

import logging
import os
from typing import Iterable

import requests

from .config import get_profile_images_bucket

_log = logging.getLogger("portal.storage")

_TIMEOUT = (3, 10)


def _headers(key: str) -> dict:
    return {"apikey": key, "Authorization": f"Bearer {key}"}


def _list_bucket_names(base_url: str, key: str) -> set[str]:
    url = f"{base_url.rstrip('/')}/storage/v1/bucket"
    try:
        resp = requests.get(url, headers=_headers(key), timeout=_TIMEOUT)
        data = resp.json()
    except (requests.RequestException, ValueError) as exc:
        _log.warning("list buckets failed: error=%s", type(exc).__name__)
        return set()
    if not isinstance(data, list):
        return set()
    return {str(it.get("name") or it.get("id") or "") for it in data if isinstance(it, dict)}


def _create_bucket(base_url: str, key: str, name: str) -> bool:
    url = f"{base_url.rstrip('/')}/storage/v1/bucket"
    try:
        resp = requests.post(
            url,
            headers=_headers(key),
            json={"name": name, "public": False},
            timeout=_TIMEOUT,
        )
    except requests.RequestException as exc:
        _log.warning("create bucket '%s' failed: error=%s", name, type(exc).__name__)
        return False
    if resp.status_code >= 300:
        _log.warning("create bucket '%s' failed: status=%s", name, resp.status_code)
        return False
    _log.info("created storage bucket '%s'", name)
    return True


def ensure_buckets(base_url: str, key: str, buckets: Iterable[str]) -> list[str]:
    """Create each missing bucket; return the names that were created."""
    existing = _list_bucket_names(base_url, key)
    created = []
    for name in sorted(set(buckets)):
        if not name or name in existing:
            continue
        if _create_bucket(base_url, key, name):
            created.append(name)
    return created


def ensure_buckets_from_env() -> bool:
    """Ensure the profile-image bucket exists when explicitly enabled.

    Returns False when the flag is off or credentials are missing.
    """
    if (os.getenv("AUTO_CREATE_STORAGE_BUCKETS") or "").strip().lower() != "true":
        return False
    base = (os.getenv("SUPABASE_URL") or "").strip()
    key = (os.getenv("SUPABASE_SERVICE_ROLE_KEY") or "").strip()
    if not base or not key:
        return False
    _log.warning("AUTO_CREATE_STORAGE_BUCKETS=true is a dev convenience; disable it in prod")
    ensure_buckets(base, key, [get_profile_images_bucket()])
    return True


__all__ = ["ensure_buckets_from_env", "ensure_buckets"]
