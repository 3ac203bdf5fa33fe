"""
Centralized storage configuration for the profile-image bucket and KV backend.

Intent:
    Provide a single source of truth for bucket names, signed-URL lifetime,
    upload limits and the key-value backend selection. Prevents drift between
    the web adapter and the storage wiring and enables simple testing.

Permissions:
    Pure configuration; no external calls or privileges required.
"""
from __future__ import annotations

import os


PROFILE_IMAGES_BUCKET_DEFAULT = "profile-images"
PROFILE_IMAGE_URL_TTL_SECONDS = 31536000  # one year


def get_profile_images_bucket() -> str:
    """Return the configured profile-image bucket name.

    Env:
        PROFILE_IMAGES_BUCKET – optional override; otherwise defaults to
        PROFILE_IMAGES_BUCKET_DEFAULT.
    """
    return (os.getenv("PROFILE_IMAGES_BUCKET") or PROFILE_IMAGES_BUCKET_DEFAULT).strip()


def get_kv_backend() -> str:
    """Return `memory` or `db` (env KV_BACKEND, default memory)."""
    backend = (os.getenv("KV_BACKEND") or "memory").strip().lower()
    if backend not in {"memory", "db"}:
        raise ValueError("KV_BACKEND must be 'memory' or 'db'")
    return backend


def _parse_int_env(name: str, default: int, *, contract_max: int | None = None) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    if value <= 0:
        return default
    if isinstance(contract_max, int) and contract_max > 0:
        value = min(value, contract_max)
    return value


def get_profile_image_max_bytes() -> int:
    """Maximum profile-image upload size (default/clamped 5 MiB)."""
    contract_max = 5 * 1024 * 1024
    return _parse_int_env("PROFILE_IMAGE_MAX_BYTES", contract_max, contract_max=contract_max)


__all__ = [
    "PROFILE_IMAGES_BUCKET_DEFAULT",
    "PROFILE_IMAGE_URL_TTL_SECONDS",
    "get_profile_images_bucket",
    "get_kv_backend",
    "get_profile_image_max_bytes",
]
