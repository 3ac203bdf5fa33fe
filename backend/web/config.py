"""
Configuration and startup security checks for the attendance portal.

Why: A portal that decides who may read every student's attendance must not
be started with throwaway credentials. This module provides a single guard
that enforces minimal production safety constraints without burdening local
development.

Permissions: The caller needs no special privileges. The function simply reads
environment variables and raises `SystemExit` on fatal misconfiguration.
"""
from __future__ import annotations

import os

DEFAULT_API_PREFIX = "/api"


def _is_prod_like(env: str) -> bool:
    env_l = (env or "").lower()
    return env_l in {"prod", "production", "stage", "staging"}


def get_api_prefix() -> str:
    """Route prefix for every endpoint (env PORTAL_API_PREFIX, default /api)."""
    raw = (os.getenv("PORTAL_API_PREFIX") or DEFAULT_API_PREFIX).strip()
    if not raw or raw == "/":
        return ""
    return "/" + raw.strip("/")


def ensure_secure_config_on_startup() -> None:
    """Fail fast on insecure production configuration.

    Checks (prod-like envs only):
    - Supabase Service Role key must be set and not a known dummy placeholder.
    - SUPABASE_URL must use https.
    - The key-value backend must be durable (KV_BACKEND=db).
    - DATABASE_URL must not explicitly disable TLS.
    """
    env = os.getenv("PORTAL_ENV", "dev")
    if not _is_prod_like(env):
        return  # dev/test remain permissive

    srole = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "").strip()
    if not srole or srole.upper() in {"DUMMY_DO_NOT_USE", "TEST_ONLY_NOT_USED"}:
        raise SystemExit(
            "Refusing to start: SUPABASE_SERVICE_ROLE_KEY is unset or a dummy placeholder in production."
        )

    url = (os.getenv("SUPABASE_URL", "") or "").strip().lower()
    if not url.startswith("https://"):
        raise SystemExit("Refusing to start: SUPABASE_URL must use https in production.")

    backend = (os.getenv("KV_BACKEND") or "memory").strip().lower()
    if backend != "db":
        raise SystemExit(
            "Refusing to start: KV_BACKEND=memory loses all records on restart; use KV_BACKEND=db in production."
        )

    dsn = os.getenv("DATABASE_URL", "")
    if "sslmode=disable" in dsn:
        raise SystemExit(
            "Refusing to start: DATABASE_URL contains sslmode=disable in production. Use sslmode=require or verify TLS."
        )


__all__ = ["ensure_secure_config_on_startup", "get_api_prefix", "DEFAULT_API_PREFIX"]
