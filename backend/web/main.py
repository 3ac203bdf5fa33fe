"""
FastAPI application for the attendance portal.

Every route lives under one prefix (default `/api`). The HTTP middleware
below is the only place that authenticates: it verifies the bearer token,
loads the caller's stored identity and enforces the admin gate before any
handler or payload validation runs. Handlers read the identity from
`request.state.user`.
"""
from __future__ import annotations

import asyncio
import logging
import os
import sys

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from backend.attendance.clock import PortalClock
from backend.attendance.errors import DomainError
from backend.attendance.services import build_services
from backend.identity_access.domain import ROLE_ADMIN, ROLE_STUDENT
from backend.identity_access.provider import IdentityProviderError, SupabaseAuthClient, load_provider_config
from backend.identity_access.tokens import (
    AccessTokenVerificationError,
    extract_bearer_token,
    precheck_access_token,
)
from backend.storage.blobs import BlobStorageProtocol, build_blob_storage_from_env
from backend.storage.config import get_kv_backend
from backend.storage.kv import InMemoryKeyValueStore, KeyValueStoreProtocol
from backend.web import config as _cfg
from backend.web.routes.admin import admin_router
from backend.web.routes.auth import PUBLIC_PATHS, auth_router
from backend.web.routes.student import student_router


def _should_load_dotenv() -> bool:
    """Decide if we should load a local .env file.

    - Never load under pytest to avoid contaminating test env.
    - Allow explicit opt-out via PORTAL_ENABLE_DOTENV (default true outside
      pytest).
    """
    if "pytest" in sys.modules or os.getenv("PYTEST_CURRENT_TEST"):
        return False
    flag = (os.getenv("PORTAL_ENABLE_DOTENV", "true") or "").strip().lower()
    return flag in ("1", "true", "yes")


if _should_load_dotenv():
    from dotenv import load_dotenv

    load_dotenv()

# Minimal production safety checks (fail-fast on insecure config)
_cfg.ensure_secure_config_on_startup()

logger = logging.getLogger("portal.web")


def _error(status: int, message: str, *, code: str | None = None) -> JSONResponse:
    body = {"error": message}
    if code:
        body["code"] = code
    return JSONResponse(body, status_code=status, headers={"Cache-Control": "private, no-store"})


def _build_default_store() -> KeyValueStoreProtocol:
    if get_kv_backend() == "db":
        from backend.storage.kv_db import DBKeyValueStore

        return DBKeyValueStore()
    return InMemoryKeyValueStore()


def create_app(
    *,
    store: KeyValueStoreProtocol | None = None,
    provider=None,
    clock: PortalClock | None = None,
    blobs: BlobStorageProtocol | None = None,
) -> FastAPI:
    """Build the app; tests inject fakes for every collaborator."""
    app = FastAPI(title="Attendance Portal", version="0.1.0")
    app.state.services = build_services(store if store is not None else _build_default_store(), clock)
    app.state.provider = provider if provider is not None else SupabaseAuthClient(load_provider_config())
    app.state.blobs = blobs if blobs is not None else build_blob_storage_from_env()

    prefix = _cfg.get_api_prefix()
    app.include_router(auth_router, prefix=prefix)
    app.include_router(student_router, prefix=prefix)
    app.include_router(admin_router, prefix=prefix)

    public_paths = {f"{prefix}{p}" for p in PUBLIC_PATHS}
    admin_paths = {f"{prefix}{route.path}" for route in admin_router.routes}

    @app.exception_handler(DomainError)
    async def _domain_error(request: Request, exc: DomainError):
        return _error(exc.status_code, exc.message, code=exc.code)

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        if errors:
            first = errors[0]
            field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
            message = f"Invalid request: {field} {first.get('msg', '')}".strip()
        else:
            message = "Invalid request"
        return _error(400, message)

    @app.middleware("http")
    async def auth_enforcement(request: Request, call_next):
        path = request.url.path
        if request.method == "OPTIONS" or path in public_paths or not path.startswith(f"{prefix}/"):
            return await call_next(request)

        token = extract_bearer_token(request.headers.get("Authorization"))
        if not token:
            return _error(401, "Unauthorized")
        try:
            precheck_access_token(token)
            loop = asyncio.get_running_loop()
            idp_user = await loop.run_in_executor(None, request.app.state.provider.get_user, token)
        except AccessTokenVerificationError as exc:
            logger.info("bearer token rejected: code=%s", exc.code)
            return _error(401, "Unauthorized")
        except IdentityProviderError as exc:
            logger.warning("token verification unavailable: code=%s", exc.code)
            return _error(500, "Identity provider unavailable")

        identity = request.app.state.services.users.find(str(idp_user["id"]))
        if identity is None:
            return _error(404, "User data not found")
        if identity.get("role") == ROLE_STUDENT and identity.get("blocked"):
            return _error(403, "Account is blocked")
        if path in admin_paths and identity.get("role") != ROLE_ADMIN:
            return _error(403, "Admin access required")

        request.state.user = identity
        return await call_next(request)

    # Registered last so it wraps the auth middleware too.
    @app.middleware("http")
    async def error_boundary(request: Request, call_next):
        try:
            return await call_next(request)
        except Exception:
            logger.exception("unhandled error on %s %s", request.method, request.url.path)
            return _error(500, "Internal server error")

    return app


app = create_app()
