"""
Public authentication routes: signup, login and health.

Why:
    Signup and login are the only routes reachable without a bearer token.
    Credentials go straight to the identity provider; the portal only stores
    the profile it authorizes against (`user:{id}`).

Security:
    - Passwords are never logged or stored by the portal.
    - Admin self-signup is only accepted when PORTAL_ALLOW_ADMIN_SIGNUP is true
      (default: true outside prod-like environments).
"""

from __future__ import annotations

import logging
import os

from fastapi import APIRouter, Request
from pydantic import BaseModel, ConfigDict, Field
from pydantic.functional_validators import field_validator

from backend.attendance.errors import BadRequest, Forbidden
from backend.identity_access.domain import ROLE_ADMIN, ROLE_STUDENT, normalize_role
from backend.identity_access.provider import IdentityProviderError
from backend.web.auth_utils import run_blocking, services

auth_router = APIRouter(tags=["Auth"])
logger = logging.getLogger("portal.web")

PUBLIC_PATHS = ("/signup", "/login", "/health")


def _admin_signup_allowed() -> bool:
    env = (os.getenv("PORTAL_ENV") or "dev").strip().lower()
    default = "false" if env in {"prod", "production", "stage", "staging"} else "true"
    return (os.getenv("PORTAL_ALLOW_ADMIN_SIGNUP", default) or "").strip().lower() == "true"


class SignupPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: str = Field(..., min_length=3, max_length=320)
    password: str = Field(..., min_length=6, max_length=256)
    name: str = Field(..., min_length=1, max_length=200)
    student_id: str | None = Field(default=None, alias="studentId", max_length=64, pattern=r"^[A-Za-z0-9_-]+$")
    role: str | None = Field(default=None)
    semester: str | None = Field(default=None, max_length=64)

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, v: str) -> str:
        v = v.strip().lower()
        if "@" not in v:
            raise ValueError("must be an email address")
        return v

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        return v.strip()

    @field_validator("student_id", "semester", mode="before")
    @classmethod
    def _strip_empty(cls, v):
        if isinstance(v, str):
            v = v.strip()
            return v if v else None
        return v


class LoginPayload(BaseModel):
    email: str = Field(..., min_length=3, max_length=320)
    password: str = Field(..., min_length=1, max_length=256)


@auth_router.post("/signup")
async def signup(request: Request, payload: SignupPayload):
    """Create the provider account and the portal identity.

    Students also receive a leave balance and the default manager record.
    """
    role = normalize_role(payload.role)
    if role == ROLE_ADMIN and not _admin_signup_allowed():
        raise Forbidden("Admin signup is disabled")
    if role == ROLE_STUDENT and not payload.student_id:
        raise BadRequest("Student ID is required")
    if not payload.name:
        raise BadRequest("Name is required")
    users = services(request).users
    # Claimed before the provider account exists so a taken id creates nothing.
    reservation = users.reserve_student_id(payload.student_id) if role == ROLE_STUDENT else None
    provider = request.app.state.provider
    try:
        account = await run_blocking(
            provider.create_user,
            email=payload.email,
            password=payload.password,
            user_metadata={
                "name": payload.name,
                "studentId": payload.student_id,
                "role": role,
                "semester": payload.semester,
            },
        )
    except IdentityProviderError as exc:
        logger.info("signup rejected by provider: status=%s", exc.status)
        if reservation:
            users.release_student_id(payload.student_id, reservation)
        raise BadRequest(exc.code) from exc
    identity = users.register(
        user_id=str(account["id"]),
        email=payload.email,
        name=payload.name,
        role=role,
        student_id=payload.student_id,
        semester=payload.semester,
        reservation=reservation,
    )
    return {"success": True, "user": identity}


@auth_router.post("/login")
async def login(request: Request, payload: LoginPayload):
    """Password login; returns the session credential and the stored identity."""
    provider = request.app.state.provider
    try:
        session = await run_blocking(
            provider.sign_in_with_password, email=payload.email.strip().lower(), password=payload.password
        )
    except IdentityProviderError as exc:
        logger.info("login rejected by provider: status=%s", exc.status)
        raise BadRequest(exc.code) from exc
    user_id = str((session.get("user") or {}).get("id") or "")
    identity = services(request).users.find(user_id) if user_id else None
    return {
        "success": True,
        "accessToken": session["access_token"],
        "refreshToken": session.get("refresh_token"),
        "expiresIn": session.get("expires_in", 3600),
        "user": identity,
    }


@auth_router.get("/health")
async def health():
    return {"success": True, "status": "healthy"}


__all__ = ["auth_router", "PUBLIC_PATHS"]
