"""
Request-context helpers shared by the route modules.

The auth middleware stores the caller's identity in `request.state.user`;
routes never re-authenticate, they only read it back through these helpers.
"""
from __future__ import annotations

import asyncio
from functools import partial

from fastapi import Request

from backend.attendance.errors import BadRequest, Forbidden
from backend.attendance.services import PortalServices
from backend.identity_access.domain import ROLE_ADMIN


def services(request: Request) -> PortalServices:
    return request.app.state.services


def current_user(request: Request) -> dict:
    user = getattr(request.state, "user", None)
    if not user:
        # The middleware guarantees this for protected routes.
        raise Forbidden("Unauthorized")
    return user


def own_student_id(user: dict) -> str:
    student_id = user.get("studentId")
    if not student_id:
        raise BadRequest("Student ID is required")
    return student_id


def ensure_may_view_student(user: dict, student_id: str | None) -> str:
    """Admins may look up any student; students only themselves."""
    if not student_id:
        raise BadRequest("Student ID is required")
    if user.get("role") != ROLE_ADMIN and user.get("studentId") != student_id:
        raise Forbidden("Students may only view their own assignments")
    return student_id


async def run_blocking(func, *args, **kwargs):
    """Run a blocking call (identity provider, blob storage) off the event loop."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, partial(func, *args, **kwargs))


__all__ = ["services", "current_user", "own_student_id", "ensure_may_view_student", "run_blocking"]
