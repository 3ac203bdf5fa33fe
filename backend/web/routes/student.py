"""
Routes for any authenticated caller, scoped to the caller's own records.

Permissions:
    Bearer token required (enforced by the auth middleware). "my X" routes
    always use the caller's own studentId; the two relationship lookups accept
    a studentId but students may only pass their own.
"""
from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.functional_validators import field_validator
from starlette.datastructures import UploadFile

from backend.attendance.errors import BadRequest
from backend.storage.config import (
    PROFILE_IMAGE_URL_TTL_SECONDS,
    get_profile_image_max_bytes,
    get_profile_images_bucket,
)
from backend.storage.keys import make_profile_image_key
from backend.web.auth_utils import current_user, ensure_may_view_student, own_student_id, run_blocking, services

student_router = APIRouter(tags=["Student"])
logger = logging.getLogger("portal.web")


class ProfileUpdatePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str | None = Field(default=None, max_length=200)
    email: str | None = Field(default=None, max_length=320)
    student_id: str | None = Field(default=None, alias="studentId", max_length=64, pattern=r"^[A-Za-z0-9_-]+$")
    semester: str | None = Field(default=None, max_length=64)

    @field_validator("name", "email", "student_id", "semester", mode="before")
    @classmethod
    def _strip_empty(cls, v):
        if isinstance(v, str):
            v = v.strip()
            return v if v else None
        return v


class LeavePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: str = Field(..., min_length=1, max_length=8)
    from_date: str = Field(..., validation_alias=AliasChoices("fromDate", "startDate"))
    to_date: str = Field(..., validation_alias=AliasChoices("toDate", "endDate"))
    reason: str = Field(default="", max_length=2000)


class ComplaintPayload(BaseModel):
    subject: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1, max_length=5000)
    attachments: list[Any] = Field(default_factory=list)


class ReactionPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    notice_id: str = Field(..., alias="noticeId", min_length=1)
    reaction: str = Field(..., min_length=1, max_length=32)


@student_router.get("/user-data")
async def user_data(request: Request):
    return {"success": True, "user": current_user(request)}


@student_router.post("/update-profile")
async def update_profile(request: Request, payload: ProfileUpdatePayload):
    user = current_user(request)
    updated = services(request).users.update_profile(
        user["id"],
        name=payload.name,
        email=payload.email,
        student_id=payload.student_id,
        semester=payload.semester,
    )
    return {"success": True, "user": updated}


@student_router.post("/check-in")
async def check_in(request: Request):
    record = services(request).attendance.check_in(current_user(request))
    return {"success": True, "record": record}


@student_router.post("/check-out")
async def check_out(request: Request):
    record = services(request).attendance.check_out(current_user(request))
    return {"success": True, "record": record}


@student_router.get("/my-attendance")
async def my_attendance(request: Request):
    student_id = own_student_id(current_user(request))
    return {"success": True, "attendance": services(request).attendance.history_for(student_id)}


@student_router.post("/apply-leave")
async def apply_leave(request: Request, payload: LeavePayload):
    leave = services(request).leaves.apply(
        current_user(request),
        leave_type=payload.type,
        from_date=payload.from_date,
        to_date=payload.to_date,
        reason=payload.reason,
    )
    return {"success": True, "leave": leave}


@student_router.get("/my-leaves")
async def my_leaves(request: Request):
    student_id = own_student_id(current_user(request))
    return {"success": True, "leaves": services(request).leaves.for_student(student_id)}


@student_router.get("/leave-balance")
async def leave_balance(request: Request):
    student_id = own_student_id(current_user(request))
    return {"success": True, "balance": services(request).leaves.balance(student_id)}


@student_router.get("/my-manager")
async def my_manager(request: Request):
    student_id = own_student_id(current_user(request))
    return {"success": True, "manager": services(request).assignments.resolve_manager_for(student_id)}


@student_router.get("/my-teachers")
async def my_teachers(request: Request):
    user = current_user(request)
    teachers = services(request).assignments.resolve_teachers_for(own_student_id(user), semester=user.get("semester"))
    return {"success": True, "teachers": teachers}


@student_router.get("/my-notices")
async def my_notices(request: Request):
    user = current_user(request)
    return {"success": True, "notices": services(request).notices.for_semester(user.get("semester"))}


@student_router.post("/react-to-notice")
async def react_to_notice(request: Request, payload: ReactionPayload):
    user = current_user(request)
    notice = services(request).notices.react(payload.notice_id, user_id=user["id"], reaction=payload.reaction)
    return {"success": True, "notice": notice}


@student_router.post("/submit-complaint")
async def submit_complaint(request: Request, payload: ComplaintPayload):
    complaint = services(request).complaints.submit(
        current_user(request),
        subject=payload.subject,
        description=payload.description,
        attachments=payload.attachments,
    )
    return {"success": True, "complaint": complaint}


@student_router.get("/my-complaints")
async def my_complaints(request: Request):
    student_id = own_student_id(current_user(request))
    return {"success": True, "complaints": services(request).complaints.for_student(student_id)}


@student_router.get("/all-semesters")
async def all_semesters(request: Request):
    return {"success": True, "semesters": services(request).staff.list_semesters()}


@student_router.get("/get-student-teacher")
async def get_student_teacher(request: Request, studentId: str | None = None):
    student_id = ensure_may_view_student(current_user(request), studentId)
    assignment = services(request).assignments.teacher_assignment(student_id)
    return {"success": True, "teacherId": (assignment or {}).get("teacherId"), "teacher": assignment}


@student_router.get("/get-student-manager")
async def get_student_manager(request: Request, studentId: str | None = None):
    student_id = ensure_may_view_student(current_user(request), studentId)
    assignment = services(request).assignments.manager_assignment(student_id)
    return {"success": True, "managerId": (assignment or {}).get("managerId"), "manager": assignment}


@student_router.post("/upload-profile-image")
async def upload_profile_image(request: Request):
    """Store a profile image and save its signed URL on the identity.

    Behavior:
        - 400 when no file is sent, it is not an image, or it is too large.
        - 500 when blob storage rejects the upload.
        - Signed URL is valid for one year.
    """
    user = current_user(request)
    form = await request.form()
    upload = form.get("file")
    if not isinstance(upload, UploadFile):
        raise BadRequest("No file provided")
    content_type = (upload.content_type or "").lower()
    if not content_type.startswith("image/"):
        raise BadRequest("File must be an image")
    body = await upload.read()
    if len(body) > get_profile_image_max_bytes():
        raise BadRequest("File is too large")

    svc = services(request)
    blobs = request.app.state.blobs
    bucket = get_profile_images_bucket()
    key = make_profile_image_key(user_id=user["id"], filename=upload.filename or "", epoch_ms=svc.clock.epoch_ms())
    try:
        await run_blocking(blobs.put_object, bucket=bucket, key=key, body=body, content_type=content_type)
        url = await run_blocking(blobs.signed_url, bucket=bucket, key=key, expires_in=PROFILE_IMAGE_URL_TTL_SECONDS)
    except Exception as exc:
        logger.warning("profile image upload failed: error=%s", exc.__class__.__name__)
        return JSONResponse({"error": "Failed to upload image"}, status_code=500)
    svc.users.set_profile_image(user["id"], url)
    return {"success": True, "imageUrl": url}


__all__ = ["student_router"]
