"""
Admin routes: cross-student reads and administrative writes.

Permissions:
    Every route on `admin_router` requires the stored role `admin`. The auth
    middleware derives its admin path set from this router, so the role check
    happens before any payload is parsed; handlers do not repeat it.
"""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request
from pydantic import BaseModel, ConfigDict, Field
from pydantic.functional_validators import field_validator

from backend.attendance.errors import BadRequest
from backend.web.auth_utils import current_user, services

admin_router = APIRouter(tags=["Admin"])


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class StudentRef(_Payload):
    student_id: str = Field(..., alias="studentId", min_length=1, max_length=64)


class AssignTeacherPayload(StudentRef):
    teacher_id: str = Field(..., alias="teacherId", min_length=1)


class AssignManagerPayload(StudentRef):
    manager_id: str = Field(..., alias="managerId", min_length=1)


class TeacherCreate(_Payload):
    name: str = Field(..., min_length=1, max_length=200)
    subject: str = Field(..., min_length=1, max_length=200)
    semester: str = Field(..., min_length=1, max_length=64)
    phone: str = Field(default="", max_length=64)
    email: str = Field(default="", max_length=320)

    @field_validator("name", "subject", "semester")
    @classmethod
    def _strip(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class ManagerCreate(_Payload):
    name: str = Field(..., min_length=1, max_length=200)
    designation: str = Field(default="", max_length=200)
    phone: str = Field(default="", max_length=64)
    email: str = Field(default="", max_length=320)

    @field_validator("name")
    @classmethod
    def _strip(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class TeacherUpdate(_Payload):
    teacher_id: str = Field(..., alias="teacherId", min_length=1)
    updates: dict[str, Any]


class TeacherRef(_Payload):
    teacher_id: str = Field(..., alias="teacherId", min_length=1)


class ManagerRef(_Payload):
    manager_id: str = Field(..., alias="managerId", min_length=1)


class NoticeCreate(_Payload):
    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1, max_length=10000)
    target_audience: str = Field(default="All", alias="targetAudience", max_length=64)
    semester: str | None = Field(default=None, max_length=64)
    attachments: list[Any] = Field(default_factory=list)


class NoticeUpdate(_Payload):
    notice_id: str = Field(..., alias="noticeId", min_length=1)
    updates: dict[str, Any]


class NoticeRef(_Payload):
    notice_id: str = Field(..., alias="noticeId", min_length=1)


class LeaveDecision(_Payload):
    leave_id: str = Field(..., alias="leaveId", min_length=1)
    status: str = Field(..., min_length=1)


class ComplaintUpdate(_Payload):
    complaint_id: str = Field(..., alias="complaintId", min_length=1)
    status: str = Field(..., min_length=1)
    response: str | None = Field(default=None, max_length=5000)


class AttendanceCreate(StudentRef):
    date: str = Field(..., min_length=1)
    status: str = Field(..., min_length=1)
    name: str | None = Field(default=None, max_length=200)
    check_in: str | None = Field(default=None, alias="checkIn")
    check_out: str | None = Field(default=None, alias="checkOut")


class AttendanceUpdate(StudentRef):
    date: str = Field(..., min_length=1)
    status: str | None = Field(default=None)
    updates: dict[str, Any] | None = Field(default=None)


class AttendanceRef(StudentRef):
    date: str = Field(..., min_length=1)


class BlockPayload(StudentRef):
    blocked: bool


class SemesterCreate(_Payload):
    name: str = Field(..., min_length=1, max_length=200)
    code: str = Field(..., min_length=1, max_length=64, pattern=r"^[A-Za-z0-9_-]+$")


# --- Reads ----------------------------------------------------------------------


@admin_router.get("/dashboard")
async def dashboard(request: Request):
    return {"success": True, "stats": services(request).attendance.dashboard_stats()}


@admin_router.get("/all-students")
async def all_students(request: Request):
    return {"success": True, "students": services(request).users.list_students()}


@admin_router.get("/all-users")
async def all_users(request: Request):
    return {"success": True, "users": services(request).users.list_all()}


@admin_router.get("/all-attendance")
async def all_attendance(request: Request):
    return {"success": True, "records": services(request).attendance.all_records()}


@admin_router.get("/all-leaves")
async def all_leaves(request: Request):
    return {"success": True, "leaves": services(request).leaves.all_leaves()}


@admin_router.get("/all-notices")
async def all_notices(request: Request):
    return {"success": True, "notices": services(request).notices.all_notices()}


@admin_router.get("/all-complaints")
async def all_complaints(request: Request):
    return {"success": True, "complaints": services(request).complaints.all_complaints()}


@admin_router.get("/all-teachers")
async def all_teachers(request: Request):
    return {"success": True, "teachers": services(request).staff.list_teachers()}


@admin_router.get("/all-managers")
async def all_managers(request: Request):
    return {"success": True, "managers": services(request).staff.list_managers()}


@admin_router.get("/get-student-data")
async def get_student_data(request: Request, studentId: str | None = None):
    """Everything an admin sees on a student's detail view."""
    svc = services(request)
    if not studentId:
        raise BadRequest("Student ID is required")
    student = svc.users.get_student(studentId)
    return {
        "success": True,
        "student": student,
        "attendanceHistory": svc.attendance.history_for(studentId),
        "leaveBalance": svc.leaves.balance(studentId),
        "manager": svc.assignments.manager_assignment(studentId) or {},
        "teacher": svc.assignments.teacher_assignment(studentId),
        "leaves": svc.leaves.for_student(studentId),
        "checkIn": svc.attendance.today_for(studentId),
    }


# --- Assignments ----------------------------------------------------------------


@admin_router.post("/assign-teacher")
async def assign_teacher(request: Request, payload: AssignTeacherPayload):
    assignment = services(request).assignments.assign_teacher(payload.student_id, payload.teacher_id)
    return {"success": True, "message": "Teacher assigned successfully", "assignment": assignment}


@admin_router.post("/assign-manager")
async def assign_manager(request: Request, payload: AssignManagerPayload):
    assignment = services(request).assignments.assign_manager(payload.student_id, payload.manager_id)
    return {"success": True, "message": "Manager assigned successfully", "assignment": assignment}


# --- Teachers, managers, semesters ----------------------------------------------


@admin_router.post("/add-teacher")
async def add_teacher(request: Request, payload: TeacherCreate):
    teacher = services(request).staff.add_teacher(
        name=payload.name, subject=payload.subject, semester=payload.semester, phone=payload.phone, email=payload.email
    )
    return {"success": True, "teacher": teacher}


@admin_router.post("/admin-update-teacher")
async def update_teacher(request: Request, payload: TeacherUpdate):
    teacher = services(request).staff.update_teacher(payload.teacher_id, payload.updates)
    return {"success": True, "teacher": teacher}


@admin_router.delete("/admin-delete-teacher")
async def delete_teacher(request: Request, payload: TeacherRef):
    services(request).staff.delete_teacher(payload.teacher_id)
    return {"success": True}


@admin_router.post("/add-manager")
async def add_manager(request: Request, payload: ManagerCreate):
    manager = services(request).staff.add_manager(
        name=payload.name, designation=payload.designation, phone=payload.phone, email=payload.email
    )
    return {"success": True, "manager": manager}


@admin_router.delete("/admin-delete-manager")
async def delete_manager(request: Request, payload: ManagerRef):
    services(request).staff.delete_manager(payload.manager_id)
    return {"success": True, "message": "Manager deleted successfully"}


@admin_router.post("/admin-add-semester")
async def add_semester(request: Request, payload: SemesterCreate):
    semester = services(request).staff.add_semester(name=payload.name.strip(), code=payload.code)
    return {"success": True, "semester": semester}


# --- Notices, leaves, complaints ------------------------------------------------


@admin_router.post("/admin-post-notice")
async def post_notice(request: Request, payload: NoticeCreate):
    notice = services(request).notices.post(
        posted_by=current_user(request).get("name") or "Administrator",
        title=payload.title,
        content=payload.content,
        target_audience=payload.target_audience,
        semester=payload.semester,
        attachments=payload.attachments,
    )
    return {"success": True, "notice": notice}


@admin_router.post("/admin-update-notice")
async def update_notice(request: Request, payload: NoticeUpdate):
    notice = services(request).notices.update(payload.notice_id, payload.updates)
    return {"success": True, "notice": notice}


@admin_router.delete("/admin-delete-notice")
async def delete_notice(request: Request, payload: NoticeRef):
    services(request).notices.delete(payload.notice_id)
    return {"success": True}


@admin_router.post("/admin-approve-leave")
async def decide_leave(request: Request, payload: LeaveDecision):
    leave = services(request).leaves.set_status(payload.leave_id, payload.status)
    return {"success": True, "leave": leave}


@admin_router.post("/admin-update-complaint")
async def update_complaint(request: Request, payload: ComplaintUpdate):
    complaint = services(request).complaints.set_status(
        payload.complaint_id, status=payload.status, response=payload.response
    )
    return {"success": True, "complaint": complaint}


# --- Attendance & students ------------------------------------------------------


@admin_router.post("/admin-add-attendance")
async def add_attendance(request: Request, payload: AttendanceCreate):
    record = services(request).attendance.admin_add(
        student_id=payload.student_id,
        date=payload.date,
        status=payload.status,
        name=payload.name,
        check_in=payload.check_in,
        check_out=payload.check_out,
    )
    return {"success": True, "record": record}


@admin_router.post("/admin-update-attendance")
async def update_attendance(request: Request, payload: AttendanceUpdate):
    record = services(request).attendance.admin_update(
        student_id=payload.student_id, date=payload.date, status=payload.status, updates=payload.updates
    )
    return {"success": True, "record": record}


@admin_router.delete("/admin-delete-attendance")
async def delete_attendance(request: Request, payload: AttendanceRef):
    services(request).attendance.admin_delete(student_id=payload.student_id, date=payload.date)
    return {"success": True}


@admin_router.post("/admin-block-student")
async def block_student(request: Request, payload: BlockPayload):
    student = services(request).users.set_blocked(payload.student_id, payload.blocked)
    return {"success": True, "student": student}


@admin_router.delete("/admin-delete-student")
async def delete_student(request: Request, payload: StudentRef):
    services(request).users.delete_student(payload.student_id)
    return {"success": True}


__all__ = ["admin_router"]
