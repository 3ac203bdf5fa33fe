"""
Key builders for the portal key-value store and profile-image objects.

Why:
    Prefix scans are the only query the store offers, so key shapes are the
    schema. Keeping them in one module prevents drift between the services
    that write a record and the ones that scan for it.

Conventions:
    - user:{id}
    - attendance:{studentId}:{date}
    - leave:{studentId}:{epochMs}, leaveBalance:{studentId}
    - notice:{epochMs}, complaint:{studentId}:{epochMs}
    - teacher:{epochMs}, manager-record:{epochMs}, semester:{code}
    - student-teacher:{studentId}, manager:{studentId} (assignment records)
    - studentId:{studentId} (owner of a studentId, claimed once)
    - profile images: {userId}-{epochMs}{ext}

Security:
    - Object-key segments are sanitized to [A-Za-z0-9._-].
"""
from __future__ import annotations

import os
import re
import unicodedata

USER_PREFIX = "user:"
ATTENDANCE_PREFIX = "attendance:"
LEAVE_PREFIX = "leave:"
NOTICE_PREFIX = "notice:"
COMPLAINT_PREFIX = "complaint:"
TEACHER_PREFIX = "teacher:"
MANAGER_RECORD_PREFIX = "manager-record:"
SEMESTER_PREFIX = "semester:"

_SEGMENT_RE = re.compile(r"[^A-Za-z0-9._-]+")


def _sanitize_segment(value: str, *, fallback: str = "x") -> str:
    value = value or ""
    normalized = unicodedata.normalize("NFKD", value)
    ascii_value = normalized.encode("ascii", "ignore").decode("ascii")
    sanitized = _SEGMENT_RE.sub("-", ascii_value).strip("-_.")
    return sanitized or fallback


def _sanitize_ext_from_filename(filename: str | None, default_ext: str = "") -> str:
    if not filename:
        ext = default_ext
    else:
        _, ext = os.path.splitext(os.path.basename(filename))
    ext = (ext or default_ext or "").lower()
    ext = "".join(ch for ch in ext if ch.isalnum() or ch == ".")
    if ext and not ext.startswith("."):
        ext = f".{ext}"
    return ext


def user_key(user_id: str) -> str:
    return f"{USER_PREFIX}{user_id}"


def attendance_prefix(student_id: str) -> str:
    return f"{ATTENDANCE_PREFIX}{student_id}:"


def attendance_key(student_id: str, date: str) -> str:
    return f"{attendance_prefix(student_id)}{date}"


def leave_prefix(student_id: str) -> str:
    return f"{LEAVE_PREFIX}{student_id}:"


def leave_key(student_id: str, epoch_ms: int) -> str:
    return f"{leave_prefix(student_id)}{epoch_ms}"


def leave_balance_key(student_id: str) -> str:
    return f"leaveBalance:{student_id}"


def notice_key(epoch_ms: int) -> str:
    return f"{NOTICE_PREFIX}{epoch_ms}"


def complaint_prefix(student_id: str) -> str:
    return f"{COMPLAINT_PREFIX}{student_id}:"


def complaint_key(student_id: str, epoch_ms: int) -> str:
    return f"{complaint_prefix(student_id)}{epoch_ms}"


def teacher_key(epoch_ms: int) -> str:
    return f"{TEACHER_PREFIX}{epoch_ms}"


def manager_record_key(epoch_ms: int) -> str:
    return f"{MANAGER_RECORD_PREFIX}{epoch_ms}"


def semester_key(code: str) -> str:
    return f"{SEMESTER_PREFIX}{code}"


def teacher_assignment_key(student_id: str) -> str:
    return f"student-teacher:{student_id}"


def manager_assignment_key(student_id: str) -> str:
    return f"manager:{student_id}"


def student_index_key(student_id: str) -> str:
    return f"studentId:{student_id}"


def make_profile_image_key(*, user_id: str, filename: str, epoch_ms: int) -> str:
    """Build an object key for a profile image.

    Returns: {user}-{epoch_ms}.{ext}
    """
    u = _sanitize_segment(user_id, fallback="user")
    ext = _sanitize_ext_from_filename(filename)
    return f"{u}-{epoch_ms}{ext}"


__all__ = [
    "USER_PREFIX",
    "ATTENDANCE_PREFIX",
    "LEAVE_PREFIX",
    "NOTICE_PREFIX",
    "COMPLAINT_PREFIX",
    "TEACHER_PREFIX",
    "MANAGER_RECORD_PREFIX",
    "SEMESTER_PREFIX",
    "user_key",
    "attendance_prefix",
    "attendance_key",
    "leave_prefix",
    "leave_key",
    "leave_balance_key",
    "notice_key",
    "complaint_prefix",
    "complaint_key",
    "teacher_key",
    "manager_record_key",
    "semester_key",
    "teacher_assignment_key",
    "manager_assignment_key",
    "make_profile_image_key",
]
