"""
Portal identities stored at `user:{id}`.

The identity provider owns credentials; this service owns the profile the
portal authorizes against (role, studentId, semester, blocked flag). Student
lookups by studentId scan all identities, which is acceptable at the size of
a single institute.
"""
from __future__ import annotations

import logging
import re
import uuid
from typing import List, Optional

from backend.identity_access.domain import ROLE_STUDENT, normalize_role
from backend.storage import keys
from backend.storage.kv import KeyValueStoreProtocol

from .clock import PortalClock
from .errors import BadRequest, NotFound

logger = logging.getLogger("portal.attendance")

DEFAULT_MANAGER_NAME = "Administrator"
STUDENT_ID_TAKEN = "Student ID is already registered"

# studentId is embedded in record keys; ':' would let one id prefix-match another
STUDENT_ID_RE = re.compile(r"^[A-Za-z0-9_-]+$")


def default_leave_balance() -> dict:
    # total -1 means unlimited
    return {
        "CL": {"taken": 0, "total": 3},
        "SL": {"taken": 0, "total": 6},
        "EL": {"taken": 0, "total": 0},
        "LWP": {"taken": 0, "total": -1},
    }


class UserService:
    def __init__(self, store: KeyValueStoreProtocol, clock: PortalClock) -> None:
        self._store = store
        self._clock = clock

    def register(
        self,
        *,
        user_id: str,
        email: str,
        name: str,
        role: str | None,
        student_id: str | None = None,
        semester: str | None = None,
        reservation: str | None = None,
    ) -> dict:
        """Persist a new identity; students also get a leave balance and the
        default manager record."""
        role = normalize_role(role)
        if role == ROLE_STUDENT:
            if not student_id:
                raise BadRequest("Student ID is required")
            self._bind_student_id(student_id, user_id, reservation or self.reserve_student_id(student_id))
        identity = {
            "id": user_id,
            "email": email,
            "name": name,
            "role": role,
            "studentId": student_id if role == ROLE_STUDENT else None,
            "semester": semester,
        }
        self._store.set(keys.user_key(user_id), identity)
        if role == ROLE_STUDENT:
            self._store.set(keys.leave_balance_key(student_id), default_leave_balance())
            self._store.set(
                keys.manager_assignment_key(student_id),
                {"adminName": DEFAULT_MANAGER_NAME, "managerId": None, "assignedAt": self._clock.today()},
            )
        logger.info("registered identity role=%s", role)
        return identity

    # --- studentId ownership ----------------------------------------------------

    def reserve_student_id(self, student_id: str) -> str:
        """Claim `student_id` before an account exists; returns the reservation token.

        The claim is an insert-if-absent on `studentId:{id}`, so of two racing
        signups for the same id only one gets a token.
        """
        if not STUDENT_ID_RE.fullmatch(student_id or ""):
            raise BadRequest("Invalid Student ID")
        if self.find_student(student_id) is not None:
            raise BadRequest(STUDENT_ID_TAKEN)
        token = uuid.uuid4().hex
        if not self._store.add(keys.student_index_key(student_id), {"reservation": token}):
            raise BadRequest(STUDENT_ID_TAKEN)
        return token

    def release_student_id(self, student_id: str, reservation: str) -> None:
        key = keys.student_index_key(student_id)
        if self._store.get(key) == {"reservation": reservation}:
            self._store.delete(key)

    def _bind_student_id(self, student_id: str, user_id: str, reservation: str) -> None:
        key = keys.student_index_key(student_id)
        if not self._store.compare_and_set(key, {"reservation": reservation}, {"userId": user_id}):
            raise BadRequest(STUDENT_ID_TAKEN)

    def find(self, user_id: str) -> Optional[dict]:
        return self._store.get(keys.user_key(user_id))

    def get(self, user_id: str) -> dict:
        identity = self.find(user_id)
        if identity is None:
            raise NotFound("User data not found")
        return identity

    def update_profile(
        self,
        user_id: str,
        *,
        name: str | None = None,
        email: str | None = None,
        student_id: str | None = None,
        semester: str | None = None,
    ) -> dict:
        identity = self.get(user_id)
        if name:
            identity["name"] = name
        if email:
            identity["email"] = email
        # studentId keys every per-student record; only set it when missing
        if student_id and not identity.get("studentId") and identity.get("role") == ROLE_STUDENT:
            self._bind_student_id(student_id, user_id, self.reserve_student_id(student_id))
            identity["studentId"] = student_id
        if semester:
            identity["semester"] = semester
        self._store.set(keys.user_key(user_id), identity)
        return identity

    def set_profile_image(self, user_id: str, url: str) -> dict:
        identity = self.get(user_id)
        identity["profileImage"] = url
        self._store.set(keys.user_key(user_id), identity)
        return identity

    def list_all(self) -> List[dict]:
        return self._store.get_by_prefix(keys.USER_PREFIX)

    def list_students(self) -> List[dict]:
        return [u for u in self.list_all() if u.get("role") == ROLE_STUDENT]

    def find_student(self, student_id: str) -> Optional[dict]:
        for identity in self.list_students():
            if identity.get("studentId") == student_id:
                return identity
        return None

    def get_student(self, student_id: str) -> dict:
        student = self.find_student(student_id)
        if student is None:
            raise NotFound("Student not found")
        return student

    def set_blocked(self, student_id: str, blocked: bool) -> dict:
        student = self.get_student(student_id)
        student["blocked"] = bool(blocked)
        self._store.set(keys.user_key(student["id"]), student)
        logger.info("student blocked=%s", bool(blocked))
        return student

    def delete_student(self, student_id: str) -> None:
        """Remove the identity and every per-student record."""
        student = self.get_student(student_id)
        self._store.delete(keys.user_key(student["id"]))
        for record in self._store.get_by_prefix(keys.attendance_prefix(student_id)):
            self._store.delete(keys.attendance_key(student_id, record.get("date", "")))
        for leave in self._store.get_by_prefix(keys.leave_prefix(student_id)):
            if leave.get("id"):
                self._store.delete(leave["id"])
        for complaint in self._store.get_by_prefix(keys.complaint_prefix(student_id)):
            if complaint.get("id"):
                self._store.delete(complaint["id"])
        self._store.delete(keys.leave_balance_key(student_id))
        self._store.delete(keys.manager_assignment_key(student_id))
        self._store.delete(keys.teacher_assignment_key(student_id))
        self._store.delete(keys.student_index_key(student_id))
        logger.info("deleted student and related records")


__all__ = ["UserService", "default_leave_balance", "DEFAULT_MANAGER_NAME", "STUDENT_ID_RE", "STUDENT_ID_TAKEN"]
