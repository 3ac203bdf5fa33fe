"""
Assignment resolver: links students to a teacher and a manager.

Records:
    - `student-teacher:{studentId}` -> {studentId, teacherId, teacherName, assignedAt}
    - `manager:{studentId}`         -> {adminName, managerId, assignedAt}

Writes overwrite the previous assignment. Reads fall back so a student is
never shown an empty teacher list or manager while a plausible default
exists:
    - teachers: the assigned teacher if it still exists, else every teacher
      of the student's semester;
    - manager: the name snapshotted at assignment time, else "Administrator".

A manager record with `managerId: null` is the signup default, not an
explicit assignment.
"""
from __future__ import annotations

import logging
from typing import List, Optional

from backend.storage import keys
from backend.storage.kv import KeyValueStoreProtocol

from .clock import PortalClock
from .errors import BadRequest
from .staff import StaffService
from .users import DEFAULT_MANAGER_NAME, UserService

logger = logging.getLogger("portal.attendance")


class AssignmentResolver:
    def __init__(
        self,
        store: KeyValueStoreProtocol,
        clock: PortalClock,
        users: UserService,
        staff: StaffService,
    ) -> None:
        self._store = store
        self._clock = clock
        self._users = users
        self._staff = staff

    def assign_teacher(self, student_id: str, teacher_id: str) -> dict:
        if not student_id or not teacher_id:
            raise BadRequest("Student ID and Teacher ID are required")
        self._users.get_student(student_id)
        teacher = self._staff.get_teacher(teacher_id)
        record = {
            "studentId": student_id,
            "teacherId": teacher_id,
            "teacherName": teacher.get("name"),
            "assignedAt": self._clock.today(),
        }
        self._store.set(keys.teacher_assignment_key(student_id), record)
        logger.info("teacher assigned to student")
        return record

    def assign_manager(self, student_id: str, manager_id: str) -> dict:
        if not student_id or not manager_id:
            raise BadRequest("Student ID and Manager ID are required")
        self._users.get_student(student_id)
        manager = self._staff.get_manager(manager_id)
        record = {
            "adminName": manager.get("name"),
            "managerId": manager_id,
            "assignedAt": self._clock.today(),
        }
        self._store.set(keys.manager_assignment_key(student_id), record)
        logger.info("manager assigned to student")
        return record

    def teacher_assignment(self, student_id: str) -> Optional[dict]:
        return self._store.get(keys.teacher_assignment_key(student_id))

    def manager_assignment(self, student_id: str) -> Optional[dict]:
        return self._store.get(keys.manager_assignment_key(student_id))

    def resolve_teachers_for(self, student_id: str, semester: str | None = None) -> List[dict]:
        assignment = self.teacher_assignment(student_id)
        if assignment and assignment.get("teacherId"):
            teacher = self._staff.find_teacher(assignment["teacherId"])
            if teacher is not None:
                return [teacher]
        if semester is None:
            semester = self._users.get_student(student_id).get("semester")
        return [t for t in self._staff.list_teachers() if t.get("semester") == semester]

    def resolve_manager_for(self, student_id: str) -> dict:
        assignment = self.manager_assignment(student_id)
        if assignment and assignment.get("managerId") and assignment.get("adminName"):
            return {"adminName": assignment["adminName"]}
        return {"adminName": DEFAULT_MANAGER_NAME}


__all__ = ["AssignmentResolver"]
