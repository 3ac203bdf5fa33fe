"""
Daily attendance records and the admin dashboard summary.

One record per student per local day at `attendance:{studentId}:{date}`.
Check-in inserts the record only if absent and check-out replaces it only if
it is still the open record that was read, so duplicate taps cannot both
succeed.
"""
from __future__ import annotations

from datetime import date as _date
import logging
from typing import List, Optional

from backend.storage import keys
from backend.storage.kv import KeyValueStoreProtocol

from .clock import PortalClock, calculate_duration, is_off_date, parse_date
from .errors import BadRequest, Conflict, NotFound
from .users import UserService

logger = logging.getLogger("portal.attendance")

OFF_DAY_MESSAGE = "Friday and Saturday are OFFDAY. No attendance required."
STATUS_PRESENT = "Present"
STATUS_ABSENT = "Absent"
STATUS_OFFDAY = "OFFDAY"

# Fields an admin may overwrite on an existing record.
_EDITABLE_FIELDS = ("name", "checkIn", "checkOut", "duration", "status")


def _sort_newest_first(records: List[dict]) -> List[dict]:
    return sorted(records, key=lambda r: parse_date(r.get("date")) or _date.min, reverse=True)


def _with_display_status(record: dict) -> dict:
    if is_off_date(record.get("date")):
        return {**record, "status": STATUS_OFFDAY}
    status = record.get("status") or (STATUS_PRESENT if record.get("checkIn") else STATUS_ABSENT)
    return {**record, "status": status}


def _student_id_of(identity: dict) -> str:
    student_id = identity.get("studentId")
    if not student_id:
        raise BadRequest("Student ID is required")
    return student_id


def _duration(check_in: str, check_out: str) -> str:
    try:
        return calculate_duration(check_in, check_out)
    except ValueError as exc:
        raise BadRequest("Times must look like 09:30 AM") from exc


class AttendanceService:
    def __init__(self, store: KeyValueStoreProtocol, clock: PortalClock, users: UserService) -> None:
        self._store = store
        self._clock = clock
        self._users = users

    def check_in(self, identity: dict) -> dict:
        student_id = _student_id_of(identity)
        if self._clock.is_off_day():
            raise Conflict(OFF_DAY_MESSAGE)
        today = self._clock.today()
        key = keys.attendance_key(student_id, today)
        record = {
            "id": key,
            "studentId": student_id,
            "name": identity.get("name"),
            "date": today,
            "checkIn": self._clock.time_of_day(),
            "checkOut": None,
            "duration": None,
            "status": STATUS_PRESENT,
        }
        if not self._store.add(key, record):
            raise Conflict("Already checked in today")
        return record

    def check_out(self, identity: dict) -> dict:
        student_id = _student_id_of(identity)
        if self._clock.is_off_day():
            raise Conflict(OFF_DAY_MESSAGE)
        key = keys.attendance_key(student_id, self._clock.today())
        existing = self._store.get(key)
        if existing is None:
            raise Conflict("No check-in found for today")
        if existing.get("checkOut"):
            raise Conflict("Already checked out today")
        check_out = self._clock.time_of_day()
        updated = {
            **existing,
            "checkOut": check_out,
            "duration": _duration(existing.get("checkIn") or check_out, check_out),
        }
        if not self._store.compare_and_set(key, existing, updated):
            raise Conflict("Already checked out today")
        return updated

    def history_for(self, student_id: str) -> List[dict]:
        records = self._store.get_by_prefix(keys.attendance_prefix(student_id))
        return _sort_newest_first([_with_display_status(r) for r in records])

    def today_for(self, student_id: str) -> Optional[dict]:
        return self._store.get(keys.attendance_key(student_id, self._clock.today()))

    def all_records(self) -> List[dict]:
        return _sort_newest_first(self._store.get_by_prefix(keys.ATTENDANCE_PREFIX))

    def admin_add(
        self,
        *,
        student_id: str,
        date: str,
        status: str,
        name: str | None = None,
        check_in: str | None = None,
        check_out: str | None = None,
    ) -> dict:
        if parse_date(date) is None:
            raise BadRequest("Invalid date")
        if name is None:
            student = self._users.find_student(student_id)
            name = student.get("name") if student else "Unknown"
        key = keys.attendance_key(student_id, date)
        record = {
            "id": key,
            "studentId": student_id,
            "name": name,
            "date": date,
            "checkIn": check_in,
            "checkOut": check_out,
            "duration": _duration(check_in, check_out) if check_in and check_out else None,
            "status": status,
        }
        self._store.set(key, record)
        logger.info("admin added attendance record")
        return record

    def admin_update(
        self,
        *,
        student_id: str,
        date: str,
        status: str | None = None,
        updates: dict | None = None,
    ) -> dict:
        """Apply `updates` (or just `status`) to a day's record.

        A missing record is created as Absent first when a status is given.
        """
        key = keys.attendance_key(student_id, date)
        existing = self._store.get(key)
        if existing is None and status:
            student = self._users.find_student(student_id)
            existing = {
                "id": key,
                "studentId": student_id,
                "name": student.get("name") if student else "Unknown",
                "date": date,
                "checkIn": None,
                "checkOut": None,
                "duration": None,
                "status": STATUS_ABSENT,
            }
        if existing is None:
            raise NotFound("Attendance record not found")
        if updates:
            changes = {k: v for k, v in updates.items() if k in _EDITABLE_FIELDS}
            updated = {**existing, **changes}
            if ("checkIn" in changes or "checkOut" in changes) and "duration" not in changes:
                if updated.get("checkIn") and updated.get("checkOut"):
                    updated["duration"] = _duration(updated["checkIn"], updated["checkOut"])
        else:
            updated = {**existing, "status": status}
        self._store.set(key, updated)
        logger.info("admin updated attendance record")
        return updated

    def admin_delete(self, *, student_id: str, date: str) -> None:
        self._store.delete(keys.attendance_key(student_id, date))
        logger.info("admin deleted attendance record")

    def dashboard_stats(self) -> dict:
        students = self._users.list_students()
        today = self._clock.today()
        present = sum(
            1
            for r in self._store.get_by_prefix(keys.ATTENDANCE_PREFIX)
            if r.get("date") == today and r.get("status") == STATUS_PRESENT
        )
        pending_leaves = sum(
            1 for leave in self._store.get_by_prefix(keys.LEAVE_PREFIX) if leave.get("status") == "Pending"
        )
        total = len(students)
        return {
            "totalStudents": total,
            "presentToday": present,
            "absentToday": max(0, total - present),
            "attendancePercentage": round(present * 100 / total) if total else 0,
            "pendingLeaves": pending_leaves,
        }


__all__ = ["AttendanceService", "OFF_DAY_MESSAGE", "STATUS_PRESENT", "STATUS_ABSENT", "STATUS_OFFDAY"]
