"""
Teachers, managers and semesters maintained by admins.

Teacher and manager ids are their store keys (`teacher:{ms}`,
`manager-record:{ms}`). Deleting one does not touch assignment records that
point at it; the assignment resolver filters dangling references on read.
"""
from __future__ import annotations

import logging
from typing import List

from backend.storage import keys
from backend.storage.kv import KeyValueStoreProtocol

from .clock import PortalClock
from .errors import NotFound

logger = logging.getLogger("portal.attendance")

_TEACHER_FIELDS = ("name", "subject", "semester", "phone", "email")


class StaffService:
    def __init__(self, store: KeyValueStoreProtocol, clock: PortalClock) -> None:
        self._store = store
        self._clock = clock

    def _insert(self, key_for, record: dict) -> dict:
        epoch_ms = self._clock.epoch_ms()
        while True:
            key = key_for(epoch_ms)
            stored = {"id": key, **record}
            if self._store.add(key, stored):
                return stored
            epoch_ms += 1

    # --- Teachers ---------------------------------------------------------------

    def find_teacher(self, teacher_id: str | None) -> dict | None:
        if not teacher_id or not teacher_id.startswith(keys.TEACHER_PREFIX):
            return None
        return self._store.get(teacher_id)

    def get_teacher(self, teacher_id: str) -> dict:
        teacher = self.find_teacher(teacher_id)
        if teacher is None:
            raise NotFound("Teacher not found")
        return teacher

    def add_teacher(self, *, name: str, subject: str, semester: str, phone: str = "", email: str = "") -> dict:
        teacher = self._insert(
            keys.teacher_key,
            {"name": name, "subject": subject, "semester": semester, "phone": phone, "email": email},
        )
        logger.info("teacher added")
        return teacher

    def list_teachers(self) -> List[dict]:
        return self._store.get_by_prefix(keys.TEACHER_PREFIX)

    def update_teacher(self, teacher_id: str, updates: dict) -> dict:
        teacher = self.get_teacher(teacher_id)
        teacher.update({k: v for k, v in updates.items() if k in _TEACHER_FIELDS})
        self._store.set(teacher_id, teacher)
        logger.info("teacher updated")
        return teacher

    def delete_teacher(self, teacher_id: str) -> None:
        self.get_teacher(teacher_id)
        self._store.delete(teacher_id)
        logger.info("teacher deleted")

    # --- Managers ---------------------------------------------------------------

    def find_manager(self, manager_id: str | None) -> dict | None:
        if not manager_id or not manager_id.startswith(keys.MANAGER_RECORD_PREFIX):
            return None
        return self._store.get(manager_id)

    def get_manager(self, manager_id: str) -> dict:
        manager = self.find_manager(manager_id)
        if manager is None:
            raise NotFound("Manager not found")
        return manager

    def add_manager(self, *, name: str, designation: str = "", phone: str = "", email: str = "") -> dict:
        manager = self._insert(
            keys.manager_record_key,
            {"name": name, "designation": designation, "phone": phone, "email": email},
        )
        logger.info("manager added")
        return manager

    def list_managers(self) -> List[dict]:
        return self._store.get_by_prefix(keys.MANAGER_RECORD_PREFIX)

    def delete_manager(self, manager_id: str) -> None:
        self.get_manager(manager_id)
        self._store.delete(manager_id)
        logger.info("manager deleted")

    # --- Semesters --------------------------------------------------------------

    def add_semester(self, *, name: str, code: str) -> dict:
        key = keys.semester_key(code)
        semester = {"id": key, "name": name, "code": code}
        self._store.set(key, semester)
        logger.info("semester saved")
        return semester

    def list_semesters(self) -> List[dict]:
        return self._store.get_by_prefix(keys.SEMESTER_PREFIX)


__all__ = ["StaffService"]
