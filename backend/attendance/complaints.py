from __future__ import annotations

import logging
from typing import List

from backend.storage import keys
from backend.storage.kv import KeyValueStoreProtocol

from .clock import PortalClock
from .errors import BadRequest, NotFound

logger = logging.getLogger("portal.attendance")

COMPLAINT_STATUSES = ("Pending", "Under Review", "Resolved")


def _submitted_ms(complaint: dict) -> int:
    try:
        return int(str(complaint.get("id", "")).rsplit(":", 1)[-1])
    except ValueError:
        return 0


class ComplaintService:
    def __init__(self, store: KeyValueStoreProtocol, clock: PortalClock) -> None:
        self._store = store
        self._clock = clock

    def submit(self, identity: dict, *, subject: str, description: str, attachments: list | None = None) -> dict:
        student_id = identity.get("studentId")
        if not student_id:
            raise BadRequest("Student ID is required")
        epoch_ms = self._clock.epoch_ms()
        while True:
            complaint_id = keys.complaint_key(student_id, epoch_ms)
            complaint = {
                "id": complaint_id,
                "studentId": student_id,
                "studentName": identity.get("name"),
                "studentEmail": identity.get("email"),
                "subject": subject,
                "description": description,
                "attachments": attachments or [],
                "status": "Pending",
                "submittedOn": self._clock.today(),
                "response": None,
            }
            if self._store.add(complaint_id, complaint):
                return complaint
            epoch_ms += 1

    def for_student(self, student_id: str) -> List[dict]:
        return sorted(self._store.get_by_prefix(keys.complaint_prefix(student_id)), key=_submitted_ms, reverse=True)

    def all_complaints(self) -> List[dict]:
        return sorted(self._store.get_by_prefix(keys.COMPLAINT_PREFIX), key=_submitted_ms, reverse=True)

    def set_status(self, complaint_id: str, *, status: str, response: str | None = None) -> dict:
        if status not in COMPLAINT_STATUSES:
            raise BadRequest("Invalid complaint status")
        complaint = self._store.get(complaint_id) if complaint_id.startswith(keys.COMPLAINT_PREFIX) else None
        if complaint is None:
            raise NotFound("Complaint not found")
        complaint["status"] = status
        if response:
            complaint["response"] = response
        self._store.set(complaint_id, complaint)
        logger.info("complaint status set to %s", status)
        return complaint


__all__ = ["ComplaintService", "COMPLAINT_STATUSES"]
