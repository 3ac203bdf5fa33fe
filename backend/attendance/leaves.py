"""
Leave applications and per-student leave balances.

Applications are stored at `leave:{studentId}:{epochMs}`; the balance at
`leaveBalance:{studentId}`. Approving a leave adds its inclusive day count to
the `taken` counter of its type, once per transition into Approved.
"""
from __future__ import annotations

import logging
from typing import List

from backend.storage import keys
from backend.storage.kv import KeyValueStoreProtocol

from .clock import PortalClock, parse_iso_date
from .errors import BadRequest, Conflict, NotFound
from .users import default_leave_balance

logger = logging.getLogger("portal.attendance")

LEAVE_TYPES = ("CL", "SL", "EL", "LWP")
LEAVE_STATUSES = ("Pending", "Approved", "Rejected")
_BALANCE_RETRIES = 5


def leave_days(from_date: str | None, to_date: str | None) -> int:
    """Inclusive number of days in the leave; 1 when dates are unusable."""
    start = parse_iso_date(from_date)
    end = parse_iso_date(to_date)
    if start is None or end is None or end < start:
        return 1
    return (end - start).days + 1


class LeaveService:
    def __init__(self, store: KeyValueStoreProtocol, clock: PortalClock) -> None:
        self._store = store
        self._clock = clock

    def apply(self, identity: dict, *, leave_type: str, from_date: str, to_date: str, reason: str) -> dict:
        student_id = identity.get("studentId")
        if not student_id:
            raise BadRequest("Student ID is required")
        if leave_type not in LEAVE_TYPES:
            raise BadRequest("Invalid leave type")
        start = parse_iso_date(from_date)
        end = parse_iso_date(to_date)
        if start is None or end is None:
            raise BadRequest("Dates must be YYYY-MM-DD")
        if end < start:
            raise BadRequest("End date is before start date")
        epoch_ms = self._clock.epoch_ms()
        while True:
            leave_id = keys.leave_key(student_id, epoch_ms)
            record = {
                "id": leave_id,
                "studentId": student_id,
                "studentName": identity.get("name"),
                "type": leave_type,
                "fromDate": from_date,
                "toDate": to_date,
                "reason": reason,
                "status": "Pending",
                "appliedOn": self._clock.today(),
            }
            if self._store.add(leave_id, record):
                return record
            epoch_ms += 1

    def for_student(self, student_id: str) -> List[dict]:
        return self._store.get_by_prefix(keys.leave_prefix(student_id))

    def all_leaves(self) -> List[dict]:
        return self._store.get_by_prefix(keys.LEAVE_PREFIX)

    def balance(self, student_id: str) -> dict:
        return self._store.get(keys.leave_balance_key(student_id)) or default_leave_balance()

    def set_status(self, leave_id: str, status: str) -> dict:
        if status not in LEAVE_STATUSES:
            raise BadRequest("Invalid leave status")
        if not leave_id.startswith(keys.LEAVE_PREFIX):
            raise NotFound("Leave not found")
        leave = self._store.get(leave_id)
        if leave is None:
            raise NotFound("Leave not found")
        was_approved = leave.get("status") == "Approved"
        updated = {**leave, "status": status}
        # The status transition is claimed first so a concurrent approval cannot
        # count the same leave twice; a failed balance update reverts it.
        if not self._store.compare_and_set(leave_id, leave, updated):
            raise Conflict("Leave was updated concurrently; try again")
        if status == "Approved" and not was_approved:
            try:
                self._add_taken(
                    leave["studentId"], leave.get("type"), leave_days(leave.get("fromDate"), leave.get("toDate"))
                )
            except Conflict:
                self._store.compare_and_set(leave_id, updated, leave)
                raise
        logger.info("leave status set to %s", status)
        return updated

    def _add_taken(self, student_id: str, leave_type: str | None, days: int) -> None:
        key = keys.leave_balance_key(student_id)
        for _ in range(_BALANCE_RETRIES):
            current = self._store.get(key)
            if current is None:
                fresh = default_leave_balance()
                if leave_type in fresh:
                    fresh[leave_type]["taken"] += days
                if self._store.add(key, fresh):
                    return
                continue
            if leave_type not in current:
                return
            updated = {**current, leave_type: {**current[leave_type], "taken": current[leave_type]["taken"] + days}}
            if self._store.compare_and_set(key, current, updated):
                return
        raise Conflict("Leave balance is being updated; try again")


__all__ = ["LeaveService", "LEAVE_TYPES", "LEAVE_STATUSES", "leave_days"]
