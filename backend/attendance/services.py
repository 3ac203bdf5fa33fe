from __future__ import annotations

from dataclasses import dataclass

from backend.storage.kv import KeyValueStoreProtocol

from .assignments import AssignmentResolver
from .clock import PortalClock
from .complaints import ComplaintService
from .leaves import LeaveService
from .notices import NoticeService
from .records import AttendanceService
from .staff import StaffService
from .users import UserService


@dataclass
class PortalServices:
    """All domain services bound to one store and one clock."""

    store: KeyValueStoreProtocol
    clock: PortalClock
    users: UserService
    attendance: AttendanceService
    leaves: LeaveService
    notices: NoticeService
    complaints: ComplaintService
    staff: StaffService
    assignments: AssignmentResolver


def build_services(store: KeyValueStoreProtocol, clock: PortalClock | None = None) -> PortalServices:
    clock = clock or PortalClock()
    users = UserService(store, clock)
    staff = StaffService(store, clock)
    return PortalServices(
        store=store,
        clock=clock,
        users=users,
        attendance=AttendanceService(store, clock, users),
        leaves=LeaveService(store, clock),
        notices=NoticeService(store, clock),
        complaints=ComplaintService(store, clock),
        staff=staff,
        assignments=AssignmentResolver(store, clock, users, staff),
    )


__all__ = ["PortalServices", "build_services"]
