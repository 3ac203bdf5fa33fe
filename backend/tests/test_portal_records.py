"""
Identities, notices, complaints and staff records.
"""
from __future__ import annotations

import pytest

from backend.attendance.errors import BadRequest, NotFound
from backend.attendance.services import build_services
from backend.storage.kv import InMemoryKeyValueStore


@pytest.fixture
def svc(clock):
    services = build_services(InMemoryKeyValueStore(), clock)
    services.users.register(
        user_id="u1", email="a@example.com", name="Ann", role="student", student_id="S-1", semester="1"
    )
    return services


# --- identities ---------------------------------------------------------------


def test_student_registration_requires_student_id(svc):
    with pytest.raises(BadRequest):
        svc.users.register(user_id="u2", email="b@example.com", name="Bo", role="student")


def test_unknown_role_registers_as_student(svc):
    identity = svc.users.register(user_id="u2", email="b@e.com", name="Bo", role="superuser", student_id="S-2")
    assert identity["role"] == "student"


def test_admin_has_no_student_records(svc):
    admin = svc.users.register(user_id="u9", email="x@e.com", name="Ad", role="admin", student_id="S-9")
    assert admin["studentId"] is None
    assert svc.store.get("leaveBalance:S-9") is None


def test_profile_update_never_replaces_student_id(svc):
    updated = svc.users.update_profile("u1", name="Annie", student_id="S-99", semester="2")
    assert updated["name"] == "Annie"
    assert updated["studentId"] == "S-1"
    assert updated["semester"] == "2"


def test_delete_student_removes_all_records(svc, clock):
    ann = svc.users.get("u1")
    svc.attendance.check_in(ann)
    svc.leaves.apply(ann, leave_type="CL", from_date="2024-02-01", to_date="2024-02-01", reason="")
    svc.complaints.submit(ann, subject="Wifi", description="Down")
    teacher = svc.staff.add_teacher(name="T", subject="S", semester="1")
    svc.assignments.assign_teacher("S-1", teacher["id"])
    svc.users.delete_student("S-1")
    leftovers = [k for k in svc.store.keys() if "S-1" in k or k == "user:u1"]
    assert leftovers == []
    assert svc.staff.find_teacher(teacher["id"]) is not None


# --- notices ------------------------------------------------------------------


def test_notices_are_filtered_by_semester(svc):
    everyone = svc.notices.post(posted_by="Ad", title="Holiday", content="...", semester=None)
    sem1 = svc.notices.post(posted_by="Ad", title="Lab", content="...", semester="1")
    svc.notices.post(posted_by="Ad", title="Exam", content="...", semester="2")
    broadcast = svc.notices.post(posted_by="Ad", title="Fees", content="...", target_audience="All Students", semester="3")
    ids = [n["id"] for n in svc.notices.for_semester("1")]
    assert ids == [broadcast["id"], sem1["id"], everyone["id"]]


def test_notice_reactions_and_updates(svc):
    notice = svc.notices.post(posted_by="Ad", title="T", content="C")
    reacted = svc.notices.react(notice["id"], user_id="u1", reaction="like")
    assert reacted["reactions"] == {"u1": "like"}
    updated = svc.notices.update(notice["id"], {"title": "T2", "postedBy": "Mallory"})
    assert updated["title"] == "T2"
    assert updated["postedBy"] == "Ad"
    svc.notices.delete(notice["id"])
    with pytest.raises(NotFound):
        svc.notices.react(notice["id"], user_id="u1", reaction="like")


# --- complaints ---------------------------------------------------------------


def test_complaint_lifecycle(svc):
    ann = svc.users.get("u1")
    complaint = svc.complaints.submit(ann, subject="Wifi", description="Down")
    assert complaint["status"] == "Pending"
    assert complaint["studentEmail"] == "a@example.com"
    resolved = svc.complaints.set_status(complaint["id"], status="Resolved", response="Fixed")
    assert resolved["response"] == "Fixed"
    assert svc.complaints.for_student("S-1")[0]["status"] == "Resolved"
    with pytest.raises(BadRequest):
        svc.complaints.set_status(complaint["id"], status="Closed")
    with pytest.raises(NotFound):
        svc.complaints.set_status("notice:1", status="Resolved")


# --- staff --------------------------------------------------------------------


def test_teacher_update_only_touches_known_fields(svc):
    teacher = svc.staff.add_teacher(name="T", subject="Maths", semester="1")
    updated = svc.staff.update_teacher(teacher["id"], {"subject": "Physics", "id": "teacher:evil"})
    assert updated["subject"] == "Physics"
    assert updated["id"] == teacher["id"]


def test_semesters_upsert_by_code(svc):
    svc.staff.add_semester(name="First", code="S1")
    svc.staff.add_semester(name="First (renamed)", code="S1")
    assert svc.staff.list_semesters() == [{"id": "semester:S1", "name": "First (renamed)", "code": "S1"}]
