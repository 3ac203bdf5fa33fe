"""
Routes for signed-in students, scoped to the caller's own records.
"""
from __future__ import annotations

from datetime import timedelta

import httpx
import pytest
from httpx import ASGITransport

pytestmark = pytest.mark.anyio("asyncio")


def _client(app):
    return httpx.AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


@pytest.mark.anyio
async def test_check_in_then_out(portal, now_box):
    async with _client(portal.app) as client:
        r_in = await client.post("/api/check-in", headers=portal.student_headers)
        dup = await client.post("/api/check-in", headers=portal.student_headers)
        now_box["now"] = now_box["now"] + timedelta(hours=8)
        r_out = await client.post("/api/check-out", headers=portal.student_headers)
        history = await client.get("/api/my-attendance", headers=portal.student_headers)
    assert r_in.status_code == 200
    assert r_in.json()["record"]["checkIn"] == "09:30 AM"
    assert dup.status_code == 400
    assert dup.json() == {"error": "Already checked in today", "code": "conflict"}
    assert r_out.json()["record"]["duration"] == "8h 0m"
    assert [r["date"] for r in history.json()["attendance"]] == ["15 Jan 2024"]


@pytest.mark.anyio
async def test_check_out_without_check_in_is_400(portal):
    async with _client(portal.app) as client:
        r = await client.post("/api/check-out", headers=portal.student_headers)
    assert r.status_code == 400
    assert r.json() == {"error": "No check-in found for today", "code": "conflict"}


@pytest.mark.anyio
async def test_leave_flow_and_balance(portal):
    async with _client(portal.app) as client:
        applied = await client.post(
            "/api/apply-leave",
            headers=portal.student_headers,
            json={"type": "SL", "startDate": "2024-02-01", "endDate": "2024-02-02", "reason": "flu"},
        )
        leave_id = applied.json()["leave"]["id"]
        approved = await client.post(
            "/api/admin-approve-leave", headers=portal.admin_headers, json={"leaveId": leave_id, "status": "Approved"}
        )
        mine = await client.get("/api/my-leaves", headers=portal.student_headers)
        balance = await client.get("/api/leave-balance", headers=portal.student_headers)
    assert applied.status_code == 200
    assert approved.json()["leave"]["status"] == "Approved"
    assert mine.json()["leaves"][0]["status"] == "Approved"
    assert balance.json()["balance"]["SL"] == {"taken": 2, "total": 6}


@pytest.mark.anyio
async def test_my_teachers_and_manager(portal):
    staff = portal.services.staff
    t_same = staff.add_teacher(name="Tess", subject="Maths", semester="1")
    staff.add_teacher(name="Other", subject="Art", semester="2")
    async with _client(portal.app) as client:
        teachers = await client.get("/api/my-teachers", headers=portal.student_headers)
        manager = await client.get("/api/my-manager", headers=portal.student_headers)
    assert [t["id"] for t in teachers.json()["teachers"]] == [t_same["id"]]
    assert manager.json()["manager"] == {"adminName": "Administrator"}


@pytest.mark.anyio
async def test_relationship_lookup_is_limited_to_own_student_id(portal):
    teacher = portal.services.staff.add_teacher(name="Tess", subject="Maths", semester="1")
    portal.services.assignments.assign_teacher("S-1", teacher["id"])
    async with _client(portal.app) as client:
        own = await client.get("/api/get-student-teacher", params={"studentId": "S-1"}, headers=portal.student_headers)
        other = await client.get("/api/get-student-teacher", params={"studentId": "S-2"}, headers=portal.student_headers)
        missing = await client.get("/api/get-student-manager", headers=portal.student_headers)
        as_admin = await client.get("/api/get-student-manager", params={"studentId": "S-1"}, headers=portal.admin_headers)
    assert own.status_code == 200
    assert own.json()["teacherId"] == teacher["id"]
    assert other.status_code == 403
    assert missing.status_code == 400
    assert as_admin.status_code == 200
    assert as_admin.json()["managerId"] is None


@pytest.mark.anyio
async def test_notices_and_reactions(portal):
    notice = portal.services.notices.post(posted_by="Ada", title="Lab", content="Room 4", semester="1")
    portal.services.notices.post(posted_by="Ada", title="Other", content="...", semester="2")
    async with _client(portal.app) as client:
        notices = await client.get("/api/my-notices", headers=portal.student_headers)
        react = await client.post(
            "/api/react-to-notice", headers=portal.student_headers, json={"noticeId": notice["id"], "reaction": "like"}
        )
        missing = await client.post(
            "/api/react-to-notice", headers=portal.student_headers, json={"noticeId": "notice:1", "reaction": "like"}
        )
    assert [n["title"] for n in notices.json()["notices"]] == ["Lab"]
    assert react.json()["notice"]["reactions"] == {"u-student": "like"}
    assert missing.status_code == 404


@pytest.mark.anyio
async def test_complaints(portal):
    async with _client(portal.app) as client:
        submitted = await client.post(
            "/api/submit-complaint", headers=portal.student_headers, json={"subject": "Wifi", "description": "Down"}
        )
        mine = await client.get("/api/my-complaints", headers=portal.student_headers)
    assert submitted.json()["complaint"]["status"] == "Pending"
    assert len(mine.json()["complaints"]) == 1


@pytest.mark.anyio
async def test_update_profile(portal):
    async with _client(portal.app) as client:
        r = await client.post(
            "/api/update-profile", headers=portal.student_headers, json={"name": "Stu", "studentId": "S-X"}
        )
    assert r.json()["user"]["name"] == "Stu"
    assert r.json()["user"]["studentId"] == "S-1"


def _legacy_student(portal, user_id="u-legacy"):
    """A student identity stored before studentIds were required."""
    portal.services.store.set(
        f"user:{user_id}", {"id": user_id, "email": "old@example.com", "name": "Old", "role": "student", "studentId": None}
    )
    return {"Authorization": f"Bearer {portal.provider.issue(user_id)}"}


@pytest.mark.anyio
async def test_update_profile_cannot_take_another_students_id(portal):
    headers = _legacy_student(portal)
    async with _client(portal.app) as client:
        await client.post("/api/check-in", headers=portal.student_headers)
        taken = await client.post("/api/update-profile", headers=headers, json={"studentId": "S-1"})
        history = await client.get("/api/my-attendance", headers=headers)
        unsafe = await client.post("/api/update-profile", headers=headers, json={"studentId": "S-1:x"})
        claimed = await client.post("/api/update-profile", headers=headers, json={"studentId": "S-5"})
    assert taken.status_code == 400
    assert taken.json() == {"error": "Student ID is already registered"}
    assert history.status_code == 400
    assert unsafe.status_code == 400
    assert unsafe.json()["error"].startswith("Invalid request: studentId")
    assert claimed.json()["user"]["studentId"] == "S-5"


@pytest.mark.anyio
async def test_claimed_student_id_cannot_be_claimed_again(portal):
    first = _legacy_student(portal, "u-a")
    second = _legacy_student(portal, "u-b")
    async with _client(portal.app) as client:
        ok = await client.post("/api/update-profile", headers=first, json={"studentId": "S-5"})
        dup = await client.post("/api/update-profile", headers=second, json={"studentId": "S-5"})
    assert ok.status_code == 200
    assert dup.status_code == 400
    assert portal.services.users.find("u-b")["studentId"] is None


@pytest.mark.anyio
async def test_upload_profile_image(portal):
    async with _client(portal.app) as client:
        r = await client.post(
            "/api/upload-profile-image",
            headers=portal.student_headers,
            files={"file": ("me.PNG", b"\x89PNG....", "image/png")},
        )
    assert r.status_code == 200
    url = r.json()["imageUrl"]
    assert url.startswith("https://blobs.test/profile-images/u-student-")
    assert url.endswith(".png?ttl=31536000")
    assert portal.services.users.get("u-student")["profileImage"] == url


@pytest.mark.anyio
@pytest.mark.parametrize(
    "files,message",
    [
        (None, "No file provided"),
        ({"file": ("notes.txt", b"hello", "text/plain")}, "File must be an image"),
    ],
)
async def test_upload_profile_image_validation(portal, files, message):
    async with _client(portal.app) as client:
        if files is None:
            r = await client.post("/api/upload-profile-image", headers=portal.student_headers, data={"x": "1"})
        else:
            r = await client.post("/api/upload-profile-image", headers=portal.student_headers, files=files)
    assert r.status_code == 400
    assert r.json() == {"error": message}


@pytest.mark.anyio
async def test_upload_profile_image_size_limit(portal, monkeypatch):
    monkeypatch.setenv("PROFILE_IMAGE_MAX_BYTES", "4")
    async with _client(portal.app) as client:
        r = await client.post(
            "/api/upload-profile-image",
            headers=portal.student_headers,
            files={"file": ("me.png", b"12345", "image/png")},
        )
    assert r.status_code == 400
    assert r.json() == {"error": "File is too large"}


@pytest.mark.anyio
async def test_upload_profile_image_storage_failure(portal):
    portal.blobs.fail = True
    async with _client(portal.app) as client:
        r = await client.post(
            "/api/upload-profile-image",
            headers=portal.student_headers,
            files={"file": ("me.png", b"img", "image/png")},
        )
    assert r.status_code == 500
    assert r.json() == {"error": "Failed to upload image"}
    assert "profileImage" not in portal.services.users.get("u-student")
