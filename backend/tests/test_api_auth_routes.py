"""
Public auth routes: signup, login, health.
"""
from __future__ import annotations

import httpx
import pytest
from httpx import ASGITransport

pytestmark = pytest.mark.anyio("asyncio")


def _client(app):
    return httpx.AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


SIGNUP = {
    "email": "New@Example.com",
    "password": "secret1",
    "name": "Nia",
    "studentId": "S-7",
    "role": "student",
    "semester": "2",
}


@pytest.mark.anyio
async def test_student_signup_creates_identity_and_defaults(portal):
    async with _client(portal.app) as client:
        r = await client.post("/api/signup", json=SIGNUP)
    assert r.status_code == 200
    user = r.json()["user"]
    assert user["email"] == "new@example.com"
    assert user["studentId"] == "S-7"
    assert portal.services.leaves.balance("S-7")["CL"]["total"] == 3
    assert portal.services.assignments.manager_assignment("S-7")["adminName"] == "Administrator"


@pytest.mark.anyio
async def test_signup_requires_student_id_for_students(portal):
    async with _client(portal.app) as client:
        r = await client.post("/api/signup", json={**SIGNUP, "studentId": "  "})
    assert r.status_code == 400
    assert r.json() == {"error": "Student ID is required"}
    assert "create_user" not in portal.provider.calls


@pytest.mark.anyio
async def test_signup_rejects_short_password(portal):
    async with _client(portal.app) as client:
        r = await client.post("/api/signup", json={**SIGNUP, "password": "123"})
    assert r.status_code == 400
    assert r.json()["error"].startswith("Invalid request: password")


@pytest.mark.anyio
async def test_duplicate_signup_surfaces_provider_message(portal):
    async with _client(portal.app) as client:
        await client.post("/api/signup", json=SIGNUP)
        r = await client.post("/api/signup", json={**SIGNUP, "studentId": "S-8"})
        retry = await client.post("/api/signup", json={**SIGNUP, "email": "other@example.com", "studentId": "S-8"})
    assert r.status_code == 400
    assert r.json() == {"error": "User already registered"}
    # the rejected signup does not keep S-8 claimed
    assert retry.status_code == 200


@pytest.mark.anyio
async def test_admin_signup_can_be_disabled(portal, monkeypatch):
    monkeypatch.setenv("PORTAL_ALLOW_ADMIN_SIGNUP", "false")
    async with _client(portal.app) as client:
        r = await client.post("/api/signup", json={**SIGNUP, "role": "admin", "studentId": None})
    assert r.status_code == 403


@pytest.mark.anyio
async def test_admin_signup_is_off_by_default_in_prod(portal, monkeypatch):
    monkeypatch.setenv("PORTAL_ENV", "prod")
    async with _client(portal.app) as client:
        r = await client.post("/api/signup", json={**SIGNUP, "role": "admin"})
    assert r.status_code == 403


@pytest.mark.anyio
async def test_login_returns_tokens_and_identity(portal):
    async with _client(portal.app) as client:
        await client.post("/api/signup", json=SIGNUP)
        r = await client.post("/api/login", json={"email": "new@example.com", "password": "secret1"})
        body = r.json()
        me = await client.get("/api/user-data", headers={"Authorization": f"Bearer {body['accessToken']}"})
    assert r.status_code == 200
    assert body["success"] is True
    assert body["refreshToken"]
    assert body["expiresIn"] == 3600
    assert body["user"]["studentId"] == "S-7"
    assert me.status_code == 200


@pytest.mark.anyio
async def test_login_with_wrong_password(portal):
    async with _client(portal.app) as client:
        await client.post("/api/signup", json=SIGNUP)
        r = await client.post("/api/login", json={"email": "new@example.com", "password": "nope"})
    assert r.status_code == 400
    assert r.json() == {"error": "Invalid login credentials"}


@pytest.mark.anyio
async def test_signup_rejects_a_student_id_that_is_taken(portal):
    async with _client(portal.app) as client:
        await client.post("/api/check-in", headers=portal.student_headers)
        r = await client.post("/api/signup", json={**SIGNUP, "studentId": "S-1"})
    assert r.status_code == 400
    assert r.json() == {"error": "Student ID is already registered"}
    assert "create_user" not in portal.provider.calls
    assert [s["id"] for s in portal.services.users.list_students()] == ["u-student"]
    assert portal.services.assignments.manager_assignment("S-1")["managerId"] is None


@pytest.mark.anyio
async def test_same_student_id_in_two_signups_only_one_wins(portal):
    async with _client(portal.app) as client:
        first = await client.post("/api/signup", json=SIGNUP)
        second = await client.post("/api/signup", json={**SIGNUP, "email": "twin@example.com"})
    assert first.status_code == 200
    assert second.status_code == 400
    assert second.json() == {"error": "Student ID is already registered"}


@pytest.mark.parametrize("student_id", ["S-1:x", "S 1", "S/1"])
@pytest.mark.anyio
async def test_signup_rejects_student_ids_unsafe_for_record_keys(portal, student_id):
    async with _client(portal.app) as client:
        r = await client.post("/api/signup", json={**SIGNUP, "studentId": student_id})
    assert r.status_code == 400
    assert r.json()["error"].startswith("Invalid request: studentId")
    assert "create_user" not in portal.provider.calls


@pytest.mark.anyio
async def test_service_level_register_rejects_colon_in_student_id(portal):
    from backend.attendance.errors import BadRequest

    with pytest.raises(BadRequest):
        portal.services.users.register(
            user_id="u-x", email="x@example.com", name="X", role="student", student_id="S-1:x"
        )
    assert portal.services.users.find("u-x") is None
