"""
Pytest configuration for backend tests.

Why: Force AnyIO to use the asyncio backend to avoid sandbox restrictions
that can affect the Trio backend (e.g., socketpair permission errors), and
keep env-driven toggles from leaking between tests.
"""
import os
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Ensure `backend.*` and the test helpers in tests/utils are importable
REPO_ROOT = Path(__file__).resolve().parents[2]
TESTS_DIR = REPO_ROOT / "backend" / "tests"
for p in (str(REPO_ROOT), str(TESTS_DIR)):
    if p not in sys.path:
        sys.path.insert(0, p)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _clear_portal_env(monkeypatch: pytest.MonkeyPatch):
    """Start every test from dev defaults.

    Why:
        Config guard, API prefix and admin-signup tests flip environment
        variables; a developer shell with a `.env` exported must not change
        outcomes either.
    """
    for var in (
        "PORTAL_ENV",
        "PORTAL_API_PREFIX",
        "PORTAL_ALLOW_ADMIN_SIGNUP",
        "PORTAL_API_BASE_URL",
        "PORTAL_HTTP_TIMEOUT",
        "PORTAL_STATE_FILE",
        "KV_BACKEND",
        "KV_TABLE",
        "DATABASE_URL",
        "SUPABASE_URL",
        "SUPABASE_ANON_KEY",
        "SUPABASE_SERVICE_ROLE_KEY",
        "AUTO_CREATE_STORAGE_BUCKETS",
        "PROFILE_IMAGES_BUCKET",
        "PROFILE_IMAGE_MAX_BYTES",
    ):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("PORTAL_TIMEZONE", "Asia/Dhaka")
    yield


# 2024-01-15 is a Monday; 03:30 UTC is 09:30 in Dhaka.
MONDAY_0930_DHAKA = datetime(2024, 1, 15, 3, 30, tzinfo=timezone.utc)


@pytest.fixture
def now_box():
    """Mutable "current time" shared by the fixed clock."""
    return {"now": MONDAY_0930_DHAKA}


@pytest.fixture
def clock(now_box):
    from backend.attendance.clock import PortalClock

    return PortalClock("Asia/Dhaka", now=lambda: now_box["now"])


@pytest.fixture
def portal(clock):
    """A fully wired app over an in-memory store and fake collaborators.

    Provides one student (S-1, semester "1") and one admin, each with a
    valid bearer token.
    """
    from types import SimpleNamespace

    from backend.storage.kv import InMemoryKeyValueStore
    from backend.web.main import create_app
    from utils.fakes import FakeBlobs, FakeProvider

    provider = FakeProvider()
    blobs = FakeBlobs()
    app = create_app(store=InMemoryKeyValueStore(), provider=provider, clock=clock, blobs=blobs)
    services = app.state.services
    student = services.users.register(
        user_id="u-student", email="stu@example.com", name="Stu Dent", role="student", student_id="S-1", semester="1"
    )
    admin = services.users.register(user_id="u-admin", email="admin@example.com", name="Ada Admin", role="admin")
    return SimpleNamespace(
        app=app,
        provider=provider,
        blobs=blobs,
        services=services,
        student=student,
        admin=admin,
        student_headers={"Authorization": f"Bearer {provider.issue('u-student')}"},
        admin_headers={"Authorization": f"Bearer {provider.issue('u-admin')}"},
    )
