"""
CLI commands end to end: click -> Session -> in-process API.
"""
from __future__ import annotations

import json

import httpx
import pytest
from click.testing import CliRunner
from httpx import ASGITransport

from backend.client import cli
from backend.client.session import Session
from backend.client.storage import FileClientStorage


@pytest.fixture
def run_cli(portal, monkeypatch, tmp_path):
    state = tmp_path / "state.json"

    def _build(state_file):
        http = httpx.AsyncClient(transport=ASGITransport(app=portal.app))
        return Session(
            FileClientStorage(state_file), api_base_url="http://test/api", auth_base_url="http://auth.test", http=http
        )

    monkeypatch.setattr(cli, "build_session", _build)
    account = portal.provider.create_user(email="cli@example.com", password="secret1", user_metadata={})
    portal.services.users.register(
        user_id=account["id"], email="cli@example.com", name="Cli Student", role="student", student_id="S-7", semester="1"
    )
    runner = CliRunner()

    def _invoke(*args, input=None):
        return runner.invoke(cli.portal, ["--state-file", str(state), *args], obj={}, input=input)

    _invoke.state = state
    return _invoke


def _login(run_cli):
    return run_cli("login", "--email", "cli@example.com", "--password", "secret1")


def test_login_writes_state_file(run_cli):
    result = _login(run_cli)
    assert result.exit_code == 0, result.output
    assert "Logged in as Cli Student (student)" in result.output
    state = json.loads(run_cli.state.read_text())
    assert set(state) == {"auth_tokens", "user"}


def test_login_prompts_for_password(run_cli):
    result = run_cli("login", "--email", "cli@example.com", input="secret1\n")
    assert result.exit_code == 0, result.output
    assert "Logged in as Cli Student" in result.output


def test_bad_login_reports_error(run_cli):
    result = run_cli("login", "--email", "cli@example.com", "--password", "nope")
    assert result.exit_code == 1
    assert "Error: Invalid login credentials" in result.output


def test_commands_require_login(run_cli):
    result = run_cli("whoami")
    assert result.exit_code == 1
    assert "Not logged in" in result.output


def test_check_in_and_attendance(run_cli):
    _login(run_cli)

    checked_in = run_cli("check-in")
    again = run_cli("check-in")
    history = run_cli("attendance")

    assert checked_in.exit_code == 0, checked_in.output
    assert "Checked in at 09:30 AM on 15 Jan 2024" in checked_in.output
    assert again.exit_code == 1
    assert "Error: Already checked in today" in again.output
    assert "15 Jan 2024" in history.output
    assert "Present" in history.output


def test_teachers_and_manager(run_cli, portal):
    _login(run_cli)
    assert "No teachers assigned." in run_cli("teachers").output
    portal.services.staff.add_teacher(name="Tess", subject="Maths", semester="1")

    assert "Tess - Maths" in run_cli("teachers").output
    assert run_cli("manager").output.strip() == "Administrator"


def test_whoami_and_logout(run_cli):
    _login(run_cli)
    who = run_cli("whoami")
    assert json.loads(who.output)["studentId"] == "S-7"

    out = run_cli("logout")
    assert "Logged out." in out.output
    assert json.loads(run_cli.state.read_text()) == {}
    assert run_cli("whoami").exit_code == 1
