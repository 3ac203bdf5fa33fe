"""
Command-line client for the attendance portal.

Usage:
    portal login --email a@b.c        # prompts for the password
    portal check-in
    portal attendance

State (tokens and the cached identity) lives in one JSON file, by default
~/.portal/state.json (override with --state-file or PORTAL_STATE_FILE).
"""
from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

import click

from .errors import ApiError
from .session import Session
from .storage import FileClientStorage, default_state_path


def build_session(state_file: Path) -> Session:
    return Session.from_env(FileClientStorage(state_file))


def _run(ctx: click.Context, action: Callable[[Session], Awaitable[Any]], *, require_login: bool = True) -> Any:
    session = build_session(ctx.obj["state_file"])

    async def _go():
        if require_login and not await session.bootstrap():
            raise click.ClickException("Not logged in. Run `portal login` first.")
        try:
            return await action(session)
        finally:
            await session.close()

    try:
        return asyncio.run(_go())
    except ApiError as exc:
        click.echo(f"Error: {exc.message}", err=True)
        raise SystemExit(1) from exc


def _print(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, ensure_ascii=False))


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "--state-file",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="Where tokens and the cached identity are kept.",
)
@click.pass_context
def portal(ctx: click.Context, state_file: Optional[Path]) -> None:
    """Attendance portal client."""
    ctx.ensure_object(dict)
    ctx.obj["state_file"] = state_file or default_state_path()


@portal.command()
@click.option("--email", prompt=True)
@click.option("--password", prompt=True, hide_input=True)
@click.pass_context
def login(ctx: click.Context, email: str, password: str) -> None:
    """Sign in and store the session."""
    user = _run(ctx, lambda s: s.login(email.strip(), password), require_login=False)
    click.echo(f"Logged in as {user.get('name') or user.get('email')} ({user.get('role', 'student')})")


@portal.command()
@click.pass_context
def logout(ctx: click.Context) -> None:
    """Forget the stored session."""
    _run(ctx, lambda s: s.logout(), require_login=False)
    click.echo("Logged out.")


@portal.command()
@click.pass_context
def whoami(ctx: click.Context) -> None:
    """Show the cached identity."""

    async def action(s: Session):
        return s.user

    _print(_run(ctx, action))


@portal.command("check-in")
@click.pass_context
def check_in(ctx: click.Context) -> None:
    body = _run(ctx, lambda s: s.api.post("/check-in"))
    record = body.get("record") or {}
    click.echo(f"Checked in at {record.get('checkIn')} on {record.get('date')}")


@portal.command("check-out")
@click.pass_context
def check_out(ctx: click.Context) -> None:
    body = _run(ctx, lambda s: s.api.post("/check-out"))
    record = body.get("record") or {}
    click.echo(f"Checked out at {record.get('checkOut')} ({record.get('duration')})")


@portal.command()
@click.pass_context
def attendance(ctx: click.Context) -> None:
    """List your attendance history, newest first."""
    body = _run(ctx, lambda s: s.api.get("/my-attendance"))
    rows = body.get("attendance") or []
    if not rows:
        click.echo("No attendance records.")
        return
    for row in rows:
        click.echo(
            f"{row.get('date', ''):<12} {row.get('status', ''):<8} "
            f"{row.get('checkIn') or '-':>9} {row.get('checkOut') or '-':>9} {row.get('duration') or ''}"
        )


@portal.command()
@click.pass_context
def teachers(ctx: click.Context) -> None:
    """List your teachers."""
    body = _run(ctx, lambda s: s.api.get("/my-teachers"))
    rows = body.get("teachers") or []
    if not rows:
        click.echo("No teachers assigned.")
        return
    for t in rows:
        click.echo(f"{t.get('name')} - {t.get('subject')}")


@portal.command()
@click.pass_context
def manager(ctx: click.Context) -> None:
    """Show your manager."""
    body = _run(ctx, lambda s: s.api.get("/my-manager"))
    click.echo((body.get("manager") or {}).get("adminName") or "Administrator")


def main() -> None:  # pragma: no cover - console entry
    portal(obj={})


if __name__ == "__main__":  # pragma: no cover - manual entry
    main()
