"""tasktrack CLI — run the server and manage your tasks from a terminal.

Usage:
    tasktrack serve                              # Run the API with uvicorn
    tasktrack init-db                            # Create tables (development)
    tasktrack gen-secret                         # Print a new signing secret
    tasktrack register alice                     # Create an account (prompts for password)
    tasktrack login alice                        # Print a bearer token
    export TASKTRACK_TOKEN="Bearer eyJ..."
    tasktrack tasks [--completed|--open]         # List your tasks
    tasktrack add "buy milk" -d "2 litres"       # Create a task
    tasktrack done 42                            # Mark a task completed
    tasktrack rm 42                              # Delete a task
    tasktrack clear                              # Delete all your tasks
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import os
import secrets
import sys
from typing import Optional

import click
import httpx

from tasktrack import __version__

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:8000"


def _api_url() -> str:
    return os.environ.get("TASKTRACK_API_URL", DEFAULT_API_URL).rstrip("/")


def _client() -> httpx.AsyncClient:
    """Build an async HTTP client pointed at the tasktrack API."""
    return httpx.AsyncClient(base_url=_api_url(), timeout=30.0)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from a synchronous Click handler.

    Handles nested event loops (e.g. when invoked via Click CliRunner
    inside an existing async context like tests) by offloading to a thread.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def _auth_headers(token: Optional[str]) -> dict[str, str]:
    """Build the Authorization header from --token or TASKTRACK_TOKEN."""
    raw = token or os.environ.get("TASKTRACK_TOKEN")
    if not raw:
        click.secho(
            "Error: not logged in (pass --token or set TASKTRACK_TOKEN)",
            fg="red",
            err=True,
        )
        sys.exit(1)
    if not raw.lower().startswith("bearer "):
        raw = f"Bearer {raw}"
    return {"Authorization": raw}


def _fail(r: httpx.Response) -> None:
    """Print the API's error detail and exit non-zero."""
    try:
        detail = r.json().get("detail", r.text)
    except ValueError:
        detail = r.text
    click.secho(f"Error ({r.status_code}): {detail}", fg="red", err=True)
    sys.exit(1)


def _print_tasks(tasks: list[dict]) -> None:
    if not tasks:
        click.echo("No tasks.")
        return
    for t in tasks:
        mark = click.style("✔", fg="green") if t["completed"] else " "
        line = f"[{mark}] #{t['id']:<5} {t['title']}"
        if t.get("description"):
            line += click.style(f"  — {t['description']}", dim=True)
        click.echo(line)


_token_option = click.option(
    "--token", envvar="TASKTRACK_TOKEN", help="Bearer token (or set TASKTRACK_TOKEN)"
)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="tasktrack")
def main():
    """tasktrack — multi-tenant task tracker."""


# ---------------------------------------------------------------------------
# Server-side commands
# ---------------------------------------------------------------------------


@main.command()
@click.option("--host", default=None, help="Bind address (default from TASKTRACK_HOST)")
@click.option("--port", default=None, type=int, help="Port (default from TASKTRACK_PORT)")
@click.option("--reload", is_flag=True, help="Auto-reload on code changes")
def serve(host: Optional[str], port: Optional[int], reload: bool):
    """Run the API server."""
    import uvicorn

    from tasktrack.config import settings

    uvicorn.run(
        "tasktrack.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
    )


@main.command("init-db")
def init_db():
    """Create all tables from the ORM models (use Alembic in production)."""
    _run(_init_db_impl())
    click.secho("Database tables created.", fg="green")


async def _init_db_impl():
    from tasktrack.config import settings
    from tasktrack.db.engine import engine_from_settings
    from tasktrack.db.models import Base

    engine = engine_from_settings(settings)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()


@main.command("gen-secret")
def gen_secret():
    """Print a random signing secret for TASKTRACK_JWT_SECRET."""
    click.echo(secrets.token_urlsafe(48))


# ---------------------------------------------------------------------------
# Account commands
# ---------------------------------------------------------------------------


@main.command()
@click.argument("username")
@click.password_option()
def register(username: str, password: str):
    """Create a new account."""
    _run(_register_impl(username, password))


async def _register_impl(username: str, password: str):
    async with _client() as c:
        r = await c.post("/api/v1/register", json={"username": username, "password": password})
        if r.status_code != 200:
            _fail(r)
        click.secho(f"Registered {username}.", fg="green")


@main.command()
@click.argument("username")
@click.option("--password", prompt=True, hide_input=True)
def login(username: str, password: str):
    """Log in and print a bearer token."""
    _run(_login_impl(username, password))


async def _login_impl(username: str, password: str):
    async with _client() as c:
        r = await c.post("/api/v1/login", json={"username": username, "password": password})
        if r.status_code != 200:
            _fail(r)
        click.echo(r.json()["token"])


# ---------------------------------------------------------------------------
# Task commands
# ---------------------------------------------------------------------------


@main.command()
@click.option("--completed/--open", "completed", default=None, help="Filter by completion")
@_token_option
def tasks(completed: Optional[bool], token: Optional[str]):
    """List your tasks."""
    _run(_tasks_impl(completed, token))


async def _tasks_impl(completed: Optional[bool], token: Optional[str]):
    params = {} if completed is None else {"completed": str(completed).lower()}
    async with _client() as c:
        r = await c.get("/api/v1/tasks", params=params, headers=_auth_headers(token))
        if r.status_code != 200:
            _fail(r)
        _print_tasks(r.json())


@main.command()
@click.argument("title")
@click.option("--description", "-d", default=None, help="Optional details")
@_token_option
def add(title: str, description: Optional[str], token: Optional[str]):
    """Create a task."""
    _run(_add_impl(title, description, token))


async def _add_impl(title: str, description: Optional[str], token: Optional[str]):
    body: dict = {"title": title}
    if description is not None:
        body["description"] = description
    async with _client() as c:
        r = await c.post("/api/v1/tasks", json=body, headers=_auth_headers(token))
        if r.status_code != 201:
            _fail(r)
        click.secho(f"Task #{r.json()['id']} created", fg="green")


@main.command()
@click.argument("task_id", type=int)
@_token_option
def done(task_id: int, token: Optional[str]):
    """Mark a task completed."""
    _run(_done_impl(task_id, token))


async def _done_impl(task_id: int, token: Optional[str]):
    async with _client() as c:
        r = await c.patch(
            f"/api/v1/tasks/{task_id}",
            json={"completed": True},
            headers=_auth_headers(token),
        )
        if r.status_code != 200:
            _fail(r)
        click.secho(f"Task #{task_id} completed", fg="green")


@main.command()
@click.argument("task_id", type=int)
@_token_option
def rm(task_id: int, token: Optional[str]):
    """Delete a task."""
    _run(_rm_impl(task_id, token))


async def _rm_impl(task_id: int, token: Optional[str]):
    async with _client() as c:
        r = await c.delete(f"/api/v1/tasks/{task_id}", headers=_auth_headers(token))
        if r.status_code != 204:
            _fail(r)
        click.echo(f"Task #{task_id} deleted")


@main.command()
@click.confirmation_option(prompt="Delete ALL of your tasks?")
@_token_option
def clear(token: Optional[str]):
    """Delete all of your tasks."""
    _run(_clear_impl(token))


async def _clear_impl(token: Optional[str]):
    async with _client() as c:
        r = await c.delete("/api/v1/tasks", headers=_auth_headers(token))
        if r.status_code != 204:
            _fail(r)
        click.echo("All tasks deleted")


if __name__ == "__main__":
    main()
