"""Checkin CLI — run the server, seed demo data, mint tokens, peek at rooms.

Usage:
    checkin serve                      # Run the API + WebSocket server
    checkin seed                       # Reset the database to the demo data set
    checkin token <user-id> <email>    # Sign a JWT for manual testing
    checkin rooms                      # Live rooms on a running server
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import os
import sys

import click
import httpx

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:4000"


def _api_url() -> str:
    return os.environ.get("CHECKIN_API_URL", DEFAULT_API_URL).rstrip("/")


def _client() -> httpx.AsyncClient:
    """Build an async HTTP client pointed at the Checkin server."""
    return httpx.AsyncClient(base_url=_api_url(), timeout=10.0)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from a synchronous Click handler.

    Handles nested event loops (Click CliRunner inside an async test)
    by offloading to a thread.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def _print_table(rows: list[dict], columns: list[tuple[str, str, int]]):
    """Print a simple ASCII table.

    columns: list of (header, dict_key, width)
    """
    header = "  ".join(h.ljust(w) for h, _, w in columns)
    click.secho(header, bold=True)
    click.echo("-" * len(header))
    for row in rows:
        line = "  ".join(
            str(row.get(k) if row.get(k) is not None else "—")[:w].ljust(w)
            for _, k, w in columns
        )
        click.echo(line)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version="0.1.0", prog_name="checkin")
def main():
    """Checkin — event attendance with live presence rooms."""


# ---------------------------------------------------------------------------
# checkin serve
# ---------------------------------------------------------------------------


@main.command()
@click.option("--host", default=None, help="Bind address (default: CHECKIN_HOST)")
@click.option("--port", type=int, default=None, help="Port (default: CHECKIN_PORT)")
@click.option("--reload", is_flag=True, help="Auto-reload on code changes")
def serve(host: str | None, port: int | None, reload: bool):
    """Run the HTTP + WebSocket server with uvicorn."""
    import uvicorn

    from checkin.config import settings

    uvicorn.run(
        "checkin.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
    )


# ---------------------------------------------------------------------------
# checkin seed
# ---------------------------------------------------------------------------


@main.command()
@click.confirmation_option(prompt="This deletes all users and events. Continue?")
def seed():
    """Replace all users and events with the demo data set."""
    users, events = _run(_seed_impl())
    click.secho(f"Seeded {users} users and {events} events.", fg="green")


async def _seed_impl() -> tuple[int, int]:
    from checkin.db.engine import async_session_factory, engine
    from checkin.db.seed import seed_demo_data

    try:
        async with async_session_factory() as db:
            return await seed_demo_data(db)
    finally:
        await engine.dispose()


# ---------------------------------------------------------------------------
# checkin token
# ---------------------------------------------------------------------------


@main.command()
@click.argument("user_id")
@click.argument("email")
@click.option("--minutes", type=int, default=None, help="Lifetime (default: 7 days)")
def token(user_id: str, email: str, minutes: int | None):
    """Sign an access token for USER_ID / EMAIL."""
    from checkin.auth.jwt import create_access_token

    click.echo(create_access_token(user_id, email, expires_minutes=minutes))


# ---------------------------------------------------------------------------
# checkin rooms
# ---------------------------------------------------------------------------


@main.command()
def rooms():
    """List live event rooms on a running server."""
    _run(_rooms_impl())


async def _rooms_impl():
    async with _client() as c:
        try:
            resp = await c.get("/api/v1/rooms")
        except httpx.HTTPError as e:
            click.secho(f"Error: cannot reach {_api_url()} ({e})", fg="red", err=True)
            sys.exit(1)
        resp.raise_for_status()
        data = resp.json()

    if not data:
        click.echo("No live rooms.")
        return

    _print_table(
        data,
        [
            ("EVENT", "eventId", 38),
            ("VIEWERS", "memberCount", 8),
            ("ATTENDEES", "attendeeCount", 10),
        ],
    )
