"""notifyhub CLI — emit events, inspect the queue, read notifications.

Usage:
    notifyhub health                                   # Dependency checks
    notifyhub stats                                    # Queue / worker / realtime counters
    notifyhub job JOB_ID                               # One job's retry state
    notifyhub jobs --status failed                     # Retained failed (or completed) jobs
    notifyhub follow U1 --follower-id U2 --follower-username bob
    notifyhub post U1 --post-id P1 --title Hello -f A -f B -f C
    notifyhub notifications U1                         # A user's notifications
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import os
from typing import Optional

import click
import httpx

from notifyhub import __version__

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:8000"


def _api_url() -> str:
    return os.environ.get("NOTIFYHUB_API_URL", DEFAULT_API_URL).rstrip("/")


def _client() -> httpx.AsyncClient:
    """Build an async HTTP client pointed at the notifyhub service."""
    return httpx.AsyncClient(base_url=_api_url(), timeout=30.0)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from synchronous Click handler.

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


def _pretty_json(data: dict | list) -> str:
    return json.dumps(data, indent=2, default=str)


def _status_color(status: str) -> str:
    colors = {
        "pending": "yellow",
        "in_flight": "cyan",
        "completed": "green",
        "failed": "red",
        "healthy": "green",
        "degraded": "yellow",
    }
    return colors.get(status, "white")


async def _get_json(path: str, **params):
    async with _client() as c:
        r = await c.get(path, params=params or None)
        r.raise_for_status()
        return r.json()


async def _post_event(body: dict) -> dict:
    async with _client() as c:
        r = await c.post("/api/v1/events", json=body)
        r.raise_for_status()
        return r.json()


def _echo_accepted(result: dict) -> None:
    if result["queued"]:
        click.secho(f"Queued job {result['job_id']}", fg="green")
    else:
        click.secho("Nothing queued (no recipients)", fg="yellow")


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="notifyhub")
def main():
    """notifyhub — notification fan-out and real-time dispatch."""


@main.command()
def health():
    """Check the service and its dependencies."""
    data = _run(_get_json("/api/v1/health"))
    status = data.pop("status")
    click.secho(f"Status: {status}", fg=_status_color(status), bold=True)
    for key, value in data.items():
        click.echo(f"  {key:10s} {value}")


@main.command()
def stats():
    """Queue depth, worker and realtime counters."""
    click.echo(_pretty_json(_run(_get_json("/api/v1/queue/stats"))))


@main.command()
@click.argument("job_id")
def job(job_id: str):
    """Show one job's status, attempts and last error."""
    try:
        data = _run(_get_json(f"/api/v1/queue/jobs/{job_id}"))
    except httpx.HTTPStatusError as e:
        if e.response.status_code == 404:
            raise click.ClickException(f"Job {job_id} not found (or aged out)")
        raise
    status_str = click.style(data["status"], fg=_status_color(data["status"]))
    click.echo(f"Job {data['id']}  {data['event_type']}  priority={data['priority']}  {status_str}")
    click.echo(f"  attempts: {data['attempt']}/{data['max_attempts']}")
    if data.get("next_eligible_at"):
        click.echo(f"  retry at: {data['next_eligible_at']}")
    if data.get("last_error"):
        click.secho(f"  error:    {data['last_error']}", fg="red")


@main.command()
@click.option(
    "--status", "-s",
    type=click.Choice(["completed", "failed"]),
    default="failed",
    show_default=True,
)
def jobs(status: str):
    """List retained completed or permanently failed jobs."""
    rows = _run(_get_json("/api/v1/queue/jobs", status=status))
    if not rows:
        click.echo(f"No {status} jobs retained.")
        return
    click.secho(f"{status.capitalize()} jobs ({len(rows)}):", bold=True)
    for row in rows:
        error = f"  {row['last_error']}" if row.get("last_error") else ""
        click.echo(
            f"  {row['id'][:12]}  {row['event_type']:10s}  "
            f"attempts={row['attempt']}{error}"
        )


@main.command()
@click.argument("user_id")
@click.option("--follower-id", required=True)
@click.option("--follower-username", default=None)
def follow(user_id: str, follower_id: str, follower_username: Optional[str]):
    """Emit a FOLLOW event: FOLLOWER-ID started following USER_ID."""
    result = _run(_post_event({
        "event_type": "FOLLOW",
        "actor_id": follower_id,
        "actor_username": follower_username,
        "payload": {"user_id": user_id},
    }))
    _echo_accepted(result)


@main.command()
@click.argument("author_id")
@click.option("--post-id", required=True)
@click.option("--title", required=True)
@click.option("--author-username", default=None)
@click.option("--follower", "-f", "followers", multiple=True, help="Follower id (repeatable)")
def post(author_id: str, post_id: str, title: str,
         author_username: Optional[str], followers: tuple[str, ...]):
    """Emit a POST event fanned out to the given followers."""
    result = _run(_post_event({
        "event_type": "POST",
        "actor_id": author_id,
        "actor_username": author_username,
        "payload": {"post_id": post_id, "title": title, "follower_ids": list(followers)},
    }))
    _echo_accepted(result)


@main.command()
@click.argument("user_id")
@click.option("--page", default=1, show_default=True)
@click.option("--limit", default=20, show_default=True)
def notifications(user_id: str, page: int, limit: int):
    """List a user's notifications, newest first."""
    rows = _run(_get_json(
        f"/api/v1/notifications/users/{user_id}", page=page, limit=limit
    ))
    if not rows:
        click.echo("No notifications.")
        return
    for n in rows:
        marker = " " if n["read"] else click.style("●", fg="cyan")
        click.echo(f"{marker} {n['created_at'][:19]}  {n['title']}: {n['message']}")


if __name__ == "__main__":
    main()
