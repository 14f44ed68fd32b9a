"""
Shared helpers for notifyhub examples.

Handles the health check and job polling so each example can focus on
the events it emits.
"""

import sys
import time

import httpx

BASE = "http://localhost:8000/api/v1"


def check_backend() -> None:
    """Verify the backend is reachable and healthy."""
    try:
        resp = httpx.get(f"{BASE}/health", timeout=5)
    except httpx.ConnectError:
        print(f"ERROR: Backend not reachable at {BASE}")
        print("Start it with:  uvicorn notifyhub.main:app --reload --port 8000")
        sys.exit(1)

    if resp.status_code != 200:
        print(f"ERROR: Health check returned {resp.status_code}")
        sys.exit(1)

    health = resp.json()
    print(f"Backend health: {health['status']}")
    print(f"  Database: {'✓' if health['database'] == 'ok' else '✗'}")
    print(f"  Redis:    {'✓' if health['redis'] == 'ok' else '✗ (live push disabled)'}")
    print(f"  Workers:  {'✓' if health['workers'] == 'ok' else '✗'}")

    if health["database"] != "ok":
        print("\nERROR: Database is not connected. Start it with: docker compose up -d")
        sys.exit(1)


def create_client() -> httpx.Client:
    """Check backend and return an httpx Client pointed at the API."""
    check_backend()
    return httpx.Client(base_url=BASE, timeout=10)


def emit(client: httpx.Client, event: dict) -> str | None:
    """POST a domain event; returns the job id (None if nothing was queued)."""
    resp = client.post("/events", json=event)
    assert resp.status_code == 202, f"Event rejected: {resp.status_code} {resp.text}"
    return resp.json()["job_id"]


def wait_for_job(client: httpx.Client, job_id: str, timeout: float = 30.0) -> dict:
    """Poll a job until it completes or fails permanently."""
    deadline = time.monotonic() + timeout
    while True:
        job = client.get(f"/queue/jobs/{job_id}").json()
        terminal = job["status"] == "completed" or (
            job["status"] == "failed" and job["attempt"] >= job["max_attempts"]
        )
        if terminal:
            return job
        if time.monotonic() > deadline:
            print(f"ERROR: job {job_id} still {job['status']} after {timeout}s")
            sys.exit(1)
        time.sleep(0.2)
