#!/usr/bin/env python3
"""
notifyhub fan-out — one post, thousands of followers.

Shows that a POST produces exactly one BULK_POST job no matter how many
followers it has, and that the materializer writes one row per follower.
Run with: python examples/fan_out.py [FOLLOWERS]

Requires: pip install httpx
Backend must be running: http://localhost:8000
"""

import sys
import time
import uuid

from _common import create_client, emit, wait_for_job


def main():
    followers = int(sys.argv[1]) if len(sys.argv) > 1 else 2000
    run_id = uuid.uuid4().hex[:6]
    author = f"author-{run_id}"
    follower_ids = [f"reader-{run_id}-{i}" for i in range(followers)]
    client = create_client()

    before = client.get("/queue/stats").json()["queue"]["enqueued"]

    print(f"\n1. Posting to {followers} followers...")
    started = time.monotonic()
    job_id = emit(client, {
        "event_type": "POST",
        "actor_id": author,
        "actor_username": "author",
        "payload": {"post_id": f"post-{run_id}", "title": "Big news", "follower_ids": follower_ids},
    })

    after = client.get("/queue/stats").json()["queue"]["enqueued"]
    print(f"   Jobs enqueued: {after - before}")

    print("\n2. Waiting for the BULK_POST job...")
    job = wait_for_job(client, job_id, timeout=120)
    elapsed = time.monotonic() - started
    print(f"   {job['status']} in {elapsed:.2f}s (attempts: {job['attempt']})")

    print("\n3. Spot-checking followers...")
    for follower in (follower_ids[0], follower_ids[len(follower_ids) // 2], follower_ids[-1]):
        [n] = client.get(f"/notifications/users/{follower}").json()
        print(f"   {follower}: {n['message']}")

    print(f"\n✓ {followers} notifications from one job.")


if __name__ == "__main__":
    main()
