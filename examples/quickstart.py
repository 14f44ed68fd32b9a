#!/usr/bin/env python3
"""
notifyhub Quickstart — follow, post, read, in one script.

Emits a FOLLOW and a POST event → waits for the workers → reads the
resulting notifications → marks them read.
Run with: python examples/quickstart.py

Requires: pip install httpx
Backend must be running: http://localhost:8000
"""

import uuid

from _common import create_client, emit, wait_for_job


def main():
    run_id = uuid.uuid4().hex[:6]
    alice, bob, carol = (f"{name}-{run_id}" for name in ("alice", "bob", "carol"))
    client = create_client()

    # ── Bob follows Alice ─────────────────────────────────────────
    print("\n1. bob follows alice...")
    follow_job = emit(client, {
        "event_type": "FOLLOW",
        "actor_id": bob,
        "actor_username": "bob",
        "payload": {"user_id": alice},
    })
    print(f"   Job: {follow_job}")

    # ── Alice posts to her followers ──────────────────────────────
    print("\n2. alice posts to bob and carol...")
    post_job = emit(client, {
        "event_type": "POST",
        "actor_id": alice,
        "actor_username": "alice",
        "payload": {
            "post_id": f"post-{run_id}",
            "title": "Hello, world",
            "follower_ids": [bob, carol],
        },
    })
    print(f"   Job: {post_job} (one BULK_POST job for both followers)")

    # ── A post nobody follows queues nothing ──────────────────────
    print("\n3. carol posts with no followers...")
    skipped = emit(client, {
        "event_type": "POST",
        "actor_id": carol,
        "actor_username": "carol",
        "payload": {"post_id": f"lonely-{run_id}", "title": "Anyone?", "follower_ids": []},
    })
    print(f"   Job: {skipped} (nothing to deliver)")

    # ── Wait for the workers ──────────────────────────────────────
    print("\n4. Waiting for dispatch...")
    for job_id in (follow_job, post_job):
        job = wait_for_job(client, job_id)
        print(f"   {job['event_type']:10s} → {job['status']} (attempts: {job['attempt']})")

    # ── Read notifications ────────────────────────────────────────
    print("\n5. Notifications:")
    for user in (alice, bob, carol):
        rows = client.get(f"/notifications/users/{user}").json()
        unread = client.get(f"/notifications/users/{user}/unread-count").json()["count"]
        print(f"   {user} ({unread} unread)")
        for n in rows:
            print(f"     [{n['type']}] {n['title']}: {n['message']}")

    # ── Mark everything read ──────────────────────────────────────
    print("\n6. Marking bob's notifications read...")
    resp = client.patch(f"/notifications/users/{bob}/read-all")
    assert resp.status_code == 200, f"Failed: {resp.text}"
    print(f"   Updated: {resp.json()['updated_count']}")

    # ── Done ──────────────────────────────────────────────────────
    stats = client.get("/queue/stats").json()
    print("\n✓ Quickstart finished.")
    print(f"  Queue: {stats['queue']['completed']} completed, {stats['queue']['failed']} failed")
    print(f"  Live pushes: {stats['realtime']['sent']} sent, {stats['realtime']['dropped']} dropped")


if __name__ == "__main__":
    main()
