"""Full-flow E2E integration test — event in, notification stored, pushed, read.

Learn: This test walks one follow and one post through the whole
pipeline using the API alone. It proves that all the pieces connect:
intake → router → queue → worker → materializer → store → realtime push
→ read path.

Run with: uv run pytest tests/test_e2e_flow.py -v
"""

import pytest


@pytest.mark.asyncio
async def test_follow_and_post_lifecycle_via_api(client, fake_transport, running_pipeline, eventually):
    """Complete lifecycle: emit → dispatch → persist → push → read → mark read."""

    # ── Step 1: U2 follows U1 ──────────────────────────────
    resp = await client.post(
        "/api/v1/events",
        json={
            "event_type": "FOLLOW",
            "actor_id": "U2",
            "actor_username": "bob",
            "payload": {"user_id": "U1"},
        },
    )
    assert resp.status_code == 202
    follow_job = resp.json()["job_id"]

    # ── Step 2: U1 posts to three followers ────────────────
    resp = await client.post(
        "/api/v1/events",
        json={
            "event_type": "POST",
            "actor_id": "U1",
            "actor_username": "alice",
            "payload": {"post_id": "P1", "title": "Hello", "follower_ids": ["U2", "U3", "U4"]},
        },
    )
    assert resp.status_code == 202
    post_job = resp.json()["job_id"]

    # ── Step 3: Both jobs complete ─────────────────────────
    async def both_completed():
        statuses = [
            (await client.get(f"/api/v1/queue/jobs/{job_id}")).json()["status"]
            for job_id in (follow_job, post_job)
        ]
        return statuses == ["completed", "completed"]

    await eventually(both_completed)

    # ── Step 4: Every recipient has exactly one notification
    [follow] = (await client.get("/api/v1/notifications/users/U1")).json()
    assert follow["message"] == "bob started following you"
    for follower in ("U2", "U3", "U4"):
        [post] = (await client.get(f"/api/v1/notifications/users/{follower}")).json()
        assert post["type"] == "POST"
        assert post["message"] == "alice created a new post: Hello"
        assert post["data"]["post_id"] == "P1"

    # ── Step 5: Live pushes went to each recipient ─────────
    await running_pipeline.realtime.drain()
    pushed = sorted(user for user, _ in fake_transport.published)
    assert pushed == ["U1", "U2", "U3", "U4"]

    # ── Step 6: Read path ──────────────────────────────────
    resp = await client.patch(f"/api/v1/notifications/{follow['id']}/read")
    assert resp.json()["read"] is True
    count = (await client.get("/api/v1/notifications/users/U1/unread-count")).json()
    assert count == {"count": 0}

    # ── Step 7: Counters add up ────────────────────────────
    stats = (await client.get("/api/v1/queue/stats")).json()
    assert stats["queue"]["enqueued"] == 2
    assert stats["queue"]["completed"] == 2
    assert stats["queue"]["failed"] == 0
    assert stats["workers"]["processed"] == 2
    assert stats["realtime"]["sent"] == 4
