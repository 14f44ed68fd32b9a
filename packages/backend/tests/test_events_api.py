"""Event intake API tests."""

import pytest


@pytest.mark.asyncio
async def test_follow_event_accepted(client):
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
    data = resp.json()
    assert data["queued"] is True
    assert data["job_id"]


@pytest.mark.asyncio
async def test_post_without_followers_queues_nothing(client):
    resp = await client.post(
        "/api/v1/events",
        json={
            "event_type": "POST",
            "actor_id": "U1",
            "payload": {"post_id": "P1", "title": "Hello", "follower_ids": []},
        },
    )
    assert resp.status_code == 202
    assert resp.json() == {"job_id": None, "queued": False}


@pytest.mark.asyncio
async def test_post_with_followers_queues_one_bulk_job(client):
    resp = await client.post(
        "/api/v1/events",
        json={
            "event_type": "POST",
            "actor_id": "U1",
            "actor_username": "alice",
            "payload": {"post_id": "P1", "title": "Hello", "follower_ids": ["A", "B"]},
        },
    )
    job = (await client.get(f"/api/v1/queue/jobs/{resp.json()['job_id']}")).json()
    assert job["event_type"] == "BULK_POST"
    assert job["priority"] == 5
    assert job["payload"]["follower_ids"] == ["A", "B"]


@pytest.mark.asyncio
async def test_event_missing_payload_field_rejected(client):
    resp = await client.post(
        "/api/v1/events",
        json={"event_type": "FOLLOW", "actor_id": "U2", "payload": {}},
    )
    assert resp.status_code == 422
    assert "user_id" in resp.json()["detail"]


@pytest.mark.asyncio
async def test_event_missing_actor_rejected(client):
    resp = await client.post("/api/v1/events", json={"event_type": "FOLLOW"})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_events_unavailable_without_pipeline():
    """Without a running pipeline the API answers 503, not 500."""
    from httpx import ASGITransport, AsyncClient

    from notifyhub.main import create_app

    app = create_app()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        resp = await ac.post(
            "/api/v1/events",
            json={"event_type": "FOLLOW", "actor_id": "U2", "payload": {"user_id": "U1"}},
        )
    assert resp.status_code == 503
