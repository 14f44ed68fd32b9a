"""Notification read API tests — list, unread count, mark read."""

import pytest


async def _follow(client, eventually, user_id="U1", follower_id="U2", username="bob"):
    resp = await client.post(
        "/api/v1/events",
        json={
            "event_type": "FOLLOW",
            "actor_id": follower_id,
            "actor_username": username,
            "payload": {"user_id": user_id},
        },
    )
    job_id = resp.json()["job_id"]

    async def completed():
        job = (await client.get(f"/api/v1/queue/jobs/{job_id}")).json()
        return job["status"] == "completed"

    await eventually(completed)


@pytest.mark.asyncio
async def test_list_notifications(client, eventually):
    await _follow(client, eventually)

    resp = await client.get("/api/v1/notifications/users/U1")
    assert resp.status_code == 200
    [n] = resp.json()
    assert n["type"] == "FOLLOW"
    assert n["title"] == "New Follower"
    assert n["message"] == "bob started following you"
    assert n["data"] == {"follower_id": "U2", "follower_username": "bob"}
    assert n["read"] is False


@pytest.mark.asyncio
async def test_follow_without_username_names_the_actor_id(client, eventually):
    await _follow(client, eventually, username=None)

    [n] = (await client.get("/api/v1/notifications/users/U1")).json()
    assert n["message"] == "U2 started following you"
    assert "None" not in n["message"]


@pytest.mark.asyncio
async def test_list_pagination_bounds(client):
    assert (await client.get("/api/v1/notifications/users/U1?page=0")).status_code == 422
    assert (await client.get("/api/v1/notifications/users/U1?limit=101")).status_code == 422
    assert (await client.get("/api/v1/notifications/users/U1")).json() == []


@pytest.mark.asyncio
async def test_unread_count_and_mark_read(client, eventually):
    await _follow(client, eventually, follower_id="U2", username="bob")
    await _follow(client, eventually, follower_id="U3", username="carol")

    count = await client.get("/api/v1/notifications/users/U1/unread-count")
    assert count.json() == {"count": 2}

    first = (await client.get("/api/v1/notifications/users/U1")).json()[0]
    resp = await client.patch(f"/api/v1/notifications/{first['id']}/read")
    assert resp.status_code == 200
    assert resp.json()["read"] is True

    count = await client.get("/api/v1/notifications/users/U1/unread-count")
    assert count.json() == {"count": 1}


@pytest.mark.asyncio
async def test_mark_read_unknown_notification(client):
    resp = await client.patch("/api/v1/notifications/does-not-exist/read")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_mark_all_read(client, eventually):
    await _follow(client, eventually, follower_id="U2")
    await _follow(client, eventually, follower_id="U3")

    resp = await client.patch("/api/v1/notifications/users/U1/read-all")
    assert resp.status_code == 200
    assert resp.json()["updated_count"] == 2

    count = await client.get("/api/v1/notifications/users/U1/unread-count")
    assert count.json() == {"count": 0}
