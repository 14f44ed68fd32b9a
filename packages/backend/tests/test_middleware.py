"""Tests for the request ID middleware."""

import pytest


@pytest.mark.asyncio
async def test_request_id_generated(client):
    """Each request gets a unique X-Request-ID header."""
    r1 = await client.get("/api/v1/health")
    r2 = await client.get("/api/v1/health")
    assert "X-Request-ID" in r1.headers
    assert "X-Request-ID" in r2.headers
    # Each request gets a unique ID
    assert r1.headers["X-Request-ID"] != r2.headers["X-Request-ID"]


@pytest.mark.asyncio
async def test_request_id_propagated(client):
    """Incoming X-Request-ID is propagated through the response."""
    custom_id = "test-trace-12345"
    r = await client.post(
        "/api/v1/events",
        json={"event_type": "FOLLOW", "actor_id": "U2", "payload": {"user_id": "U1"}},
        headers={"X-Request-ID": custom_id},
    )
    assert r.status_code == 202
    assert r.headers["X-Request-ID"] == custom_id
