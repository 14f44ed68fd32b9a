"""Health endpoint tests."""

import pytest


@pytest.mark.asyncio
async def test_health_reports_dependencies(client):
    """Database and workers are up; Redis isn't configured in tests."""
    resp = await client.get("/api/v1/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["server"] == "ok"
    assert data["database"] == "ok"
    assert data["workers"] == "ok"
    assert "version" in data


@pytest.mark.asyncio
async def test_health_degraded_without_redis(client):
    """Missing Redis degrades the service instead of failing it."""
    data = (await client.get("/api/v1/health")).json()
    assert data["redis"].startswith("error")
    assert data["status"] == "degraded"
