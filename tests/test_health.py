"""Health endpoint tests."""

import pytest


@pytest.mark.asyncio
async def test_health_returns_ok(client):
    """Health endpoint should return server status and version."""
    resp = await client.get("/api/v1/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["server"] == "ok"
    assert data["database"] == "ok"
    assert data["status"] == "healthy"
    assert "version" in data


@pytest.mark.asyncio
async def test_health_without_redis_is_still_healthy(client):
    """Redis only backs rate limiting; its absence is reported, not fatal."""
    data = (await client.get("/api/v1/health")).json()
    assert data["redis"].startswith("error")
    assert data["status"] == "healthy"


@pytest.mark.asyncio
async def test_health_counts_live_connections(app, client):
    manager = app.state.lifecycle
    conn = manager.open()
    await manager.authenticate(conn, "john-token-456")

    data = (await client.get("/api/v1/health")).json()
    assert data["connections"] == 1
