"""Live room REST view tests."""

import pytest


async def _join(app, token: str, room_id: str):
    manager = app.state.lifecycle
    conn = manager.open()
    await manager.authenticate(conn, token)
    await manager.join_room(conn, room_id)
    return conn


@pytest.mark.asyncio
async def test_no_rooms_initially(client):
    r = await client.get("/api/v1/rooms")
    assert r.status_code == 200
    assert r.json() == []


@pytest.mark.asyncio
async def test_rooms_list_viewers_and_attendees(app, client):
    await _join(app, "john-token-456", "evt-1")
    await _join(app, "jane-token-789", "evt-1")
    await _join(app, "john-token-456", "evt-2")

    r = await client.get("/api/v1/rooms")
    assert r.json() == [
        {"eventId": "evt-1", "memberCount": 2, "attendeeCount": 2},
        {"eventId": "evt-2", "memberCount": 1, "attendeeCount": 0},
    ]


@pytest.mark.asyncio
async def test_single_room(app, client):
    await _join(app, "john-token-456", "evt-1")

    r = await client.get("/api/v1/rooms/evt-1")
    assert r.status_code == 200
    assert r.json()["memberCount"] == 1


@pytest.mark.asyncio
async def test_room_gone_after_last_viewer_leaves(app, client):
    conn = await _join(app, "john-token-456", "evt-1")
    await app.state.lifecycle.disconnect(conn)

    r = await client.get("/api/v1/rooms/evt-1")
    assert r.status_code == 404
