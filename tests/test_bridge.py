"""Mutation bridge tests — committed attendance changes reach live rooms."""

import pytest
from conftest import drain

from checkin.realtime.connection import Connection


def _viewer(cid: str, user_id: str) -> Connection:
    conn = Connection(connection_id=cid)
    conn.authenticated(user_id=user_id, name=user_id, email=f"{user_id}@example.com")
    return conn


@pytest.mark.asyncio
async def test_publish_reaches_every_viewer(bridge, broadcaster):
    a, b = _viewer("a", "john-user-id"), _viewer("b", "jane-user-id")
    broadcaster.announce_join("evt-1", a, attendee_count=2, is_attending=False)
    broadcaster.announce_join("evt-1", b, attendee_count=2, is_attending=True)
    drain(a)
    drain(b)

    delivered = await bridge.publish("evt-1", "john-user-id", 3, "joined")

    assert delivered == 2
    for conn in (a, b):
        frame = drain(conn)[0]
        assert frame == {
            **frame,
            "type": "attendance-changed",
            "eventId": "evt-1",
            "attendeeCount": 3,
            "userId": "john-user-id",
            "action": "joined",
        }


@pytest.mark.asyncio
async def test_publish_without_viewers_is_quiet(bridge, registry):
    assert await bridge.publish("evt-1", "john-user-id", 3, "joined") == 0
    assert registry.room("evt-1") is None


@pytest.mark.asyncio
async def test_publish_never_raises(bridge, broadcaster, monkeypatch):
    """The mutation already committed; a broadcast failure is only logged."""

    def explode(*args, **kwargs):
        raise RuntimeError("socket layer on fire")

    monkeypatch.setattr(broadcaster, "announce_attendance_change", explode)

    assert await bridge.publish("evt-1", "john-user-id", 1, "left") == 0
