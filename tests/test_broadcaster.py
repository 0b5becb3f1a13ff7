"""Room broadcaster tests — who hears what, and in which order."""

from conftest import drain

from checkin.realtime.broadcaster import RoomBroadcaster
from checkin.realtime.connection import Connection
from checkin.realtime.registry import PresenceRegistry


def _member(cid: str, user_id: str, outbox_size: int = 256) -> Connection:
    conn = Connection(connection_id=cid, outbox_size=outbox_size)
    conn.authenticated(user_id=user_id, name=user_id.title(), email=f"{user_id}@example.com")
    return conn


def _setup():
    registry = PresenceRegistry()
    return registry, RoomBroadcaster(registry)


def test_join_sends_room_state_to_joiner_only():
    registry, bc = _setup()
    a = _member("a", "john")

    state = bc.announce_join("evt-1", a, attendee_count=2, is_attending=False)

    assert state.member_count == 1
    assert state.attendee_count == 2
    frames = drain(a)
    assert [f["type"] for f in frames] == ["room-state"]
    assert frames[0]["eventId"] == "evt-1"
    assert frames[0]["memberCount"] == 1
    assert frames[0]["attendeeCount"] == 2
    assert frames[0]["isRequesterAttending"] is False
    assert "timestamp" in frames[0]


def test_second_join_announced_to_others_not_actor():
    registry, bc = _setup()
    a, b = _member("a", "john"), _member("b", "jane")
    bc.announce_join("evt-1", a, attendee_count=2, is_attending=False)
    drain(a)

    bc.announce_join("evt-1", b, attendee_count=2, is_attending=True)

    a_frames = drain(a)
    assert [f["type"] for f in a_frames] == ["member-joined"]
    assert a_frames[0]["user"]["id"] == "jane"
    assert a_frames[0]["memberCount"] == 2

    b_frames = drain(b)
    assert [f["type"] for f in b_frames] == ["room-state"]
    assert b_frames[0]["isRequesterAttending"] is True


def test_repeat_join_resends_state_without_member_joined():
    registry, bc = _setup()
    a, b = _member("a", "john"), _member("b", "jane")
    bc.announce_join("evt-1", a, attendee_count=1, is_attending=False)
    bc.announce_join("evt-1", b, attendee_count=1, is_attending=False)
    drain(a)
    drain(b)

    bc.announce_join("evt-1", b, attendee_count=1, is_attending=False)

    assert drain(a) == []
    assert [f["type"] for f in drain(b)] == ["room-state"]
    assert registry.snapshot() == {"evt-1": 2}


def test_leave_announced_to_remaining_members():
    registry, bc = _setup()
    a, b = _member("a", "john"), _member("b", "jane")
    bc.announce_join("evt-1", a, attendee_count=0, is_attending=False)
    bc.announce_join("evt-1", b, attendee_count=0, is_attending=False)
    drain(a)
    drain(b)

    assert bc.announce_leave("evt-1", b) is True

    frames = drain(a)
    assert frames[0]["type"] == "member-left"
    assert frames[0]["userId"] == "jane"
    assert frames[0]["memberCount"] == 1
    assert drain(b) == []


def test_leave_when_not_member_announces_nothing():
    registry, bc = _setup()
    a, b = _member("a", "john"), _member("b", "jane")
    bc.announce_join("evt-1", a, attendee_count=0, is_attending=False)
    drain(a)

    assert bc.announce_leave("evt-1", b) is False
    assert drain(a) == []


def test_last_leave_removes_room():
    registry, bc = _setup()
    a = _member("a", "john")
    bc.announce_join("evt-1", a, attendee_count=0, is_attending=False)
    bc.announce_leave("evt-1", a)
    assert registry.room("evt-1") is None
    assert bc.current_state("evt-1").member_count == 0


def test_attendance_change_reaches_everyone_including_actor():
    registry, bc = _setup()
    a, b = _member("a", "john"), _member("b", "jane")
    bc.announce_join("evt-1", a, attendee_count=2, is_attending=False)
    bc.announce_join("evt-1", b, attendee_count=2, is_attending=False)
    drain(a)
    drain(b)

    delivered = bc.announce_attendance_change("evt-1", 3, user_id="john", action="joined")

    assert delivered == 2
    for conn in (a, b):
        frames = drain(conn)
        assert frames[0]["type"] == "attendance-changed"
        assert frames[0]["attendeeCount"] == 3
        assert frames[0]["userId"] == "john"
        assert frames[0]["action"] == "joined"
    assert bc.current_state("evt-1").attendee_count == 3


def test_attendance_change_for_empty_room_is_dropped():
    registry, bc = _setup()
    assert bc.announce_attendance_change("evt-1", 3) == 0
    assert registry.room("evt-1") is None


def test_chat_message_relayed_to_sender_too():
    registry, bc = _setup()
    a, b = _member("a", "john"), _member("b", "jane")
    bc.announce_join("evt-1", a, attendee_count=0, is_attending=False)
    bc.announce_join("evt-1", b, attendee_count=0, is_attending=False)
    drain(a)
    drain(b)

    assert bc.announce_message("evt-1", a, "hello") == 2
    a_msg, b_msg = drain(a)[0], drain(b)[0]
    assert a_msg["type"] == b_msg["type"] == "new-message"
    assert a_msg["id"] == b_msg["id"]
    assert b_msg["message"] == "hello"
    assert b_msg["user"]["id"] == "john"


def test_failed_delivery_does_not_stop_fanout():
    registry, bc = _setup()
    slow = _member("slow", "john", outbox_size=1)
    ok = _member("ok", "jane")
    bc.announce_join("evt-1", slow, attendee_count=0, is_attending=False)
    bc.announce_join("evt-1", ok, attendee_count=0, is_attending=False)
    # slow's single slot is now taken by its room-state; don't drain it.
    drain(ok)

    delivered = bc.announce_attendance_change("evt-1", 1)

    assert delivered == 1
    assert drain(ok)[0]["type"] == "attendance-changed"


def test_notifications_arrive_in_applied_order():
    registry, bc = _setup()
    watcher = _member("w", "john")
    bc.announce_join("evt-1", watcher, attendee_count=0, is_attending=False)
    drain(watcher)

    b, c = _member("b", "jane"), _member("c", "demo")
    bc.announce_join("evt-1", b, attendee_count=0, is_attending=False)
    bc.announce_join("evt-1", c, attendee_count=0, is_attending=False)
    bc.announce_leave("evt-1", b)
    bc.announce_attendance_change("evt-1", 1)

    frames = drain(watcher)
    assert [(f["type"], f["memberCount"] if "memberCount" in f else None) for f in frames] == [
        ("member-joined", 2),
        ("member-joined", 3),
        ("member-left", 2),
        ("attendance-changed", None),
    ]
