"""Protocol message tests — inbound parsing and outbound wire shape."""

import pytest
from pydantic import ValidationError

from checkin.realtime.messages import (
    AttendanceChanged,
    JoinRoom,
    MemberInfo,
    NewMessage,
    SendMessage,
    parse_command,
)


def test_parse_join_room():
    cmd = parse_command('{"type": "join-room", "eventId": "evt-1"}')
    assert isinstance(cmd, JoinRoom)
    assert cmd.event_id == "evt-1"


@pytest.mark.parametrize(
    "raw",
    [
        "not json",
        "{}",
        '{"type": "teleport"}',
        '{"type": "join-room"}',
        '{"type": "join-room", "eventId": ""}',
        '{"type": "send-message", "eventId": "evt-1", "message": ""}',
    ],
)
def test_parse_rejects_malformed(raw):
    with pytest.raises(ValidationError):
        parse_command(raw)


def test_chat_message_length_capped():
    long = "x" * 2001
    with pytest.raises(ValidationError):
        parse_command(f'{{"type": "send-message", "eventId": "e", "message": "{long}"}}')
    ok = parse_command(f'{{"type": "send-message", "eventId": "e", "message": "{long[:2000]}"}}')
    assert isinstance(ok, SendMessage)


def test_outbound_is_camel_case_with_timestamp():
    wire = AttendanceChanged(
        event_id="evt-1", attendee_count=3, user_id="u-1", action="left"
    ).to_wire()
    assert wire["type"] == "attendance-changed"
    assert wire["eventId"] == "evt-1"
    assert wire["attendeeCount"] == 3
    assert wire["userId"] == "u-1"
    assert isinstance(wire["timestamp"], str)


def test_new_message_ids_are_unique():
    user = MemberInfo(id="u-1", name="A", email="a@example.com")
    a = NewMessage(event_id="e", message="hi", user=user).to_wire()
    b = NewMessage(event_id="e", message="hi", user=user).to_wire()
    assert a["id"] != b["id"]
