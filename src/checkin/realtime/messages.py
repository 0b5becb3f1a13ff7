"""Real-time protocol messages.

Learn: Every frame on the WebSocket is a JSON object with a "type" and
camelCase fields. Inbound frames are parsed into a discriminated union
of command models, so the lifecycle manager dispatches on a typed
object instead of raw dicts. Outbound notifications are models too and
are serialized once, when queued.

Client → server: authenticate, join-room, leave-room, send-message, ping
Server → client: connected, room-state, member-joined, member-left,
                 attendance-changed, new-message, error, pong
"""

import uuid
from datetime import datetime, timezone
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel

# ─── Message types ───────────────────────────────────────

AUTHENTICATE = "authenticate"
JOIN_ROOM = "join-room"
LEAVE_ROOM = "leave-room"
SEND_MESSAGE = "send-message"
PING = "ping"

CONNECTED = "connected"
ROOM_STATE = "room-state"
MEMBER_JOINED = "member-joined"
MEMBER_LEFT = "member-left"
ATTENDANCE_CHANGED = "attendance-changed"
NEW_MESSAGE = "new-message"
ERROR = "error"
PONG = "pong"

MAX_CHAT_MESSAGE_LENGTH = 2000


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Message(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ─── Inbound commands ────────────────────────────────────


class Authenticate(Message):
    type: Literal["authenticate"]
    token: str = Field(min_length=1)


class JoinRoom(Message):
    type: Literal["join-room"]
    event_id: str = Field(min_length=1)


class LeaveRoom(Message):
    type: Literal["leave-room"]
    event_id: str = Field(min_length=1)


class SendMessage(Message):
    type: Literal["send-message"]
    event_id: str = Field(min_length=1)
    message: str = Field(min_length=1, max_length=MAX_CHAT_MESSAGE_LENGTH)


class Ping(Message):
    type: Literal["ping"]


Command = Annotated[
    Union[Authenticate, JoinRoom, LeaveRoom, SendMessage, Ping],
    Field(discriminator="type"),
]

_command_adapter = TypeAdapter(Command)


def parse_command(raw: str | bytes) -> Command:
    """Parse one inbound JSON frame. Raises pydantic.ValidationError."""
    return _command_adapter.validate_json(raw)


# ─── Outbound notifications ──────────────────────────────


class MemberInfo(Message):
    """Public view of a connected user."""

    id: str
    name: str
    email: str
    avatar: Optional[str] = None


class EventSummary(Message):
    id: str
    name: str
    location: str
    start_time: datetime
    end_time: Optional[datetime] = None


class Notification(Message):
    type: str
    timestamp: datetime = Field(default_factory=_utcnow)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class Connected(Notification):
    type: Literal["connected"] = CONNECTED
    connection_id: str
    user: MemberInfo


class RoomStateNotice(Notification):
    type: Literal["room-state"] = ROOM_STATE
    event_id: str
    member_count: int
    attendee_count: int
    is_requester_attending: bool
    event: Optional[EventSummary] = None


class MemberJoined(Notification):
    type: Literal["member-joined"] = MEMBER_JOINED
    event_id: str
    user: MemberInfo
    member_count: int


class MemberLeft(Notification):
    type: Literal["member-left"] = MEMBER_LEFT
    event_id: str
    user_id: str
    member_count: int


class AttendanceChanged(Notification):
    type: Literal["attendance-changed"] = ATTENDANCE_CHANGED
    event_id: str
    attendee_count: int
    user_id: Optional[str] = None
    action: Optional[Literal["joined", "left"]] = None


class NewMessage(Notification):
    type: Literal["new-message"] = NEW_MESSAGE
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    event_id: str
    message: str
    user: MemberInfo


class ErrorNotice(Notification):
    type: Literal["error"] = ERROR
    message: str
    code: str
    event_id: Optional[str] = None


class Pong(Notification):
    type: Literal["pong"] = PONG
