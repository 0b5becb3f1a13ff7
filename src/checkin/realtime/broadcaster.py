"""Room broadcaster — turns presence changes into notifications.

Learn: Every announce_* call does two things in one synchronous step:
update the registry, then queue notifications for the room's members.
Because nothing awaits in between, members see changes in exactly the
order they were applied (no join/leave reordering within a room).

Who hears what:
- member-joined / member-left → everyone in the room except the actor
- room-state                  → only the joiner
- attendance-changed          → everyone in the room, including the
                                actor's own sessions (attendance is a
                                Store fact, not a per-connection fact)
- new-message                 → everyone in the room, sender included

A failed delivery to one connection is logged and skipped; it never
stops the rest of the fan-out.
"""

from dataclasses import dataclass
from typing import Optional

import structlog

from checkin.errors import BroadcastDeliveryFailure
from checkin.realtime.connection import Connection
from checkin.realtime.messages import (
    AttendanceChanged,
    EventSummary,
    MemberJoined,
    MemberLeft,
    NewMessage,
    Notification,
    RoomStateNotice,
)
from checkin.realtime.registry import PresenceRegistry

logger = structlog.get_logger()


@dataclass(frozen=True)
class RoomState:
    member_count: int
    attendee_count: Optional[int] = None


class RoomBroadcaster:
    def __init__(self, registry: PresenceRegistry):
        self.registry = registry

    def current_state(self, room_id: str) -> RoomState:
        room = self.registry.room(room_id)
        if room is None:
            return RoomState(member_count=0)
        return RoomState(
            member_count=len(room.members), attendee_count=room.attendee_count
        )

    def announce_join(
        self,
        room_id: str,
        connection: Connection,
        *,
        attendee_count: int,
        is_attending: bool,
        event: Optional[EventSummary] = None,
    ) -> RoomState:
        """Register a viewer and tell the room.

        A repeat join from the same connection re-sends room-state to it
        but does not announce member-joined again.
        """
        already_member = self.registry.is_member(room_id, connection.id)
        members = self.registry.join(room_id, connection)
        self.registry.set_attendee_count(room_id, attendee_count)

        self.send(
            connection,
            RoomStateNotice(
                event_id=room_id,
                member_count=len(members),
                attendee_count=attendee_count,
                is_requester_attending=is_attending,
                event=event,
            ),
        )
        if not already_member:
            self._fanout(
                room_id,
                MemberJoined(
                    event_id=room_id,
                    user=connection.member,
                    member_count=len(members),
                ),
                exclude=connection.id,
            )
            logger.info(
                "realtime.room_joined",
                room_id=room_id,
                connection_id=connection.id,
                user_id=connection.user_id,
                member_count=len(members),
            )
        return RoomState(member_count=len(members), attendee_count=attendee_count)

    def announce_leave(self, room_id: str, connection: Connection) -> bool:
        """Remove a viewer and tell whoever is left.

        Returns False (and announces nothing) if it wasn't a member.
        """
        if not self.registry.is_member(room_id, connection.id):
            return False

        remaining = self.registry.leave(room_id, connection.id)
        if remaining:
            self._fanout(
                room_id,
                MemberLeft(
                    event_id=room_id,
                    user_id=connection.user_id or "",
                    member_count=len(remaining),
                ),
            )
        logger.info(
            "realtime.room_left",
            room_id=room_id,
            connection_id=connection.id,
            user_id=connection.user_id,
            member_count=len(remaining),
        )
        return True

    def announce_attendance_change(
        self,
        room_id: str,
        attendee_count: int,
        *,
        user_id: Optional[str] = None,
        action: Optional[str] = None,
    ) -> int:
        """Push a Store-derived attendee count to every viewer.

        Returns the number of connections it was delivered to.
        """
        if self.registry.room(room_id) is None:
            return 0
        self.registry.set_attendee_count(room_id, attendee_count)
        return self._fanout(
            room_id,
            AttendanceChanged(
                event_id=room_id,
                attendee_count=attendee_count,
                user_id=user_id,
                action=action,
            ),
        )

    def announce_message(self, room_id: str, connection: Connection, text: str) -> int:
        """Relay a chat message from a member to the whole room."""
        return self._fanout(
            room_id,
            NewMessage(event_id=room_id, message=text, user=connection.member),
        )

    def send(self, connection: Connection, notification: Notification) -> bool:
        """Deliver to a single connection; failures are logged, not raised."""
        try:
            connection.deliver(notification)
        except BroadcastDeliveryFailure as e:
            logger.warning(
                "realtime.delivery_failed",
                connection_id=e.connection_id,
                reason=e.reason,
                message_type=notification.type,
            )
            return False
        return True

    def _fanout(
        self,
        room_id: str,
        notification: Notification,
        exclude: Optional[str] = None,
    ) -> int:
        delivered = 0
        for connection in self.registry.connections_in(room_id):
            if connection.id == exclude:
                continue
            if self.send(connection, notification):
                delivered += 1
        return delivered
