"""Connection — one live client session.

Learn: A Connection is transport-agnostic. Notifications are pushed
onto its bounded outbox queue (never awaited), and the transport layer
drains the queue in a separate writer task. That keeps room fan-out
synchronous and ordered, and a slow client can only fill its own
queue — it can't stall the room.

Lifecycle: CONNECTING → AUTHENTICATED → DISCONNECTED. Which rooms a
connection has joined is tracked by the PresenceRegistry, not here.
"""

import asyncio
import contextlib
import enum
import itertools
from typing import Optional

from checkin.errors import BroadcastDeliveryFailure
from checkin.realtime.messages import MemberInfo, Notification

_ids = itertools.count(1)


class ConnectionState(str, enum.Enum):
    CONNECTING = "connecting"
    AUTHENTICATED = "authenticated"
    DISCONNECTED = "disconnected"


class Connection:
    """Ephemeral handle for a connected client."""

    def __init__(self, connection_id: Optional[str] = None, outbox_size: int = 256):
        self.id = connection_id or f"conn-{next(_ids)}"
        self.state = ConnectionState.CONNECTING
        self.user_id: Optional[str] = None
        self.name: Optional[str] = None
        self.email: Optional[str] = None
        self.avatar: Optional[str] = None
        # None is the end-of-stream marker for the writer task.
        self.outbox: asyncio.Queue[Optional[dict]] = asyncio.Queue(maxsize=outbox_size)

    def __repr__(self) -> str:
        return f"<Connection {self.id} user={self.user_id} state={self.state.value}>"

    @property
    def is_authenticated(self) -> bool:
        return self.state == ConnectionState.AUTHENTICATED

    @property
    def member(self) -> MemberInfo:
        return MemberInfo(
            id=self.user_id or "",
            name=self.name or "",
            email=self.email or "",
            avatar=self.avatar,
        )

    def authenticated(self, user_id: str, name: str, email: str, avatar: Optional[str] = None) -> None:
        self.user_id = user_id
        self.name = name
        self.email = email
        self.avatar = avatar
        self.state = ConnectionState.AUTHENTICATED

    def deliver(self, notification: Notification) -> None:
        """Queue a notification without blocking.

        Raises BroadcastDeliveryFailure if the connection is gone or its
        outbox is full.
        """
        if self.state == ConnectionState.DISCONNECTED:
            raise BroadcastDeliveryFailure(self.id, "connection closed")
        try:
            self.outbox.put_nowait(notification.to_wire())
        except asyncio.QueueFull:
            raise BroadcastDeliveryFailure(self.id, "outbox full")

    def close(self) -> None:
        """Mark disconnected and wake the writer task."""
        self.state = ConnectionState.DISCONNECTED
        # A full outbox means the writer is already behind; it gets cancelled instead.
        with contextlib.suppress(asyncio.QueueFull):
            self.outbox.put_nowait(None)
