"""Connection lifecycle manager — the only entry point for socket events.

Learn: The transport (websocket.py) only moves bytes. Everything that
changes presence goes through here:

    open()          → new Connection in CONNECTING
    authenticate()  → verify credential + load user → AUTHENTICATED
    handle(cmd)     → typed command dispatch (join/leave/chat/ping)
    disconnect()    → leave every room, announce each, forget connection

Explicit leave and transport disconnect share the same cleanup path
(broadcaster.announce_leave under the room lock), so no room can keep
a stale member whatever the reason for the disconnect.

Store access opens a short-lived session from the injected factory.
The join path holds the room lock across its Store reads so the
attendee count it reports can't be overtaken by a concurrent
attendance-changed broadcast for the same room.
"""

import asyncio
from typing import Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from checkin.auth.verifier import TokenVerifier
from checkin.db.models import Event, User
from checkin.errors import AuthenticationFailure, RoomNotFound
from checkin.realtime.broadcaster import RoomBroadcaster, RoomState
from checkin.realtime.connection import Connection, ConnectionState
from checkin.realtime.messages import (
    Authenticate,
    Command,
    Connected,
    ErrorNotice,
    EventSummary,
    JoinRoom,
    LeaveRoom,
    Ping,
    Pong,
    SendMessage,
)
from checkin.realtime.registry import PresenceRegistry
from checkin.services.event_service import EventService

logger = structlog.get_logger()


class ConnectionLifecycleManager:
    def __init__(
        self,
        registry: PresenceRegistry,
        broadcaster: RoomBroadcaster,
        verifier: TokenVerifier,
        session_factory: async_sessionmaker[AsyncSession],
        handshake_timeout: float = 10.0,
        outbox_size: int = 256,
    ):
        self.registry = registry
        self.broadcaster = broadcaster
        self.verifier = verifier
        self.session_factory = session_factory
        self.handshake_timeout = handshake_timeout
        self.outbox_size = outbox_size
        self._connections: dict[str, Connection] = {}

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    # ─── Connect / authenticate ─────────────────────────

    def open(self) -> Connection:
        connection = Connection(outbox_size=self.outbox_size)
        self._connections[connection.id] = connection
        logger.debug("realtime.connecting", connection_id=connection.id)
        return connection

    async def authenticate(
        self, connection: Connection, credential: Optional[str]
    ) -> Connection:
        """Move a CONNECTING connection to AUTHENTICATED.

        Raises AuthenticationFailure with a client-safe reason; the
        transport turns that into a refused/closed connection.
        """
        if connection.state != ConnectionState.CONNECTING:
            raise AuthenticationFailure("Connection is not awaiting authentication")
        if not credential:
            raise AuthenticationFailure("Authentication token required")

        identity = self.verifier.verify(credential)
        if identity is None:
            raise AuthenticationFailure("Invalid authentication token")

        try:
            user = await asyncio.wait_for(
                self._load_user(identity.user_id), timeout=self.handshake_timeout
            )
        except asyncio.TimeoutError:
            raise AuthenticationFailure("Authentication timed out")
        except SQLAlchemyError as e:
            logger.error(
                "realtime.auth_store_error",
                connection_id=connection.id,
                user_id=identity.user_id,
                error=str(e),
            )
            raise AuthenticationFailure("Authentication failed")
        if user is None:
            raise AuthenticationFailure("User not found")

        connection.authenticated(
            user_id=user.id, name=user.name, email=user.email, avatar=user.avatar
        )
        self.broadcaster.send(
            connection, Connected(connection_id=connection.id, user=connection.member)
        )
        logger.info(
            "realtime.connected", connection_id=connection.id, user_id=user.id
        )
        return connection

    async def _load_user(self, user_id: str) -> Optional[User]:
        async with self.session_factory() as db:
            return await EventService(db).find_user(user_id)

    # ─── Command dispatch ───────────────────────────────

    async def handle(self, connection: Connection, command: Command) -> None:
        if isinstance(command, Ping):
            self.broadcaster.send(connection, Pong())
            return

        if isinstance(command, Authenticate):
            self.reject(connection, "Already authenticated", "ALREADY_AUTHENTICATED")
            return

        if not connection.is_authenticated:
            self.reject(connection, "Authentication required", "UNAUTHENTICATED")
            return

        if isinstance(command, JoinRoom):
            await self.join_room(connection, command.event_id)
        elif isinstance(command, LeaveRoom):
            await self.leave_room(connection, command.event_id)
        elif isinstance(command, SendMessage):
            self.send_message(connection, command.event_id, command.message)

    # ─── Rooms ──────────────────────────────────────────

    async def join_room(self, connection: Connection, room_id: str) -> Optional[RoomState]:
        """Join an event's room. Unknown events get an error, not a room."""
        try:
            async with self.session_factory() as db:
                store = EventService(db)
                event = await store.find_event(room_id)
                if event is None:
                    raise RoomNotFound(room_id)

                async with self.registry.locked(room_id):
                    attendee_count = await store.count_attendees(room_id)
                    attending = await store.is_attending(room_id, connection.user_id)
                    # Disconnect cleanup may have run while we were awaiting.
                    if connection.state == ConnectionState.DISCONNECTED:
                        return None
                    return self.broadcaster.announce_join(
                        room_id,
                        connection,
                        attendee_count=attendee_count,
                        is_attending=attending,
                        event=_summary(event),
                    )
        except RoomNotFound as e:
            logger.info(
                "realtime.room_not_found",
                room_id=room_id,
                connection_id=connection.id,
            )
            self.reject(connection, "Event not found", e.code, room_id)
        except SQLAlchemyError as e:
            logger.error(
                "realtime.join_failed",
                room_id=room_id,
                connection_id=connection.id,
                error=str(e),
            )
            self.reject(connection, "Failed to join event", "JOIN_FAILED", room_id)
        return None

    async def leave_room(self, connection: Connection, room_id: str) -> bool:
        """Leave a room. Leaving a room you're not in is a no-op."""
        async with self.registry.locked(room_id):
            return self.broadcaster.announce_leave(room_id, connection)

    def send_message(self, connection: Connection, room_id: str, text: str) -> int:
        if not self.registry.is_member(room_id, connection.id):
            self.reject(
                connection, "Join the event room before chatting", "NOT_MEMBER", room_id
            )
            return 0
        text = text.strip()
        if not text:
            self.reject(connection, "Message cannot be empty", "INVALID_INPUT", room_id)
            return 0
        return self.broadcaster.announce_message(room_id, connection, text)

    # ─── Disconnect ─────────────────────────────────────

    async def disconnect(self, connection: Connection, reason: str = "closed") -> int:
        """Tear down a connection. Safe to call more than once.

        Returns how many rooms it was removed from.
        """
        connection.close()
        left = 0
        for room_id in sorted(self.registry.rooms_of(connection.id)):
            async with self.registry.locked(room_id):
                if self.broadcaster.announce_leave(room_id, connection):
                    left += 1

        if self._connections.pop(connection.id, None) is not None:
            logger.info(
                "realtime.disconnected",
                connection_id=connection.id,
                user_id=connection.user_id,
                reason=reason,
                rooms_left=left,
            )
        return left

    def reject(
        self,
        connection: Connection,
        message: str,
        code: str,
        room_id: Optional[str] = None,
    ) -> None:
        self.broadcaster.send(
            connection, ErrorNotice(message=message, code=code, event_id=room_id)
        )


def _summary(event: Event) -> EventSummary:
    return EventSummary(
        id=event.id,
        name=event.name,
        location=event.location,
        start_time=event.start_time,
        end_time=event.end_time,
    )
