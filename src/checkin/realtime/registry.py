"""Presence registry — who is viewing which event room right now.

Learn: Two maps kept in lockstep by the same methods:

    rooms:       event_id      → Room {members: {connection_id: Connection}}
    memberships: connection_id → {event_id, ...}

Nothing else writes either map, so "members of room R" and "rooms of
connection C" can never disagree. Rooms are created on first join and
deleted when their last member leaves, so abandoned events don't leak.

Viewers are not attendees. The attendee count cached on a Room is
whatever the Store last reported; the registry never derives it.

Concurrency: the app runs on one asyncio loop, so each method here is
atomic on its own. Callers that interleave Store reads (awaits) with
registry changes for a room wrap the whole sequence in locked(room_id),
which serializes them per room while other rooms proceed.
"""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Optional

from checkin.realtime.connection import Connection


@dataclass
class Room:
    id: str
    members: dict[str, Connection] = field(default_factory=dict)
    attendee_count: Optional[int] = None


@dataclass
class _RoomLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class PresenceRegistry:
    def __init__(self):
        self._rooms: dict[str, Room] = {}
        self._memberships: dict[str, set[str]] = {}
        self._locks: dict[str, _RoomLock] = {}

    # ─── Membership ─────────────────────────────────────

    def join(self, room_id: str, connection: Connection) -> frozenset[str]:
        """Add a connection to a room (creating it). Idempotent.

        Returns the room's member ids after the join.
        """
        room = self._rooms.get(room_id)
        if room is None:
            room = self._rooms[room_id] = Room(id=room_id)
        room.members[connection.id] = connection
        self._memberships.setdefault(connection.id, set()).add(room_id)
        return frozenset(room.members)

    def leave(self, room_id: str, connection_id: str) -> frozenset[str]:
        """Remove a connection from a room. No-op if it isn't a member.

        Returns the room's member ids after the leave (empty if the room
        was removed).
        """
        room = self._rooms.get(room_id)
        if room is None:
            return frozenset()

        room.members.pop(connection_id, None)
        joined = self._memberships.get(connection_id)
        if joined is not None:
            joined.discard(room_id)
            if not joined:
                del self._memberships[connection_id]

        if not room.members:
            del self._rooms[room_id]
            return frozenset()
        return frozenset(room.members)

    # ─── Queries ────────────────────────────────────────

    def members_of(self, room_id: str) -> frozenset[str]:
        room = self._rooms.get(room_id)
        return frozenset(room.members) if room else frozenset()

    def rooms_of(self, connection_id: str) -> frozenset[str]:
        return frozenset(self._memberships.get(connection_id, ()))

    def is_member(self, room_id: str, connection_id: str) -> bool:
        room = self._rooms.get(room_id)
        return room is not None and connection_id in room.members

    def connections_in(self, room_id: str) -> list[Connection]:
        """Member connections in join order."""
        room = self._rooms.get(room_id)
        return list(room.members.values()) if room else []

    def room(self, room_id: str) -> Optional[Room]:
        return self._rooms.get(room_id)

    def set_attendee_count(self, room_id: str, count: int) -> None:
        room = self._rooms.get(room_id)
        if room is not None:
            room.attendee_count = count

    def snapshot(self) -> dict[str, int]:
        """Active rooms → online (connection) count."""
        return {room_id: len(room.members) for room_id, room in self._rooms.items()}

    # ─── Per-room mutual exclusion ──────────────────────

    @asynccontextmanager
    async def locked(self, room_id: str) -> AsyncIterator[None]:
        """Hold the room's lock for a read-modify-announce sequence.

        Lock entries are reference-counted so rooms nobody is touching
        don't keep a lock object alive. Not reentrant.
        """
        entry = self._locks.get(room_id)
        if entry is None:
            entry = self._locks[room_id] = _RoomLock()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                del self._locks[room_id]
