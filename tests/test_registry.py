"""Presence registry tests — the two maps stay consistent.

Learn: The registry is plain in-memory state, so most of these tests
are synchronous. Only the per-room lock needs an event loop.
"""

import asyncio

import pytest

from checkin.realtime.connection import Connection
from checkin.realtime.registry import PresenceRegistry


def _conn(cid: str) -> Connection:
    return Connection(connection_id=cid)


def test_join_creates_room_lazily():
    reg = PresenceRegistry()
    assert reg.room("evt-1") is None

    members = reg.join("evt-1", _conn("c1"))
    assert members == frozenset({"c1"})
    assert reg.room("evt-1") is not None
    assert reg.rooms_of("c1") == frozenset({"evt-1"})


def test_join_is_idempotent():
    reg = PresenceRegistry()
    c1 = _conn("c1")
    reg.join("evt-1", c1)
    reg.join("evt-1", c1)
    assert reg.members_of("evt-1") == frozenset({"c1"})
    assert reg.snapshot() == {"evt-1": 1}


def test_leave_last_member_deletes_room():
    reg = PresenceRegistry()
    reg.join("evt-1", _conn("c1"))
    assert reg.leave("evt-1", "c1") == frozenset()
    assert reg.room("evt-1") is None
    assert reg.rooms_of("c1") == frozenset()
    assert reg.snapshot() == {}


def test_leave_non_member_is_noop():
    reg = PresenceRegistry()
    reg.join("evt-1", _conn("c1"))
    assert reg.leave("evt-1", "c2") == frozenset({"c1"})
    assert reg.leave("evt-9", "c1") == frozenset()
    assert reg.members_of("evt-1") == frozenset({"c1"})


def test_membership_maps_agree():
    """Every (room, connection) pair is visible from both directions."""
    reg = PresenceRegistry()
    c1, c2 = _conn("c1"), _conn("c2")
    reg.join("evt-1", c1)
    reg.join("evt-2", c1)
    reg.join("evt-1", c2)
    reg.leave("evt-1", "c1")

    for room_id in ("evt-1", "evt-2"):
        for cid in reg.members_of(room_id):
            assert room_id in reg.rooms_of(cid)
    for cid in ("c1", "c2"):
        for room_id in reg.rooms_of(cid):
            assert reg.is_member(room_id, cid)

    assert reg.rooms_of("c1") == frozenset({"evt-2"})
    assert reg.members_of("evt-1") == frozenset({"c2"})


def test_connections_in_join_order():
    reg = PresenceRegistry()
    for cid in ("c3", "c1", "c2"):
        reg.join("evt-1", _conn(cid))
    assert [c.id for c in reg.connections_in("evt-1")] == ["c3", "c1", "c2"]


def test_attendee_count_only_on_live_rooms():
    reg = PresenceRegistry()
    reg.set_attendee_count("evt-1", 5)
    assert reg.room("evt-1") is None

    reg.join("evt-1", _conn("c1"))
    reg.set_attendee_count("evt-1", 5)
    assert reg.room("evt-1").attendee_count == 5


@pytest.mark.asyncio
async def test_room_lock_serializes_same_room():
    reg = PresenceRegistry()
    order = []

    async def critical(tag: str):
        async with reg.locked("evt-1"):
            order.append(f"{tag}-in")
            await asyncio.sleep(0.01)
            order.append(f"{tag}-out")

    await asyncio.gather(critical("a"), critical("b"))
    assert order in (
        ["a-in", "a-out", "b-in", "b-out"],
        ["b-in", "b-out", "a-in", "a-out"],
    )


@pytest.mark.asyncio
async def test_room_locks_are_independent_and_released():
    reg = PresenceRegistry()
    async with reg.locked("evt-1"):
        # A different room isn't blocked by evt-1's lock.
        await asyncio.wait_for(_enter(reg, "evt-2"), timeout=1.0)
    assert reg._locks == {}


async def _enter(reg: PresenceRegistry, room_id: str):
    async with reg.locked(room_id):
        pass
