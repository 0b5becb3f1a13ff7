"""Real-time presence — event rooms over WebSocket.

Learn: Pieces, leaves first:
1. PresenceRegistry — event_id ↔ connection membership, per-room locks
2. RoomBroadcaster — registry change + ordered fan-out to room members
3. MutationBridge — GraphQL join/leave → attendance-changed broadcast
4. ConnectionLifecycleManager — auth, typed command dispatch, cleanup
5. websocket.py — FastAPI transport that drives the manager

The database stays the source of truth; the channel is a latency
optimization, and a client that misses a frame catches up on its next query.
"""
