"""Check-in — real-time event check-in backend.

Users browse events, join and leave them through a GraphQL API, and
watch attendee presence change live over a WebSocket channel.
"""

__version__ = "0.1.0"
