"""Mutation → broadcast bridge.

Learn: joinEvent / leaveEvent resolvers call publish() only after
their Store write has committed. From there on the mutation has
succeeded no matter what — so this never raises. A broadcast problem
is logged and the client catches up on its next query.
"""

from typing import Literal

import structlog

from checkin.realtime.broadcaster import RoomBroadcaster
from checkin.realtime.registry import PresenceRegistry

logger = structlog.get_logger()


class MutationBridge:
    def __init__(self, registry: PresenceRegistry, broadcaster: RoomBroadcaster):
        self.registry = registry
        self.broadcaster = broadcaster

    async def publish(
        self,
        room_id: str,
        acting_user_id: str,
        attendee_count: int,
        action: Literal["joined", "left"],
    ) -> int:
        """Announce a committed attendance change. Returns deliveries made."""
        try:
            async with self.registry.locked(room_id):
                delivered = self.broadcaster.announce_attendance_change(
                    room_id,
                    attendee_count,
                    user_id=acting_user_id,
                    action=action,
                )
        except Exception as e:
            logger.warning(
                "realtime.bridge_broadcast_failed",
                room_id=room_id,
                user_id=acting_user_id,
                error=str(e),
            )
            return 0

        logger.info(
            "realtime.attendance_broadcast",
            room_id=room_id,
            user_id=acting_user_id,
            action=action,
            attendee_count=attendee_count,
            delivered=delivered,
        )
        return delivered
