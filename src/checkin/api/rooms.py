"""Live room introspection.

Learn: Read-only views of the presence registry — which event rooms
are active and how many connections are viewing each. Counts are
viewers, not attendees; attendeeCount is the last number the Store
reported for that room (null until someone joins or attendance changes).
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from checkin.realtime.broadcaster import RoomBroadcaster

router = APIRouter(prefix="/rooms")


class RoomRead(BaseModel):
    event_id: str
    member_count: int
    attendee_count: Optional[int] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _broadcaster(request: Request) -> RoomBroadcaster:
    return request.app.state.broadcaster


@router.get("", response_model=list[RoomRead], response_model_by_alias=True)
async def list_rooms(broadcaster: RoomBroadcaster = Depends(_broadcaster)):
    rooms = []
    for event_id in sorted(broadcaster.registry.snapshot()):
        state = broadcaster.current_state(event_id)
        rooms.append(
            RoomRead(
                event_id=event_id,
                member_count=state.member_count,
                attendee_count=state.attendee_count,
            )
        )
    return rooms


@router.get("/{event_id}", response_model=RoomRead, response_model_by_alias=True)
async def get_room(event_id: str, broadcaster: RoomBroadcaster = Depends(_broadcaster)):
    state = broadcaster.current_state(event_id)
    if state.member_count == 0:
        raise HTTPException(status_code=404, detail="No live room for this event")
    return RoomRead(
        event_id=event_id,
        member_count=state.member_count,
        attendee_count=state.attendee_count,
    )
