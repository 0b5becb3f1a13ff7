"""GraphQL object and input types.

Learn: Strawberry types are plain dataclasses built from ORM rows by
from_model(). Attendees are loaded eagerly by the service layer, so
nothing here triggers lazy loading (which async SQLAlchemy forbids).
Field names are auto-camelCased: start_time → startTime.
"""

from datetime import datetime
from typing import Optional

import strawberry
from strawberry.types import Info

from checkin.db import models


@strawberry.type(name="User")
class UserType:
    id: strawberry.ID
    name: str
    email: str
    avatar: Optional[str]
    created_at: datetime
    updated_at: datetime

    @strawberry.field
    async def events(self, info: Info) -> list["EventType"]:
        """Events this user is attending."""
        events = await info.context.store.list_events_for_user(str(self.id))
        return [EventType.from_model(e) for e in events]

    @classmethod
    def from_model(cls, user: models.User) -> "UserType":
        return cls(
            id=strawberry.ID(user.id),
            name=user.name,
            email=user.email,
            avatar=user.avatar,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


@strawberry.type(name="Event")
class EventType:
    id: strawberry.ID
    name: str
    description: Optional[str]
    location: str
    start_time: datetime
    end_time: Optional[datetime]
    created_at: datetime
    updated_at: datetime
    attendees: list[UserType]
    attendee_count: int

    @classmethod
    def from_model(cls, event: models.Event) -> "EventType":
        attendees = [UserType.from_model(u) for u in event.attendees]
        return cls(
            id=strawberry.ID(event.id),
            name=event.name,
            description=event.description,
            location=event.location,
            start_time=event.start_time,
            end_time=event.end_time,
            created_at=event.created_at,
            updated_at=event.updated_at,
            attendees=attendees,
            attendee_count=len(attendees),
        )


@strawberry.type
class AuthPayload:
    token: str
    user: UserType


@strawberry.input
class RegisterInput:
    name: str
    email: str
    password: str


@strawberry.input
class LoginInput:
    email: str
    password: str


@strawberry.input
class CreateEventInput:
    name: str
    location: str
    start_time: datetime
    description: Optional[str] = None
    end_time: Optional[datetime] = None
