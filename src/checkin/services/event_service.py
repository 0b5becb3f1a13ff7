"""Event service — the Store: users, events, and attendance.

Learn: Service layer separates business logic from transport.
GraphQL resolvers and the WebSocket lifecycle manager both call this
instead of touching the ORM directly.

Attendance writes commit immediately and raise typed errors on
failure, so callers can broadcast only after a successful commit.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import exists, func, insert, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from checkin.errors import AlreadyAttending, EventNotFound, NotAttending
from checkin.db.models import Event, User, event_attendees


class EventService:
    """Business logic for events and attendance."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ─── Users ──────────────────────────────────────────

    async def find_user(self, user_id: str) -> User | None:
        return await self.db.get(User, user_id)

    async def find_user_by_email(self, email: str) -> User | None:
        result = await self.db.execute(select(User).where(User.email == email))
        return result.scalars().first()

    # ─── Events ─────────────────────────────────────────

    async def find_event(self, event_id: str) -> Event | None:
        """Load an event with its attendees, or None."""
        result = await self.db.execute(
            select(Event)
            .where(Event.id == event_id)
            .options(selectinload(Event.attendees))
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def list_events(self) -> list[Event]:
        result = await self.db.execute(
            select(Event)
            .options(selectinload(Event.attendees))
            .order_by(Event.start_time)
        )
        return list(result.scalars().all())

    async def list_events_for_user(self, user_id: str) -> list[Event]:
        """Events the user is attending, soonest first."""
        result = await self.db.execute(
            select(Event)
            .join(event_attendees, event_attendees.c.event_id == Event.id)
            .where(event_attendees.c.user_id == user_id)
            .options(selectinload(Event.attendees))
            .order_by(Event.start_time)
        )
        return list(result.scalars().all())

    async def create_event(
        self,
        name: str,
        location: str,
        start_time: datetime,
        description: Optional[str] = None,
        end_time: Optional[datetime] = None,
    ) -> Event:
        event = Event(
            name=name,
            description=description,
            location=location,
            start_time=start_time,
            end_time=end_time,
            attendees=[],
        )
        self.db.add(event)
        await self.db.commit()
        return event

    # ─── Attendance ─────────────────────────────────────

    async def count_attendees(self, event_id: str) -> int:
        result = await self.db.execute(
            select(func.count())
            .select_from(event_attendees)
            .where(event_attendees.c.event_id == event_id)
        )
        return result.scalar_one()

    async def is_attending(self, event_id: str, user_id: str) -> bool:
        result = await self.db.execute(
            select(
                exists().where(
                    event_attendees.c.event_id == event_id,
                    event_attendees.c.user_id == user_id,
                )
            )
        )
        return bool(result.scalar())

    async def add_attendee(self, event_id: str, user_id: str) -> Event:
        """Mark a user as attending. Returns the refreshed event.

        Learn: The composite primary key on event_attendees is the real
        guard. Two concurrent joins can both pass the is_attending check;
        the loser hits an IntegrityError at commit and gets the same
        ALREADY_ATTENDING error as a sequential duplicate.
        """
        if not await self._event_exists(event_id):
            raise EventNotFound(event_id)
        if await self.is_attending(event_id, user_id):
            raise AlreadyAttending()

        try:
            await self.db.execute(
                insert(event_attendees).values(event_id=event_id, user_id=user_id)
            )
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise AlreadyAttending()

        return await self.find_event(event_id)

    async def remove_attendee(self, event_id: str, user_id: str) -> Event:
        """Remove a user from an event's attendees. Returns the refreshed event."""
        if not await self._event_exists(event_id):
            raise EventNotFound(event_id)
        if not await self.is_attending(event_id, user_id):
            raise NotAttending()

        await self.db.execute(
            event_attendees.delete().where(
                event_attendees.c.event_id == event_id,
                event_attendees.c.user_id == user_id,
            )
        )
        await self.db.commit()
        return await self.find_event(event_id)

    async def _event_exists(self, event_id: str) -> bool:
        result = await self.db.execute(select(exists().where(Event.id == event_id)))
        return bool(result.scalar())
