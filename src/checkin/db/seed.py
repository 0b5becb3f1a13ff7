"""Demo data — users matching the static tokens, plus sample events.

Learn: The seeded user ids are the ones the default static-token table
points at, so `Authorization: Bearer demo-token-123` works right after
`checkin seed` without registering anyone.
"""

from datetime import datetime, timedelta, timezone

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from checkin.db.models import Event, User, event_attendees

DEMO_USERS = [
    ("demo-user-id", "Demo User", "demo@example.com"),
    ("john-user-id", "John Smith", "john@example.com"),
    ("jane-user-id", "Jane Doe", "jane@example.com"),
    ("alice-user-id", "Alice Johnson", "alice@example.com"),
    ("bob-user-id", "Bob Wilson", "bob@example.com"),
]

# (name, location, days from now, hour, minute, attendee indexes into DEMO_USERS)
DEMO_EVENTS = [
    ("React Native Meetup", "Tech Hub, Downtown", 1, 19, 0, [0, 1, 2, 3, 4]),
    ("GraphQL Workshop", "Innovation Center, 2nd Floor", 7, 14, 0, [1, 3, 4]),
    ("TypeScript Deep Dive", "Virtual Event (Zoom)", 30, 18, 30, [2, 4]),
    ("Web3 & Blockchain Seminar", "Blockchain Hub, Conference Room A", 3, None, None, [0, 3]),
    ("Open Source Contribution Workshop", "Community Center, Main Hall", 5, None, None, [1]),
    ("AI/ML for Developers", "AI Research Lab, Building B", 10, None, None, [0, 2, 4]),
]


def _start_time(now: datetime, days: int, hour: int | None, minute: int | None) -> datetime:
    start = now + timedelta(days=days)
    if hour is not None:
        start = start.replace(hour=hour, minute=minute or 0, second=0, microsecond=0)
    return start


async def seed_demo_data(db: AsyncSession, now: datetime | None = None) -> tuple[int, int]:
    """Replace all users and events with the demo data set.

    Returns (user_count, event_count).
    """
    now = now or datetime.now(timezone.utc)

    await db.execute(delete(event_attendees))
    await db.execute(delete(Event))
    await db.execute(delete(User))

    users = [User(id=uid, name=name, email=email) for uid, name, email in DEMO_USERS]
    db.add_all(users)

    for name, location, days, hour, minute, attendee_idx in DEMO_EVENTS:
        db.add(
            Event(
                name=name,
                location=location,
                start_time=_start_time(now, days, hour, minute),
                attendees=[users[i] for i in attendee_idx],
            )
        )

    await db.commit()
    return len(DEMO_USERS), len(DEMO_EVENTS)
