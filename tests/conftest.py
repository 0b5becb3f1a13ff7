"""Test fixtures — an in-memory SQLite database per test.

Learn: Testing pattern for async SQLAlchemy + FastAPI without a
Postgres server:

1. Each test gets its own sqlite+aiosqlite engine. StaticPool keeps one
   connection open, so the in-memory database lives as long as the test.
2. Tables come from Base.metadata.create_all — the same models Alembic
   migrates in real deployments.
3. Users and events are inserted with fixed ids, so tests can talk
   about "evt-1" and "john-user-id" directly.

The app gets the same session factory for both request sessions
(get_db override) and the real-time layer (create_app argument).
"""

from datetime import datetime, timedelta, timezone

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from checkin.auth.verifier import JwtStrategy, StaticTokenStrategy, TokenVerifier
from checkin.db.engine import get_db
from checkin.db.models import Base, Event, User
from checkin.main import create_app
from checkin.realtime.bridge import MutationBridge
from checkin.realtime.broadcaster import RoomBroadcaster
from checkin.realtime.lifecycle import ConnectionLifecycleManager
from checkin.realtime.registry import PresenceRegistry

TEST_DB_URL = "sqlite+aiosqlite://"

# token → identity, mirroring the default demo table
TEST_TOKENS = {
    "demo-token-123": {"user_id": "demo-user-id", "email": "demo@example.com"},
    "john-token-456": {"user_id": "john-user-id", "email": "john@example.com"},
    "jane-token-789": {"user_id": "jane-user-id", "email": "jane@example.com"},
    "ghost-token-000": {"user_id": "ghost-user-id", "email": "ghost@example.com"},
}

USERS = [
    ("demo-user-id", "Demo User", "demo@example.com"),
    ("john-user-id", "John Smith", "john@example.com"),
    ("jane-user-id", "Jane Doe", "jane@example.com"),
]


async def populate(db: AsyncSession) -> None:
    """Three users; evt-1 has two attendees (demo, jane), evt-2 has none."""
    users = {uid: User(id=uid, name=name, email=email) for uid, name, email in USERS}
    db.add_all(users.values())
    start = datetime.now(timezone.utc) + timedelta(days=1)
    db.add(
        Event(
            id="evt-1",
            name="GraphQL Workshop",
            location="Innovation Center",
            start_time=start,
            attendees=[users["demo-user-id"], users["jane-user-id"]],
        )
    )
    db.add(
        Event(
            id="evt-2",
            name="TypeScript Deep Dive",
            location="Virtual Event (Zoom)",
            start_time=start + timedelta(days=7),
            attendees=[],
        )
    )
    await db.commit()


@pytest_asyncio.fixture()
async def session_factory():
    """Per-test in-memory database, populated, as a session factory."""
    engine = create_async_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as db:
        await populate(db)

    yield factory
    await engine.dispose()


@pytest_asyncio.fixture()
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


# ─── Real-time pieces, wired by hand ─────────────────────


@pytest_asyncio.fixture()
async def registry():
    return PresenceRegistry()


@pytest_asyncio.fixture()
async def broadcaster(registry):
    return RoomBroadcaster(registry)


@pytest_asyncio.fixture()
async def verifier():
    return TokenVerifier([StaticTokenStrategy(TEST_TOKENS)])


@pytest_asyncio.fixture()
async def bridge(registry, broadcaster):
    return MutationBridge(registry, broadcaster)


@pytest_asyncio.fixture()
async def manager(registry, broadcaster, verifier, session_factory):
    return ConnectionLifecycleManager(
        registry, broadcaster, verifier, session_factory, handshake_timeout=2.0
    )


# ─── HTTP app ────────────────────────────────────────────


@pytest_asyncio.fixture()
async def app(session_factory):
    application = create_app(session_factory=session_factory)
    application.state.verifier = TokenVerifier(
        [StaticTokenStrategy(TEST_TOKENS), JwtStrategy()]
    )
    application.state.lifecycle.verifier = application.state.verifier

    async def override_get_db():
        async with session_factory() as session:
            yield session

    application.dependency_overrides[get_db] = override_get_db
    return application


@pytest_asyncio.fixture()
async def client(app):
    """HTTP client against the app. No lifespan, so no Redis: rate limiting is skipped."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def drain(connection) -> list[dict]:
    """Everything queued on a connection's outbox, in order."""
    frames = []
    while not connection.outbox.empty():
        frames.append(connection.outbox.get_nowait())
    return frames
