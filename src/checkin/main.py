"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. Lifespan manages startup/shutdown (Redis, database engine).
Middleware, CORS, and routers all registered here.

The real-time pieces (registry, broadcaster, bridge, lifecycle manager)
are built once per app and hung off app.state, so the GraphQL context,
the WebSocket endpoint and the REST views all share one presence map.
They're created in create_app rather than the lifespan so an app driven
without lifespan events (httpx ASGITransport in tests) still has them.
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from checkin import __version__
from checkin.api import api_router
from checkin.config import settings

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: Anything before `yield` runs at startup, after `yield` runs
    at shutdown.
    """
    logger.info(
        "checkin.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    from checkin.db.redis import close_redis, init_redis
    try:
        await init_redis()
        logger.info("checkin.redis_connected", url=settings.redis_url)
    except Exception as e:
        logger.warning("checkin.redis_unavailable", error=str(e))
        # Redis only backs rate limiting; the app runs without it.

    yield

    logger.info(
        "checkin.shutdown", connections=app.state.lifecycle.connection_count
    )

    await close_redis()

    from checkin.db.engine import engine
    await engine.dispose()


def create_app(
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
) -> FastAPI:
    """Build and return the FastAPI application.

    session_factory is what the real-time layer and health check use to
    reach the database; defaults to the module-level factory.
    """
    app = FastAPI(
        title="Checkin",
        description="Event check-in API with live presence rooms",
        version=__version__,
        lifespan=lifespan,
    )

    # ── Real-time wiring ──────────────────────────────────────

    from checkin.auth.verifier import build_verifier
    from checkin.realtime.bridge import MutationBridge
    from checkin.realtime.broadcaster import RoomBroadcaster
    from checkin.realtime.lifecycle import ConnectionLifecycleManager
    from checkin.realtime.registry import PresenceRegistry

    if session_factory is None:
        from checkin.db.engine import async_session_factory
        session_factory = async_session_factory

    registry = PresenceRegistry()
    broadcaster = RoomBroadcaster(registry)
    verifier = build_verifier()

    app.state.session_factory = session_factory
    app.state.registry = registry
    app.state.broadcaster = broadcaster
    app.state.verifier = verifier
    app.state.bridge = MutationBridge(registry, broadcaster)
    app.state.lifecycle = ConnectionLifecycleManager(
        registry,
        broadcaster,
        verifier,
        session_factory,
        handshake_timeout=settings.handshake_timeout_seconds,
        outbox_size=settings.outbox_max_messages,
    )

    # ── Middleware stack ──────────────────────────────────────
    # Note: Starlette middleware executes in reverse order of registration.
    # Request flow: CORS → RateLimit → Security → RequestId → handler

    from checkin.middleware.rate_limit import RateLimitMiddleware
    from checkin.middleware.request_id import RequestIdMiddleware
    from checkin.middleware.security import SecurityHeadersMiddleware

    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        SecurityHeadersMiddleware, production=settings.environment == "production"
    )
    app.add_middleware(
        RateLimitMiddleware,
        default_rpm=settings.rate_limit_rpm,
        auth_rpm=settings.rate_limit_auth_rpm,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Mount REST routes
    app.include_router(api_router)

    # Mount GraphQL
    from checkin.gql.schema import build_router
    app.include_router(build_router())

    # Mount WebSocket route (live event rooms)
    from checkin.realtime.websocket import router as ws_router
    app.include_router(ws_router)

    return app


# Default app instance (used by uvicorn: checkin.main:app)
app = create_app()
