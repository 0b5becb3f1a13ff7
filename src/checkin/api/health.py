"""Health check endpoint.

Learn: Simple GET endpoint that verifies the server is running and
dependencies (database, Redis) are reachable, plus how many real-time
connections this process currently holds.
"""

from fastapi import APIRouter, Request
from sqlalchemy import text

from checkin import __version__
from checkin.config import settings
from checkin.db.redis import get_redis

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Check server health and dependency connectivity."""
    checks = {"server": "ok", "version": __version__}

    try:
        async with request.app.state.session_factory() as db:
            await db.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        checks["database"] = f"error: {e}"

    try:
        await get_redis().ping()
        checks["redis"] = "ok"
    except Exception as e:
        checks["redis"] = f"error: {e}"

    # Redis only backs rate limiting, so it doesn't degrade status.
    status = "healthy" if checks["database"] == "ok" else "degraded"

    return {
        "status": status,
        "environment": settings.environment,
        "connections": request.app.state.lifecycle.connection_count,
        **checks,
    }
