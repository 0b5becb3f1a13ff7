"""REST route aggregation.

All routers registered here get mounted in main.py. The product API is
GraphQL (see checkin.gql); these are operational endpoints, open
without auth.
"""

from fastapi import APIRouter

from checkin.api.health import router as health_router
from checkin.api.rooms import router as rooms_router

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(health_router, tags=["health"])
api_router.include_router(rooms_router, tags=["rooms"])
