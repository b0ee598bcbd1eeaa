"""
API v1 router aggregation.

WHAT: Combine all v1 endpoint routers
WHY: Single place to register all API routes
HOW: Include routers from endpoints with prefixes
"""

from fastapi import APIRouter

from .endpoints import status, garden, farm, stats, streaming

# Create main v1 router
api_router = APIRouter()

# Include endpoint routers
api_router.include_router(
    status.router,
    prefix="/api/v1",
    tags=["status"]
)

api_router.include_router(
    garden.router,
    prefix="/api/v1/garden",
    tags=["garden"]
)

api_router.include_router(
    farm.router,
    prefix="/api/v1/farm",
    tags=["farm"]
)

api_router.include_router(
    stats.router,
    prefix="/api/v1",
    tags=["stats"]
)

api_router.include_router(
    streaming.router,
    prefix="/api/v1",
    tags=["streaming"]
)
