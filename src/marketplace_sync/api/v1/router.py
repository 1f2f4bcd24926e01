"""API v1 router that aggregates all endpoint routers."""

from fastapi import APIRouter

from marketplace_sync.api.v1 import health, marketplace

api_router = APIRouter()

# Include all routers
api_router.include_router(
    health.router,
    tags=["Health"],
)

api_router.include_router(
    marketplace.router,
    prefix="/marketplace",
    tags=["Marketplace"],
)
