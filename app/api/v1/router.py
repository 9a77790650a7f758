"""
API v1 router configuration.
"""
from fastapi import APIRouter

from app.api.v1.endpoints import (
    apikeys,
    games,
    health,
    institutions,
    invites,
    system,
    users,
    workshops,
)

api_router = APIRouter()

# Include all endpoint routers
api_router.include_router(health.router, tags=["health"])
api_router.include_router(users.router, prefix="/users", tags=["users"])
api_router.include_router(apikeys.router, prefix="/apikeys", tags=["api-keys"])
api_router.include_router(games.router, prefix="/games", tags=["games"])
api_router.include_router(institutions.router, prefix="/institutions", tags=["institutions"])
api_router.include_router(workshops.router, prefix="/workshops", tags=["workshops"])
api_router.include_router(invites.router, prefix="/invites", tags=["invites"])
api_router.include_router(system.router, prefix="/system", tags=["system"])
