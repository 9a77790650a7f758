"""
Health check endpoints.
"""
from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy import text

from app.core.config import settings
from app.repositories.unit_of_work import UnitOfWork, get_unit_of_work

router = APIRouter()


@router.get("/health")
async def health_check() -> Dict[str, Any]:
    """
    Basic health check endpoint.

    Returns:
        Health status
    """
    return {
        "status": "healthy",
        "service": "gamelab-api",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
    }


@router.get("/health/ready")
async def readiness_check(
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> Dict[str, Any]:
    """
    Readiness check including the database.

    Returns:
        Readiness status with component health
    """
    components = {
        "api": "healthy",
        "database": "unknown",
    }

    # Check database
    try:
        result = await uow.session.execute(text("SELECT 1"))
        result.scalar()
        components["database"] = "healthy"
    except Exception:
        components["database"] = "unhealthy"

    # Overall status
    all_healthy = all(status == "healthy" for status in components.values())

    return {
        "status": "ready" if all_healthy else "not ready",
        "components": components,
    }
