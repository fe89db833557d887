"""
Health check endpoints
"""

from typing import Any
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text
import logging

from cinebook.core.database import get_session
from cinebook.core.redis import redis_manager
from cinebook.config import settings

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/live")
async def liveness() -> Any:
    """
    Kubernetes liveness probe
    """
    return {"status": "alive", "service": "cinebook-api"}


@router.get("/ready")
async def readiness(db: AsyncSession = Depends(get_session)) -> Any:
    """
    Kubernetes readiness probe - checks the database and, when used for
    locking, Redis
    """
    checks = {"database": False, "api": True}

    try:
        result = await db.execute(text("SELECT 1"))
        checks["database"] = result.scalar() == 1
    except Exception as e:
        logger.warning(f"Database readiness check failed: {e}")

    if settings.LOCK_BACKEND == "redis":
        checks["redis"] = False
        try:
            checks["redis"] = await redis_manager.ping()
        except Exception as e:
            logger.warning(f"Redis readiness check failed: {e}")

    all_healthy = all(checks.values())
    return JSONResponse(
        status_code=200 if all_healthy else 503,
        content={
            "status": "ready" if all_healthy else "not ready",
            "checks": checks,
            "version": settings.APP_VERSION
        }
    )
