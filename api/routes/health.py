"""Health check endpoints."""

import asyncio
import logging
from datetime import datetime, timezone

import redis.asyncio as aioredis
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps_admin import get_current_admin_user
from infrastructure.config import get_settings
from infrastructure.database import get_db
from infrastructure.database.models.user import User
from services.post_queue import post_queue
from services.social_scheduler import scheduler_service
from services.task_queue import task_queue

logger = logging.getLogger(__name__)

router = APIRouter()
settings = get_settings()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


async def _ping_redis(timeout: float) -> None:
    client = aioredis.from_url(settings.redis_url)
    try:
        await asyncio.wait_for(client.ping(), timeout=timeout)
    finally:
        await client.aclose()


@router.get("/health")
async def health_check():
    """Basic health check."""
    return {
        "status": "healthy",
        "app": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
        "timestamp": _now(),
    }


@router.get("/health/db")
async def health_check_db(db: AsyncSession = Depends(get_db)):
    """Health check with database connectivity. 503 when the database is unreachable."""
    try:
        result = await asyncio.wait_for(db.execute(text("SELECT 1")), timeout=5.0)
        result.scalar()
    except asyncio.TimeoutError:
        logger.error("Health check DB timeout")
        raise HTTPException(status_code=503, detail="Database timeout")
    except Exception as e:
        logger.error("Health check DB error: %s", e)
        raise HTTPException(status_code=503, detail="Database check failed")

    return {
        "status": "healthy",
        "database": "connected",
        "timestamp": _now(),
    }


@router.get("/health/redis")
async def health_redis():
    """Redis connectivity. Redis is optional, so an unset REDIS_URL reports disabled."""
    if not settings.redis_url:
        return {"status": "disabled", "service": "redis"}
    try:
        await _ping_redis(timeout=3.0)
        return {"status": "healthy", "service": "redis"}
    except asyncio.TimeoutError:
        raise HTTPException(status_code=503, detail="Redis timeout")
    except Exception as e:
        raise HTTPException(status_code=503, detail=f"Redis unavailable: {e}")


@router.get("/health/ready")
async def readiness_check(db: AsyncSession = Depends(get_db)):
    """Readiness check. The database is required; Redis only degrades."""
    db_ok = True
    try:
        await asyncio.wait_for(db.execute(text("SELECT 1")), timeout=5.0)
    except Exception as e:
        logger.warning("Readiness DB check failed: %s", e)
        db_ok = False

    if not settings.redis_url:
        redis_state = "disabled"
    else:
        try:
            await _ping_redis(timeout=2.0)
            redis_state = "ok"
        except Exception:
            redis_state = "degraded"

    if not db_ok:
        raise HTTPException(
            status_code=503,
            detail={"ready": False, "database": "unavailable", "redis": redis_state},
        )
    return {"ready": True, "database": "ok", "redis": redis_state}


@router.get("/health/live")
async def liveness_check():
    """Liveness check."""
    return {"alive": True}


@router.get("/health/services")
async def services_check(admin_user: User = Depends(get_current_admin_user)):
    """Check configuration of external services and background workers."""
    from adapters.ai.anthropic_adapter import quiz_ai_service
    from adapters.ai.replicate_adapter import image_ai_service

    services = {
        "anthropic": {
            "configured": quiz_ai_service.is_configured,
            "model": settings.anthropic_model,
        },
        "replicate": {
            "configured": image_ai_service.is_configured,
            "model": settings.replicate_model,
        },
        "facebook": {
            "configured": settings.facebook_configured,
        },
    }

    all_configured = all(s["configured"] for s in services.values())

    return {
        "status": "healthy" if all_configured else "degraded",
        "services": services,
        "post_queue": {"connected": post_queue.is_connected},
        "scheduler": {"running": scheduler_service.is_running},
        "task_queue": task_queue.stats(),
        "timestamp": _now(),
    }
