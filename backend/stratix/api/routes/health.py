import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from stratix.core.logging import SERVICE_NAME
from stratix.db.base import get_session_factory
from stratix.db.redis import get_redis

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Liveness probe.

    Returns 503 once SIGTERM has been received so the load balancer drains us.
    """
    if getattr(request.app.state, "shutting_down", False):
        return JSONResponse(
            status_code=503,
            content={"status": "shutting_down", "service": SERVICE_NAME},
        )
    return {"status": "healthy", "service": SERVICE_NAME}


@router.get("/ready")
async def readiness_check():
    """Readiness probe: Postgres answers and Redis pings."""
    checks = {"database": False, "redis": False}

    try:
        async with get_session_factory()() as session:
            await session.execute(text("SELECT 1"))
        checks["database"] = True
    except (RuntimeError, SQLAlchemyError, OSError) as e:
        logger.error("readiness_database_failed", error=str(e), error_type=type(e).__name__)

    try:
        await get_redis().ping()
        checks["redis"] = True
    except (RuntimeError, RedisError, OSError) as e:
        logger.error("readiness_redis_failed", error=str(e), error_type=type(e).__name__)

    all_healthy = all(checks.values())
    return JSONResponse(
        status_code=200 if all_healthy else 503,
        content={"status": "ready" if all_healthy else "degraded", "checks": checks},
    )
