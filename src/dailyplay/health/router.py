"""Probes for the orchestrator: liveness, readiness and build info."""

from fastapi import APIRouter, Depends, Response
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dailyplay.config import get_settings
from dailyplay.database import get_session
from dailyplay.redis_client import get_redis

router = APIRouter()

OK = "ok"


async def _database_status(db: AsyncSession) -> str:
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        return f"error: {exc}"
    return OK


async def _redis_status() -> str:
    # The caches are shared between replicas; no Redis means no traffic
    try:
        await get_redis().ping()
    except (RedisError, OSError, RuntimeError) as exc:
        return f"error: {exc}"
    return OK


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "healthy"}


@router.get("/ready")
async def readiness(
    response: Response,
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> dict[str, object]:
    """503 with per-dependency detail unless the database and Redis both answer."""
    checks = {"database": await _database_status(db), "redis": await _redis_status()}
    ready = all(status == OK for status in checks.values())
    if not ready:
        response.status_code = 503
    return {"status": "ready" if ready else "degraded", "checks": checks}


@router.get("/version")
async def version() -> dict[str, str]:
    settings = get_settings()
    return {"version": settings.app_version, "environment": settings.environment}
