"""
Health check endpoints.
"""

import logging
from typing import List

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text
import redis.asyncio as redis
from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError

from config import settings
from database import engine

router = APIRouter()
logger = logging.getLogger(__name__)

STORAGE_SETTING_KEYS = ("CLOUDINARY_CLOUD_NAME", "CLOUDINARY_API_KEY", "CLOUDINARY_API_SECRET")


def missing_storage_settings() -> List[str]:
    return [key for key in STORAGE_SETTING_KEYS if not (getattr(settings, key, "") or "").strip()]


async def _database_status() -> str:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as exc:
        logger.warning("Database health check failed: %s", exc)
        return f"down: {exc}"
    return "up"


async def _redis_status() -> str:
    client = redis.from_url(settings.REDIS_URL)
    try:
        await client.ping()
    except (RedisError, OSError) as exc:
        logger.warning("Redis health check failed: %s", exc)
        return f"down: {exc}"
    finally:
        await client.aclose()
    return "up"


@router.get("/health")
async def health_check():
    """
    Dependency status for the API process.

    Redis only backs rate limiting, so a Redis outage degrades the report
    without failing it.
    """
    database = await _database_status()
    redis_state = await _redis_status()
    return {
        "status": "healthy" if database == "up" and redis_state == "up" else "degraded",
        "api": "up",
        "database": database,
        "redis": redis_state,
        "media_storage": "missing" if missing_storage_settings() else "configured",
    }


@router.get("/health/ready")
async def readiness_check():
    """Not ready until media storage credentials are configured."""
    missing = missing_storage_settings()
    if missing:
        return JSONResponse(status_code=503, content={"ready": False, "missing": missing})
    return {"ready": True}


@router.get("/health/live")
async def liveness_check():
    return {"alive": True}
