from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text
import redis.asyncio as redis

from api.src.db.database import get_db
from api.src.config import get_settings
from api.src.services.queue import get_queue_length

settings = get_settings()

router = APIRouter(tags=["health"])

async def check_database(db: AsyncSession) -> str:
    try:
        await db.execute(text("SELECT 1"))
        return "healthy"
    except Exception as e:
        return f"unhealthy: {e}"

async def check_redis() -> str:
    client = redis.from_url(settings.redis_url)
    try:
        await client.ping()
        return "healthy"
    except Exception as e:
        return f"unhealthy: {e}"
    finally:
        await client.close()

@router.get("/health")
async def health_check():
    return {"status": "healthy", "service": "tfpipeline-api"}

@router.get("/health/db")
async def db_health_check(db: AsyncSession = Depends(get_db)):
    return {"database": await check_database(db)}

@router.get("/health/redis")
async def redis_health_check():
    return {"redis": await check_redis()}

@router.get("/health/queue")
async def queue_health_check():
    """Number of runs waiting for the controller."""
    try:
        return {"status": "healthy", "queue_length": await get_queue_length()}
    except Exception as e:
        return {"status": "unhealthy", "error": str(e)}

@router.get("/health/all")
async def full_health_check(db: AsyncSession = Depends(get_db)):
    """Combined health check for all services."""
    health = {
        "api": "healthy",
        "database": await check_database(db),
        "redis": await check_redis(),
    }

    overall = "healthy" if all(v == "healthy" for v in health.values()) else "degraded"

    try:
        queue_length = await get_queue_length()
    except Exception:
        queue_length = None

    return {"status": overall, "services": health, "queue_length": queue_length}
