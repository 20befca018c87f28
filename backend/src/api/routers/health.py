"""Liveness of the progress ledger database and the stats cache."""
import logging
from typing import Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.redis import get_redis_client
from db.session import get_async_session

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: Literal["healthy", "degraded"]
    database: Literal["healthy", "unhealthy"]
    redis: Literal["connected", "unavailable"]


async def ledger_status(db: AsyncSession) -> Literal["healthy", "unhealthy"]:
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.exception("Database health check failed")
        return "unhealthy"
    return "healthy"


async def stats_cache_status() -> Literal["connected", "unavailable"]:
    redis_client = get_redis_client()
    if redis_client is not None and await redis_client.ping():
        return "connected"
    return "unavailable"


@router.get("/health", response_model=HealthResponse)
async def health_check(db: AsyncSession = Depends(get_async_session)) -> HealthResponse:
    """
    Report component status.

    Only the ledger decides overall health: without Redis, stats are read
    straight from the ledger.
    """
    database = await ledger_status(db)
    return HealthResponse(
        status="healthy" if database == "healthy" else "degraded",
        database=database,
        redis=await stats_cache_status(),
    )
