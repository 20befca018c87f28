"""Redis cache in front of get_user_stats."""
import logging

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from core.redis import get_redis_client
from schemas.stats import UserStats
from services import progress_service

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300


def stats_cache_key(uid: str) -> str:
    """Redis key holding the cached stats for uid."""
    return f"stats:{uid}"


async def get_user_stats_cached(
    db: AsyncSession, uid: str, ttl: int = DEFAULT_TTL_SECONDS,
) -> UserStats | None:
    """
    User stats, served from Redis when cached.

    Falls back to the database if Redis is unavailable or the cached value is
    unreadable. Missing users are not cached.
    """
    redis_client = get_redis_client()
    key = stats_cache_key(uid)

    if redis_client is not None:
        cached = await redis_client.get(key)
        if cached is not None:
            try:
                return UserStats.model_validate_json(cached)
            except ValidationError:
                logger.warning("Cached stats for %s are corrupt, recomputing", uid)

    stats = await progress_service.get_user_stats(db, uid)
    if stats is not None and redis_client is not None:
        await redis_client.setex(key, ttl, stats.model_dump_json())
    return stats


async def invalidate_user_stats(uid: str) -> None:
    """Drop cached stats for uid after a progress write."""
    redis_client = get_redis_client()
    if redis_client is not None:
        await redis_client.delete(stats_cache_key(uid))
