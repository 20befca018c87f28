"""MLInterviewPro progress API - FastAPI app entry point."""
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from api.routers import health, time_spent
from core.config import get_settings
from core.redis import RedisClient, set_redis_client
from db.session import create_tables, engine

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:  # noqa: ARG001
    """Create ledger tables and connect the stats cache for the app's lifetime."""
    settings = get_settings()
    await create_tables(engine)

    redis_client = RedisClient(settings.redis_url, enabled=settings.redis_enabled)
    await redis_client.connect()
    set_redis_client(redis_client)
    try:
        yield
    finally:
        await redis_client.close()
        set_redis_client(None)


app = FastAPI(
    title="MLInterviewPro Progress API",
    description="Progress ledger endpoints for the interview-prep site",
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(time_spent.router)
