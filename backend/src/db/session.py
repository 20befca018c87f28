"""Async SQLAlchemy engine and session factory for the remote progress ledger."""
from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from core.config import get_settings
from models import Base


def create_engine_for(database_url: str) -> AsyncEngine:
    """Create an async engine for database_url."""
    return create_async_engine(
        database_url,
        echo=False,
        pool_pre_ping=True,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to engine; objects stay usable after commit."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def create_tables(engine: AsyncEngine) -> None:
    """Create any missing ledger tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


settings = get_settings()

engine = create_engine_for(settings.database_url)

async_session_factory = create_session_factory(engine)


async def get_async_session() -> AsyncGenerator[AsyncSession]:
    """Yield an async database session, committing on success."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
