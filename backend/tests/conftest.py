"""Shared fixtures: in-memory local storage, a throwaway SQLite ledger, fake Redis."""
from collections.abc import AsyncGenerator, Callable, Iterator
from datetime import UTC, datetime

import pytest
from fakeredis import FakeAsyncRedis
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from api.main import app
from core.auth_provider import AuthProviderError
from core.auth_state import AuthProviderTag, AuthStateBroadcaster, Identity
from core.local_storage import MemoryStorage
from core.redis import RedisClient, set_redis_client
from core.session_cache import SessionCache
from db.session import create_engine_for, create_session_factory, create_tables, get_async_session


@pytest.fixture
def storage() -> MemoryStorage:
    """Empty in-memory local storage."""
    return MemoryStorage()


@pytest.fixture
def session_cache(storage: MemoryStorage) -> SessionCache:
    return SessionCache(storage)


@pytest.fixture
def broadcaster(session_cache: SessionCache) -> AuthStateBroadcaster:
    return AuthStateBroadcaster(session_cache)


@pytest.fixture
def alice() -> Identity:
    return Identity(
        uid="u-alice",
        display_name="Alice Example",
        email="alice@example.com",
        email_verified=True,
        photo_url="https://example.com/alice.png",
        provider=AuthProviderTag.GOOGLE,
    )


@pytest.fixture
def bob() -> Identity:
    return Identity(uid="u-bob", email="bob@example.com", provider=AuthProviderTag.MICROSOFT)


class FrozenClock:
    """Settable clock returning aware UTC datetimes."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2024, 3, 1, 12, 0, tzinfo=UTC))


@pytest.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine]:
    """Async engine over a fresh SQLite file with all tables created."""
    engine = create_engine_for(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(engine)


@pytest.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession]:
    async with session_factory() as session:
        yield session


@pytest.fixture(autouse=True)
def _reset_redis_client() -> Iterator[None]:
    """Every test starts (and ends) without a global Redis client."""
    set_redis_client(None)
    yield
    set_redis_client(None)


@pytest.fixture
async def redis_client() -> AsyncGenerator[RedisClient]:
    """In-process fake Redis installed as the global client."""
    fake = FakeAsyncRedis()
    client = RedisClient.from_client(fake)
    set_redis_client(client)
    yield client
    await fake.flushall()
    await client.close()


@pytest.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncClient]:
    """HTTP client against the app, bound to the test ledger."""
    async def override_session() -> AsyncGenerator[AsyncSession]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_async_session] = override_session
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


class FakeAuthProvider:
    """
    Auth provider double.

    sign_in() returns (and reports) the identity queued in next_identity, or
    raises next_error. emit() simulates the provider observing a change.
    """

    def __init__(self) -> None:
        self.callbacks: list[Callable[[Identity | None], object]] = []
        self.next_identity: Identity | None = None
        self.next_error: Exception | None = None
        self.sign_out_error: Exception | None = None

    def on_identity_changed(self, callback: Callable[[Identity | None], object]) -> None:
        self.callbacks.append(callback)

    def emit(self, identity: Identity | None) -> None:
        for callback in self.callbacks:
            callback(identity)

    async def sign_in(self, provider: AuthProviderTag) -> Identity:
        if self.next_error is not None:
            raise self.next_error
        if self.next_identity is None:
            raise AuthProviderError("auth/internal-error")
        self.emit(self.next_identity)
        return self.next_identity

    async def sign_out(self) -> None:
        if self.sign_out_error is not None:
            raise self.sign_out_error
        self.emit(None)


@pytest.fixture
def provider() -> FakeAuthProvider:
    return FakeAuthProvider()
