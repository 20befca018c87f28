"""Redis connection for the stats cache, degrading to no-ops when Redis is off or down."""
import logging
from typing import Any

from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONNECTIONS = 10


class RedisClient:
    """
    Thin async wrapper over redis.asyncio.

    No method raises on a Redis failure: reads return None, writes return
    False, and callers read through to the progress ledger instead.
    """

    def __init__(
        self, url: str, enabled: bool = True, max_connections: int = DEFAULT_MAX_CONNECTIONS,
    ) -> None:
        self._url = url
        self._enabled = enabled
        self._max_connections = max_connections
        self._pool: ConnectionPool | None = None
        self._client: Redis | None = None

    @classmethod
    def from_client(cls, client: Redis) -> "RedisClient":
        """Wrap an already connected client (e.g. an in-process fake in tests)."""
        instance = cls(url="")
        instance._client = client
        return instance

    async def connect(self) -> None:
        """Open the pool and ping once; stays disconnected on failure."""
        if not self._enabled:
            logger.info("Redis disabled, stats will not be cached")
            return
        pool = ConnectionPool.from_url(self._url, max_connections=self._max_connections)
        client = Redis(connection_pool=pool)
        try:
            await client.ping()
        except RedisError as e:
            logger.warning("Redis unavailable, continuing without stats cache: %s", e)
            await client.aclose()
            await pool.disconnect()
            return
        self._pool, self._client = pool, client
        logger.info("Redis connected successfully")

    async def close(self) -> None:
        if self._client is None:
            return
        await self._client.aclose()
        if self._pool is not None:
            await self._pool.disconnect()
        self._client = None
        self._pool = None

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    async def _call(self, command: str, default: Any, *args: Any) -> Any:
        if self._client is None:
            return default
        try:
            return await getattr(self._client, command)(*args)
        except RedisError as e:
            logger.warning("Redis %s failed: %s", command.upper(), e)
            return default

    async def ping(self) -> bool:
        return bool(await self._call("ping", False))

    async def get(self, key: str) -> bytes | None:
        return await self._call("get", None, key)

    async def setex(self, key: str, seconds: int, value: str | bytes) -> bool:
        """Store value for seconds; False if it could not be written."""
        return bool(await self._call("setex", False, key, seconds, value))

    async def delete(self, *keys: str) -> bool:
        """Delete keys; False if Redis could not be reached."""
        return await self._call("delete", None, *keys) is not None


class _ClientHolder:
    client: RedisClient | None = None


_holder = _ClientHolder()


def get_redis_client() -> RedisClient | None:
    """The process-wide client installed at startup, if any."""
    return _holder.client


def set_redis_client(client: RedisClient | None) -> None:
    _holder.client = client
