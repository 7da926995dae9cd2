"""Redis client wrapper for shared, TTL-bearing state."""

import logging

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from contactsync.settings import settings

logger = logging.getLogger(__name__)


class RedisClient:
    """Redis client wrapper for async operations."""

    def __init__(self) -> None:
        """Initialize Redis client."""
        self._client: aioredis.Redis | None = None
        self._enabled: bool = settings.redis_enabled

    @property
    def client(self) -> aioredis.Redis | None:
        """Underlying connection, or None when disabled or not connected."""
        if not self._enabled:
            return None
        return self._client

    async def connect(self) -> None:
        """Connect to Redis."""
        if not self._enabled:
            logger.warning("Redis disabled - sync rate limiting will reject requests")
            return
        if self._client is None:
            client = aioredis.from_url(
                settings.redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
            try:
                await client.ping()
            except RedisError as e:
                logger.error(f"Redis connection failed: {e}")
                await client.aclose()
                raise
            self._client = client
            logger.info("Redis connected successfully")

    def use_client(self, client: aioredis.Redis) -> None:
        """Attach an already-constructed client (used by tests)."""
        self._client = client
        self._enabled = True

    async def ping(self) -> bool:
        """True if the server answers; never raises."""
        if self.client is None:
            return False
        try:
            return bool(await self.client.ping())
        except RedisError as e:
            logger.warning(f"Redis ping failed: {e}")
            return False

    async def disconnect(self) -> None:
        """Disconnect from Redis."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None


# Global Redis client instance
redis_client = RedisClient()
