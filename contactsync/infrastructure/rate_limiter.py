"""Sliding-window rate limiting backed by Redis.

Each key is a sorted set of attempt timestamps. Trimming, counting and
recording run in one MULTI/EXEC pipeline so concurrent instances see a
consistent window. Window state lives only in Redis; there is no
in-process fallback.
"""

import logging
import time
import uuid
from dataclasses import dataclass

from redis.exceptions import RedisError

from contactsync.core.errors import CacheUnavailableError
from contactsync.infrastructure.redis import RedisClient, redis_client

logger = logging.getLogger(__name__)


@dataclass
class RateLimitConfig:
    """Rate limit configuration."""

    requests: int  # Number of attempts allowed per window
    window_seconds: int  # Rolling window length
    key_prefix: str = "rl"  # Redis key prefix


@dataclass
class RateLimitDecision:
    """Outcome of one attempt against a window."""

    allowed: bool
    recent_attempts: int  # attempts already in the window before this one
    remaining: int
    reset_seconds: int


class RedisRateLimiter:
    """Redis sorted-set sliding window limiter."""

    def __init__(self, client: RedisClient = redis_client) -> None:
        self._redis = client

    def _connection(self):
        conn = self._redis.client
        if conn is None:
            raise CacheUnavailableError("Rate limit store unavailable")
        return conn

    async def hit(
        self,
        key: str,
        config: RateLimitConfig,
        max_recent: int | None = None,
    ) -> RateLimitDecision:
        """Record an attempt and decide whether it is allowed.

        Args:
            key: Unique identifier (user id)
            config: Window size and budget
            max_recent: Optional stricter ceiling on prior attempts; an
                attempt is rejected when more than this many are already
                in the window

        Returns:
            RateLimitDecision; rejected attempts are not kept in the window

        Raises:
            CacheUnavailableError: If Redis is not reachable
        """
        conn = self._connection()
        full_key = f"{config.key_prefix}:{key}"
        now = time.time()
        window_start = now - config.window_seconds
        member = f"{now:.6f}:{uuid.uuid4().hex[:8]}"

        try:
            pipe = conn.pipeline(transaction=True)
            pipe.zremrangebyscore(full_key, 0, window_start)
            pipe.zcard(full_key)
            pipe.zadd(full_key, {member: now})
            pipe.expire(full_key, config.window_seconds + 1)
            results = await pipe.execute()

            recent = int(results[1])
            limited = recent >= config.requests or (max_recent is not None and recent > max_recent)

            if limited:
                await conn.zrem(full_key, member)
                oldest = await conn.zrange(full_key, 0, 0, withscores=True)
                if oldest:
                    reset_seconds = int(oldest[0][1] + config.window_seconds - now)
                else:
                    reset_seconds = config.window_seconds
                return RateLimitDecision(
                    allowed=False,
                    recent_attempts=recent,
                    remaining=0,
                    reset_seconds=max(1, reset_seconds),
                )
        except RedisError as e:
            logger.error(f"Redis rate limit check failed: {e}")
            raise CacheUnavailableError("Rate limit store unavailable", cause=e) from e

        return RateLimitDecision(
            allowed=True,
            recent_attempts=recent,
            remaining=max(0, config.requests - recent - 1),
            reset_seconds=config.window_seconds,
        )

