"""Tests for the Redis sliding window rate limiter."""

import time

import pytest

from contactsync.infrastructure.rate_limiter import RateLimitConfig

CONFIG = RateLimitConfig(requests=3, window_seconds=60, key_prefix="rl:test")


@pytest.mark.asyncio
async def test_allows_until_budget_exhausted(rate_limiter):
    decisions = [await rate_limiter.hit("user-1", CONFIG) for _ in range(3)]
    assert [d.allowed for d in decisions] == [True, True, True]
    assert [d.remaining for d in decisions] == [2, 1, 0]

    limited = await rate_limiter.hit("user-1", CONFIG)
    assert limited.allowed is False
    assert limited.recent_attempts == 3
    assert 1 <= limited.reset_seconds <= 60


@pytest.mark.asyncio
async def test_rejected_attempts_are_not_recorded(rate_limiter, fake_redis):
    for _ in range(5):
        await rate_limiter.hit("user-1", CONFIG)
    assert await fake_redis.zcard("rl:test:user-1") == 3


@pytest.mark.asyncio
async def test_max_recent_applies_stricter_ceiling(rate_limiter):
    await rate_limiter.hit("user-1", CONFIG)
    await rate_limiter.hit("user-1", CONFIG)

    decision = await rate_limiter.hit("user-1", CONFIG, max_recent=1)
    assert decision.allowed is False
    assert decision.recent_attempts == 2


@pytest.mark.asyncio
async def test_entries_outside_window_are_trimmed(rate_limiter, fake_redis):
    old = time.time() - 3600
    await fake_redis.zadd("rl:test:user-1", {f"{old}:a": old, f"{old}:b": old, f"{old}:c": old})

    decision = await rate_limiter.hit("user-1", CONFIG)
    assert decision.allowed is True
    assert decision.recent_attempts == 0


@pytest.mark.asyncio
async def test_window_key_has_ttl(rate_limiter, fake_redis):
    await rate_limiter.hit("user-1", CONFIG)
    ttl = await fake_redis.ttl("rl:test:user-1")
    assert 0 < ttl <= 61

