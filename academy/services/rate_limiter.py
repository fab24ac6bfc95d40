"""Token-bucket rate limiting for write endpoints.

Each client owns a bucket of ``capacity`` tokens refilled at
``refill_rate`` tokens per second; a request spends one token.  Bursts
up to the capacity are fine (a dashboard firing several lesson
completions in a row), sustained hammering is not (a script replaying
quiz attempts).

Two backends behind one Protocol: a dict for a single process and a
Redis hash updated by a Lua script, so every API instance draws from the
same bucket.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True, slots=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    limit: int
    retry_after: float  # seconds until the next token, 0 when allowed


@dataclass(frozen=True, slots=True)
class RateLimitConfig:
    """capacity = burst size, refill_rate = sustained tokens per second.

    ``name`` keeps budgets apart: one caller has one bucket per budget.
    """

    name: str = "default"
    capacity: int = 60
    refill_rate: float = 1.0


@runtime_checkable
class RateLimiter(Protocol):
    async def check(self, key: str, config: RateLimitConfig) -> RateLimitResult: ...
    async def reset(self, key: str) -> None: ...


def _spend(tokens: float, config: RateLimitConfig) -> tuple[float, RateLimitResult]:
    """Take one token if there is one; return the new level and the verdict."""
    if tokens >= 1:
        tokens -= 1
        return tokens, RateLimitResult(True, int(tokens), config.capacity, 0)
    wait = (1 - tokens) / config.refill_rate
    return tokens, RateLimitResult(False, 0, config.capacity, wait)


class InMemoryRateLimiter:
    """Per-process buckets.  Fine for dev and tests, not for N replicas."""

    def __init__(self) -> None:
        # key -> (tokens, monotonic time of the last check)
        self._buckets: dict[str, tuple[float, float]] = {}

    async def check(self, key: str, config: RateLimitConfig) -> RateLimitResult:
        now = time.monotonic()
        tokens, seen = self._buckets.get(key, (float(config.capacity), now))
        tokens = min(float(config.capacity), tokens + (now - seen) * config.refill_rate)
        tokens, result = _spend(tokens, config)
        self._buckets[key] = (tokens, now)
        return result

    async def reset(self, key: str) -> None:
        self._buckets.pop(key, None)


class RedisRateLimiter:
    """Buckets shared by every API instance.

    The refill-and-spend runs inside one Lua script, so concurrent
    requests on different replicas cannot both take the last token.
    """

    # KEYS[1] bucket; ARGV capacity, refill_rate, now (seconds)
    # -> {allowed 0|1, remaining, retry_after_ms}
    _LUA_SCRIPT = """
    local capacity = tonumber(ARGV[1])
    local rate = tonumber(ARGV[2])
    local now = tonumber(ARGV[3])

    local state = redis.call('HMGET', KEYS[1], 'tokens', 'ts')
    local tokens = tonumber(state[1]) or capacity
    local ts = tonumber(state[2]) or now
    tokens = math.min(capacity, tokens + math.max(0, now - ts) * rate)

    local allowed = 0
    local wait_ms = 0
    if tokens >= 1 then
        tokens = tokens - 1
        allowed = 1
    else
        wait_ms = math.ceil((1 - tokens) / rate * 1000)
    end

    redis.call('HSET', KEYS[1], 'tokens', tokens, 'ts', now)
    redis.call('PEXPIRE', KEYS[1], math.ceil(capacity / rate * 1000) + 60000)
    if allowed == 1 then
        return {1, math.floor(tokens), 0}
    end
    return {0, 0, wait_ms}
    """

    def __init__(self, redis_client) -> None:
        self._redis = redis_client
        self._script = redis_client.register_script(self._LUA_SCRIPT)

    async def check(self, key: str, config: RateLimitConfig) -> RateLimitResult:
        allowed, remaining, wait_ms = await self._script(
            keys=[f"ratelimit:{key}"],
            args=[config.capacity, config.refill_rate, time.time()],
        )
        return RateLimitResult(
            allowed=bool(allowed),
            remaining=int(remaining),
            limit=config.capacity,
            retry_after=wait_ms / 1000,
        )

    async def reset(self, key: str) -> None:
        await self._redis.delete(f"ratelimit:{key}")
