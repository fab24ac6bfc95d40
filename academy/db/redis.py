"""Redis connection pool.

Same shape as engine.py: with REDIS_URL set there is one shared
``redis.asyncio`` pool; without it ``redis_pool`` is None and the cache,
task queue and rate limiter fall back to in-memory implementations.

Redis holds nothing authoritative here.  Losing it costs cached
analytics snapshots, queued notifications and rate-limit buckets, never
ledger data.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import redis.asyncio as aioredis

from academy.core.config import SETTINGS

logger = logging.getLogger(__name__)

if SETTINGS.redis_url:
    redis_pool: aioredis.Redis | None = aioredis.from_url(  # type: ignore[type-arg]
        SETTINGS.redis_url,
        decode_responses=True,
        max_connections=20,
    )
else:
    redis_pool = None


async def ping_redis() -> bool:
    """True when Redis answers PING (or none is configured)."""
    if redis_pool is None:
        return True
    try:
        await redis_pool.ping()  # type: ignore[misc]
    except Exception:
        logger.exception("Redis ping failed")
        return False
    return True


@asynccontextmanager
async def lifespan_redis():
    if redis_pool is None:
        logger.info("No REDIS_URL configured, Redis features use in-memory fallbacks")
        yield
        return

    if await ping_redis():
        logger.info("Redis connected")
    else:
        # Keep serving: the ledger does not depend on Redis
        logger.warning("Redis unreachable on startup, continuing degraded")

    yield

    await redis_pool.aclose()
    logger.info("Redis connection pool closed")
