"""
Redis caching service for availability views.

CACHING STRATEGY
================

What we cache:
  - Rendered day grids (JSON-serialized)
    key: "availability:grid:date={YYYY-MM-DD}"
  - The group session listing with reservation counts
    key: "availability:sessions"

Why:
  - Rendering a day is the most frequent read and touches every cell
  - Serving from Redis avoids the grouped count query per page view

Invalidation strategy:
  - On any successful reserve, cancel or session change: delete all
    "availability:*" keys (SCAN, the keyspace is tiny: one key per viewed day)
  - TTL-based expiry as safety net

Why this is safe:
  - The booking engine never reads the cache; capacity is always checked
    against the database at commit time. A stale grid can only mislead a
    viewer, never cause an oversell.
"""

import json
from datetime import date
from typing import Optional

import redis.asyncio as redis
from facility_booking.core.config import get_settings
from facility_booking.core.logging import get_logger
from facility_booking.core.metrics import record_cache_operation

logger = get_logger(__name__)
settings = get_settings()

CACHE_PREFIX = "availability:"
SESSIONS_KEY = f"{CACHE_PREFIX}sessions"

_redis_client: Optional[redis.Redis] = None


async def get_redis() -> Optional[redis.Redis]:
    """Get or create Redis connection. Returns None if Redis is disabled."""
    global _redis_client

    if not settings.REDIS_ENABLED:
        return None

    if _redis_client is None:
        try:
            _redis_client = redis.from_url(
                settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
            )
            # Test connection
            await _redis_client.ping()
            logger.info("redis_connected", url=settings.REDIS_URL)
        except Exception as e:
            logger.error("redis_connection_failed", error=str(e))
            _redis_client = None
            return None

    return _redis_client


async def close_redis() -> None:
    """Close Redis connection on shutdown."""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


def _make_grid_key(day: date) -> str:
    return f"{CACHE_PREFIX}grid:date={day.isoformat()}"


async def _get(key: str) -> Optional[dict]:
    client = await get_redis()
    if not client:
        return None

    try:
        data = await client.get(key)
        record_cache_operation("get", hit=bool(data))
        if data:
            logger.debug("cache_hit", key=key)
            return json.loads(data)
        logger.debug("cache_miss", key=key)
    except Exception as e:
        logger.error("cache_get_error", key=key, error=str(e))

    return None


async def _set(key: str, data: dict) -> None:
    client = await get_redis()
    if not client:
        return

    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(data, default=str))
        logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)
    except Exception as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def get_cached_grid(day: date) -> Optional[dict]:
    return await _get(_make_grid_key(day))


async def set_cached_grid(day: date, data: dict) -> None:
    await _set(_make_grid_key(day), data)


async def get_cached_sessions() -> Optional[dict]:
    return await _get(SESSIONS_KEY)


async def set_cached_sessions(data: dict) -> None:
    await _set(SESSIONS_KEY, data)


async def invalidate_availability_cache() -> None:
    """
    Invalidate all cached grids and session listings.
    Uses SCAN to find and delete all keys matching the prefix.
    """
    client = await get_redis()
    if not client:
        return

    try:
        deleted = 0
        async for key in client.scan_iter(match=f"{CACHE_PREFIX}*", count=100):
            await client.delete(key)
            deleted += 1
        logger.info("cache_invalidated", keys_deleted=deleted)
    except Exception as e:
        logger.error("cache_invalidation_error", error=str(e))


async def get_cache_stats() -> dict:
    """Get Redis cache statistics for monitoring."""
    client = await get_redis()
    if not client:
        return {"status": "disabled"}

    try:
        info = await client.info("stats")
        keyspace = await client.info("keyspace")
        hits = info.get("keyspace_hits", 0)
        misses = info.get("keyspace_misses", 0)
        return {
            "status": "connected",
            "hits": hits,
            "misses": misses,
            "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
            "keys": keyspace,
        }
    except Exception as e:
        return {"status": "error", "error": str(e)}
