"""
Redis caching service for event and participant listings.

CACHING STRATEGY
================

What we cache:
  - Event listing responses (paginated, JSON-serialized)
    Key pattern: "events:list:{query}"
  - Per-event participant listings shown to admins
    Key pattern: "events:{event_id}:participants:{query}"

Invalidation strategy:
  - Every successful admission transition changes a counter and the
    participant list of one event: delete all event list keys plus that
    event's participant keys
  - On event creation: delete all event list keys
  - TTL-based expiry as safety net (5 minutes)

What we never cache:
  - check-participation / check-rejection: a stale answer there would let a
    user retry a join that is already known to fail
  - Anything the admission controller reads inside its transaction

Redis is advisory: when it is disabled or unreachable every call here is a
logged no-op and the database answers directly.
"""

import json
from typing import Optional

import redis.asyncio as redis
from admissions.core.config import get_settings
from admissions.core.logging import get_logger

logger = get_logger(__name__)
settings = get_settings()

_redis_client: Optional[redis.Redis] = None

EVENT_LIST_PREFIX = "events:list:"


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


def _participants_prefix(event_id: int) -> str:
    return f"events:{event_id}:participants:"


async def _get(key: str) -> Optional[dict | list]:
    client = await get_redis()
    if not client:
        return None

    try:
        data = await client.get(key)
        if data:
            logger.debug("cache_hit", key=key)
            return json.loads(data)
        logger.debug("cache_miss", key=key)
    except Exception as e:
        logger.error("cache_get_error", key=key, error=str(e))

    return None


async def _set(key: str, data: dict | list) -> None:
    client = await get_redis()
    if not client:
        return

    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(data, default=str))
        logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)
    except Exception as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def _delete_matching(client: redis.Redis, pattern: str) -> int:
    deleted = 0
    async for key in client.scan_iter(match=pattern, count=100):
        await client.delete(key)
        deleted += 1
    return deleted


async def get_cached_events(query_key: str) -> Optional[dict]:
    """Retrieve cached event list response."""
    return await _get(EVENT_LIST_PREFIX + query_key)


async def set_cached_events(query_key: str, data: dict) -> None:
    """Cache event list response with TTL."""
    await _set(EVENT_LIST_PREFIX + query_key, data)


async def get_cached_participants(event_id: int, query_key: str) -> Optional[list]:
    return await _get(_participants_prefix(event_id) + query_key)


async def set_cached_participants(event_id: int, query_key: str, data: list) -> None:
    await _set(_participants_prefix(event_id) + query_key, data)


async def invalidate_event_cache(event_id: Optional[int] = None) -> None:
    """
    Invalidate all cached event listings, and the participant listings of
    `event_id` when given. Uses SCAN to find keys by prefix.
    """
    client = await get_redis()
    if not client:
        return

    try:
        deleted = await _delete_matching(client, EVENT_LIST_PREFIX + "*")
        if event_id is not None:
            deleted += await _delete_matching(client, _participants_prefix(event_id) + "*")
        logger.info("cache_invalidated", event_id=event_id, keys_deleted=deleted)
    except Exception as e:
        logger.error("cache_invalidation_error", event_id=event_id, error=str(e))


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
