# supportchat/core/redis.py
"""
Async Redis client for the Redis-backed change feed.

Pub/Sub fan-out goes through the shared Broadcast instance in
``supportchat.core.broadcast``; this client only reads and writes records.
"""

import logging
from typing import Optional

from redis.asyncio import Redis as AsyncRedis

from .config import settings

logger = logging.getLogger(__name__)

_async_redis_client: Optional[AsyncRedis] = None


async def get_async_redis_client() -> AsyncRedis:
    """Get or create the process-wide async Redis client."""
    global _async_redis_client

    if _async_redis_client is None:
        redis_url = settings.redis_url or "redis://localhost:6379"
        _async_redis_client = AsyncRedis.from_url(
            redis_url,
            encoding="utf-8",
            decode_responses=True,
        )
        logger.info("[REDIS-FEED] Async Redis client initialized")

    return _async_redis_client


async def close_async_redis_client() -> None:
    global _async_redis_client

    if _async_redis_client is not None:
        await _async_redis_client.aclose()
        _async_redis_client = None
        logger.info("[REDIS-FEED] Async Redis client closed")
