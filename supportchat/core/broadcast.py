# supportchat/core/broadcast.py
"""
Shared broadcast manager for change-feed notifications.

One Broadcast instance per process holds a single Redis Pub/Sub connection;
every feed subscription in the process multiplexes over it.
"""

import logging
from typing import Optional

from broadcaster import Broadcast

from .config import settings

logger = logging.getLogger(__name__)

_broadcast: Optional[Broadcast] = None


def get_broadcast() -> Broadcast:
    """
    Get the shared broadcast instance.

    Raises:
        RuntimeError: If broadcast is not initialized (call connect_broadcast first)
    """
    if _broadcast is None:
        raise RuntimeError("Broadcast not initialized. Call connect_broadcast() during startup.")
    return _broadcast


def is_broadcast_initialized() -> bool:
    return _broadcast is not None


async def connect_broadcast(redis_url: Optional[str] = None) -> Broadcast:
    """
    Connect to Redis via Broadcaster.

    Call once during startup, before any RedisChangeFeed subscription.
    """
    global _broadcast

    url = redis_url or settings.redis_url or "redis://localhost:6379"
    _broadcast = Broadcast(url)
    await _broadcast.connect()
    logger.info("[BROADCAST] Connected to Redis for chat fan-out: %s", url)
    return _broadcast


async def disconnect_broadcast() -> None:
    global _broadcast

    if _broadcast is not None:
        await _broadcast.disconnect()
        _broadcast = None
        logger.info("[BROADCAST] Disconnected from Redis")
