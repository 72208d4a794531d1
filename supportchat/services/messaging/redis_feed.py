# supportchat/services/messaging/redis_feed.py
"""
Redis-backed change feed.

Layout per channel path (prefixed with the configured namespace):
- ``<ns>:<path>:records``  hash, record id -> JSON record
- ``<ns>:<path>:order``    sorted set, record id scored by server time (ms)

Every append/delete publishes a notification on ``<ns>:<path>`` through the
shared Broadcaster connection. Subscribers re-read the most recent ``limit``
records on each notification, so they always see a full snapshot.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
import json
import logging
from typing import Any, AsyncIterator, Dict, List, Optional

from broadcaster import Broadcast
from redis.asyncio import Redis as AsyncRedis
from redis.exceptions import RedisError

from ...core.broadcast import get_broadcast
from ...core.config import settings
from ...core.exceptions import ChangeFeedException
from ...core.metrics import CHAT_FEED_ERRORS_TOTAL
from ...core.redis import get_async_redis_client
from ...core.ulid_helper import generate_ulid
from .change_feed import AppendResult, FeedSnapshot, Record
from .events import build_record_appended_event, build_record_deleted_event, parse_event

logger = logging.getLogger(__name__)


class RedisChangeFeed:
    def __init__(
        self,
        redis: Optional[AsyncRedis] = None,
        broadcast: Optional[Broadcast] = None,
        namespace: Optional[str] = None,
    ) -> None:
        self._redis = redis
        self._broadcast = broadcast
        self._namespace = namespace or settings.namespace

    def _channel(self, path: str) -> str:
        return f"{self._namespace}:{path}"

    def _records_key(self, path: str) -> str:
        return f"{self._namespace}:{path}:records"

    def _order_key(self, path: str) -> str:
        return f"{self._namespace}:{path}:order"

    async def _get_redis(self) -> AsyncRedis:
        if self._redis is None:
            self._redis = await get_async_redis_client()
        return self._redis

    def _get_broadcast(self) -> Broadcast:
        return self._broadcast or get_broadcast()

    async def _server_time_ms(self, redis: AsyncRedis) -> int:
        seconds, micros = await redis.time()
        return int(seconds) * 1000 + int(micros) // 1000

    async def _publish(self, path: str, event: Dict[str, Any]) -> None:
        try:
            await self._get_broadcast().publish(channel=self._channel(path), message=json.dumps(event))
        except Exception as exc:
            # The write is already durable; subscribers catch up on the next notification
            CHAT_FEED_ERRORS_TOTAL.labels(operation="publish").inc()
            logger.warning("[CHAT-FEED] Failed to publish change on %s: %s", path, exc)

    async def snapshot(self, path: str, limit: int) -> FeedSnapshot:
        redis = await self._get_redis()
        ids: List[str] = await redis.zrange(self._order_key(path), -limit, -1) if limit > 0 else []
        if not ids:
            return FeedSnapshot(path=path, records={})
        values = await redis.hmget(self._records_key(path), ids)
        records: Dict[str, Record] = {}
        for record_id, raw in zip(ids, values):
            if raw is None:
                # Deleted between ZRANGE and HMGET
                continue
            try:
                records[record_id] = json.loads(raw)
            except json.JSONDecodeError:
                logger.warning("[CHAT-FEED] Skipping malformed record %s under %s", record_id, path)
        return FeedSnapshot(path=path, records=records)

    async def append(self, path: str, record: Record) -> AppendResult:
        try:
            redis = await self._get_redis()
            timestamp_ms = await self._server_time_ms(redis)
            record_id = generate_ulid()
            stored = dict(record, timestamp=timestamp_ms)
            async with redis.pipeline(transaction=True) as pipe:
                pipe.hset(self._records_key(path), record_id, json.dumps(stored))
                pipe.zadd(self._order_key(path), {record_id: timestamp_ms})
                await pipe.execute()
        except (RedisError, OSError) as exc:
            CHAT_FEED_ERRORS_TOTAL.labels(operation="append").inc()
            logger.error("[CHAT-FEED] Append to %s failed: %s", path, exc)
            raise ChangeFeedException(f"append to {path} failed") from exc

        await self._publish(path, build_record_appended_event(path, record_id, timestamp_ms))
        logger.debug("[CHAT-FEED] Appended %s under %s", record_id, path)
        return AppendResult(record_id=record_id, timestamp_ms=timestamp_ms)

    async def delete(self, path: str, record_id: str) -> None:
        try:
            redis = await self._get_redis()
            async with redis.pipeline(transaction=True) as pipe:
                pipe.hdel(self._records_key(path), record_id)
                pipe.zrem(self._order_key(path), record_id)
                await pipe.execute()
        except (RedisError, OSError) as exc:
            CHAT_FEED_ERRORS_TOTAL.labels(operation="delete").inc()
            logger.error("[CHAT-FEED] Delete of %s under %s failed: %s", record_id, path, exc)
            raise ChangeFeedException(f"delete of {record_id} failed") from exc

        await self._publish(path, build_record_deleted_event(path, record_id))

    @asynccontextmanager
    async def subscribe(self, path: str, limit: int) -> AsyncIterator[AsyncIterator[FeedSnapshot]]:
        channel = self._channel(path)

        async def _iterate(subscriber: Any) -> AsyncIterator[FeedSnapshot]:
            try:
                yield await self.snapshot(path, limit)
                async for event in subscriber:
                    try:
                        parse_event(event.message)
                    except ValueError:
                        logger.warning("[CHAT-FEED] Ignoring malformed notification on %s", channel)
                        continue
                    yield await self.snapshot(path, limit)
            except (RedisError, OSError) as exc:
                CHAT_FEED_ERRORS_TOTAL.labels(operation="subscribe").inc()
                raise ChangeFeedException(f"subscription to {path} failed") from exc

        async with self._get_broadcast().subscribe(channel=channel) as subscriber:
            logger.info("[CHAT-FEED] Subscribed to %s via Broadcaster", channel)
            try:
                yield _iterate(subscriber)
            finally:
                logger.info("[CHAT-FEED] Unsubscribed from %s", channel)
