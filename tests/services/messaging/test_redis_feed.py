from contextlib import asynccontextmanager
import json
from types import SimpleNamespace

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from supportchat.core.exceptions import ChangeFeedException
from supportchat.services.messaging.events import EventType
from supportchat.services.messaging.redis_feed import RedisChangeFeed


class DummyPipeline:
    def __init__(self, redis):
        self._redis = redis
        self._ops = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    def hset(self, key, field, value):
        self._ops.append(lambda: self._redis.hashes.setdefault(key, {}).__setitem__(field, value))

    def zadd(self, key, mapping):
        self._ops.append(lambda: self._redis.zsets.setdefault(key, {}).update(mapping))

    def hdel(self, key, field):
        self._ops.append(lambda: self._redis.hashes.get(key, {}).pop(field, None))

    def zrem(self, key, member):
        self._ops.append(lambda: self._redis.zsets.get(key, {}).pop(member, None))

    async def execute(self):
        if self._redis.fail:
            raise RedisConnectionError("redis down")
        for op in self._ops:
            op()
        return [True] * len(self._ops)


class DummyRedis:
    def __init__(self):
        self.hashes = {}
        self.zsets = {}
        self.fail = False
        self.clock = [1_700_000_000, 0]

    async def time(self):
        seconds, micros = self.clock
        self.clock = [seconds + 1, micros]
        return seconds, micros

    def pipeline(self, transaction=True):
        return DummyPipeline(self)

    async def zrange(self, key, start, end):
        members = [m for m, _ in sorted(self.zsets.get(key, {}).items(), key=lambda item: item[1])]
        stop = None if end == -1 else end + 1
        return members[start:stop]

    async def hmget(self, key, fields):
        stored = self.hashes.get(key, {})
        return [stored.get(f) for f in fields]


class DummyBroadcast:
    def __init__(self, events=()):
        self.published = []
        self.subscribed = []
        self._events = list(events)

    async def publish(self, channel, message):
        self.published.append((channel, json.loads(message)))

    @asynccontextmanager
    async def subscribe(self, channel):
        self.subscribed.append(channel)
        events = list(self._events)

        class _Subscriber:
            def __aiter__(self):
                return self

            async def __anext__(self):
                if not events:
                    raise StopAsyncIteration
                return events.pop(0)

        yield _Subscriber()


@pytest.mark.asyncio
async def test_append_writes_record_with_server_time_and_publishes():
    redis, broadcast = DummyRedis(), DummyBroadcast()
    feed = RedisChangeFeed(redis=redis, broadcast=broadcast, namespace="test")

    result = await feed.append("chat/universal", {"text": "hi", "timestamp": None})

    assert result.timestamp_ms == 1_700_000_000_000
    stored = json.loads(redis.hashes["test:chat/universal:records"][result.record_id])
    assert stored == {"text": "hi", "timestamp": 1_700_000_000_000}
    assert redis.zsets["test:chat/universal:order"] == {result.record_id: 1_700_000_000_000}
    channel, event = broadcast.published[0]
    assert channel == "test:chat/universal"
    assert event["type"] == EventType.RECORD_APPENDED.value
    assert event["payload"]["record_id"] == result.record_id


@pytest.mark.asyncio
async def test_append_failure_raises_change_feed_exception():
    redis, broadcast = DummyRedis(), DummyBroadcast()
    redis.fail = True
    feed = RedisChangeFeed(redis=redis, broadcast=broadcast, namespace="test")

    with pytest.raises(ChangeFeedException):
        await feed.append("chat/universal", {"text": "hi"})

    assert broadcast.published == []


@pytest.mark.asyncio
async def test_publish_failure_does_not_fail_append():
    class BrokenBroadcast(DummyBroadcast):
        async def publish(self, channel, message):
            raise RuntimeError("pubsub down")

    redis = DummyRedis()
    feed = RedisChangeFeed(redis=redis, broadcast=BrokenBroadcast(), namespace="test")

    result = await feed.append("chat/universal", {"text": "hi"})

    assert result.record_id in redis.hashes["test:chat/universal:records"]


@pytest.mark.asyncio
async def test_snapshot_returns_most_recent_records():
    redis = DummyRedis()
    feed = RedisChangeFeed(redis=redis, broadcast=DummyBroadcast(), namespace="test")
    ids = [(await feed.append("chat/rooms/r", {"text": str(i)})).record_id for i in range(4)]

    snapshot = await feed.snapshot("chat/rooms/r", limit=2)

    assert list(snapshot.records) == ids[-2:]


@pytest.mark.asyncio
async def test_delete_removes_record_and_publishes():
    redis, broadcast = DummyRedis(), DummyBroadcast()
    feed = RedisChangeFeed(redis=redis, broadcast=broadcast, namespace="test")
    appended = await feed.append("chat/dm/s1", {"text": "x"})

    await feed.delete("chat/dm/s1", appended.record_id)

    assert redis.hashes["test:chat/dm/s1:records"] == {}
    assert broadcast.published[-1][1]["type"] == EventType.RECORD_DELETED.value


@pytest.mark.asyncio
async def test_subscribe_yields_snapshot_per_notification_and_skips_malformed():
    redis = DummyRedis()
    events = [
        SimpleNamespace(message=json.dumps({"type": "record_appended", "payload": {}})),
        SimpleNamespace(message="not json"),
        SimpleNamespace(message=json.dumps({"type": "record_deleted", "payload": {}})),
    ]
    broadcast = DummyBroadcast(events)
    feed = RedisChangeFeed(redis=redis, broadcast=broadcast, namespace="test")
    await feed.append("chat/universal", {"text": "hi"})

    async with feed.subscribe("chat/universal", limit=10) as snapshots:
        received = [snapshot async for snapshot in snapshots]

    assert broadcast.subscribed == ["test:chat/universal"]
    # initial snapshot + two well-formed notifications
    assert len(received) == 3
    assert all(len(s.records) == 1 for s in received)


@pytest.mark.asyncio
async def test_snapshot_skips_records_deleted_mid_read():
    redis = DummyRedis()
    redis.zsets["test:chat/universal:order"] = {"gone": 1, "kept": 2}
    redis.hashes["test:chat/universal:records"] = {"kept": json.dumps({"text": "k"})}
    feed = RedisChangeFeed(redis=redis, broadcast=DummyBroadcast(), namespace="test")

    snapshot = await feed.snapshot("chat/universal", limit=10)

    assert list(snapshot.records) == ["kept"]
