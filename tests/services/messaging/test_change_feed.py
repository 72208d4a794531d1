from datetime import datetime, timezone

import pytest

from supportchat.services.messaging.change_feed import InMemoryChangeFeed

T0 = datetime(2026, 3, 14, 12, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_append_assigns_id_and_server_time():
    feed = InMemoryChangeFeed(clock=lambda: T0)

    result = await feed.append("chat/universal", {"text": "hi", "timestamp": None})

    assert result.timestamp_ms == int(T0.timestamp() * 1000)
    assert feed.records("chat/universal")[result.record_id]["timestamp"] == result.timestamp_ms


@pytest.mark.asyncio
async def test_subscription_delivers_bounded_snapshots():
    feed = InMemoryChangeFeed(clock=lambda: T0)
    for i in range(3):
        await feed.append("chat/rooms/r", {"text": str(i)})

    async with feed.subscribe("chat/rooms/r", limit=2) as snapshots:
        assert feed.subscriber_count("chat/rooms/r") == 1
        first = await snapshots.__anext__()
        assert [r["text"] for r in first.records.values()] == ["1", "2"]

        await feed.append("chat/rooms/r", {"text": "3"})
        second = await snapshots.__anext__()
        assert [r["text"] for r in second.records.values()] == ["2", "3"]

    assert feed.subscriber_count() == 0


@pytest.mark.asyncio
async def test_echo_pending_publishes_uncommitted_record_first():
    feed = InMemoryChangeFeed(clock=lambda: T0, echo_pending=True)

    async with feed.subscribe("chat/universal", limit=10) as snapshots:
        await snapshots.__anext__()
        await feed.append("chat/universal", {"text": "hi"})
        pending = await snapshots.__anext__()
        committed = await snapshots.__anext__()

    assert [r["timestamp"] for r in pending.records.values()] == [None]
    assert [r["timestamp"] for r in committed.records.values()] == [int(T0.timestamp() * 1000)]


@pytest.mark.asyncio
async def test_delete_of_missing_record_is_noop():
    feed = InMemoryChangeFeed()

    await feed.delete("chat/universal", "missing")

    assert feed.records("chat/universal") == {}
