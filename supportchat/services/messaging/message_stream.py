# supportchat/services/messaging/message_stream.py
"""
Ordered in-memory view of the active channel.

At most one feed subscription is live per stream. Every (re)subscribe and
unsubscribe bumps a generation counter; snapshots tagged with an older
generation are dropped, so a late delivery from a torn-down subscription
can never leak into the current view.
"""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Callable, List, Optional

from ...core.config import DEFAULT_RECENT_WINDOW
from ...core.metrics import CHAT_FEED_ERRORS_TOTAL
from ...models.channel import ChannelId
from ...models.message import Message
from .change_feed import ChangeFeedClient, FeedSnapshot

logger = logging.getLogger(__name__)


def build_view(snapshot: FeedSnapshot, limit: int) -> List[Message]:
    """Fully re-derive a sorted, bounded view from one snapshot."""
    messages: List[Message] = []
    for record_id, record in snapshot.records.items():
        try:
            messages.append(Message.from_record(record_id, record))
        except (ValueError, TypeError) as exc:
            logger.warning("[CHAT-STREAM] Skipping malformed record %s: %s", record_id, exc)
    messages.sort(key=lambda message: message.sort_key)
    return messages[-limit:] if limit > 0 else []


class MessageStream:
    def __init__(
        self,
        feed: ChangeFeedClient,
        limit: int = DEFAULT_RECENT_WINDOW,
        retry_initial_s: float = 0.5,
        retry_max_s: float = 30.0,
        on_change: Optional[Callable[[List[Message]], None]] = None,
    ) -> None:
        if limit < 1:
            raise ValueError("limit must be at least 1")
        self._feed = feed
        self._default_limit = limit
        self._limit = limit
        self._retry_initial_s = retry_initial_s
        self._retry_max_s = retry_max_s
        self._on_change = on_change

        self._generation = 0
        self._channel: Optional[ChannelId] = None
        self._messages: List[Message] = []
        self._available = False
        self._task: Optional[asyncio.Task[None]] = None
        self._changed = asyncio.Event()

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def channel(self) -> Optional[ChannelId]:
        return self._channel

    @property
    def messages(self) -> List[Message]:
        return list(self._messages)

    @property
    def available(self) -> bool:
        """False while the feed subscription is failing and being retried."""
        return self._available

    @property
    def is_subscribed(self) -> bool:
        return self._task is not None

    def _signal_change(self) -> None:
        changed, self._changed = self._changed, asyncio.Event()
        changed.set()

    async def subscribe(self, channel: ChannelId, limit: Optional[int] = None) -> int:
        """Tear down any live subscription, then attach to ``channel``."""
        await self.unsubscribe()

        self._generation += 1
        self._channel = channel
        self._limit = limit or self._default_limit
        generation = self._generation
        self._task = asyncio.create_task(self._run(generation, channel, self._limit))
        logger.info("[CHAT-STREAM] Subscribing to %s (generation %s)", channel.path, generation)
        return generation

    async def unsubscribe(self) -> None:
        self._generation += 1
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            logger.info("[CHAT-STREAM] Unsubscribed from %s", self._channel.path if self._channel else None)
        self._channel = None
        self._messages = []
        self._available = False
        self._signal_change()

    def apply_snapshot(self, generation: int, snapshot: FeedSnapshot) -> bool:
        """Replace the view from ``snapshot``; returns False for stale deliveries."""
        if generation != self._generation or self._channel is None:
            logger.debug("[CHAT-STREAM] Dropping stale snapshot (generation %s)", generation)
            return False
        if snapshot.path != self._channel.path:
            logger.warning(
                "[CHAT-STREAM] Dropping snapshot for %s while on %s", snapshot.path, self._channel.path
            )
            return False

        self._messages = build_view(snapshot, self._limit)
        self._available = True
        logger.debug("[CHAT-STREAM] %s now holds %s messages", snapshot.path, len(self._messages))
        self._signal_change()
        if self._on_change is not None:
            self._on_change(list(self._messages))
        return True

    async def _run(self, generation: int, channel: ChannelId, limit: int) -> None:
        delay = self._retry_initial_s
        while generation == self._generation:
            try:
                async with self._feed.subscribe(channel.path, limit) as snapshots:
                    async for snapshot in snapshots:
                        if not self.apply_snapshot(generation, snapshot):
                            return
                        delay = self._retry_initial_s
                logger.info("[CHAT-STREAM] Feed for %s ended", channel.path)
                return
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                if generation != self._generation:
                    return
                self._available = False
                CHAT_FEED_ERRORS_TOTAL.labels(operation="subscribe").inc()
                logger.warning(
                    "[CHAT-STREAM] Feed for %s unavailable, retrying in %.1fs: %s",
                    channel.path,
                    delay,
                    exc,
                )
                self._signal_change()
                await asyncio.sleep(delay)
                delay = min(delay * 2, self._retry_max_s)

    async def watch(self) -> AsyncIterator[List[Message]]:
        """
        Yield the current view, then every later view, until the
        subscription that was live when watching started is torn down.
        """
        generation = self._generation
        while generation == self._generation:
            changed = self._changed
            yield list(self._messages)
            await changed.wait()
