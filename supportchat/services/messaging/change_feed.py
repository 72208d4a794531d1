# supportchat/services/messaging/change_feed.py
"""
Change-feed client contract and an in-process implementation.

A change feed is an ordered, timestamped record stream addressed by path.
Subscribers receive whole snapshots (the most recent ``limit`` records),
never incremental diffs, so consumers must re-derive their view from each
snapshot they receive.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging
from typing import (
    Any,
    AsyncContextManager,
    AsyncIterator,
    Callable,
    Dict,
    Mapping,
    Optional,
    Protocol,
    Set,
    Union,
)

from ...core.ulid_helper import generate_ulid

logger = logging.getLogger(__name__)

Record = Mapping[str, Any]


@dataclass(frozen=True)
class FeedSnapshot:
    """Most recent records under a path, keyed by feed-assigned id."""

    path: str
    records: Mapping[str, Record] = field(default_factory=dict)


@dataclass(frozen=True)
class AppendResult:
    record_id: str
    timestamp_ms: int


class ChangeFeedClient(Protocol):
    """The only I/O boundary of the chat core."""

    def subscribe(self, path: str, limit: int) -> AsyncContextManager[AsyncIterator[FeedSnapshot]]:
        """Scoped subscription yielding snapshots until the context exits."""
        ...

    async def append(self, path: str, record: Record) -> AppendResult:
        """Append one record atomically; the feed assigns id and timestamp."""
        ...

    async def delete(self, path: str, record_id: str) -> None:
        ...


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


_Item = Union[FeedSnapshot, BaseException]


class InMemoryChangeFeed:
    """
    Single-process change feed.

    Used for local development and tests. With ``echo_pending`` enabled an
    append first publishes the record without a timestamp, then publishes
    it again once the timestamp is committed, mimicking a server echo.
    """

    def __init__(
        self,
        clock: Optional[Callable[[], datetime]] = None,
        echo_pending: bool = False,
    ) -> None:
        self._clock = clock or _utc_now
        self._echo_pending = echo_pending
        self._records: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._subscribers: Dict[str, Set[asyncio.Queue[_Item]]] = {}
        self._limits: Dict[asyncio.Queue[_Item], int] = {}

    # Introspection helpers
    def records(self, path: str) -> Dict[str, Dict[str, Any]]:
        return {k: dict(v) for k, v in self._records.get(path, {}).items()}

    def subscriber_count(self, path: Optional[str] = None) -> int:
        if path is not None:
            return len(self._subscribers.get(path, ()))
        return sum(len(queues) for queues in self._subscribers.values())

    def _snapshot(self, path: str, limit: int) -> FeedSnapshot:
        items = list(self._records.get(path, {}).items())
        recent = items[-limit:] if limit > 0 else []
        return FeedSnapshot(path=path, records={k: dict(v) for k, v in recent})

    def _notify(self, path: str) -> None:
        for queue in list(self._subscribers.get(path, ())):
            queue.put_nowait(self._snapshot(path, self._limits[queue]))

    def inject_error(self, path: str, exc: BaseException) -> None:
        """Fail every live subscription on ``path`` with ``exc``."""
        for queue in list(self._subscribers.get(path, ())):
            queue.put_nowait(exc)

    @asynccontextmanager
    async def subscribe(self, path: str, limit: int) -> AsyncIterator[AsyncIterator[FeedSnapshot]]:
        queue: asyncio.Queue[_Item] = asyncio.Queue()
        self._limits[queue] = limit
        self._subscribers.setdefault(path, set()).add(queue)
        queue.put_nowait(self._snapshot(path, limit))
        logger.debug("[CHAT-FEED] In-memory subscriber attached to %s", path)

        async def _iterate() -> AsyncIterator[FeedSnapshot]:
            while True:
                item = await queue.get()
                if isinstance(item, BaseException):
                    raise item
                yield item

        try:
            yield _iterate()
        finally:
            self._subscribers.get(path, set()).discard(queue)
            self._limits.pop(queue, None)
            if not self._subscribers.get(path):
                self._subscribers.pop(path, None)
            logger.debug("[CHAT-FEED] In-memory subscriber detached from %s", path)

    async def append(self, path: str, record: Record) -> AppendResult:
        record_id = generate_ulid()
        stored = dict(record)
        bucket = self._records.setdefault(path, {})

        if self._echo_pending:
            stored["timestamp"] = None
            bucket[record_id] = stored
            self._notify(path)
            await asyncio.sleep(0)

        timestamp_ms = int(self._clock().timestamp() * 1000)
        stored = dict(stored, timestamp=timestamp_ms)
        bucket[record_id] = stored
        self._notify(path)
        return AppendResult(record_id=record_id, timestamp_ms=timestamp_ms)

    async def delete(self, path: str, record_id: str) -> None:
        bucket = self._records.get(path, {})
        if bucket.pop(record_id, None) is None:
            logger.debug("[CHAT-FEED] Delete of missing record %s under %s ignored", record_id, path)
            return
        self._notify(path)

