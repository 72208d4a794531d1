"""Shared doubles and polling helpers for the chat tests."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, List, Optional, Tuple

from supportchat.core.exceptions import ChangeFeedException
from supportchat.services.messaging.change_feed import AppendResult, InMemoryChangeFeed, Record

NOW = datetime(2026, 3, 14, 12, 0, 0, tzinfo=timezone.utc)


async def wait_until(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    """Yield to the loop until ``predicate`` holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.001)


class RecordingFeed(InMemoryChangeFeed):
    """In-memory feed that records every append/delete call."""

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.append_calls: List[str] = []
        self.delete_calls: List[Tuple[str, str]] = []

    async def append(self, path: str, record: Record) -> AppendResult:
        self.append_calls.append(path)
        return await super().append(path, record)

    async def delete(self, path: str, record_id: str) -> None:
        self.delete_calls.append((path, record_id))
        await super().delete(path, record_id)


class FailingFeed(RecordingFeed):
    """Appends fail until ``failures`` is exhausted."""

    def __init__(self, failures: int = 1, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.failures = failures

    async def append(self, path: str, record: Record) -> AppendResult:
        if self.failures > 0:
            self.failures -= 1
            self.append_calls.append(path)
            raise ChangeFeedException(f"append to {path} rejected")
        return await super().append(path, record)


class GatedFeed(RecordingFeed):
    """Appends block until ``release`` is set; ``delay`` forces a timeout instead."""

    def __init__(self, delay: Optional[float] = None, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.delay = delay
        self.release = asyncio.Event()

    async def append(self, path: str, record: Record) -> AppendResult:
        if self.delay is not None:
            await asyncio.sleep(self.delay)
        else:
            await self.release.wait()
        return await super().append(path, record)


def ticking_clock(start: datetime = NOW, step_ms: int = 1) -> Callable[[], datetime]:
    """Clock that advances ``step_ms`` on every read."""
    state = {"now": start}

    def _clock() -> datetime:
        current = state["now"]
        state["now"] = current + timedelta(milliseconds=step_ms)
        return current

    return _clock
