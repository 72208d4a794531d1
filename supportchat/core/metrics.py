"""Prometheus counters for the chat core."""

from __future__ import annotations

from prometheus_client import CollectorRegistry, Counter

# Private registry so embedding applications can expose it under their own endpoint
REGISTRY = CollectorRegistry()

CHAT_SEND_TOTAL = Counter(
    "supportchat_send_total",
    "Chat send attempts by outcome",
    ["outcome"],
    registry=REGISTRY,
)

CHAT_MODERATION_TOTAL = Counter(
    "supportchat_moderation_total",
    "Moderation delete attempts by outcome",
    ["outcome"],
    registry=REGISTRY,
)

CHAT_FEED_ERRORS_TOTAL = Counter(
    "supportchat_feed_errors_total",
    "Change-feed failures by operation",
    ["operation"],
    registry=REGISTRY,
)

__all__ = [
    "REGISTRY",
    "CHAT_SEND_TOTAL",
    "CHAT_MODERATION_TOTAL",
    "CHAT_FEED_ERRORS_TOTAL",
]
