# supportchat/services/messaging/__init__.py
"""
Messaging core.

- room_resolver: viewer context -> channel
- message_stream: bounded, sorted view of the active channel
- moderation: privileged deletes
- support_session: orchestrates the above against a change feed
- change_feed / redis_feed: feed contract, in-memory and Redis implementations
"""

from .change_feed import AppendResult, ChangeFeedClient, FeedSnapshot, InMemoryChangeFeed
from .message_stream import MessageStream, build_view
from .moderation import ModerationGate
from .presentation import ChannelHeader, MessageView, describe_channel, present_messages, role_badge
from .redis_feed import RedisChangeFeed
from .room_resolver import UNRESOLVED, Unresolved, default_tab, resolve, tabs_visible
from .support_session import SendResult, SupportSession

__all__ = [
    "AppendResult",
    "ChangeFeedClient",
    "ChannelHeader",
    "FeedSnapshot",
    "InMemoryChangeFeed",
    "MessageStream",
    "MessageView",
    "ModerationGate",
    "RedisChangeFeed",
    "SendResult",
    "SupportSession",
    "UNRESOLVED",
    "Unresolved",
    "build_view",
    "default_tab",
    "describe_channel",
    "present_messages",
    "resolve",
    "role_badge",
    "tabs_visible",
]
