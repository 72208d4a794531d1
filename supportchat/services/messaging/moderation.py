# supportchat/services/messaging/moderation.py
"""Delete authorization for chat records."""

import logging

from ...core.enums import Role
from ...core.metrics import CHAT_MODERATION_TOTAL
from ...models.channel import ChannelId
from .change_feed import ChangeFeedClient

logger = logging.getLogger(__name__)


class ModerationGate:
    """
    Forward deletes to the feed for privileged actors only.

    Unauthorized attempts never reach the feed and are not reported back,
    so callers cannot probe for moderation capability.
    """

    def __init__(self, feed: ChangeFeedClient, sub_admin_can_moderate: bool = True) -> None:
        self._feed = feed
        self._sub_admin_can_moderate = sub_admin_can_moderate

    def authorize_delete(self, actor_role: Role) -> bool:
        if actor_role is Role.ADMIN:
            return True
        return actor_role is Role.SUB_ADMIN and self._sub_admin_can_moderate

    async def delete(self, actor_role: Role, channel: ChannelId, message_id: str) -> bool:
        """Returns True when the delete was forwarded to the feed."""
        if not message_id or not self.authorize_delete(actor_role):
            CHAT_MODERATION_TOTAL.labels(outcome="dropped").inc()
            logger.info("[CHAT-MOD] Dropped delete on %s by role %s", channel.path, actor_role.value)
            return False

        await self._feed.delete(channel.path, message_id)
        CHAT_MODERATION_TOTAL.labels(outcome="deleted").inc()
        logger.info("[CHAT-MOD] Deleted %s from %s", message_id, channel.path)
        return True
