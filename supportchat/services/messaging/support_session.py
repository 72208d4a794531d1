# supportchat/services/messaging/support_session.py
"""
Public send/receive/delete contract for one chat widget instance.

State machine:
    IDLE -> RESOLVING -> SUBSCRIBED <-> SENDING ... -> CLOSED
                      \\-> UNRESOLVED (privileged viewer, no target)

Economic side effects of a send are applied strictly in the order
append-confirm -> settle -> owner callback, and at most one send is
outstanding per session; a second concurrent send is rejected with BUSY.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
import logging
from typing import Callable, List, Optional

from ...core import config as core_config
from ...core.config import Settings
from ...core.enums import ChatErrorCode, ChatTab, SessionState
from ...core.exceptions import ChangeFeedException, InvalidSessionStateException
from ...core.metrics import CHAT_SEND_TOTAL
from ...models.channel import ChannelId
from ...models.message import Message, build_outgoing_record
from ...models.user import User
from ...ratelimit.gate import BlockReason, RateGate, cooldown_remaining
from .change_feed import ChangeFeedClient
from .message_stream import MessageStream
from .moderation import ModerationGate
from .room_resolver import default_tab, is_resolved, resolve, tabs_visible

logger = logging.getLogger(__name__)

UserUpdatedCallback = Callable[[User], None]

_BLOCK_CODES = {
    BlockReason.COOLDOWN: ChatErrorCode.COOLDOWN,
    BlockReason.INSUFFICIENT_BALANCE: ChatErrorCode.INSUFFICIENT_BALANCE,
}


@dataclass(frozen=True)
class SendResult:
    ok: bool
    error: Optional[ChatErrorCode] = None
    message_id: Optional[str] = None
    cooldown_remaining: int = 0

    @classmethod
    def failed(cls, error: ChatErrorCode, cooldown_remaining: int = 0) -> "SendResult":
        return cls(ok=False, error=error, cooldown_remaining=cooldown_remaining)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SupportSession:
    def __init__(
        self,
        user: User,
        feed: ChangeFeedClient,
        on_user_updated: Optional[UserUpdatedCallback] = None,
        settings: Optional[Settings] = None,
        gate: Optional[RateGate] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._settings = settings or core_config.settings
        self._user = user
        self._feed = feed
        self._on_user_updated = on_user_updated
        self._gate = gate or RateGate(self._settings)
        self._moderation = ModerationGate(feed, self._settings.sub_admin_can_moderate)
        self._stream = MessageStream(
            feed,
            limit=self._settings.recent_window,
            retry_initial_s=self._settings.feed_retry_initial_s,
            retry_max_s=self._settings.feed_retry_max_s,
        )
        self._clock = clock or _utc_now

        self._state = SessionState.IDLE
        self._sending = False
        self._channel: Optional[ChannelId] = None
        self._room_id: Optional[str] = None
        self._target_user_id: Optional[str] = None
        self._active_tab = default_tab(user.role)

    async def __aenter__(self) -> "SupportSession":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        if self._state not in (SessionState.IDLE, SessionState.CLOSED):
            await self.close()

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------
    @property
    def state(self) -> SessionState:
        if self._sending and self._state is SessionState.SUBSCRIBED:
            return SessionState.SENDING
        return self._state

    @property
    def user(self) -> User:
        return self._user

    @property
    def channel(self) -> Optional[ChannelId]:
        return self._channel

    @property
    def active_tab(self) -> ChatTab:
        return self._active_tab

    @property
    def tabs_visible(self) -> bool:
        return tabs_visible(self._room_id, self._user.role, self._target_user_id)

    @property
    def messages(self) -> List[Message]:
        return self._stream.messages

    @property
    def stream(self) -> MessageStream:
        return self._stream

    @property
    def stream_available(self) -> bool:
        """False means "stream temporarily unavailable" to the caller."""
        return self._stream.available

    def cooldown_remaining(self, now: Optional[datetime] = None) -> int:
        if self._channel is None or not RateGate.is_gated(self._user, self._channel.kind):
            return 0
        policy = self._gate.policy_for(self._channel.kind)
        return cooldown_remaining(
            self._user.last_chat_time, policy.cooldown_seconds, now or self._clock()
        )

    def _require_active(self, operation: str) -> None:
        if self._state in (SessionState.IDLE, SessionState.CLOSED):
            raise InvalidSessionStateException(operation, self._state.value)

    # ------------------------------------------------------------------
    # Channel lifecycle
    # ------------------------------------------------------------------
    async def open(
        self,
        room_id: Optional[str] = None,
        tab: Optional[ChatTab] = None,
        target_user_id: Optional[str] = None,
    ) -> SessionState:
        if self._state is SessionState.CLOSED:
            raise InvalidSessionStateException("open", self._state.value)
        self._room_id = room_id
        self._target_user_id = target_user_id
        if tab is not None:
            self._active_tab = tab
        return await self._resolve_and_subscribe()

    async def switch_tab(self, tab: ChatTab) -> SessionState:
        self._require_active("switch_tab")
        self._active_tab = tab
        return await self._resolve_and_subscribe()

    async def retarget(self, target_user_id: Optional[str]) -> SessionState:
        self._require_active("retarget")
        self._target_user_id = target_user_id
        return await self._resolve_and_subscribe()

    async def _resolve_and_subscribe(self) -> SessionState:
        self._state = SessionState.RESOLVING
        resolution = resolve(
            self._room_id,
            self._active_tab,
            self._user.role,
            self._user.id,
            self._target_user_id,
        )

        if not is_resolved(resolution):
            self._channel = None
            self._state = SessionState.UNRESOLVED
            await self._stream.unsubscribe()
            logger.info("[CHAT-SESSION] No channel for %s viewer %s", self._user.role.value, self._user.id)
            return self._state

        if resolution != self._channel or not self._stream.is_subscribed:
            self._channel = resolution
            await self._stream.subscribe(resolution)
        self._state = SessionState.SUBSCRIBED
        logger.info("[CHAT-SESSION] User %s on %s", self._user.id, resolution.path)
        return self._state

    async def close(self) -> None:
        self._require_active("close")
        self._state = SessionState.CLOSED
        self._channel = None
        await self._stream.unsubscribe()
        logger.info("[CHAT-SESSION] Closed session for user %s", self._user.id)

    def update_user(self, user: User) -> None:
        """Accept a fresher profile from the owner (e.g. after a top-up)."""
        if user.id != self._user.id:
            raise ValueError("update_user cannot switch to a different user")
        self._user = user

    # ------------------------------------------------------------------
    # Send / delete
    # ------------------------------------------------------------------
    async def send(self, text: str) -> SendResult:
        self._require_active("send")

        if not text or not text.strip():
            return self._reject(ChatErrorCode.VALIDATION)
        if self._sending:
            return self._reject(ChatErrorCode.BUSY)
        if self._channel is None:
            return self._reject(ChatErrorCode.UNRESOLVED_CHANNEL)

        channel = self._channel
        sender = self._user
        now = self._clock()
        decision = self._gate.evaluate(sender, channel.kind, now)
        if not decision.admissible:
            code = _BLOCK_CODES.get(decision.reason, ChatErrorCode.INSUFFICIENT_BALANCE)
            return self._reject(code, decision.cooldown_remaining)

        record = build_outgoing_record(text, sender.id, sender.name, sender.role)
        self._sending = True
        try:
            try:
                appended = await asyncio.wait_for(
                    self._feed.append(channel.path, record),
                    timeout=self._settings.send_timeout_s,
                )
            except asyncio.TimeoutError:
                logger.warning("[CHAT-SESSION] Append to %s timed out", channel.path)
                return self._reject(ChatErrorCode.SEND_FAILED)
            except ChangeFeedException as exc:
                logger.warning("[CHAT-SESSION] Append to %s failed: %s", channel.path, exc)
                return self._reject(ChatErrorCode.SEND_FAILED)

            self._settle(channel, now, appended.record_id)
        finally:
            self._sending = False

        CHAT_SEND_TOTAL.labels(outcome="sent").inc()
        logger.info("[CHAT-SESSION] User %s sent %s to %s", sender.id, appended.record_id, channel.path)
        return SendResult(ok=True, message_id=appended.record_id)

    def _settle(self, channel: ChannelId, now: datetime, record_id: str) -> None:
        # Charge whatever profile is current now; update_user may have run mid-send.
        current = self._user
        try:
            settled = self._gate.settle(current, channel.kind, now)
        except ValueError:
            logger.warning(
                "[CHAT-SESSION] %s on %s left unsettled: balance %s dropped below cost mid-send",
                record_id,
                channel.path,
                current.credits,
            )
            CHAT_SEND_TOTAL.labels(outcome="unsettled").inc()
            return
        if settled is not current:
            self._user = settled
            self._notify_user_updated(settled)

    def _reject(self, error: ChatErrorCode, remaining: int = 0) -> SendResult:
        CHAT_SEND_TOTAL.labels(outcome=error.value.lower()).inc()
        return SendResult.failed(error, cooldown_remaining=remaining)

    def _notify_user_updated(self, user: User) -> None:
        if self._on_user_updated is None:
            return
        try:
            self._on_user_updated(user)
        except Exception:
            logger.exception("[CHAT-SESSION] User update callback failed for %s", user.id)

    async def delete(self, message_id: str) -> None:
        """Moderation delete; silently ignored for unauthorized actors."""
        self._require_active("delete")
        if self._channel is None:
            return
        try:
            await self._moderation.delete(self._user.role, self._channel, message_id)
        except ChangeFeedException as exc:
            logger.warning("[CHAT-SESSION] Delete of %s failed: %s", message_id, exc)
