# supportchat/ratelimit/gate.py
"""
Per-sender credit and cooldown gate.

Only unprivileged senders posting to a cost-bearing channel are gated.
Everyone else is admitted with no cooldown and is never charged.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
import logging
from typing import Optional

from ..core.config import Settings
from ..core.enums import ChannelKind
from ..models.user import User
from .config import ChatCostPolicy, get_policy
from .metrics import gate_cooldown_remaining, gate_credits_spent, gate_decisions

logger = logging.getLogger(__name__)


class BlockReason(str, Enum):
    COOLDOWN = "COOLDOWN"
    INSUFFICIENT_BALANCE = "INSUFFICIENT_BALANCE"


@dataclass(frozen=True)
class GateDecision:
    admissible: bool
    reason: Optional[BlockReason] = None
    cooldown_remaining: int = 0
    cost: int = 0


def cooldown_remaining(
    last_chat_time: Optional[datetime], cooldown_seconds: int, now: datetime
) -> int:
    """
    Seconds left before the next send is allowed.

    Elapsed time is floored to whole seconds, so a sender 10.4s into a 30s
    cooldown still has 20s to wait.
    """
    if last_chat_time is None or cooldown_seconds <= 0:
        return 0
    if last_chat_time.tzinfo is None:
        last_chat_time = last_chat_time.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    elapsed = int((now - last_chat_time).total_seconds())
    return max(0, cooldown_seconds - max(0, elapsed))


class RateGate:
    """Evaluate and settle chat sends against a sender's balance and cooldown."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings

    def policy_for(self, channel_kind: ChannelKind) -> ChatCostPolicy:
        return get_policy(channel_kind, self._settings)

    @staticmethod
    def is_gated(sender: User, channel_kind: ChannelKind) -> bool:
        return channel_kind is ChannelKind.COST_BEARING and not sender.is_privileged

    def evaluate(self, sender: User, channel_kind: ChannelKind, now: datetime) -> GateDecision:
        if not self.is_gated(sender, channel_kind):
            gate_decisions.labels(channel_kind=channel_kind.value, outcome="exempt").inc()
            return GateDecision(admissible=True)

        policy = self.policy_for(channel_kind)
        remaining = cooldown_remaining(sender.last_chat_time, policy.cooldown_seconds, now)
        if remaining > 0:
            gate_decisions.labels(channel_kind=channel_kind.value, outcome="cooldown").inc()
            gate_cooldown_remaining.observe(remaining)
            logger.info(
                "[CHAT-GATE] Cooldown active for user %s: %ss remaining", sender.id, remaining
            )
            return GateDecision(
                admissible=False,
                reason=BlockReason.COOLDOWN,
                cooldown_remaining=remaining,
                cost=policy.cost,
            )

        if sender.credits < policy.cost:
            gate_decisions.labels(channel_kind=channel_kind.value, outcome="insufficient").inc()
            logger.info(
                "[CHAT-GATE] Insufficient balance for user %s: has %s, needs %s",
                sender.id,
                sender.credits,
                policy.cost,
            )
            return GateDecision(
                admissible=False,
                reason=BlockReason.INSUFFICIENT_BALANCE,
                cost=policy.cost,
            )

        gate_decisions.labels(channel_kind=channel_kind.value, outcome="allowed").inc()
        return GateDecision(admissible=True, cost=policy.cost)

    def settle(self, sender: User, channel_kind: ChannelKind, now: datetime) -> User:
        """
        Apply a confirmed send's economic side effects.

        Returns the sender unchanged when the send was not gated. Call only
        after the append has been confirmed by the feed.
        """
        if not self.is_gated(sender, channel_kind):
            return sender

        policy = self.policy_for(channel_kind)
        if sender.credits < policy.cost:
            # Balance moved between evaluate and settle; never go negative
            raise ValueError(
                f"Cannot settle send for user {sender.id}: balance {sender.credits} < cost {policy.cost}"
            )
        if policy.cost:
            gate_credits_spent.inc(policy.cost)
        return sender.model_copy(
            update={"credits": sender.credits - policy.cost, "last_chat_time": now}
        )
