"""Credit-and-cooldown gate for chat sends."""

from .config import ChatCostPolicy, get_policy, reload_config
from .gate import BlockReason, GateDecision, RateGate, cooldown_remaining

__all__ = [
    "BlockReason",
    "ChatCostPolicy",
    "GateDecision",
    "RateGate",
    "cooldown_remaining",
    "get_policy",
    "reload_config",
]
