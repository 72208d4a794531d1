from prometheus_client import Counter, Histogram

from ..core.metrics import REGISTRY

gate_decisions = Counter(
    "supportchat_gate_decisions_total",
    "chat gate decisions",
    ["channel_kind", "outcome"],
    registry=REGISTRY,
)
gate_cooldown_remaining = Histogram(
    "supportchat_gate_cooldown_remaining_seconds",
    "cooldown remaining when a send is blocked",
    registry=REGISTRY,
    buckets=(1.0, 5.0, 10.0, 30.0, 60.0, 300.0, 900.0),
)
gate_credits_spent = Counter(
    "supportchat_gate_credits_spent_total",
    "credits deducted by settled sends",
    registry=REGISTRY,
)

__all__ = [
    "gate_decisions",
    "gate_cooldown_remaining",
    "gate_credits_spent",
]
