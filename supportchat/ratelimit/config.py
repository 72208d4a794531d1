from dataclasses import dataclass
import json
import logging
import os
from typing import Any, Dict, Optional

from ..core import config as core_config
from ..core.config import Settings
from ..core.enums import ChannelKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChatCostPolicy:
    cost: int = 0
    cooldown_seconds: int = 0

    def __post_init__(self) -> None:
        if self.cost < 0 or self.cooldown_seconds < 0:
            raise ValueError("cost and cooldown_seconds must be non-negative")

    @property
    def is_free(self) -> bool:
        return self.cost == 0 and self.cooldown_seconds == 0


EXEMPT_POLICY = ChatCostPolicy(cost=0, cooldown_seconds=0)


_OVERRIDE_FIELDS = {"cost": "cost", "cooldown": "cooldown_seconds", "cooldown_seconds": "cooldown_seconds"}

# Validated per-kind overrides, keyed by ChannelKind value
_POLICY_OVERRIDES: Dict[str, Dict[str, int]] = {}


def _validate_override(kind: str, raw: Dict[str, Any]) -> Optional[Dict[str, int]]:
    if kind != ChannelKind.COST_BEARING.value:
        logger.warning("[CHAT-GATE] Ignoring override for non cost-bearing kind %r", kind)
        return None
    validated: Dict[str, int] = {}
    for key, value in raw.items():
        field = _OVERRIDE_FIELDS.get(key)
        if field is None:
            continue
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            logger.warning("[CHAT-GATE] Dropping override for %s: %s=%r is not a non-negative integer", kind, key, value)
            return None
        validated[field] = value
    return validated or None


def _load_overrides_from_env() -> Dict[str, Dict[str, int]]:
    """Per-kind overrides, e.g. {"cost_bearing": {"cost": 5, "cooldown": 30}}."""
    raw = os.getenv("SUPPORTCHAT_POLICY_OVERRIDES_JSON", "").strip()
    if not raw:
        return {}
    try:
        obj = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("[CHAT-GATE] Ignoring malformed SUPPORTCHAT_POLICY_OVERRIDES_JSON")
        return {}
    if not isinstance(obj, dict):
        return {}
    overrides: Dict[str, Dict[str, int]] = {}
    for kind, value in obj.items():
        if not isinstance(value, dict):
            continue
        validated = _validate_override(str(kind), value)
        if validated is not None:
            overrides[str(kind)] = validated
    return overrides


def reload_config() -> Dict[str, Any]:
    """Re-read policy overrides from the environment.

    Returns the active overrides for debugging/introspection.
    """
    global _POLICY_OVERRIDES

    _POLICY_OVERRIDES = _load_overrides_from_env()
    logger.info("[CHAT-GATE] Loaded %s policy override(s)", len(_POLICY_OVERRIDES))
    return {"policy_overrides": dict(_POLICY_OVERRIDES)}


def get_policy(kind: ChannelKind, settings: Optional[Settings] = None) -> ChatCostPolicy:
    """Return the effective cost/cooldown policy for a channel kind.

    EXEMPT channels are always free; overrides apply to COST_BEARING only.
    """
    if kind is ChannelKind.EXEMPT:
        return EXEMPT_POLICY

    cfg = settings or core_config.settings
    values = {"cost": cfg.chat_cost, "cooldown_seconds": cfg.chat_cooldown_seconds}
    values.update(_POLICY_OVERRIDES.get(kind.value, {}))
    return ChatCostPolicy(**values)


reload_config()
