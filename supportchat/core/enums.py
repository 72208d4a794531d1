# supportchat/core/enums.py
"""
Core enums for the support chat.

These enums are shared by the gate, the resolver and the session so that
role and channel checks never compare raw strings.
"""

from enum import Enum


class Role(str, Enum):
    """Roles a chat participant can hold."""

    ADMIN = "ADMIN"
    SUB_ADMIN = "SUB_ADMIN"
    STUDENT = "STUDENT"

    @property
    def is_privileged(self) -> bool:
        return self in (Role.ADMIN, Role.SUB_ADMIN)


class ChatTab(str, Enum):
    """Tabs shown by the chat widget when no explicit room is given."""

    GLOBAL = "GLOBAL"
    SUPPORT = "SUPPORT"


class ChannelKind(str, Enum):
    """
    Economic class of a channel.

    COST_BEARING channels charge unprivileged senders and enforce cooldown;
    EXEMPT channels (rooms, direct support) never do.
    """

    COST_BEARING = "cost_bearing"
    EXEMPT = "exempt"


class SessionState(str, Enum):
    IDLE = "idle"
    RESOLVING = "resolving"
    UNRESOLVED = "unresolved"
    SUBSCRIBED = "subscribed"
    SENDING = "sending"
    CLOSED = "closed"


class ChatErrorCode(str, Enum):
    """Outcome codes returned to the caller instead of raised."""

    VALIDATION = "VALIDATION"
    COOLDOWN = "COOLDOWN"
    INSUFFICIENT_BALANCE = "INSUFFICIENT_BALANCE"
    UNRESOLVED_CHANNEL = "UNRESOLVED_CHANNEL"
    UNAUTHORIZED = "UNAUTHORIZED"
    SEND_FAILED = "SEND_FAILED"
    BUSY = "BUSY"
    INVALID_STATE = "INVALID_STATE"
