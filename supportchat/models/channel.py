# supportchat/models/channel.py
"""
Channel identifiers.

A channel is one of three closed variants. Each variant renders its own
store path, so two different variants can never collide on a path.
"""

from dataclasses import dataclass
from typing import Union

from ..core.enums import ChannelKind

CHAT_ROOT = "chat"
UNIVERSAL_SEGMENT = "universal"
DIRECT_SEGMENT = "dm"
ROOMS_SEGMENT = "rooms"


def _check_key(value: str, label: str) -> None:
    if not value or not value.strip():
        raise ValueError(f"{label} must not be empty")
    if "/" in value:
        raise ValueError(f"{label} must not contain '/': {value!r}")


@dataclass(frozen=True)
class GlobalChannel:
    """The single public community channel."""

    @property
    def kind(self) -> ChannelKind:
        return ChannelKind.COST_BEARING

    @property
    def path(self) -> str:
        return f"{CHAT_ROOT}/{UNIVERSAL_SEGMENT}"


@dataclass(frozen=True)
class DirectChannel:
    """Support thread, always keyed by the student's id."""

    student_id: str

    def __post_init__(self) -> None:
        _check_key(self.student_id, "student_id")

    @property
    def kind(self) -> ChannelKind:
        return ChannelKind.EXEMPT

    @property
    def path(self) -> str:
        return f"{CHAT_ROOT}/{DIRECT_SEGMENT}/{self.student_id}"


@dataclass(frozen=True)
class RoomChannel:
    """Arbitrary named room."""

    room_id: str

    def __post_init__(self) -> None:
        _check_key(self.room_id, "room_id")

    @property
    def kind(self) -> ChannelKind:
        return ChannelKind.EXEMPT

    @property
    def path(self) -> str:
        return f"{CHAT_ROOT}/{ROOMS_SEGMENT}/{self.room_id}"


ChannelId = Union[GlobalChannel, DirectChannel, RoomChannel]


def parse_channel_path(path: str) -> ChannelId:
    """Inverse of ``ChannelId.path``; raises ValueError for unknown layouts."""
    parts = path.strip("/").split("/")
    if len(parts) == 2 and parts[0] == CHAT_ROOT and parts[1] == UNIVERSAL_SEGMENT:
        return GlobalChannel()
    if len(parts) == 3 and parts[0] == CHAT_ROOT:
        if parts[1] == DIRECT_SEGMENT:
            return DirectChannel(parts[2])
        if parts[1] == ROOMS_SEGMENT:
            return RoomChannel(parts[2])
    raise ValueError(f"Unrecognized channel path: {path!r}")
