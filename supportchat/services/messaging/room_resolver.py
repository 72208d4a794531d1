# supportchat/services/messaging/room_resolver.py
"""
Map a viewer's context onto a single channel.

Resolution order:
1. An explicit room id always wins; tabs are hidden.
2. The GLOBAL tab maps to the one universal channel.
3. The SUPPORT tab maps to the direct channel of the *student*: the viewer's
   own id for students, the target's id for privileged viewers. A privileged
   viewer without a target has nothing to resolve.
"""

from dataclasses import dataclass
from typing import Optional, Union

from ...core.enums import ChatTab, Role
from ...models.channel import ChannelId, DirectChannel, GlobalChannel, RoomChannel


@dataclass(frozen=True)
class Unresolved:
    """No channel can be derived until the caller supplies a target."""

    reason: str = "target_required"


UNRESOLVED = Unresolved()

Resolution = Union[GlobalChannel, DirectChannel, RoomChannel, Unresolved]


def default_tab(viewer_role: Role) -> ChatTab:
    """Privileged viewers land on support, students on the community channel."""
    return ChatTab.SUPPORT if viewer_role.is_privileged else ChatTab.GLOBAL


def tabs_visible(
    room_id: Optional[str], viewer_role: Role, target_user_id: Optional[str] = None
) -> bool:
    if room_id:
        return False
    return not (viewer_role.is_privileged and target_user_id)


def resolve(
    room_id: Optional[str],
    active_tab: ChatTab,
    viewer_role: Role,
    viewer_id: Optional[str],
    target_user_id: Optional[str] = None,
) -> Resolution:
    if room_id:
        return RoomChannel(room_id)
    if active_tab is ChatTab.GLOBAL:
        return GlobalChannel()

    student_id = target_user_id if viewer_role.is_privileged else viewer_id
    if not student_id:
        return UNRESOLVED
    return DirectChannel(student_id)


def is_resolved(resolution: Resolution) -> bool:
    return not isinstance(resolution, Unresolved)


__all__ = [
    "ChannelId",
    "Resolution",
    "UNRESOLVED",
    "Unresolved",
    "default_tab",
    "is_resolved",
    "resolve",
    "tabs_visible",
]
