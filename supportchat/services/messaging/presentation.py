"""View-model helpers for rendering a chat session."""

from dataclasses import dataclass
from datetime import tzinfo
from typing import Iterable, List, Optional

from ...core.enums import ChatTab, Role
from ...models.channel import DirectChannel, GlobalChannel, RoomChannel
from ...models.message import Committed, Message
from .room_resolver import Resolution

PENDING_LABEL = "Sending..."


@dataclass(frozen=True)
class ChannelHeader:
    title: str
    subtitle: str


@dataclass(frozen=True)
class MessageView:
    message: Message
    is_mine: bool
    is_staff: bool
    badge: Optional[str]
    time_label: str


def role_badge(role: Role) -> Optional[str]:
    if role is Role.ADMIN:
        return "ADMIN"
    if role is Role.SUB_ADMIN:
        return "STAFF"
    return None


def describe_channel(
    resolution: Resolution,
    viewer_role: Role,
    target_name: Optional[str] = None,
    room_name: Optional[str] = None,
) -> ChannelHeader:
    if isinstance(resolution, RoomChannel):
        return ChannelHeader(room_name or resolution.room_id, "Group Discussion")
    if isinstance(resolution, GlobalChannel):
        return ChannelHeader("Community Chat", "Public Global Channel")
    # Direct support thread, resolved or still waiting for a target
    if viewer_role.is_privileged:
        title = f"Chat: {target_name}" if target_name else "Select a student"
    else:
        title = "Support & Help"
    return ChannelHeader(title, "Direct Line to Admin")


def composer_placeholder(tab: ChatTab, cooldown_remaining: int = 0) -> str:
    if tab is ChatTab.SUPPORT:
        return "Message Support..."
    if cooldown_remaining > 0:
        return f"Wait {cooldown_remaining}s..."
    return "Type a message..."


def time_label(message: Message, tz: Optional[tzinfo] = None) -> str:
    if isinstance(message.timestamp, Committed):
        return message.timestamp.at.astimezone(tz).strftime("%H:%M")
    return PENDING_LABEL


def present_messages(
    messages: Iterable[Message], viewer_id: Optional[str], tz: Optional[tzinfo] = None
) -> List[MessageView]:
    return [
        MessageView(
            message=message,
            is_mine=viewer_id is not None and message.user_id == viewer_id,
            is_staff=message.role.is_privileged,
            badge=role_badge(message.role),
            time_label=time_label(message, tz),
        )
        for message in messages
    ]
