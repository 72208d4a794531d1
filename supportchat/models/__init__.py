from .channel import ChannelId, DirectChannel, GlobalChannel, RoomChannel, parse_channel_path
from .message import PENDING, Committed, Message, Pending, Timestamp
from .user import User

__all__ = [
    "ChannelId",
    "Committed",
    "DirectChannel",
    "GlobalChannel",
    "Message",
    "PENDING",
    "Pending",
    "RoomChannel",
    "Timestamp",
    "User",
    "parse_channel_path",
]
