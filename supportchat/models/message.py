# supportchat/models/message.py
"""
Chat message records and their server-assigned timestamps.

Wire shape of a record in the change feed:
{
    "text": str,
    "userId": str,
    "userName": str,
    "role": "STUDENT" | "SUB_ADMIN" | "ADMIN",
    "timestamp": int | None   # epoch milliseconds, None until the server echoes it
}
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Tuple, Union

from ..core.enums import Role

ANONYMOUS_USER_ID = "anonymous"
DEFAULT_USER_NAME = "User"


@dataclass(frozen=True)
class Pending:
    """Written locally, server timestamp not yet echoed back."""

    def __str__(self) -> str:
        return "pending"


@dataclass(frozen=True)
class Committed:
    """Server-assigned instant."""

    at: datetime

    @classmethod
    def from_epoch_ms(cls, value: Union[int, float]) -> "Committed":
        try:
            return cls(datetime.fromtimestamp(float(value) / 1000.0, tz=timezone.utc))
        except (OverflowError, OSError) as exc:
            raise ValueError(f"timestamp out of range: {value!r}") from exc

    def to_epoch_ms(self) -> int:
        return int(self.at.timestamp() * 1000)


PENDING = Pending()

Timestamp = Union[Pending, Committed]


def parse_timestamp(raw: Any) -> Timestamp:
    """Map a raw record timestamp onto the Timestamp sum type."""
    if raw is None or raw == "":
        return PENDING
    if isinstance(raw, bool):
        raise ValueError("timestamp must not be a boolean")
    if isinstance(raw, (int, float)):
        return Committed.from_epoch_ms(raw)
    if isinstance(raw, datetime):
        return Committed(raw if raw.tzinfo else raw.replace(tzinfo=timezone.utc))
    if isinstance(raw, str):
        try:
            return Committed.from_epoch_ms(float(raw))
        except ValueError:
            parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
            return Committed(parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc))
    raise ValueError(f"Unsupported timestamp value: {raw!r}")


@dataclass(frozen=True)
class Message:
    id: str
    text: str
    user_id: str
    user_name: str
    role: Role
    timestamp: Timestamp = PENDING

    @property
    def is_pending(self) -> bool:
        return isinstance(self.timestamp, Pending)

    @property
    def sort_key(self) -> Tuple[int, float, str]:
        """Committed records ascending by time, pending records last."""
        if isinstance(self.timestamp, Committed):
            return (0, self.timestamp.at.timestamp(), self.id)
        return (1, 0.0, self.id)

    @classmethod
    def from_record(cls, record_id: str, record: Mapping[str, Any]) -> "Message":
        role_raw = record.get("role") or Role.STUDENT.value
        return cls(
            id=record_id,
            text=str(record.get("text", "")),
            user_id=str(record.get("userId") or ANONYMOUS_USER_ID),
            user_name=str(record.get("userName") or DEFAULT_USER_NAME),
            role=Role(role_raw),
            timestamp=parse_timestamp(record.get("timestamp")),
        )

    def to_record(self) -> dict:
        return {
            "text": self.text,
            "userId": self.user_id,
            "userName": self.user_name,
            "role": self.role.value,
            "timestamp": (
                self.timestamp.to_epoch_ms() if isinstance(self.timestamp, Committed) else None
            ),
        }


def build_outgoing_record(text: str, user_id: Optional[str], user_name: Optional[str], role: Role) -> dict:
    """Record a client appends; the feed fills in the timestamp."""
    return {
        "text": text.strip(),
        "userId": user_id or ANONYMOUS_USER_ID,
        "userName": user_name or DEFAULT_USER_NAME,
        "role": role.value,
        "timestamp": None,
    }
