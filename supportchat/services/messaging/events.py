# supportchat/services/messaging/events.py
"""
Change notifications published on every feed mutation.

All events follow this structure:
{
    "type": str,           # Event type identifier
    "schema_version": int, # Schema version (currently 1)
    "timestamp": str,      # ISO 8601 timestamp
    "payload": dict        # Event-specific data
}

Notifications only tell subscribers that a path changed; subscribers then
re-read a full snapshot, so a dropped notification is healed by the next one.
"""

from datetime import datetime, timezone
from enum import Enum
import json
from typing import Any, Dict

SCHEMA_VERSION = 1


class EventType(str, Enum):
    RECORD_APPENDED = "record_appended"
    RECORD_DELETED = "record_deleted"


def build_event(event_type: EventType, payload: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "type": event_type.value,
        "schema_version": SCHEMA_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "payload": payload,
    }


def build_record_appended_event(path: str, record_id: str, timestamp_ms: int) -> Dict[str, Any]:
    return build_event(
        EventType.RECORD_APPENDED,
        {"path": path, "record_id": record_id, "timestamp_ms": timestamp_ms},
    )


def build_record_deleted_event(path: str, record_id: str) -> Dict[str, Any]:
    return build_event(EventType.RECORD_DELETED, {"path": path, "record_id": record_id})


def parse_event(raw: str) -> Dict[str, Any]:
    """Decode a published notification; raises ValueError on malformed input."""
    event = json.loads(raw)
    if not isinstance(event, dict) or "type" not in event:
        raise ValueError("notification is missing a type")
    EventType(event["type"])
    return event
