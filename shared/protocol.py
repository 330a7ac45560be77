"""Message envelope used for notifications and client requests."""

import json
from enum import Enum
from typing import Optional
from shared.constants import MessageType


def _encode_default(value):
    if isinstance(value, Enum):
        return value.value
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    raise TypeError(f"Cannot serialize {type(value).__name__}")


def create_message(msg_type: MessageType, payload: dict = None,
                   match_id: Optional[str] = None) -> str:
    """Create a JSON message string: {"type", "match_id", "payload"}."""
    message = {
        "type": msg_type.value,
        "payload": payload or {},
    }
    if match_id is not None:
        message["match_id"] = match_id
    return json.dumps(message, default=_encode_default)


def parse_message(data: str) -> tuple[MessageType, dict]:
    """Parse a JSON message string into (type, payload).

    Raises ValueError for malformed JSON or unknown message types.
    """
    msg = json.loads(data)
    if not isinstance(msg, dict) or "type" not in msg:
        raise ValueError("Message must be an object with a 'type' field")
    payload = msg.get("payload") or {}
    if "match_id" in msg and "match_id" not in payload:
        payload["match_id"] = msg["match_id"]
    return MessageType(msg["type"]), payload
