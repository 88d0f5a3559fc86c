"""Wire codec for frames exchanged over the streaming connection.

Every frame is a JSON object whose kind is carried in ``cmd`` (falling back
to ``type``). Inbound frames decode to an :class:`Envelope`; anything that is
not a JSON object, or has no recognized kind, raises
:class:`~chatsync.errors.MalformedEnvelope`.
"""

import json
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from ..errors import MalformedEnvelope
from ..models import Message, MessageKind, SenderRole

_FRACTION = re.compile(r"(\.\d+)")

# Short names still sent by older clients and servers.
LEGACY_KINDS = {
    "message": MessageKind.CHAT,
    "typing": MessageKind.TYPING,
    "history": MessageKind.HISTORY,
    "system": MessageKind.NOTICE,
}


@dataclass
class Envelope:
    """A decoded inbound frame."""

    kind: MessageKind
    content: str = ""
    room_id: str = ""
    sender_id: str = ""
    sender_role: SenderRole = SenderRole.SYSTEM
    display_name: str = ""
    timestamp: datetime | None = None
    sequence: int | None = None
    metadata: dict[str, str] = field(default_factory=dict)
    history: list[Message] = field(default_factory=list)

    def to_message(self) -> Message:
        """Convert a live frame into a timeline message."""
        return Message(
            kind=self.kind,
            content=self.content,
            timestamp=self.timestamp or datetime.now(timezone.utc),
            sender_id=self.sender_id,
            sender_role=self.sender_role,
            display_name=self.display_name,
            sequence=self.sequence,
            room_id=self.room_id,
            metadata=dict(self.metadata),
        )


def normalize_kind(value: Any) -> MessageKind | None:
    """Map a raw cmd/type value onto a MessageKind, or None if unknown."""
    if not isinstance(value, str) or not value:
        return None
    if value in LEGACY_KINDS:
        return LEGACY_KINDS[value]
    try:
        return MessageKind(value)
    except ValueError:
        return None


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an RFC 3339 timestamp; None when absent or unparseable."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value:
        # Nanosecond precision is truncated to what datetime holds
        text = _FRACTION.sub(lambda m: m.group(1)[:7], value.strip())
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    # Go zero time marks "never set"
    if parsed.year <= 1:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _coerce_sequence(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        sequence = int(value)
    except (TypeError, ValueError):
        return None
    return sequence if sequence > 0 else None


def _coerce_role(value: Any) -> SenderRole:
    try:
        return SenderRole(value)
    except ValueError:
        return SenderRole.SYSTEM


def _coerce_metadata(value: Any) -> dict[str, str]:
    if not isinstance(value, dict):
        return {}
    return {str(k): str(v) for k, v in value.items() if v is not None}


def message_from_payload(
    data: dict, default_kind: MessageKind = MessageKind.CHAT
) -> Message:
    """Build a Message from a history item or REST snapshot entry.

    Timestamps that are missing or malformed fall back to now.
    """
    kind = normalize_kind(data.get("cmd")) or normalize_kind(data.get("type"))
    return Message(
        kind=kind or default_kind,
        content=str(data.get("content") or ""),
        timestamp=parse_timestamp(data.get("timestamp")) or datetime.now(timezone.utc),
        sender_id=str(data.get("senderId") or ""),
        sender_role=_coerce_role(data.get("senderRole")),
        display_name=str(data.get("displayName") or ""),
        sequence=_coerce_sequence(data.get("sequence", data.get("seq"))),
        room_id=str(data.get("roomId") or ""),
        metadata=_coerce_metadata(data.get("metadata")),
    )


def _history_items(data: dict) -> list[dict]:
    items = data.get("history")
    if not items:
        payload = data.get("payload")
        if isinstance(payload, dict):
            items = payload.get("messages")
    if not isinstance(items, list):
        return []
    return [item for item in items if isinstance(item, dict)]


def decode_envelope(raw: str | bytes | dict) -> Envelope:
    """Decode one inbound frame.

    Raises:
        MalformedEnvelope: payload is not a JSON object or kind is unknown.
    """
    if isinstance(raw, dict):
        data = raw
    else:
        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as e:
            raise MalformedEnvelope(f"invalid JSON: {e}", raw) from e

    if not isinstance(data, dict):
        raise MalformedEnvelope("frame is not a JSON object", raw)

    kind = normalize_kind(data.get("cmd")) or normalize_kind(data.get("type"))
    if kind is None:
        cmd = data.get("cmd") or data.get("type")
        raise MalformedEnvelope(f"unrecognized kind: {cmd!r}", raw)

    history: list[Message] = []
    if kind is MessageKind.HISTORY:
        history = [message_from_payload(item) for item in _history_items(data)]

    return Envelope(
        kind=kind,
        content=str(data.get("content") or ""),
        room_id=str(data.get("roomId") or ""),
        sender_id=str(data.get("senderId") or ""),
        sender_role=_coerce_role(data.get("senderRole")),
        display_name=str(data.get("displayName") or ""),
        timestamp=parse_timestamp(data.get("timestamp")),
        sequence=_coerce_sequence(data.get("sequence", data.get("seq"))),
        metadata=_coerce_metadata(data.get("metadata")),
        history=history,
    )


def _frame(kind: MessageKind, **fields: Any) -> str:
    frame = {"cmd": kind.value, "type": kind.value}
    frame.update(fields)
    return json.dumps(frame, ensure_ascii=False)


def chat_message_frame(content: str) -> str:
    """Outbound chat message."""
    return _frame(MessageKind.CHAT, content=content)


def typing_frame() -> str:
    """Outbound typing signal."""
    return _frame(MessageKind.TYPING, metadata={"status": "typing"})


def history_request_frame() -> str:
    """Outbound full resync request."""
    return _frame(MessageKind.HISTORY)
