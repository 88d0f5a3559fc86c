"""Protocol module."""

from .envelope import (
    Envelope,
    chat_message_frame,
    decode_envelope,
    history_request_frame,
    message_from_payload,
    normalize_kind,
    parse_timestamp,
    typing_frame,
)

__all__ = [
    "Envelope",
    "decode_envelope",
    "message_from_payload",
    "normalize_kind",
    "parse_timestamp",
    "chat_message_frame",
    "typing_frame",
    "history_request_frame",
]
