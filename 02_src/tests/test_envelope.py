"""Tests for the wire codec."""

import json
from datetime import datetime, timezone

import pytest

from chatsync.errors import MalformedEnvelope
from chatsync.models import MessageKind, SenderRole
from chatsync.protocol import (
    chat_message_frame,
    decode_envelope,
    history_request_frame,
    message_from_payload,
    normalize_kind,
    parse_timestamp,
    typing_frame,
)


class TestNormalizeKind:
    """Tests for kind normalization."""

    def test_canonical_kinds(self):
        for kind in MessageKind:
            assert normalize_kind(kind.value) is kind

    def test_legacy_kinds(self):
        assert normalize_kind("message") is MessageKind.CHAT
        assert normalize_kind("typing") is MessageKind.TYPING
        assert normalize_kind("history") is MessageKind.HISTORY
        assert normalize_kind("system") is MessageKind.NOTICE

    def test_unknown_kind(self):
        assert normalize_kind("chat.reaction") is None
        assert normalize_kind("") is None
        assert normalize_kind(42) is None


class TestParseTimestamp:
    """Tests for timestamp parsing."""

    def test_rfc3339_with_zulu(self):
        parsed = parse_timestamp("2024-03-01T10:15:00Z")
        assert parsed == datetime(2024, 3, 1, 10, 15, tzinfo=timezone.utc)

    def test_nanosecond_precision_is_truncated(self):
        parsed = parse_timestamp("2024-03-01T10:15:00.123456789Z")
        assert parsed.microsecond == 123456

    def test_naive_is_utc(self):
        parsed = parse_timestamp("2024-03-01T10:15:00")
        assert parsed.tzinfo == timezone.utc

    def test_zero_time_is_none(self):
        assert parse_timestamp("0001-01-01T00:00:00Z") is None

    def test_garbage_is_none(self):
        assert parse_timestamp("yesterday") is None
        assert parse_timestamp(None) is None
        assert parse_timestamp(12) is None


class TestDecodeEnvelope:
    """Tests for decode_envelope."""

    def test_decode_chat_message(self):
        envelope = decode_envelope(
            json.dumps(
                {
                    "cmd": "chat.message",
                    "roomId": "r1",
                    "senderId": "p1",
                    "senderRole": "player",
                    "displayName": "Pat",
                    "content": "hello",
                    "timestamp": "2024-03-01T10:15:00Z",
                    "sequence": 7,
                }
            )
        )

        assert envelope.kind is MessageKind.CHAT
        assert envelope.room_id == "r1"
        assert envelope.sender_role is SenderRole.PLAYER
        assert envelope.sequence == 7
        assert envelope.content == "hello"

    def test_type_is_used_when_cmd_missing(self):
        envelope = decode_envelope({"type": "typing", "displayName": "Pat"})
        assert envelope.kind is MessageKind.TYPING

    def test_seq_alias(self):
        envelope = decode_envelope({"cmd": "chat.message", "seq": 3})
        assert envelope.sequence == 3

    def test_zero_sequence_means_unsequenced(self):
        envelope = decode_envelope({"cmd": "system.notice", "sequence": 0})
        assert envelope.sequence is None

    def test_unknown_role_is_system(self):
        envelope = decode_envelope({"cmd": "chat.message", "senderRole": "robot"})
        assert envelope.sender_role is SenderRole.SYSTEM

    def test_history_items(self):
        envelope = decode_envelope(
            {
                "cmd": "chat.history",
                "history": [
                    {"cmd": "chat.message", "content": "a", "sequence": 1},
                    {"cmd": "system.notice", "content": "b", "sequence": 2},
                    "not-an-object",
                ],
            }
        )

        assert [m.content for m in envelope.history] == ["a", "b"]
        assert envelope.history[1].kind is MessageKind.NOTICE

    def test_history_from_legacy_payload(self):
        envelope = decode_envelope(
            {"type": "history", "payload": {"messages": [{"content": "old", "seq": 4}]}}
        )

        assert len(envelope.history) == 1
        assert envelope.history[0].sequence == 4
        assert envelope.history[0].kind is MessageKind.CHAT

    def test_bytes_frame(self):
        envelope = decode_envelope(b'{"cmd": "chat.typing"}')
        assert envelope.kind is MessageKind.TYPING

    @pytest.mark.parametrize(
        "raw",
        ["not json", "[1, 2]", '"text"', '{"content": "no kind"}', '{"cmd": "chat.reaction"}'],
    )
    def test_malformed(self, raw):
        with pytest.raises(MalformedEnvelope):
            decode_envelope(raw)

    def test_malformed_keeps_raw(self):
        with pytest.raises(MalformedEnvelope) as exc_info:
            decode_envelope("{broken")
        assert exc_info.value.raw == "{broken"


class TestMessageFromPayload:
    """Tests for message_from_payload."""

    def test_missing_timestamp_falls_back_to_now(self):
        before = datetime.now(timezone.utc)
        message = message_from_payload({"content": "hi"})
        assert message.timestamp >= before

    def test_assignment_metadata(self):
        message = message_from_payload(
            {
                "cmd": "system.notice",
                "content": "Alice joined",
                "metadata": {"assignedAgent": "Alice", "assignedAgentId": "alice"},
            }
        )

        assert message.is_assignment
        assert message.metadata["assignedAgentId"] == "alice"

    def test_metadata_drops_nulls(self):
        message = message_from_payload({"metadata": {"a": None, "b": 1}})
        assert message.metadata == {"b": "1"}


class TestOutboundFrames:
    """Tests for outbound frame builders."""

    def test_chat_message_frame(self):
        frame = json.loads(chat_message_frame("héllo"))
        assert frame == {"cmd": "chat.message", "type": "chat.message", "content": "héllo"}

    def test_typing_frame(self):
        frame = json.loads(typing_frame())
        assert frame["cmd"] == "chat.typing"
        assert frame["metadata"] == {"status": "typing"}

    def test_history_request_frame(self):
        frame = json.loads(history_request_frame())
        assert frame == {"cmd": "chat.history", "type": "chat.history"}
