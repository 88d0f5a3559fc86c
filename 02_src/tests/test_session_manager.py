"""Tests for SessionManager."""

import asyncio
from urllib.parse import parse_qs, urlparse

import pytest

from chatsync.errors import TransportFailure
from chatsync.models import ConnectionState, Identity, MessageKind, Role, RoomSummary, Topic
from chatsync.session import AGENT_PROFILE, PLAYER_PROFILE, SessionManager
from conftest import settle


def chat_frame(sequence: int, content: str = "", **fields) -> dict:
    frame = {
        "cmd": "chat.message",
        "roomId": "r1",
        "senderId": "p1",
        "senderRole": "player",
        "displayName": "Pat",
        "content": content or f"m{sequence}",
        "timestamp": "2024-03-01T12:00:00Z",
        "sequence": sequence,
    }
    frame.update(fields)
    return frame


def events(notifications, topic):
    return [n.event for n in notifications if n.topic is topic]


def notices(timeline):
    return [m.content for m in timeline.messages() if m.kind is MessageKind.NOTICE]


class TestConnect:
    """Tests for connect()."""

    @pytest.mark.asyncio
    async def test_connect_opens_and_requests_history(
        self, session_manager, fake_transport, agent_identity
    ):
        session = await session_manager.connect("r1", agent_identity)

        assert session.connection_state is ConnectionState.OPEN
        assert session_manager.composer_enabled
        assert fake_transport.last.sent_kinds() == ["chat.history"]

    @pytest.mark.asyncio
    async def test_connection_params(self, session_manager, fake_transport, agent_identity):
        await session_manager.connect("room 1", agent_identity)

        url = urlparse(fake_transport.last.url)
        params = parse_qs(url.query)
        assert url.path == "/ws"
        assert params == {
            "roomId": ["room 1"],
            "role": ["agent"],
            "id": ["alice"],
            "name": ["Alice"],
        }

    @pytest.mark.asyncio
    async def test_connection_events(self, session_manager, agent_identity, notifications):
        await session_manager.connect("r1", agent_identity)

        assert events(notifications, Topic.CONNECTION) == ["connecting", "open"]
        open_event = [n for n in notifications if n.event == "open"][0]
        assert open_event.payload["composer_enabled"] is True
        assert open_event.room_id == "r1"

    @pytest.mark.asyncio
    async def test_switching_rooms_closes_previous_once_without_notice(
        self, session_manager, fake_transport, agent_identity, timeline
    ):
        await session_manager.connect("room-a", agent_identity)
        room_a = fake_transport.last

        await session_manager.connect("room-b", agent_identity)
        room_b = fake_transport.last

        assert room_a.close_calls == 1
        assert notices(timeline) == []
        assert room_b.sent_kinds()[0] == "chat.history"
        assert session_manager.room_id == "room-b"

        # A late frame from room A is not applied
        room_a.feed(chat_frame(1, roomId="room-a"))
        await settle()
        assert len(timeline) == 0

    @pytest.mark.asyncio
    async def test_handshake_failure(
        self, session_manager, fake_transport, agent_identity, timeline
    ):
        fake_transport.fail_with = TransportFailure("refused")

        with pytest.raises(TransportFailure):
            await session_manager.connect("r1", agent_identity)

        assert session_manager.state is ConnectionState.DISCONNECTED
        assert not session_manager.composer_enabled
        assert notices(timeline) == [AGENT_PROFILE.error_notice]

    @pytest.mark.asyncio
    async def test_superseded_handshake_is_discarded(
        self, session_manager, fake_transport, agent_identity
    ):
        fake_transport.gate = asyncio.Event()
        first = asyncio.create_task(session_manager.connect("room-a", agent_identity))
        await settle()
        second = asyncio.create_task(session_manager.connect("room-b", agent_identity))
        await settle()

        fake_transport.gate.set()
        stale = await first
        current = await second

        assert stale.connection_state is not ConnectionState.OPEN
        assert current.connection_state is ConnectionState.OPEN
        assert session_manager.room_id == "room-b"
        by_room = {parse_qs(urlparse(c.url).query)["roomId"][0]: c for c in fake_transport.connections}
        assert by_room["room-a"].close_calls == 1
        assert by_room["room-a"].sent == []
        assert by_room["room-b"].close_calls == 0

    @pytest.mark.asyncio
    async def test_player_sees_connected_notice(
        self, fake_transport, timeline, typing, cache, event_bus
    ):
        manager = SessionManager(
            transport=fake_transport,
            stream_url="ws://chat.test/ws",
            profile=PLAYER_PROFILE,
            timeline=timeline,
            typing=typing,
            directory=cache,
            event_bus=event_bus,
        )
        player = Identity(id="bob", role=Role.PLAYER, display_name="Bob")

        await manager.connect("r1", player)
        try:
            assert notices(timeline) == [PLAYER_PROFILE.connected_notice]
            assert "role=player" in fake_transport.last.url
        finally:
            await manager.close(silent=True)


class TestClose:
    """Tests for close() and remote disconnects."""

    @pytest.mark.asyncio
    async def test_close_is_idempotent(
        self, session_manager, fake_transport, agent_identity, notifications
    ):
        await session_manager.connect("r1", agent_identity)
        await session_manager.close()
        await session_manager.close()

        assert fake_transport.last.close_calls == 1
        assert events(notifications, Topic.CONNECTION).count("closed") == 1
        assert session_manager.state is ConnectionState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_close_surfaces_notice_unless_silent(
        self, session_manager, agent_identity, timeline
    ):
        await session_manager.connect("r1", agent_identity)
        await session_manager.close()
        assert notices(timeline) == [AGENT_PROFILE.disconnected_notice]

    @pytest.mark.asyncio
    async def test_close_clears_typing(
        self, session_manager, agent_identity, typing, notifications
    ):
        await session_manager.connect("r1", agent_identity)
        await session_manager.handle_frame({"cmd": "chat.typing", "displayName": "Pat"})
        assert typing.active

        await session_manager.close(silent=True)

        assert not typing.active
        assert events(notifications, Topic.TYPING)[-1] == "cleared"

    @pytest.mark.asyncio
    async def test_remote_close(
        self, session_manager, fake_transport, agent_identity, timeline
    ):
        await session_manager.connect("r1", agent_identity)

        fake_transport.last.drop()
        await settle()

        assert session_manager.state is ConnectionState.DISCONNECTED
        assert notices(timeline) == [AGENT_PROFILE.disconnected_notice]

    @pytest.mark.asyncio
    async def test_transport_error(
        self, session_manager, fake_transport, agent_identity, timeline, notifications
    ):
        await session_manager.connect("r1", agent_identity)

        fake_transport.last.drop(TransportFailure("reset by peer"))
        await settle()

        assert session_manager.state is ConnectionState.DISCONNECTED
        assert notices(timeline) == [AGENT_PROFILE.error_notice]
        disconnected = [n for n in notifications if n.event == "disconnected"][0]
        assert "reset by peer" in disconnected.payload["error"]

    @pytest.mark.asyncio
    async def test_send_after_close_fails(self, session_manager, agent_identity):
        await session_manager.connect("r1", agent_identity)
        await session_manager.close(silent=True)

        assert not await session_manager.send_message("hello")
        assert not await session_manager.send_typing()
        assert not await session_manager.request_history()


class TestOutbound:
    """Tests for outbound frames."""

    @pytest.mark.asyncio
    async def test_send_message(self, session_manager, fake_transport, agent_identity):
        await session_manager.connect("r1", agent_identity)

        assert await session_manager.send_message("  hello  ")
        assert fake_transport.last.sent[-1]["content"] == "hello"

    @pytest.mark.asyncio
    async def test_blank_message_is_not_sent(
        self, session_manager, fake_transport, agent_identity
    ):
        await session_manager.connect("r1", agent_identity)

        assert not await session_manager.send_message("   ")
        assert fake_transport.last.sent_kinds() == ["chat.history"]

    @pytest.mark.asyncio
    async def test_send_typing_and_resync(self, session_manager, fake_transport, agent_identity):
        await session_manager.connect("r1", agent_identity)

        await session_manager.send_typing()
        await session_manager.request_history()

        assert fake_transport.last.sent_kinds() == [
            "chat.history",
            "chat.typing",
            "chat.history",
        ]


class TestInbound:
    """Tests for inbound dispatch."""

    @pytest.fixture
    async def connected(self, session_manager, agent_identity):
        await session_manager.connect("r1", agent_identity)
        return session_manager

    @pytest.mark.asyncio
    async def test_history_replaces_timeline_in_order(self, connected, timeline, notifications):
        await connected.handle_frame(
            {
                "cmd": "chat.history",
                "history": [chat_frame(3), chat_frame(1), chat_frame(2)],
            }
        )

        assert [m.sequence for m in timeline.messages()] == [1, 2, 3]
        assert events(notifications, Topic.TIMELINE) == ["snapshot"]

    @pytest.mark.asyncio
    async def test_empty_history_shows_placeholder(self, connected, timeline):
        await connected.handle_frame({"cmd": "chat.history", "history": []})

        assert timeline.placeholder == AGENT_PROFILE.empty_history_placeholder

    @pytest.mark.asyncio
    async def test_history_applies_assignment(self, connected):
        await connected.handle_frame(
            {
                "cmd": "chat.history",
                "history": [
                    chat_frame(1),
                    {
                        "cmd": "system.notice",
                        "content": "Alice joined",
                        "sequence": 2,
                        "metadata": {"assignedAgent": "Alice", "assignedAgentId": "alice"},
                    },
                ],
            }
        )

        assert connected.session.assigned_agent == "Alice"
        assert connected.session.assigned_agent_id == "alice"

    @pytest.mark.asyncio
    async def test_history_assignment_patches_directory(
        self, connected, cache, notifications
    ):
        cache.refresh([RoomSummary(room_id="r1")])
        assert cache.compute_metrics().waiting == 1

        await connected.handle_frame(
            {
                "cmd": "chat.history",
                "history": [
                    {
                        "cmd": "system.notice",
                        "content": "Bob joined",
                        "sequence": 4,
                        "metadata": {"assignedAgent": "Bob", "assignedAgentId": "bob"},
                    },
                    {
                        "cmd": "system.notice",
                        "content": "Alice joined",
                        "sequence": 2,
                        "metadata": {"assignedAgent": "Alice", "assignedAgentId": "alice"},
                    },
                ],
            }
        )

        assert cache.get("r1").assigned_agent_id == "bob"
        assert connected.session.assigned_agent == "Bob"
        assert cache.compute_metrics().waiting == 0
        assert "room_assigned" in events(notifications, Topic.DIRECTORY)

    @pytest.mark.asyncio
    async def test_live_message_appends_once(self, connected, timeline, notifications):
        await connected.handle_frame(chat_frame(5))
        await connected.handle_frame(chat_frame(5))

        assert [m.sequence for m in timeline.messages()] == [5]
        assert events(notifications, Topic.TIMELINE) == ["appended"]

    @pytest.mark.asyncio
    async def test_live_message_touches_directory(self, connected, cache, notifications):
        cache.refresh([RoomSummary(room_id="r1")])

        await connected.handle_frame(chat_frame(1, "need help"))

        assert cache.get("r1").last_message == "need help"
        assert "room_touched" in events(notifications, Topic.DIRECTORY)

    @pytest.mark.asyncio
    async def test_message_clears_typing_before_append(self, connected, typing, notifications):
        await connected.handle_frame({"cmd": "chat.typing", "displayName": "Pat"})
        await connected.handle_frame(chat_frame(1))

        assert not typing.active
        ordered = [(n.topic, n.event) for n in notifications if n.topic in (Topic.TYPING, Topic.TIMELINE)]
        assert ordered == [
            (Topic.TYPING, "active"),
            (Topic.TYPING, "cleared"),
            (Topic.TIMELINE, "appended"),
        ]

    @pytest.mark.asyncio
    async def test_typing_frame_shows_indicator(self, connected, typing):
        await connected.handle_frame({"cmd": "chat.typing", "displayName": "Pat"})

        assert typing.indicator.display_name == "Pat"

    @pytest.mark.asyncio
    async def test_typing_without_name_uses_role(self, connected, typing):
        await connected.handle_frame({"type": "typing", "senderRole": "player"})

        assert typing.indicator.display_name == "player"

    @pytest.mark.asyncio
    async def test_assignment_notice(self, connected, cache, timeline, notifications):
        cache.refresh([RoomSummary(room_id="r1")])

        await connected.handle_frame(
            {
                "cmd": "system.notice",
                "roomId": "r1",
                "content": "Room assigned to Bob",
                "sequence": 4,
                "metadata": {"assignedAgent": "Bob", "assignedAgentId": "bob"},
            }
        )

        assert connected.session.assigned_agent == "Bob"
        assert cache.get("r1").assigned_agent_id == "bob"
        assert cache.compute_metrics().waiting == 0
        assert "room_assigned" in events(notifications, Topic.DIRECTORY)
        assert "assigned" in events(notifications, Topic.SESSION)

        appended = [n for n in notifications if n.event == "appended"][0]
        assert appended.payload["visible"] is False
        assert timeline.messages()[-1].is_assignment

    @pytest.mark.asyncio
    async def test_plain_notice_is_visible(self, connected, notifications):
        await connected.handle_frame(
            {"cmd": "system.notice", "content": "Player left", "sequence": 9}
        )

        appended = [n for n in notifications if n.event == "appended"][0]
        assert appended.payload["visible"] is True
        assert connected.session.assigned_agent is None

    @pytest.mark.asyncio
    async def test_malformed_frame_keeps_connection(self, connected, timeline):
        await connected.handle_frame("{not json")
        await connected.handle_frame({"cmd": "chat.reaction"})

        assert connected.composer_enabled
        assert len(timeline) == 0

    @pytest.mark.asyncio
    async def test_frames_through_reader(self, connected, fake_transport, timeline):
        fake_transport.last.feed(chat_frame(2))
        fake_transport.last.feed("garbage")
        fake_transport.last.feed(chat_frame(3))
        await settle()

        assert [m.sequence for m in timeline.messages()] == [2, 3]
        assert connected.composer_enabled

    @pytest.mark.asyncio
    async def test_frames_ignored_when_not_open(self, connected, timeline):
        await connected.close(silent=True)

        await connected.handle_frame(chat_frame(1))

        assert len(timeline) == 0
