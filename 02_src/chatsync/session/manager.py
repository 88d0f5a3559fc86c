"""SessionManager implementation.

Owns the streaming connection for one room at a time. Inbound frames are
read by a single reader task and each one is handled to completion before
the next is read; handlers are looked up by envelope kind.
"""

import asyncio
from datetime import datetime, timezone
from typing import Awaitable, Callable, Protocol

from ..directory import DirectoryCache
from ..errors import MalformedEnvelope, TransportFailure
from ..event_bus import IEventBus
from ..logging_config import get_logger
from ..models import (
    ASSIGNED_AGENT_ID_KEY,
    ASSIGNED_AGENT_KEY,
    ConnectionState,
    Identity,
    Message,
    MessageKind,
    SenderRole,
    Session,
    Topic,
)
from ..protocol import (
    Envelope,
    chat_message_frame,
    decode_envelope,
    history_request_frame,
    typing_frame,
)
from ..timeline import TimelineEntry, TimelineStore
from ..typing_indicator import TypingDebouncer
from .roles import RoleProfile
from .transport import IConnection, ITransport, build_stream_url

logger = get_logger(__name__)


EnvelopeHandler = Callable[[Envelope], Awaitable[None]]


class ISessionManager(Protocol):
    """Lifecycle of the streaming connection."""

    async def connect(self, room_id: str, identity: Identity) -> Session:
        """Open a session for a room, closing any previous one silently."""
        ...

    async def close(self, silent: bool = False) -> None:
        """Close the current session. Idempotent."""
        ...

    async def send_message(self, content: str) -> bool:
        """Send a chat message. Returns False when not open."""
        ...

    async def send_typing(self) -> bool:
        """Send a typing signal. Returns False when not open."""
        ...

    async def request_history(self) -> bool:
        """Ask the server for a full history resync."""
        ...


class SessionManager:
    """Connects, dispatches inbound envelopes and tears down sessions."""

    def __init__(
        self,
        transport: ITransport,
        stream_url: str,
        profile: RoleProfile,
        timeline: TimelineStore,
        typing: TypingDebouncer,
        directory: DirectoryCache,
        event_bus: IEventBus,
    ):
        self._transport = transport
        self._stream_url = stream_url
        self._profile = profile
        self._timeline = timeline
        self._typing = typing
        self._directory = directory
        self._event_bus = event_bus

        self._session: Session | None = None
        self._connection: IConnection | None = None
        self._reader: asyncio.Task | None = None
        self._generation = 0

        self._handlers: dict[MessageKind, EnvelopeHandler] = {
            MessageKind.HISTORY: self._on_history,
            MessageKind.CHAT: self._on_chat,
            MessageKind.TYPING: self._on_typing,
            MessageKind.NOTICE: self._on_notice,
        }

    @property
    def session(self) -> Session | None:
        return self._session

    @property
    def state(self) -> ConnectionState:
        if self._session is None:
            return ConnectionState.DISCONNECTED
        return self._session.connection_state

    @property
    def composer_enabled(self) -> bool:
        return self.state is ConnectionState.OPEN

    @property
    def room_id(self) -> str | None:
        return self._session.room_id if self._session else None

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    async def connect(self, room_id: str, identity: Identity) -> Session:
        """Open a session for ``room_id``.

        Any open or connecting session is closed first without a disconnect
        notice. If a newer connect() supersedes this one during the
        handshake, the fresh connection is dropped and the returned session
        stays closed.

        Raises:
            TransportFailure: the handshake failed for the current session.
        """
        await self.close(silent=True)

        self._generation += 1
        generation = self._generation
        session = Session(
            room_id=room_id,
            local_identity=identity,
            connection_state=ConnectionState.CONNECTING,
            generation=generation,
        )
        self._session = session
        self._typing.reset()
        await self._emit_connection("connecting")

        url = build_stream_url(
            self._stream_url, self._profile.connection_params(room_id, identity)
        )
        logger.info(
            "Connecting to room %s as %s",
            room_id,
            identity.role.value,
            extra={"context": {"room_id": room_id, "generation": generation}},
        )

        try:
            connection = await self._transport.connect(url)
        except TransportFailure as e:
            if not self._is_current(generation):
                logger.debug("Ignoring handshake failure of superseded session")
                return session
            logger.warning("Connection to room %s failed: %s", room_id, e)
            await self._teardown(generation, error=e, silent=False)
            raise

        if not self._is_current(generation):
            logger.debug("Session for room %s superseded during handshake", room_id)
            await connection.close()
            return session

        self._connection = connection
        session.connection_state = ConnectionState.OPEN

        # The room snapshot read before connecting may already be stale.
        await self.request_history()

        await self._emit_connection("open")
        if self._profile.connected_notice:
            await self.surface_notice(self._profile.connected_notice)

        self._reader = asyncio.create_task(self._read(generation, connection))
        return session

    async def close(self, silent: bool = False) -> None:
        """Close the current session. Idempotent."""
        session = self._session
        if session is None or session.connection_state in (
            ConnectionState.CLOSED,
            ConnectionState.DISCONNECTED,
        ):
            return
        logger.info("Closing session for room %s (silent=%s)", session.room_id, silent)
        await self._teardown(self._generation, error=None, silent=silent)

    async def send_message(self, content: str) -> bool:
        """Send a chat message. Returns False when not open."""
        content = content.strip()
        if not content:
            return False
        return await self._send(chat_message_frame(content))

    async def send_typing(self) -> bool:
        """Send a typing signal. Returns False when not open."""
        return await self._send(typing_frame())

    async def request_history(self) -> bool:
        """Ask the server for a full history resync."""
        return await self._send(history_request_frame())

    async def _send(self, frame: str) -> bool:
        connection = self._connection
        if connection is None or self.state is not ConnectionState.OPEN:
            return False
        try:
            await connection.send(frame)
        except TransportFailure as e:
            logger.warning("Send failed: %s", e)
            return False
        return True

    async def _read(self, generation: int, connection: IConnection) -> None:
        """Reader task: dispatch frames until the transport ends."""
        error: Exception | None = None
        try:
            async for raw in connection.frames():
                if not self._is_current(generation):
                    return
                await self.handle_frame(raw)
        except asyncio.CancelledError:
            return
        except TransportFailure as e:
            error = e
        except Exception as e:
            logger.error("Reader crashed: %s", e, exc_info=True)
            error = TransportFailure(str(e))

        if self._is_current(generation):
            if error:
                logger.warning("Transport error: %s", error)
            await self._teardown(generation, error=error, silent=False)

    async def handle_frame(self, raw: str | bytes | dict) -> None:
        """Decode one inbound frame and route it by kind.

        Malformed frames are logged and dropped; the connection stays up.
        """
        if self.state is not ConnectionState.OPEN:
            logger.debug("Dropping frame received while %s", self.state.value)
            return

        try:
            envelope = decode_envelope(raw)
        except MalformedEnvelope as e:
            logger.warning("Discarding malformed frame: %s", e.reason)
            return

        handler = self._handlers[envelope.kind]
        try:
            await handler(envelope)
        except Exception as e:
            logger.error(
                "Error handling %s frame: %s", envelope.kind.value, e, exc_info=True
            )

    async def _on_history(self, envelope: Envelope) -> None:
        session = self._session
        latest = None
        for message in envelope.history:
            if message.is_assignment and (
                latest is None or message.sort_key >= latest.sort_key
            ):
                latest = message

        if latest is not None and session is not None:
            self._set_assigned(latest)
            room_id = latest.room_id or session.room_id
            if self._directory.apply_assignment(
                room_id,
                latest.metadata[ASSIGNED_AGENT_KEY],
                latest.metadata.get(ASSIGNED_AGENT_ID_KEY),
            ):
                await self._event_bus.emit(
                    Topic.DIRECTORY, "room_assigned", room_id=room_id
                )

        entries = self._timeline.ingest_snapshot(
            envelope.history, self._profile.empty_history_placeholder
        )
        if entries:
            await self._typing.clear()
        await self._event_bus.emit(
            Topic.TIMELINE,
            "snapshot",
            {"entries": entries, "placeholder": self._timeline.placeholder},
            room_id=session.room_id if session else None,
        )

    async def _on_chat(self, envelope: Envelope) -> None:
        message = self._with_room(envelope.to_message())
        entry = self._timeline.ingest_live(message)
        if entry is None:
            return
        await self._typing.clear()
        if self._directory.apply_message_touch(
            message.room_id, message.content, message.timestamp
        ):
            await self._event_bus.emit(
                Topic.DIRECTORY, "room_touched", room_id=message.room_id
            )
        await self._emit_appended(entry)

    async def _on_typing(self, envelope: Envelope) -> None:
        await self._typing.signal(envelope.display_name or envelope.sender_role.value)

    async def _on_notice(self, envelope: Envelope) -> None:
        message = self._with_room(envelope.to_message())
        if message.is_assignment:
            self._set_assigned(message)
            if self._directory.apply_assignment(
                message.room_id,
                message.metadata[ASSIGNED_AGENT_KEY],
                message.metadata.get(ASSIGNED_AGENT_ID_KEY),
            ):
                await self._event_bus.emit(
                    Topic.DIRECTORY, "room_assigned", room_id=message.room_id
                )
            await self._event_bus.emit(
                Topic.SESSION,
                "assigned",
                {
                    "assigned_agent": message.metadata[ASSIGNED_AGENT_KEY],
                    "assigned_agent_id": message.metadata.get(ASSIGNED_AGENT_ID_KEY),
                },
                room_id=message.room_id,
            )

        # Assignment notices stay in the log to preserve audit order.
        entry = self._timeline.ingest_live(message)
        if entry is None:
            return
        await self._typing.clear()
        await self._emit_appended(entry)

    def _set_assigned(self, message: Message) -> None:
        if self._session is None:
            return
        self._session.assigned_agent = message.metadata.get(ASSIGNED_AGENT_KEY)
        self._session.assigned_agent_id = (
            message.metadata.get(ASSIGNED_AGENT_ID_KEY) or self._session.assigned_agent_id
        )

    def _with_room(self, message: Message) -> Message:
        if not message.room_id and self._session:
            message.room_id = self._session.room_id
        return message

    async def _teardown(
        self, generation: int, error: Exception | None, silent: bool
    ) -> None:
        """open/connecting -> closed -> disconnected."""
        session = self._session
        if session is None or not self._is_current(generation):
            return

        # Later frames and handshake results of this session become stale.
        self._generation += 1
        session.connection_state = ConnectionState.CLOSED

        reader, self._reader = self._reader, None
        if reader is not None and reader is not asyncio.current_task():
            reader.cancel()

        connection, self._connection = self._connection, None
        if connection is not None:
            try:
                await connection.close()
            except Exception as e:
                logger.debug("Error closing connection: %s", e)

        await self._emit_connection("closed")
        self._typing.reset()
        await self._event_bus.emit(Topic.TYPING, "cleared", room_id=session.room_id)
        session.connection_state = ConnectionState.DISCONNECTED
        await self._emit_connection("disconnected", {"error": str(error) if error else None})

        if not silent:
            notice = self._profile.error_notice if error else self._profile.disconnected_notice
            await self.surface_notice(notice, room_id=session.room_id)

    async def surface_notice(self, text: str, room_id: str | None = None) -> None:
        """Append a locally generated, unsequenced system notice."""
        message = Message(
            kind=MessageKind.NOTICE,
            content=text,
            timestamp=datetime.now(timezone.utc),
            sender_role=SenderRole.SYSTEM,
            room_id=room_id or self.room_id or "",
        )
        entry = self._timeline.ingest_live(message)
        if entry is not None:
            await self._emit_appended(entry)

    async def _emit_appended(self, entry: TimelineEntry) -> None:
        await self._event_bus.emit(
            Topic.TIMELINE,
            "appended",
            {"entry": entry, "visible": not entry.message.is_assignment},
            room_id=entry.message.room_id or None,
        )

    async def _emit_connection(self, event: str, extra: dict | None = None) -> None:
        session = self._session
        payload = {
            "state": self.state.value,
            "composer_enabled": self.composer_enabled,
        }
        if extra:
            payload.update(extra)
        await self._event_bus.emit(
            Topic.CONNECTION, event, payload, room_id=session.room_id if session else None
        )
