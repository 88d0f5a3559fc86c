"""Client context: wires the engine components and owns their lifecycle."""

import time
from typing import Awaitable, Protocol, TypeVar

from .config import ClientSettings
from .directory import DirectoryCache, DirectoryClient, DirectoryPoller, IDirectoryClient
from .errors import DirectoryError, StaleResponse, Unauthorized
from .event_bus import EventBus
from .logging_config import get_logger
from .models import (
    AgentPresence,
    Assignee,
    DirectoryMetrics,
    Identity,
    Role,
    RoomSnapshot,
    RoomSummary,
    Session,
    Topic,
)
from .session import ITransport, RoleProfile, SessionManager, WebSocketTransport, profile_for
from .storage import IStorage, Storage
from .timeline import TimelineStore
from .typing_indicator import TypingDebouncer

logger = get_logger(__name__)

T = TypeVar("T")


class IChatClient(Protocol):
    """Bootstrap, lifecycle and user-facing operations."""

    async def start(self) -> None:
        """Open storage and restore a stored session."""
        ...

    async def stop(self) -> None:
        """Close the session and release resources."""
        ...

    async def login(self, username: str, password: str) -> dict:
        """Authenticate and start a session. Returns the account."""
        ...

    async def logout(self) -> None:
        """End the session and forget the stored credential."""
        ...


class ChatClient:
    """Context object owned by the host application.

    Every component receives its collaborators explicitly; nothing is
    process-global, so several clients can coexist in one process.
    """

    def __init__(
        self,
        settings: ClientSettings | None = None,
        storage: IStorage | None = None,
        directory_client: IDirectoryClient | None = None,
        transport: ITransport | None = None,
    ):
        self._settings = settings or ClientSettings.from_env()
        self._profile: RoleProfile = profile_for(self._settings.role)

        self._storage = storage or Storage(self._settings.db_path)
        self._event_bus = EventBus()
        self._directory_client = directory_client or DirectoryClient(
            self._settings.server_url, timeout=self._settings.http_timeout
        )
        self._cache = DirectoryCache()
        self._timeline = TimelineStore(self._profile.idle_placeholder)
        self._typing = TypingDebouncer(self._event_bus, self._profile.typing_window)
        self._session_manager = SessionManager(
            transport=transport or WebSocketTransport(),
            stream_url=self._settings.stream_url,
            profile=self._profile,
            timeline=self._timeline,
            typing=self._typing,
            directory=self._cache,
            event_bus=self._event_bus,
        )
        self._poller = DirectoryPoller(
            client=self._directory_client,
            cache=self._cache,
            event_bus=self._event_bus,
            rooms_interval=self._settings.rooms_refresh_interval,
            agents_interval=self._settings.agents_refresh_interval,
            on_unauthorized=self._invalidate,
        )

        self._account: dict | None = None
        self._identity: Identity | None = None
        self._selection = 0
        self._started = False

    # Lifecycle

    async def start(self) -> None:
        """Open storage and restore a stored session."""
        logger.info("Starting chat client as %s", self._profile.role.value)
        await self._storage.init()
        self._started = True
        await self.restore_session()

    async def stop(self) -> None:
        """Close the session and release resources."""
        self._poller.stop()
        await self._session_manager.close(silent=True)
        self._typing.reset()
        await self._directory_client.close()
        if self._started:
            await self._storage.close()
            self._started = False
        logger.info("Chat client stopped")

    # Accounts

    async def login(self, username: str, password: str) -> dict:
        """Authenticate and start a session. Returns the account."""
        token, account = await self._directory_client.login(username, password)
        await self._apply_session(account, token)
        return account

    async def logout(self) -> None:
        """End the session and forget the stored credential."""
        try:
            await self._directory_client.logout()
        except (DirectoryError, Unauthorized) as e:
            logger.warning("Logout request failed: %s", e)
        await self._clear_session()

    async def restore_session(self) -> bool:
        """Resume with the stored credential, if it is still accepted."""
        token = await self._storage.get_credential(self._profile.credential_key)
        if not token:
            return False

        self._directory_client.set_token(token)
        try:
            account = await self._directory_client.profile()
        except (DirectoryError, Unauthorized) as e:
            logger.info("Stored credential rejected: %s", e)
            await self._clear_session()
            return False

        await self._apply_session(account, token)
        return True

    async def _apply_session(self, account: dict, token: str) -> None:
        self._account = account
        username = account["username"]
        self._identity = Identity(
            id=username,
            role=self._profile.role,
            display_name=account.get("displayName") or username,
        )
        self._directory_client.set_token(token)
        await self._storage.save_credential(self._profile.credential_key, token)
        self._timeline.reset(self._profile.idle_placeholder)
        await self._event_bus.emit(
            Topic.SESSION, "authenticated", {"account": account}
        )
        logger.info("Signed in as %s", username)

        if self._profile.polls_directory:
            await self.refresh_directory()
            await self._poller.start()

    async def _clear_session(self) -> None:
        self._poller.stop()
        await self._session_manager.close(silent=True)
        self._typing.reset()
        self._directory_client.set_token(None)
        await self._storage.clear_credential(self._profile.credential_key)
        self._account = None
        self._identity = None
        self._cache.clear()
        self._timeline.reset(self._profile.idle_placeholder)
        await self._event_bus.emit(Topic.SESSION, "signed_out")

    async def _invalidate(self) -> None:
        """React to a rejected credential: stop everything, ask to sign in."""
        logger.warning("Session invalidated by directory service")
        await self._event_bus.emit(Topic.SESSION, "invalidated")
        await self._clear_session()

    async def _guard(self, call: Awaitable[T]) -> T:
        """Await a directory call, turning 401 into session invalidation."""
        try:
            return await call
        except Unauthorized:
            await self._invalidate()
            raise

    def _require_identity(self) -> Identity:
        if self._identity is None:
            raise Unauthorized("not signed in")
        return self._identity

    # Rooms

    async def select_room(self, room_id: str) -> Session | None:
        """Load a room snapshot, then stream it (agent flow).

        Returns None when a newer selection superseded this one.
        """
        identity = self._require_identity()
        current = self._session_manager.session
        if (
            current is not None
            and current.room_id == room_id
            and self._session_manager.composer_enabled
        ):
            return current

        self._selection += 1
        try:
            snapshot = await self._load_snapshot(room_id, self._selection)
        except StaleResponse as e:
            logger.debug("Discarding snapshot: %s", e)
            return None

        # Frames of the previous room must not land on the new snapshot.
        await self._session_manager.close(silent=True)

        if snapshot is not None:
            self._cache.upsert(snapshot.summary)
            entries = self._timeline.ingest_snapshot(
                snapshot.history, self._profile.empty_history_placeholder
            )
            await self._event_bus.emit(
                Topic.TIMELINE,
                "snapshot",
                {"entries": entries, "placeholder": self._timeline.placeholder},
                room_id=room_id,
            )
            await self._event_bus.emit(Topic.DIRECTORY, "room_updated", room_id=room_id)
        else:
            self._timeline.reset(self._profile.idle_placeholder)

        return await self._session_manager.connect(room_id, identity)

    async def _load_snapshot(self, room_id: str, selection: int) -> RoomSnapshot | None:
        """Fetch a room snapshot; None when the directory call failed.

        Raises:
            StaleResponse: another room was selected while fetching.
        """
        try:
            snapshot = await self._guard(self._directory_client.get_room(room_id))
        except DirectoryError as e:
            logger.warning("Room snapshot for %s failed: %s", room_id, e)
            snapshot = None

        if selection != self._selection:
            raise StaleResponse(f"snapshot of room {room_id} superseded")
        return snapshot

    async def open_room(
        self, room_id: str | None = None, display_name: str | None = None
    ) -> Session:
        """Start or resume a conversation (player flow)."""
        identity = self._require_identity()
        if display_name and display_name.strip():
            identity = Identity(
                id=identity.id, role=identity.role, display_name=display_name.strip()
            )
            self._identity = identity
        room_id = room_id or f"room-{int(time.time() * 1000)}"
        self._selection += 1
        self._timeline.reset(self._profile.idle_placeholder)
        return await self._session_manager.connect(room_id, identity)

    async def leave_room(self) -> None:
        """Close the stream and clear the conversation view."""
        self._selection += 1
        await self._session_manager.close(silent=True)
        self._timeline.reset(self._profile.idle_placeholder)
        if self._profile.left_notice:
            await self._session_manager.surface_notice(self._profile.left_notice)

    async def send_message(self, content: str) -> bool:
        return await self._session_manager.send_message(content)

    async def send_typing(self) -> bool:
        return await self._session_manager.send_typing()

    async def request_history(self) -> bool:
        return await self._session_manager.request_history()

    async def assign_room(
        self,
        agent_id: str | None = None,
        display_name: str | None = None,
        room_id: str | None = None,
    ) -> Assignee:
        """Assign the open room (or ``room_id``) to an agent, default self."""
        identity = self._require_identity()
        room_id = room_id or self._session_manager.room_id
        if not room_id:
            raise ValueError("No room selected")

        assignee = await self._guard(
            self._directory_client.assign_room(
                room_id,
                agent_id or identity.id,
                display_name or identity.display_name,
            )
        )
        if self._cache.apply_assignment(room_id, assignee.display_name, assignee.id):
            await self._event_bus.emit(Topic.DIRECTORY, "room_assigned", room_id=room_id)
        await self._guard(self._poller.refresh_agents())
        return assignee

    async def refresh_directory(self) -> None:
        """Reload rooms and online agents now."""
        await self._guard(self._poller.refresh_rooms())
        await self._guard(self._poller.refresh_agents())

    # Read model

    def rooms(self, keyword: str | None = None) -> list[RoomSummary]:
        return self._cache.list_rooms(keyword)

    def agents(self) -> list[AgentPresence]:
        return self._cache.agents()

    def metrics(self) -> DirectoryMetrics:
        return self._cache.compute_metrics()

    @property
    def profile(self) -> RoleProfile:
        return self._profile

    @property
    def role(self) -> Role:
        return self._profile.role

    @property
    def account(self) -> dict | None:
        return self._account

    @property
    def identity(self) -> Identity | None:
        return self._identity

    @property
    def event_bus(self) -> EventBus:
        return self._event_bus

    @property
    def timeline(self) -> TimelineStore:
        return self._timeline

    @property
    def typing(self) -> TypingDebouncer:
        return self._typing

    @property
    def directory(self) -> DirectoryCache:
        return self._cache

    @property
    def session_manager(self) -> SessionManager:
        return self._session_manager

    @property
    def poller(self) -> DirectoryPoller:
        return self._poller

    @property
    def storage(self) -> IStorage:
        return self._storage
