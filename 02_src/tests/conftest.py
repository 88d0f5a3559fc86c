"""Pytest configuration and fixtures."""

import asyncio
import json
import sys
from pathlib import Path

import httpx
import pytest
import pytest_asyncio

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from chatsync.errors import TransportFailure  # noqa: E402
from chatsync.models import Topic  # noqa: E402


_CLOSED = object()


class FakeConnection:
    """In-memory stream connection fed with synthetic frames."""

    def __init__(self, url: str):
        self.url = url
        self.sent: list[dict] = []
        self.close_calls = 0
        self._inbound: asyncio.Queue = asyncio.Queue()

    @property
    def closed(self) -> bool:
        return self.close_calls > 0

    def feed(self, frame: dict | str) -> None:
        """Queue an inbound frame for the reader task."""
        self._inbound.put_nowait(json.dumps(frame) if isinstance(frame, dict) else frame)

    def drop(self, error: Exception | None = None) -> None:
        """End the inbound stream, abnormally when ``error`` is given."""
        self._inbound.put_nowait(error or _CLOSED)

    async def send(self, frame: str) -> None:
        if self.closed:
            raise TransportFailure("send on closed connection")
        self.sent.append(json.loads(frame))

    async def frames(self):
        while True:
            item = await self._inbound.get()
            if item is _CLOSED:
                return
            if isinstance(item, Exception):
                raise item
            yield item

    async def close(self) -> None:
        self.close_calls += 1
        self._inbound.put_nowait(_CLOSED)

    def sent_kinds(self) -> list[str]:
        return [frame["cmd"] for frame in self.sent]


class FakeTransport:
    """ITransport handing out FakeConnections."""

    def __init__(self):
        self.connections: list[FakeConnection] = []
        self.fail_with: Exception | None = None
        self.gate: asyncio.Event | None = None

    async def connect(self, url: str) -> FakeConnection:
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_with is not None:
            raise self.fail_with
        connection = FakeConnection(url)
        self.connections.append(connection)
        return connection

    @property
    def last(self) -> FakeConnection:
        return self.connections[-1]


class FakeDirectoryServer:
    """Routes httpx.MockTransport requests like the directory service."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.accounts = {
            "alice": ("secret", {"username": "alice", "displayName": "Alice", "role": "agent"}),
            "bob": ("hunter2", {"username": "bob", "displayName": "Bob", "role": "player"}),
        }
        self.tokens: dict[str, str] = {}
        self.rooms: list[dict] = []
        self.room_details: dict[str, dict] = {}
        self.agents: list[dict] = []
        self.failures: dict[str, int] = {}
        self.raw_bodies: dict[str, str] = {}

    def issue_token(self, username: str) -> str:
        token = f"token-{username}"
        self.tokens[token] = username
        return token

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path in self.failures:
            return httpx.Response(self.failures[path], text="service unavailable")
        if path in self.raw_bodies:
            return httpx.Response(200, text=self.raw_bodies[path])

        if path == "/api/auth/login":
            body = json.loads(request.content)
            entry = self.accounts.get(body["username"])
            if entry is None or entry[0] != body["password"]:
                return httpx.Response(401, json={"error": "invalid credentials"})
            return httpx.Response(
                200,
                json={"token": self.issue_token(body["username"]), "account": entry[1]},
            )

        token = request.headers.get("Authorization", "").removeprefix("Bearer ")
        username = self.tokens.get(token)
        if username is None:
            return httpx.Response(401, json={"error": "unauthorized"})

        if path == "/api/auth/profile":
            return httpx.Response(200, json=self.accounts[username][1])
        if path == "/api/auth/logout":
            del self.tokens[token]
            return httpx.Response(204)
        if path == "/api/rooms":
            return httpx.Response(200, json=self.rooms)
        if path == "/api/agents/online":
            return httpx.Response(200, json=self.agents)
        if path.startswith("/api/rooms/") and path.endswith("/assign"):
            body = json.loads(request.content)
            return httpx.Response(
                200, json={"id": body["agentId"], "displayName": body["displayName"]}
            )
        if path.startswith("/api/rooms/"):
            room_id = path[len("/api/rooms/"):]
            if room_id not in self.room_details:
                return httpx.Response(404, text="room not found")
            return httpx.Response(200, json=self.room_details[room_id])
        return httpx.Response(404)

    def paths(self) -> list[str]:
        return [request.url.path for request in self.requests]


async def settle(rounds: int = 10) -> None:
    """Let pending tasks (reader, timers) run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def event_bus():
    """Create EventBus."""
    from chatsync.event_bus import EventBus

    return EventBus()


@pytest.fixture
def notifications(event_bus):
    """Record every notification published on the bus."""
    received = []

    async def record(notification):
        received.append(notification)

    for topic in Topic:
        event_bus.subscribe(topic, record)
    return received


@pytest.fixture
def timeline():
    """Create TimelineStore."""
    from chatsync.timeline import TimelineStore

    return TimelineStore()


@pytest_asyncio.fixture
async def typing(event_bus):
    """Create TypingDebouncer with a short window."""
    from chatsync.typing_indicator import TypingDebouncer

    debouncer = TypingDebouncer(event_bus, window=0.3)
    yield debouncer
    debouncer.reset()


@pytest.fixture
def cache():
    """Create DirectoryCache."""
    from chatsync.directory import DirectoryCache

    return DirectoryCache()


@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest_asyncio.fixture
async def session_manager(fake_transport, timeline, typing, cache, event_bus):
    """Create SessionManager for an agent over the fake transport."""
    from chatsync.session import AGENT_PROFILE, SessionManager

    sm = SessionManager(
        transport=fake_transport,
        stream_url="ws://chat.test/ws",
        profile=AGENT_PROFILE,
        timeline=timeline,
        typing=typing,
        directory=cache,
        event_bus=event_bus,
    )
    yield sm
    await sm.close(silent=True)


@pytest.fixture
def agent_identity():
    from chatsync.models import Identity, Role

    return Identity(id="alice", role=Role.AGENT, display_name="Alice")


@pytest_asyncio.fixture
async def storage():
    """Create in-memory storage for testing."""
    from chatsync.storage import Storage

    st = Storage(":memory:")
    await st.init()
    yield st
    await st.close()


@pytest.fixture
def directory_server():
    return FakeDirectoryServer()


@pytest_asyncio.fixture
async def directory_client(directory_server):
    """Create DirectoryClient backed by httpx.MockTransport."""
    from chatsync.directory import DirectoryClient

    client = DirectoryClient(
        "http://chat.test", transport=httpx.MockTransport(directory_server.handle)
    )
    yield client
    await client.close()


@pytest_asyncio.fixture
async def make_client(directory_server, fake_transport):
    """Factory for started ChatClients wired to fakes."""
    from chatsync.app import ChatClient
    from chatsync.config import ClientSettings
    from chatsync.directory import DirectoryClient
    from chatsync.storage import Storage

    created = []

    async def factory(role: str = "agent", storage=None, start: bool = True):
        settings = ClientSettings(
            server_url="http://chat.test",
            role=role,
            rooms_refresh_interval=60,
            agents_refresh_interval=60,
            db_path=":memory:",
        )
        client = ChatClient(
            settings,
            storage=storage or Storage(":memory:"),
            directory_client=DirectoryClient(
                "http://chat.test",
                transport=httpx.MockTransport(directory_server.handle),
            ),
            transport=fake_transport,
        )
        if start:
            await client.start()
        created.append(client)
        return client

    yield factory
    for client in created:
        await client.stop()
