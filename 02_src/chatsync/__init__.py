"""Chat synchronization client module."""

from .app import ChatClient, IChatClient
from .config import ClientSettings
from .directory import DirectoryCache, DirectoryClient, DirectoryPoller, IDirectoryClient
from .errors import (
    ChatSyncError,
    DirectoryError,
    MalformedEnvelope,
    TransportFailure,
    Unauthorized,
)
from .event_bus import EventBus, IEventBus
from .models import (
    AgentPresence,
    ConnectionState,
    DirectoryMetrics,
    Identity,
    Message,
    MessageKind,
    Role,
    RoomSummary,
    SenderRole,
    Session,
    Topic,
)
from .session import ISessionManager, SessionManager, WebSocketTransport
from .storage import IStorage, Storage
from .timeline import TimelineEntry, TimelineStore
from .typing_indicator import TypingDebouncer

__all__ = [
    # Client
    "ChatClient",
    "IChatClient",
    "ClientSettings",
    # Models
    "Message",
    "MessageKind",
    "SenderRole",
    "RoomSummary",
    "AgentPresence",
    "DirectoryMetrics",
    "Role",
    "Identity",
    "ConnectionState",
    "Session",
    "Topic",
    # Errors
    "ChatSyncError",
    "MalformedEnvelope",
    "Unauthorized",
    "TransportFailure",
    "DirectoryError",
    # Components
    "IEventBus",
    "EventBus",
    "TimelineStore",
    "TimelineEntry",
    "TypingDebouncer",
    "DirectoryCache",
    "IDirectoryClient",
    "DirectoryClient",
    "DirectoryPoller",
    "ISessionManager",
    "SessionManager",
    "WebSocketTransport",
    "IStorage",
    "Storage",
]
