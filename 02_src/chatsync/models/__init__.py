"""Core data models for chatsync."""

from .directory import (
    AgentPresence,
    Assignee,
    DirectoryMetrics,
    RoomSnapshot,
    RoomSummary,
)
from .messages import (
    ASSIGNED_AGENT_ID_KEY,
    ASSIGNED_AGENT_KEY,
    Message,
    MessageKind,
    SenderRole,
)
from .notifications import Notification, Topic
from .session import ConnectionState, Identity, Role, Session, TypingIndicator

__all__ = [
    # Messages
    "Message",
    "MessageKind",
    "SenderRole",
    "ASSIGNED_AGENT_KEY",
    "ASSIGNED_AGENT_ID_KEY",
    # Directory
    "RoomSummary",
    "AgentPresence",
    "Assignee",
    "RoomSnapshot",
    "DirectoryMetrics",
    # Session
    "Role",
    "Identity",
    "ConnectionState",
    "Session",
    "TypingIndicator",
    # Notifications
    "Topic",
    "Notification",
]
