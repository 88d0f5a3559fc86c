"""Session and presence data models."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Role(str, Enum):
    """Participant role on the stream."""

    AGENT = "agent"
    PLAYER = "player"


class ConnectionState(str, Enum):
    """Lifecycle of the streaming connection."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


@dataclass(frozen=True)
class Identity:
    """Local participant identity sent as connection parameters."""

    id: str
    role: Role
    display_name: str


@dataclass
class Session:
    """The streaming session for one room."""

    room_id: str
    local_identity: Identity
    connection_state: ConnectionState = ConnectionState.DISCONNECTED
    generation: int = 0
    assigned_agent: str | None = None
    assigned_agent_id: str | None = None


@dataclass
class TypingIndicator:
    """Transient "someone is typing" payload."""

    display_name: str
    expires_at: datetime
