"""Message-related data models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class MessageKind(str, Enum):
    """Closed set of envelope kinds exchanged over the stream."""

    HISTORY = "chat.history"
    CHAT = "chat.message"
    TYPING = "chat.typing"
    NOTICE = "system.notice"


class SenderRole(str, Enum):
    """Who authored a message."""

    AGENT = "agent"
    PLAYER = "player"
    SYSTEM = "system"


ASSIGNED_AGENT_KEY = "assignedAgent"
ASSIGNED_AGENT_ID_KEY = "assignedAgentId"


@dataclass
class Message:
    """A single entry of a room's conversation."""

    kind: MessageKind
    content: str
    timestamp: datetime
    sender_id: str = ""
    sender_role: SenderRole = SenderRole.SYSTEM
    display_name: str = ""
    sequence: int | None = None  # None: unsequenced system notice
    room_id: str = ""
    metadata: dict[str, str] = field(default_factory=dict)

    @property
    def is_assignment(self) -> bool:
        """True for system notices that carry agent assignment metadata."""
        return self.kind is MessageKind.NOTICE and bool(
            self.metadata.get(ASSIGNED_AGENT_KEY)
        )

    @property
    def sort_key(self) -> int:
        return self.sequence or 0
