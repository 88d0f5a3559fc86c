"""Directory data models: rooms, online agents and derived metrics."""

from dataclasses import dataclass, field
from datetime import datetime

from .messages import Message


@dataclass
class RoomSummary:
    """Lightweight view of a room used for listing."""

    room_id: str
    player_count: int = 0
    agent_count: int = 0
    connected_player_count: int = 0
    connected_agent_count: int = 0
    assigned_agent: str | None = None
    assigned_agent_id: str | None = None
    last_message: str | None = None
    last_activity: datetime | None = None
    created_at: datetime | None = None


@dataclass
class AgentPresence:
    """An online agent and the rooms they are active in."""

    id: str
    display_name: str
    rooms: set[str] = field(default_factory=set)
    last_seen: datetime | None = None


@dataclass
class RoomSnapshot:
    """Point-in-time read of one room from the directory service."""

    summary: RoomSummary
    history: list[Message] = field(default_factory=list)


@dataclass
class Assignee:
    """Agent returned by an assign/transfer call."""

    id: str
    display_name: str


@dataclass
class DirectoryMetrics:
    """Counters derived from the directory cache."""

    waiting: int
    active: int
    agents_online: int
    connected_agents: int  # sum of connected_agent_count across rooms
