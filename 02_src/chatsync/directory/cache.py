"""DirectoryCache implementation."""

from dataclasses import replace
from datetime import datetime, timedelta, timezone

from ..logging_config import get_logger
from ..models import AgentPresence, DirectoryMetrics, RoomSummary

logger = get_logger(__name__)

ACTIVE_WINDOW = timedelta(minutes=5)
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class DirectoryCache:
    """Keyed snapshot of room summaries and online agents.

    Refreshes swap in a freshly built mapping; live patches always look up
    the current mapping, so a patch that lands after a refresh is kept.
    """

    def __init__(self):
        self._rooms: dict[str, RoomSummary] = {}
        self._agents: list[AgentPresence] = []

    def refresh(self, snapshot: list[RoomSummary]) -> None:
        """Replace all rooms with ``snapshot``; absent rooms are evicted."""
        fresh = {summary.room_id: summary for summary in snapshot}
        evicted = self._rooms.keys() - fresh.keys()
        if evicted:
            logger.debug("Evicting %d rooms absent from refresh", len(evicted))
        self._rooms = fresh

    def upsert(self, summary: RoomSummary) -> None:
        """Store a single summary, e.g. from a room snapshot fetch."""
        self._rooms[summary.room_id] = summary

    def replace_agents(self, agents: list[AgentPresence]) -> None:
        self._agents = list(agents)

    def apply_assignment(
        self, room_id: str, agent_display_name: str, agent_id: str | None
    ) -> bool:
        """Record a new assignee; returns False when the room is unknown."""
        summary = self._rooms.get(room_id)
        if summary is None:
            return False
        summary.assigned_agent = agent_display_name
        if agent_id:
            summary.assigned_agent_id = agent_id
        return True

    def apply_message_touch(
        self, room_id: str, content: str, timestamp: datetime
    ) -> bool:
        """Update last message and activity; returns False when unknown."""
        summary = self._rooms.get(room_id)
        if summary is None:
            return False
        summary.last_message = content
        summary.last_activity = timestamp
        return True

    def compute_metrics(self, now: datetime | None = None) -> DirectoryMetrics:
        """Derive counters from the current state; never cached."""
        now = now or datetime.now(timezone.utc)
        waiting = 0
        active = 0
        connected_agents = 0
        for summary in self._rooms.values():
            if not summary.assigned_agent_id:
                waiting += 1
            if summary.last_activity and now - summary.last_activity <= ACTIVE_WINDOW:
                active += 1
            connected_agents += summary.connected_agent_count
        return DirectoryMetrics(
            waiting=waiting,
            active=active,
            agents_online=len(self._agents) or connected_agents,
            connected_agents=connected_agents,
        )

    def list_rooms(self, keyword: str | None = None) -> list[RoomSummary]:
        """Rooms by most recent activity; rooms never active sort last."""
        rooms = sorted(
            self._rooms.values(),
            key=lambda s: s.last_activity or _EPOCH,
            reverse=True,
        )
        if not keyword:
            return [replace(room) for room in rooms]

        keyword = keyword.lower()
        return [
            replace(room)
            for room in rooms
            if keyword in room.room_id.lower()
            or (room.assigned_agent and keyword in room.assigned_agent.lower())
            or (room.last_message and keyword in room.last_message.lower())
        ]

    def get(self, room_id: str) -> RoomSummary | None:
        summary = self._rooms.get(room_id)
        return replace(summary) if summary else None

    def agents(self) -> list[AgentPresence]:
        return list(self._agents)

    def clear(self) -> None:
        self._rooms = {}
        self._agents = []

    def __contains__(self, room_id: str) -> bool:
        return room_id in self._rooms

    def __len__(self) -> int:
        return len(self._rooms)
