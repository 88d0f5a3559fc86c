"""Directory API routes."""

from datetime import datetime

from pydantic import BaseModel
from fastapi import APIRouter, Query

from ...app import ChatClient
from ..errors import to_http_exception


class RoomResponse(BaseModel):
    """Response model for room summary."""

    room_id: str
    player_count: int
    agent_count: int
    connected_player_count: int
    connected_agent_count: int
    assigned_agent: str | None
    assigned_agent_id: str | None
    last_message: str | None
    last_activity: datetime | None
    created_at: datetime | None


class AgentResponse(BaseModel):
    """Response model for online agent."""

    id: str
    display_name: str
    rooms: list[str]
    last_seen: datetime | None


class MetricsResponse(BaseModel):
    """Response model for directory metrics."""

    waiting: int
    active: int
    agents_online: int
    connected_agents: int


class AssignRequest(BaseModel):
    """Request model for assigning a room; defaults to the local agent."""

    agent_id: str | None = None
    display_name: str | None = None


class AssigneeResponse(BaseModel):
    """Response model for assignment."""

    id: str
    display_name: str


class StatusResponse(BaseModel):
    """Response model for status."""

    status: str


def create_directory_router(client: ChatClient) -> APIRouter:
    """Create directory router."""
    router = APIRouter(prefix="/api", tags=["directory"])

    @router.get("/rooms", response_model=list[RoomResponse])
    async def get_rooms(
        q: str | None = Query(None, description="Keyword filter"),
    ) -> list[dict]:
        """Get cached rooms, most recently active first."""
        return [
            {
                "room_id": room.room_id,
                "player_count": room.player_count,
                "agent_count": room.agent_count,
                "connected_player_count": room.connected_player_count,
                "connected_agent_count": room.connected_agent_count,
                "assigned_agent": room.assigned_agent,
                "assigned_agent_id": room.assigned_agent_id,
                "last_message": room.last_message,
                "last_activity": room.last_activity,
                "created_at": room.created_at,
            }
            for room in client.rooms(q)
        ]

    @router.get("/metrics", response_model=MetricsResponse)
    async def get_metrics() -> dict:
        """Get waiting/active/online counters."""
        metrics = client.metrics()
        return {
            "waiting": metrics.waiting,
            "active": metrics.active,
            "agents_online": metrics.agents_online,
            "connected_agents": metrics.connected_agents,
        }

    @router.get("/agents", response_model=list[AgentResponse])
    async def get_agents() -> list[dict]:
        """Get online agents."""
        return [
            {
                "id": agent.id,
                "display_name": agent.display_name,
                "rooms": sorted(agent.rooms),
                "last_seen": agent.last_seen,
            }
            for agent in client.agents()
        ]

    @router.post("/rooms/{room_id}/assign", response_model=AssigneeResponse)
    async def assign_room(room_id: str, request: AssignRequest) -> dict:
        """Assign or transfer a room."""
        try:
            assignee = await client.assign_room(
                agent_id=request.agent_id,
                display_name=request.display_name,
                room_id=room_id,
            )
            return {"id": assignee.id, "display_name": assignee.display_name}
        except Exception as e:
            raise to_http_exception(e)

    @router.post("/directory/refresh", response_model=StatusResponse)
    async def refresh_directory() -> dict:
        """Reload rooms and online agents now."""
        try:
            await client.refresh_directory()
            return {"status": "ok"}
        except Exception as e:
            raise to_http_exception(e)

    return router
