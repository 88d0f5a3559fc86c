"""Session API routes."""

from pydantic import BaseModel
from fastapi import APIRouter, HTTPException

from ...app import ChatClient
from ...models import Role
from ..errors import to_http_exception


class LoginRequest(BaseModel):
    """Request model for signing in."""

    username: str
    password: str


class ConnectRequest(BaseModel):
    """Request model for opening a room."""

    room_id: str | None = None
    display_name: str | None = None


class SessionResponse(BaseModel):
    """Response model for the current session."""

    role: str
    signed_in: bool
    user_id: str | None = None
    display_name: str | None = None
    room_id: str | None = None
    state: str
    composer_enabled: bool
    assigned_agent: str | None = None
    assigned_agent_id: str | None = None


class StatusResponse(BaseModel):
    """Response model for status."""

    status: str


def session_view(client: ChatClient) -> dict:
    """Current session as a response dict."""
    manager = client.session_manager
    identity = client.identity
    session = manager.session
    return {
        "role": client.role.value,
        "signed_in": identity is not None,
        "user_id": identity.id if identity else None,
        "display_name": identity.display_name if identity else None,
        "room_id": manager.room_id,
        "state": manager.state.value,
        "composer_enabled": manager.composer_enabled,
        "assigned_agent": session.assigned_agent if session else None,
        "assigned_agent_id": session.assigned_agent_id if session else None,
    }


def create_session_router(client: ChatClient) -> APIRouter:
    """Create session router."""
    router = APIRouter(prefix="/api/session", tags=["session"])

    @router.get("", response_model=SessionResponse)
    async def get_session() -> dict:
        """Get identity and connection state."""
        return session_view(client)

    @router.post("/login", response_model=SessionResponse)
    async def login(request: LoginRequest) -> dict:
        """Sign in and persist the credential."""
        try:
            await client.login(request.username, request.password)
            return session_view(client)
        except Exception as e:
            raise to_http_exception(e)

    @router.delete("", response_model=StatusResponse)
    async def logout() -> dict:
        """Sign out and forget the stored credential."""
        try:
            await client.logout()
            return {"status": "ok"}
        except Exception as e:
            raise to_http_exception(e)

    @router.post("/connect", response_model=SessionResponse)
    async def connect(request: ConnectRequest) -> dict:
        """Open a room: select it (agent) or start a conversation (player)."""
        try:
            if client.role is Role.AGENT:
                if not request.room_id:
                    raise HTTPException(status_code=400, detail="room_id is required")
                await client.select_room(request.room_id)
            else:
                await client.open_room(request.room_id, request.display_name)
            return session_view(client)
        except Exception as e:
            raise to_http_exception(e)

    @router.post("/leave", response_model=SessionResponse)
    async def leave() -> dict:
        """Close the stream for the current room."""
        try:
            await client.leave_room()
            return session_view(client)
        except Exception as e:
            raise to_http_exception(e)

    return router
