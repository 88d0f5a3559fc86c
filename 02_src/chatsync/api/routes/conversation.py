"""Conversation API routes."""

from datetime import datetime

from pydantic import BaseModel
from fastapi import APIRouter

from ...app import ChatClient
from ..errors import to_http_exception


class MessageRequest(BaseModel):
    """Request model for sending a message."""

    content: str


class SendResponse(BaseModel):
    """Response model for outbound frames."""

    sent: bool


class EntryResponse(BaseModel):
    """Response model for timeline entry."""

    kind: str
    content: str
    timestamp: datetime
    sender_id: str
    sender_role: str
    display_name: str
    sequence: int | None
    metadata: dict[str, str]
    day_key: str
    day_boundary: bool
    own: bool
    visible: bool


class TimelineResponse(BaseModel):
    """Response model for the open room's log."""

    room_id: str | None
    placeholder: str | None
    entries: list[EntryResponse]


class TypingResponse(BaseModel):
    """Response model for typing indicator."""

    active: bool
    display_name: str | None = None
    expires_at: datetime | None = None


def create_conversation_router(client: ChatClient) -> APIRouter:
    """Create conversation router."""
    router = APIRouter(prefix="/api", tags=["conversation"])

    @router.post("/messages", response_model=SendResponse)
    async def send_message(request: MessageRequest) -> dict:
        """Send a chat message into the open room."""
        try:
            return {"sent": await client.send_message(request.content)}
        except Exception as e:
            raise to_http_exception(e)

    @router.post("/typing", response_model=SendResponse)
    async def send_typing() -> dict:
        """Signal that the local participant is typing."""
        try:
            return {"sent": await client.send_typing()}
        except Exception as e:
            raise to_http_exception(e)

    @router.post("/history", response_model=SendResponse)
    async def request_history() -> dict:
        """Ask the server for a full history resync."""
        try:
            return {"sent": await client.request_history()}
        except Exception as e:
            raise to_http_exception(e)

    @router.get("/timeline", response_model=TimelineResponse)
    async def get_timeline() -> dict:
        """Get the ordered log of the open room."""
        identity = client.identity
        entries = []
        for entry in client.timeline.entries():
            message = entry.message
            entries.append(
                {
                    "kind": message.kind.value,
                    "content": message.content,
                    "timestamp": message.timestamp.isoformat(),
                    "sender_id": message.sender_id,
                    "sender_role": message.sender_role.value,
                    "display_name": message.display_name,
                    "sequence": message.sequence,
                    "metadata": message.metadata,
                    "day_key": entry.day_key,
                    "day_boundary": entry.day_boundary,
                    "own": bool(identity) and client.profile.is_own(message, identity),
                    "visible": not message.is_assignment,
                }
            )
        return {
            "room_id": client.session_manager.room_id,
            "placeholder": client.timeline.placeholder,
            "entries": entries,
        }

    @router.get("/typing", response_model=TypingResponse)
    async def get_typing() -> dict:
        """Get the remote typing indicator."""
        indicator = client.typing.indicator
        if indicator is None:
            return {"active": False}
        return {
            "active": True,
            "display_name": indicator.display_name,
            "expires_at": indicator.expires_at.isoformat(),
        }

    return router
