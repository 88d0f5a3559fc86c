"""HTTP client for the room directory and account service."""

from typing import Any, Callable, Protocol
from urllib.parse import quote

import httpx

from ..errors import DirectoryError, Unauthorized
from ..logging_config import get_logger
from ..models import AgentPresence, Assignee, RoomSnapshot, RoomSummary
from ..protocol import message_from_payload, parse_timestamp

logger = get_logger(__name__)


class IDirectoryClient(Protocol):
    """Request/response collaborator for rooms, agents and accounts."""

    def set_token(self, token: str | None) -> None:
        """Set the bearer credential attached to every request."""
        ...

    async def login(self, username: str, password: str) -> tuple[str, dict]:
        """Exchange credentials for a token. Returns (token, account)."""
        ...

    async def profile(self) -> dict:
        """Get the account behind the current token."""
        ...

    async def logout(self) -> None:
        """Invalidate the current token."""
        ...

    async def list_rooms(self) -> list[RoomSummary]:
        """Get all room summaries."""
        ...

    async def get_room(self, room_id: str) -> RoomSnapshot:
        """Get one room's summary and history."""
        ...

    async def assign_room(
        self, room_id: str, agent_id: str, display_name: str
    ) -> Assignee:
        """Assign or transfer a room to an agent."""
        ...

    async def online_agents(self) -> list[AgentPresence]:
        """Get agents currently connected to any room."""
        ...

    async def close(self) -> None:
        """Release the HTTP connection pool."""
        ...


def _int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def summary_from_payload(data: dict) -> RoomSummary:
    """Decode a RoomSummary from its JSON form."""
    return RoomSummary(
        room_id=str(data["roomId"]),
        player_count=_int(data.get("playerCount")),
        agent_count=_int(data.get("agentCount")),
        # Older servers omit connected counts; fall back to totals
        connected_player_count=_int(
            data.get("connectedPlayerCount", data.get("playerCount"))
        ),
        connected_agent_count=_int(
            data.get("connectedAgentCount", data.get("agentCount"))
        ),
        assigned_agent=data.get("assignedAgent") or None,
        assigned_agent_id=data.get("assignedAgentId") or None,
        last_message=data.get("lastMessage") or None,
        last_activity=parse_timestamp(data.get("lastActivity")),
        created_at=parse_timestamp(data.get("createdAt")),
    )


def presence_from_payload(data: dict) -> AgentPresence:
    """Decode an AgentPresence from its JSON form."""
    return AgentPresence(
        id=str(data["id"]),
        display_name=str(data.get("displayName") or data["id"]),
        rooms=set(data.get("rooms") or []),
        last_seen=parse_timestamp(data.get("lastSeen")),
    )


def snapshot_from_payload(data: dict) -> RoomSnapshot:
    """Decode a RoomSnapshot. The participant list is not read."""
    return RoomSnapshot(
        summary=summary_from_payload(data["summary"]),
        history=[message_from_payload(item) for item in data.get("history") or []],
    )


def account_from_payload(data: dict) -> dict:
    """Validate an account object; it must carry a username."""
    account = dict(data)
    if not isinstance(account.get("username"), str):
        raise KeyError("username")
    return account


def _rooms_from_payload(data: list) -> list[RoomSummary]:
    return [summary_from_payload(item) for item in data or []]


def _agents_from_payload(data: Any) -> list[AgentPresence]:
    if not isinstance(data, list):
        return []
    return [presence_from_payload(item) for item in data]


class DirectoryClient:
    """httpx-based directory client."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._token = token
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
        )

    @property
    def token(self) -> str | None:
        return self._token

    def set_token(self, token: str | None) -> None:
        """Set the bearer credential attached to every request."""
        self._token = token

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        headers = kwargs.pop("headers", {})
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"

        try:
            response = await self._client.request(method, path, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            raise DirectoryError(f"{method} {path} failed: {e}") from e

        logger.debug("%s %s -> %s", method, path, response.status_code)
        if response.status_code == 401:
            raise Unauthorized(f"{method} {path} rejected credential")
        if response.status_code >= 400:
            raise DirectoryError(
                response.text.strip() or f"{method} {path} returned {response.status_code}",
                status_code=response.status_code,
            )
        return response

    async def _json(
        self,
        method: str,
        path: str,
        decode: Callable[[Any], Any] | None = None,
        **kwargs: Any,
    ) -> Any:
        """Request ``path`` and decode its JSON body, optionally through ``decode``.

        Raises:
            DirectoryError: the body is not JSON or lacks required fields.
        """
        response = await self._request(method, path, **kwargs)
        try:
            data = response.json()
            return decode(data) if decode else data
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning("Malformed response from %s %s: %r", method, path, e)
            raise DirectoryError(f"{method} {path} returned a malformed body: {e!r}") from e

    async def login(self, username: str, password: str) -> tuple[str, dict]:
        """Exchange credentials for a token. Returns (token, account)."""
        return await self._json(
            "POST",
            "/api/auth/login",
            decode=lambda data: (str(data["token"]), account_from_payload(data["account"])),
            json={"username": username.strip().lower(), "password": password},
        )

    async def profile(self) -> dict:
        """Get the account behind the current token."""
        return await self._json("GET", "/api/auth/profile", decode=account_from_payload)

    async def logout(self) -> None:
        """Invalidate the current token."""
        if not self._token:
            return
        await self._request("POST", "/api/auth/logout")

    async def list_rooms(self) -> list[RoomSummary]:
        """Get all room summaries."""
        return await self._json("GET", "/api/rooms", decode=_rooms_from_payload)

    async def get_room(self, room_id: str) -> RoomSnapshot:
        """Get one room's summary and history."""
        return await self._json(
            "GET", f"/api/rooms/{quote(room_id, safe='')}", decode=snapshot_from_payload
        )

    async def assign_room(
        self, room_id: str, agent_id: str, display_name: str
    ) -> Assignee:
        """Assign or transfer a room to an agent."""
        return await self._json(
            "POST",
            f"/api/rooms/{quote(room_id, safe='')}/assign",
            decode=lambda data: Assignee(
                id=str(data["id"]), display_name=str(data.get("displayName") or "")
            ),
            json={"agentId": agent_id, "displayName": display_name},
        )

    async def online_agents(self) -> list[AgentPresence]:
        """Get agents currently connected to any room."""
        return await self._json("GET", "/api/agents/online", decode=_agents_from_payload)

    async def close(self) -> None:
        """Release the HTTP connection pool."""
        await self._client.aclose()
