"""Session module."""

from .manager import ISessionManager, SessionManager
from .roles import AGENT_PROFILE, PLAYER_PROFILE, RoleProfile, profile_for
from .transport import (
    IConnection,
    ITransport,
    WebSocketConnection,
    WebSocketTransport,
    build_stream_url,
)

__all__ = [
    "ISessionManager",
    "SessionManager",
    "RoleProfile",
    "AGENT_PROFILE",
    "PLAYER_PROFILE",
    "profile_for",
    "IConnection",
    "ITransport",
    "WebSocketConnection",
    "WebSocketTransport",
    "build_stream_url",
]
