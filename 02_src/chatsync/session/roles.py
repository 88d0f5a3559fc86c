"""Role-specific identity and presentation hints.

The synchronization engine is the same for both roles; a RoleProfile only
supplies copy, timing and storage keys.
"""

from dataclasses import dataclass

from ..models import Identity, Message, MessageKind, Role


@dataclass(frozen=True)
class RoleProfile:
    """Per-role parameters for the engine."""

    role: Role
    credential_key: str
    typing_window: float  # seconds
    idle_placeholder: str
    empty_history_placeholder: str
    disconnected_notice: str
    error_notice: str
    connected_notice: str | None = None
    left_notice: str | None = None
    polls_directory: bool = False

    def is_own(self, message: Message, identity: Identity) -> bool:
        """Whether ``message`` should render on the local participant's side."""
        if message.kind is MessageKind.NOTICE:
            return False
        return (
            message.sender_id == identity.id
            or message.sender_role.value == self.role.value
        )

    def connection_params(self, room_id: str, identity: Identity) -> dict[str, str]:
        """Query parameters identifying this participant on the stream."""
        return {
            "roomId": room_id,
            "role": self.role.value,
            "id": identity.id,
            "name": identity.display_name,
        }


AGENT_PROFILE = RoleProfile(
    role=Role.AGENT,
    credential_key="imAdminToken",
    typing_window=1.5,
    idle_placeholder="Select a room to load the conversation",
    empty_history_placeholder="No messages yet. Start talking to the player.",
    disconnected_notice="Connection closed",
    error_notice="Connection error, please retry",
    polls_directory=True,
)

PLAYER_PROFILE = RoleProfile(
    role=Role.PLAYER,
    credential_key="imPlayerToken",
    typing_window=1.2,
    idle_placeholder="No conversation yet",
    empty_history_placeholder="No messages yet, feel free to leave one",
    disconnected_notice="Connection closed, start the chat again to reconnect",
    error_notice="Connection error, please try again later",
    connected_notice="Connected, an agent will join shortly",
    left_notice="You left the room. Start the chat again to open a new connection.",
)


def profile_for(role: Role | str) -> RoleProfile:
    """Look up the profile for a role."""
    role = Role(role)
    return AGENT_PROFILE if role is Role.AGENT else PLAYER_PROFILE
