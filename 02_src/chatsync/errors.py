"""Error taxonomy for the synchronization engine."""


class ChatSyncError(Exception):
    """Base class for all chatsync errors."""


class MalformedEnvelope(ChatSyncError):
    """A frame is not a JSON object or carries no recognized kind."""

    def __init__(self, reason: str, raw: str | bytes | None = None):
        super().__init__(reason)
        self.reason = reason
        self.raw = raw


class Unauthorized(ChatSyncError):
    """The directory service rejected the bearer credential (HTTP 401)."""


class TransportFailure(ChatSyncError):
    """The streaming connection could not be opened or ended abnormally."""


class StaleResponse(ChatSyncError):
    """A response arrived for a session or room that is no longer current."""


class DirectoryError(ChatSyncError):
    """The directory service returned an unexpected error."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
