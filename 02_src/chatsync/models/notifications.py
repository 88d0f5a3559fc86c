"""Change notifications published to presentation collaborators."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Topic(str, Enum):
    """EventBus topics."""

    CONNECTION = "connection"
    TIMELINE = "timeline"
    TYPING = "typing"
    DIRECTORY = "directory"
    SESSION = "session"


@dataclass
class Notification:
    """A change notification exchanged through EventBus."""

    topic: Topic
    event: str  # e.g. "open", "appended", "expired"
    payload: dict  # varies by topic
    timestamp: datetime
    room_id: str | None = None
