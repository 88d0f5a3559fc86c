"""TimelineStore implementation."""

from dataclasses import dataclass
from datetime import datetime

from ..logging_config import get_logger
from ..models import Message, MessageKind

logger = get_logger(__name__)

DEFAULT_PLACEHOLDER = "No conversation yet"


@dataclass
class TimelineEntry:
    """A message as placed in the timeline."""

    message: Message
    day_key: str
    day_boundary: bool  # first entry of a new calendar day


def day_key(message: Message) -> str:
    """Calendar-day partition key of a message in local time."""
    timestamp = message.timestamp if isinstance(message.timestamp, datetime) else None
    if timestamp is None:
        timestamp = datetime.now().astimezone()
    return timestamp.astimezone().date().isoformat()


class TimelineStore:
    """Ordered, deduplicated, day-partitioned log of the open room."""

    def __init__(self, placeholder: str = DEFAULT_PLACEHOLDER):
        self._entries: list[TimelineEntry] = []
        self._max_sequence: dict[MessageKind, int] = {}
        self._last_day_key: str | None = None
        self._placeholder = placeholder

    def reset(self, placeholder_text: str | None = None) -> None:
        """Clear the log; shown as ``placeholder_text`` until it grows."""
        self._entries.clear()
        self._max_sequence.clear()
        self._last_day_key = None
        if placeholder_text is not None:
            self._placeholder = placeholder_text

    def ingest_snapshot(
        self, messages: list[Message], empty_placeholder: str | None = None
    ) -> list[TimelineEntry]:
        """Replace the log with a bulk snapshot.

        The snapshot is stable-sorted by sequence first; messages without a
        sequence sort as 0 and keep their relative order.
        """
        self.reset(empty_placeholder if not messages else None)
        for message in sorted(messages, key=lambda m: m.sort_key):
            self._append(message)
        logger.debug("Snapshot ingested: %d messages", len(self._entries))
        return list(self._entries)

    def ingest_live(self, message: Message) -> TimelineEntry | None:
        """Append a live message; returns None when it is a duplicate."""
        if message.sequence is not None:
            seen = self._max_sequence.get(message.kind)
            if seen is not None and message.sequence <= seen:
                logger.debug(
                    "Dropping duplicate %s #%s (seen up to #%s)",
                    message.kind.value,
                    message.sequence,
                    seen,
                )
                return None
        return self._append(message)

    def day_boundary_for(self, message: Message) -> str | None:
        """Return the day key when ``message`` starts a new day, else None.

        Each transition is reported once; the key becomes the last emitted day.
        """
        key = day_key(message)
        if key == self._last_day_key:
            return None
        self._last_day_key = key
        return key

    def _append(self, message: Message) -> TimelineEntry:
        boundary = self.day_boundary_for(message)
        entry = TimelineEntry(
            message=message,
            day_key=boundary or self._last_day_key or day_key(message),
            day_boundary=boundary is not None,
        )
        self._entries.append(entry)
        if message.sequence is not None:
            current = self._max_sequence.get(message.kind, 0)
            self._max_sequence[message.kind] = max(current, message.sequence)
        return entry

    def last_sequence(self, kind: MessageKind = MessageKind.CHAT) -> int | None:
        """Highest sequence seen for ``kind``."""
        return self._max_sequence.get(kind)

    def entries(self) -> list[TimelineEntry]:
        return list(self._entries)

    def messages(self) -> list[Message]:
        return [entry.message for entry in self._entries]

    @property
    def placeholder(self) -> str | None:
        """Placeholder text while the log is empty."""
        return None if self._entries else self._placeholder

    def __len__(self) -> int:
        return len(self._entries)
