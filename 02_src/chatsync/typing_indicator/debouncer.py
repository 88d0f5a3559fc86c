"""TypingDebouncer implementation."""

import asyncio
from datetime import datetime, timedelta, timezone

from ..event_bus import IEventBus
from ..logging_config import get_logger
from ..models import Topic, TypingIndicator

logger = get_logger(__name__)


class TypingDebouncer:
    """Single-slot, self-expiring typing indicator.

    idle -> active on every signal; the expiry timer is re-armed rather than
    stacked, so at most one expiry is pending at a time.
    """

    def __init__(self, event_bus: IEventBus, window: float = 1.5):
        self._event_bus = event_bus
        self._window = window
        self._indicator: TypingIndicator | None = None
        self._timer: asyncio.Task | None = None

    @property
    def window(self) -> float:
        return self._window

    @window.setter
    def window(self, value: float) -> None:
        self._window = value

    @property
    def active(self) -> bool:
        return self._indicator is not None

    @property
    def indicator(self) -> TypingIndicator | None:
        return self._indicator

    async def signal(self, display_name: str) -> None:
        """Show or refresh the indicator and restart the expiry timer."""
        self._cancel_timer()
        self._indicator = TypingIndicator(
            display_name=display_name,
            expires_at=datetime.now(timezone.utc) + timedelta(seconds=self._window),
        )
        self._timer = asyncio.create_task(self._expire_after(self._window))
        await self._event_bus.emit(
            Topic.TYPING, "active", {"display_name": display_name}
        )

    async def clear(self) -> None:
        """Remove the indicator immediately, if shown."""
        self._cancel_timer()
        if self._indicator is None:
            return
        self._indicator = None
        await self._event_bus.emit(Topic.TYPING, "cleared")

    def reset(self) -> None:
        """Drop all state without notifying; used on session teardown."""
        self._cancel_timer()
        self._indicator = None

    def _cancel_timer(self) -> None:
        if self._timer is not None and self._timer is not asyncio.current_task():
            self._timer.cancel()
        self._timer = None

    async def _expire_after(self, delay: float) -> None:
        await asyncio.sleep(delay)
        self._timer = None
        if self._indicator is None:
            return
        logger.debug("Typing indicator expired for %s", self._indicator.display_name)
        self._indicator = None
        await self._event_bus.emit(Topic.TYPING, "expired")
